"""Printable itinerary document and the client approval view.

:func:`build_document` turns an :class:`~tripdesk.schemas.ExportBundle` into an
:class:`~tripdesk.schemas.ItineraryDocument` layout model; :func:`render_document`
renders that model with Jinja2. Each segment is laid out independently: a
segment whose data cannot be laid out is replaced by a minimal block and the
rest of the document is unaffected.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from .constants import ASSET_WORKERS
from .details import CharterDetails, FlightDetails, HotelDetails
from .formatting import (
    booking_class_label,
    day_date,
    detail_lines,
    details_of,
    format_long_date,
    format_money,
    leg_endpoints,
    route_text,
    segment_color,
)
from .grouping import resolve_days
from .journeys import calculate_layover, format_time, is_red_eye, journey_total_time
from .schemas import (
    AdvisorContact,
    ChoiceBlock,
    ChoiceGroupItem,
    ClientView,
    CoverSection,
    DayBlock,
    DayItem,
    DaySection,
    ExportBundle,
    ItineraryDocument,
    JourneyBlock,
    JourneyItem,
    JourneyLegBlock,
    PricingBlock,
    PricingSummary,
    PropertyBlock,
    PropertyGroupItem,
    SegmentBlock,
    SegmentItem,
    SegmentVariant,
    TripSegment,
)
from .totals import calculate_totals, combined_cost, property_group_total
from .utils import render_itinerary_document, resolve_branding
from .variants import resolve_pricing

logger = logging.getLogger(__name__)

PhotoFetcher = Callable[[TripSegment], List[str]]
VariantFetcher = Callable[[TripSegment], List[SegmentVariant]]


@dataclass
class _Assets:
    photos: List[str] = field(default_factory=list)
    variants: List[SegmentVariant] = field(default_factory=list)


def _fetch_assets(
    segment: TripSegment,
    fetch_photos: Optional[PhotoFetcher],
    fetch_variants: Optional[VariantFetcher],
) -> _Assets:
    photos = list(segment.photos)
    variants = list(segment.variants)
    if fetch_photos is not None:
        try:
            photos = list(fetch_photos(segment))
        except Exception:
            logger.warning("Could not load photos for segment %s", segment.id, exc_info=True)
            photos = []
    if fetch_variants is not None and segment.has_variants:
        try:
            variants = list(fetch_variants(segment))
        except Exception:
            logger.warning("Could not load variants for segment %s", segment.id, exc_info=True)
    return _Assets(photos=photos, variants=variants)


def resolve_assets(
    segments: Sequence[TripSegment],
    fetch_photos: Optional[PhotoFetcher] = None,
    fetch_variants: Optional[VariantFetcher] = None,
) -> List[TripSegment]:
    """Attach photos and variants to every segment, fetching them concurrently.

    A failing photo fetch leaves that segment without photos; a failing variant
    fetch keeps the variants the segment already carries.
    """

    if not segments or (fetch_photos is None and fetch_variants is None):
        return list(segments)

    workers = max(1, min(ASSET_WORKERS, len(segments)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tripdesk-assets") as pool:
        futures = [
            pool.submit(_fetch_assets, segment, fetch_photos, fetch_variants)
            for segment in segments
        ]
        assets = [future.result() for future in futures]

    return [
        segment.model_copy(update={"photos": found.photos, "variants": found.variants})
        for segment, found in zip(segments, assets)
    ]


@dataclass
class _Layout:
    is_approved: bool
    show_pricing: bool
    time_format: str

    def money(self, amount: Optional[Decimal], currency: str) -> Optional[str]:
        if not self.show_pricing or amount is None:
            return None
        return format_money(amount, currency)


def _minimal_block(segment: TripSegment) -> SegmentBlock:
    return SegmentBlock(
        segment_id=segment.id,
        type=segment.type,
        title=segment.title,
        color=segment_color(segment.type),
        degraded=True,
    )


def _segment_block(segment: TripSegment, layout: _Layout) -> SegmentBlock:
    pricing = resolve_pricing(segment, segment.variants, is_approved=layout.is_approved)
    details = details_of(segment)
    return SegmentBlock(
        segment_id=segment.id,
        type=segment.type,
        title=segment.title,
        subtitle=segment.subtitle,
        detail_lines=detail_lines(segment, layout.time_format),
        confirmation=segment.confirmation_number or details.confirmation_number,
        cost_line=layout.money(pricing.price, pricing.currency),
        notes=segment.notes,
        photos=list(segment.photos) or list(details.photos),
        color=segment_color(segment.type),
        pricing=pricing if layout.show_pricing else None,
    )


def _safe_segment_block(segment: TripSegment, layout: _Layout) -> SegmentBlock:
    try:
        return _segment_block(segment, layout)
    except Exception:
        logger.warning("Rendering segment %s as a minimal block", segment.id, exc_info=True)
        return _minimal_block(segment)


def _leg_block(
    leg: TripSegment, previous: Optional[TripSegment], layout: _Layout
) -> JourneyLegBlock:
    details = details_of(leg)
    airline = None
    cabin = None
    number = None
    if isinstance(details, FlightDetails):
        airline = details.airline
        cabin = booking_class_label(details.booking_class)
        number = details.flight_number
    elif isinstance(details, CharterDetails):
        airline = details.operator
        number = details.tail_number

    departure_time = getattr(details, "departure_time", None) or leg.start_time
    arrival_time = getattr(details, "arrival_time", None) or leg.end_time
    times = None
    if departure_time and arrival_time:
        times = (
            f"{format_time(departure_time, layout.time_format)} – "
            f"{format_time(arrival_time, layout.time_format)}"
        )

    layover = None
    if previous is not None:
        layover = calculate_layover(details_of(previous), details)
    return JourneyLegBlock(
        segment_id=leg.id,
        flight_label=" ".join(part for part in (airline, number) if part) or leg.title,
        airline=airline,
        booking_class=cabin,
        route=route_text(details),
        times=times,
        layover_before=layover,
        connection_before=previous is not None and layover is None,
    )


def _journey_block(item: JourneyItem, layout: _Layout) -> JourneyBlock:
    legs = item.legs
    first, last = legs[0], legs[-1]
    first_details = details_of(first)
    origin, _ = leg_endpoints(first_details)
    _, destination = leg_endpoints(details_of(last))

    leg_blocks: List[JourneyLegBlock] = []
    previous = None
    for leg in legs:
        leg_blocks.append(_leg_block(leg, previous, layout))
        previous = leg

    local_departure = getattr(first_details, "departure_time_local", None) or getattr(
        first_details, "departure_time", None
    )
    pricing = resolve_pricing(
        first, first.variants, is_approved=layout.is_approved, journey_legs=legs
    )
    cost = combined_cost(legs, layout.is_approved)
    return JourneyBlock(
        journey_id=item.journey_id,
        origin=origin,
        destination=destination,
        stops=len(legs) - 1,
        total_time=journey_total_time(first_details, details_of(last)),
        red_eye=is_red_eye(local_departure),
        legs=leg_blocks,
        confirmation=first.confirmation_number or first_details.confirmation_number,
        cost_line=layout.money(cost, first.currency),
        pricing=pricing if layout.show_pricing else None,
    )


def _choice_block(item: ChoiceGroupItem, layout: _Layout) -> ChoiceBlock:
    chosen = [option for option in item.options if option.is_choice_selected]
    shown = item.options
    if layout.is_approved and chosen:
        shown = chosen[:1]
    return ChoiceBlock(
        choice_group_id=item.choice_group_id,
        resolved=bool(chosen),
        options=[_safe_segment_block(option, layout) for option in shown],
    )


def _property_block(item: PropertyGroupItem, layout: _Layout) -> PropertyBlock:
    first_details = details_of(item.rooms[0])
    hotel_name = item.rooms[0].title
    if isinstance(first_details, HotelDetails) and first_details.hotel_name:
        hotel_name = first_details.hotel_name
    total = property_group_total(item.rooms, layout.is_approved)
    return PropertyBlock(
        property_group_id=item.property_group_id,
        hotel_name=hotel_name,
        rooms=[_safe_segment_block(room, layout) for room in item.rooms],
        property_total=total if layout.show_pricing else None,
        property_total_display=layout.money(total, item.rooms[0].currency),
    )


def _item_segments(item: DayItem) -> List[TripSegment]:
    if isinstance(item, JourneyItem):
        return list(item.legs)
    if isinstance(item, ChoiceGroupItem):
        return list(item.options)
    if isinstance(item, PropertyGroupItem):
        return list(item.rooms)
    return [item.segment]


def build_blocks(items: Sequence[DayItem], layout: _Layout) -> List[DayBlock]:
    blocks: List[DayBlock] = []
    for item in items:
        if isinstance(item, SegmentItem):
            blocks.append(_safe_segment_block(item.segment, layout))
            continue
        try:
            if isinstance(item, JourneyItem):
                blocks.append(_journey_block(item, layout))
            elif isinstance(item, ChoiceGroupItem):
                blocks.append(_choice_block(item, layout))
            else:
                blocks.append(_property_block(item, layout))
        except Exception:
            logger.warning("Rendering %s group members individually", item.kind, exc_info=True)
            blocks.extend(_safe_segment_block(seg, layout) for seg in _item_segments(item))
    return blocks


def _day_sections(
    bundle: ExportBundle, segments: Sequence[TripSegment], layout: _Layout
) -> List[DaySection]:
    sections: List[DaySection] = []
    for day_number, items in resolve_days(segments):
        when = day_date(bundle.trip.start_date, day_number)
        label = f"Day {day_number}"
        if when is not None:
            label += f" — {format_long_date(when)}"
        sections.append(
            DaySection(
                day_number=day_number,
                label=label,
                day_date=when,
                blocks=build_blocks(items, layout),
            )
        )
    return sections


def pricing_block(summary: Optional[PricingSummary]) -> Optional[PricingBlock]:
    if summary is None:
        return None
    discount_display = None
    if summary.discount_amount > 0:
        discount_display = f"-{format_money(summary.discount_amount, summary.currency)}"
    return PricingBlock(
        summary=summary,
        subtotal_display=format_money(summary.subtotal, summary.currency),
        discount_label=summary.discount_label if discount_display else None,
        discount_display=discount_display,
        total_display=format_money(summary.total, summary.currency),
    )


def _cover(bundle: ExportBundle) -> CoverSection:
    trip = bundle.trip
    dates = [format_long_date(value) for value in (trip.start_date, trip.end_date) if value]
    branding = resolve_branding(bundle.organization, bundle.advisor)
    return CoverSection(
        title=trip.title,
        destinations=", ".join(trip.destinations),
        client_name=bundle.client.full_name if bundle.client else None,
        companions=list(trip.companion_names),
        date_range=" – ".join(dates) or None,
        branding=branding["cover_line"],
        logo_url=branding["logo_url"],
    )


def _advisor_contact(bundle: ExportBundle) -> Optional[AdvisorContact]:
    if bundle.advisor is None:
        return None
    return AdvisorContact(
        full_name=bundle.advisor.full_name,
        email=bundle.advisor.email,
        phone=bundle.advisor.phone,
        organization=bundle.organization.name,
    )


def _layout_for(bundle: ExportBundle, time_format: Optional[str]) -> _Layout:
    return _Layout(
        is_approved=bundle.is_approved,
        show_pricing=bundle.version.show_pricing,
        time_format=time_format or bundle.organization.time_format,
    )


def _summary(
    bundle: ExportBundle, segments: Sequence[TripSegment], layout: _Layout
) -> Optional[PricingSummary]:
    if not layout.show_pricing:
        return None
    return calculate_totals(
        bundle.version,
        segments,
        is_approved=layout.is_approved,
        currency=bundle.trip.currency,
    )


def build_document(
    bundle: ExportBundle,
    *,
    fetch_photos: Optional[PhotoFetcher] = None,
    fetch_variants: Optional[VariantFetcher] = None,
    time_format: Optional[str] = None,
) -> ItineraryDocument:
    """Lay out the bundle as cover, day sections, pricing summary and advisor block."""

    bundle.require_complete()
    segments = resolve_assets(bundle.segments, fetch_photos, fetch_variants)
    layout = _layout_for(bundle, time_format)
    branding = resolve_branding(bundle.organization, bundle.advisor)

    return ItineraryDocument(
        trip_id=bundle.trip.id,
        version_id=bundle.version.id,
        version_name=bundle.version.name,
        organization_name=bundle.organization.name,
        is_approved=layout.is_approved,
        show_pricing=layout.show_pricing,
        cover=_cover(bundle),
        days=_day_sections(bundle, segments, layout),
        pricing=pricing_block(_summary(bundle, segments, layout)),
        advisor=_advisor_contact(bundle),
        footer=branding["powered_by"],
    )


def render_document(document: ItineraryDocument) -> str:
    return render_itinerary_document(document)


def export_document(
    bundle: ExportBundle,
    *,
    fetch_photos: Optional[PhotoFetcher] = None,
    fetch_variants: Optional[VariantFetcher] = None,
    time_format: Optional[str] = None,
) -> bytes:
    document = build_document(
        bundle,
        fetch_photos=fetch_photos,
        fetch_variants=fetch_variants,
        time_format=time_format,
    )
    return render_document(document).encode("utf-8")


def _open_decisions(days: Sequence[DaySection]) -> int:
    count = 0
    for day in days:
        for block in day.blocks:
            if isinstance(block, ChoiceBlock):
                if not block.resolved:
                    count += 1
                candidates = block.options
            elif isinstance(block, PropertyBlock):
                candidates = block.rooms
            else:
                candidates = [block]
            count += sum(
                1
                for candidate in candidates
                if candidate.pricing is not None and candidate.pricing.mode == "options"
            )
    return count


def build_client_view(bundle: ExportBundle, *, time_format: Optional[str] = None) -> ClientView:
    """Resolved days and pricing for the client approval screen."""

    bundle.require_complete()
    layout = _layout_for(bundle, time_format)
    days = _day_sections(bundle, bundle.segments, layout)
    return ClientView(
        trip_id=bundle.trip.id,
        trip_title=bundle.trip.title,
        version_id=bundle.version.id,
        version_name=bundle.version.name,
        is_approved=layout.is_approved,
        show_pricing=layout.show_pricing,
        days=days,
        pricing=pricing_block(_summary(bundle, bundle.segments, layout)),
        advisor=_advisor_contact(bundle),
        open_decisions=_open_decisions(days),
    )
