"""Decide which price, label and options a segment shows to the client.

Three regimes apply once a segment carries variants:

* the version is approved: only the final pick is shown, the selected variant
  when there is one, otherwise the segment's own booking;
* a variant is selected but the version is not yet approved: a single
  "Selected Option" box;
* nothing selected: the primary option followed by every variant.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

from .constants import UPGRADE_VARIANT_TYPE
from .details import CharterDetails, FlightDetails, HotelDetails
from .formatting import booking_class_label, details_of, format_long_date, leg_endpoints
from .schemas import OptionRow, PricingView, SegmentVariant, TripSegment

logger = logging.getLogger(__name__)

REFUND_LABELS = {
    "non_refundable": "Non-refundable",
    "refundable": "Refundable",
    "partial": "Partial refund",
}


def _ordered(variants: Sequence[SegmentVariant]) -> List[SegmentVariant]:
    return sorted(variants, key=lambda variant: (variant.sort_order, variant.id))


def selected_variant(variants: Sequence[SegmentVariant]) -> Optional[SegmentVariant]:
    """The selected variant, if any. Extra selections are ignored with a warning."""

    selected = [variant for variant in _ordered(variants) if variant.is_selected]
    if len(selected) > 1:
        logger.warning(
            "Segment %s has %d selected variants; using variant %s",
            selected[0].segment_id,
            len(selected),
            selected[0].id,
        )
    return selected[0] if selected else None


def unit_label(segment: TripSegment) -> str:
    return "room" if segment.type == "hotel" else "pax"


def per_unit_price(variant: SegmentVariant) -> Optional[Decimal]:
    if variant.price_per_unit is not None and variant.price_per_unit > 0:
        return variant.price_per_unit
    if variant.quantity > 1 and variant.cost is not None and variant.cost > 0:
        return (variant.cost / variant.quantity).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return None


def refund_text(variant: SegmentVariant) -> Optional[str]:
    label = REFUND_LABELS.get(variant.refundability)
    if label is None:
        return None
    if variant.refundability == "non_refundable":
        return label
    if variant.refund_deadline:
        return f"{label} until {format_long_date(variant.refund_deadline)}"
    return label


def _stops_text(stops: int) -> str:
    if stops <= 0:
        return "Nonstop"
    return "1 stop" if stops == 1 else f"{stops} stops"


def _route(segment: TripSegment, journey_legs: Optional[Sequence[TripSegment]]) -> Optional[str]:
    legs = list(journey_legs) if journey_legs else [segment]
    departure, _ = leg_endpoints(details_of(legs[0]))
    _, arrival = leg_endpoints(details_of(legs[-1]))
    if departure and arrival:
        return f"{departure}→{arrival}"
    return None


def _passengers(segment: TripSegment) -> int:
    details = details_of(segment)
    if isinstance(details, (FlightDetails, CharterDetails)) and details.passengers:
        return details.passengers
    if isinstance(details, HotelDetails) and details.rooms:
        return details.rooms
    return 1


def primary_option_label(
    segment: TripSegment, journey_legs: Optional[Sequence[TripSegment]] = None
) -> str:
    """Describe the segment's own booking, e.g. ``JFK→LHR (Nonstop, Business, 2 passengers)``."""

    details = details_of(segment)
    if isinstance(details, (FlightDetails, CharterDetails)):
        route = _route(segment, journey_legs)
        if route is None:
            return segment.title
        if journey_legs:
            stops = len(journey_legs) - 1
        else:
            stops = getattr(details, "stops", None) or 0
        parts = [_stops_text(stops)]
        cabin = booking_class_label(getattr(details, "booking_class", None))
        if cabin:
            parts.append(cabin)
        passengers = _passengers(segment)
        parts.append(f"{passengers} passenger" if passengers == 1 else f"{passengers} passengers")
        return f"{route} ({', '.join(parts)})"

    if isinstance(details, HotelDetails) and details.hotel_name:
        if details.room_type:
            return f"{details.hotel_name} — {details.room_type}"
        return details.hotel_name

    return segment.title


def variant_display_label(
    segment: TripSegment,
    variant: SegmentVariant,
    journey_legs: Optional[Sequence[TripSegment]] = None,
) -> str:
    """Upgrades read as a change to the primary booking; other variants stand alone."""

    if variant.variant_type != UPGRADE_VARIANT_TYPE:
        return variant.label

    details = details_of(segment)
    identity = segment.title
    replaced = None
    if isinstance(details, (FlightDetails, CharterDetails)):
        identity = _route(segment, journey_legs) or segment.title
        replaced = booking_class_label(getattr(details, "booking_class", None))
    elif isinstance(details, HotelDetails):
        identity = details.hotel_name or segment.title
        replaced = details.room_type

    label = f"{identity}: {variant.label}"
    if replaced and replaced.lower() != variant.label.lower():
        label += f" (instead of {replaced})"
    return label


def _primary_cost(
    segment: TripSegment, journey_legs: Optional[Sequence[TripSegment]]
) -> Optional[Decimal]:
    if not journey_legs:
        return segment.cost
    priced = [leg.cost for leg in journey_legs if leg.cost is not None]
    if not priced:
        return None
    return sum(priced, Decimal("0"))


def _primary_row(
    segment: TripSegment, journey_legs: Optional[Sequence[TripSegment]]
) -> OptionRow:
    quantity = _passengers(segment)
    cost = _primary_cost(segment, journey_legs)
    per_unit = None
    if quantity > 1 and cost is not None and cost > 0:
        per_unit = (cost / quantity).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return OptionRow(
        label=primary_option_label(segment, journey_legs),
        cost=cost,
        currency=segment.currency,
        quantity=quantity,
        per_unit_price=per_unit,
        unit_label=unit_label(segment),
        is_primary=True,
    )


def _variant_row(
    segment: TripSegment,
    variant: SegmentVariant,
    journey_legs: Optional[Sequence[TripSegment]],
) -> OptionRow:
    return OptionRow(
        variant_id=variant.id,
        label=variant_display_label(segment, variant, journey_legs),
        description=variant.description,
        cost=variant.cost,
        currency=variant.currency,
        quantity=variant.quantity,
        per_unit_price=per_unit_price(variant),
        unit_label=unit_label(segment),
        refund_text=refund_text(variant),
        requested=variant.is_submitted,
    )


def resolve_pricing(
    segment: TripSegment,
    variants: Sequence[SegmentVariant],
    *,
    is_approved: bool,
    journey_legs: Optional[Sequence[TripSegment]] = None,
) -> PricingView:
    """Pricing for one segment, or for a journey when ``journey_legs`` is given.

    For journeys ``segment`` is the first leg and carries the journey's variants.
    """

    primary = _primary_row(segment, journey_legs)
    if not variants:
        return PricingView(
            mode="plain",
            label=primary.label,
            price=primary.cost,
            currency=segment.currency,
        )

    chosen = selected_variant(variants)

    if is_approved:
        if chosen is None:
            return PricingView(
                mode="approved",
                label=primary.label,
                price=primary.cost,
                currency=segment.currency,
                primary=primary,
            )
        row = _variant_row(segment, chosen, journey_legs)
        return PricingView(
            mode="approved",
            label=row.label,
            price=chosen.cost,
            currency=chosen.currency,
            selected=row,
        )

    if chosen is not None:
        row = _variant_row(segment, chosen, journey_legs)
        return PricingView(
            mode="selected",
            label=row.label,
            price=chosen.cost,
            currency=chosen.currency,
            header="Selected Option",
            selected=row,
        )

    rows = [_variant_row(segment, variant, journey_legs) for variant in _ordered(variants)]
    header = "Options"
    if any(row.requested for row in rows):
        header = "Options (client preference indicated)"
    return PricingView(
        mode="options",
        label=primary.label,
        price=primary.cost,
        currency=segment.currency,
        header=header,
        primary=primary,
        options=rows,
    )
