"""Version subtotal, discount and total."""
from __future__ import annotations

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .schemas import PricingSummary, TripSegment, TripVersion
from .variants import selected_variant

ZERO = Decimal("0")


def effective_segment_cost(segment: TripSegment, is_approved: bool) -> Optional[Decimal]:
    """Cost that counts toward the total: the selected variant's once approved."""

    if is_approved and segment.variants:
        chosen = selected_variant(segment.variants)
        if chosen is not None and chosen.cost is not None:
            return chosen.cost
    return segment.cost


def _unchosen_alternatives(segments: Sequence[TripSegment]) -> set[int]:
    groups: Dict[str, List[TripSegment]] = defaultdict(list)
    for segment in segments:
        if segment.choice_group_id:
            groups[segment.choice_group_id].append(segment)

    excluded: set[int] = set()
    for members in groups.values():
        if any(member.is_choice_selected for member in members):
            excluded.update(member.id for member in members if not member.is_choice_selected)
    return excluded


def counted_segments(segments: Sequence[TripSegment]) -> List[TripSegment]:
    """Segments whose cost is part of the subtotal."""

    excluded = _unchosen_alternatives(segments)
    return [segment for segment in segments if segment.id not in excluded]


def _discount_amount(version: TripVersion, subtotal: Decimal) -> Decimal:
    if not version.discount:
        return ZERO
    if version.discount_type == "percent":
        raw = subtotal * Decimal(version.discount) / Decimal(100)
        return raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return Decimal(version.discount)


def discount_label(version: TripVersion) -> Optional[str]:
    if not version.discount:
        return None
    if version.discount_label:
        return version.discount_label
    if version.discount_type == "percent":
        return f"Discount ({version.discount}%)"
    return "Discount"


def calculate_totals(
    version: TripVersion,
    segments: Sequence[TripSegment],
    *,
    is_approved: bool,
    currency: str = "USD",
) -> Optional[PricingSummary]:
    """Roll up a version's costs; ``None`` when nothing is priced."""

    subtotal = ZERO
    for segment in counted_segments(segments):
        cost = effective_segment_cost(segment, is_approved)
        if cost is not None:
            subtotal += cost

    if subtotal <= 0:
        return None

    discount = _discount_amount(version, subtotal)
    total = max(ZERO, subtotal - discount)
    return PricingSummary(
        currency=currency,
        subtotal=subtotal,
        discount_type=version.discount_type if version.discount else None,
        discount_value=version.discount or None,
        discount_label=discount_label(version),
        discount_amount=discount,
        total=total,
    )


def combined_cost(segments: Iterable[TripSegment], is_approved: bool) -> Optional[Decimal]:
    costs = [effective_segment_cost(segment, is_approved) for segment in segments]
    priced = [cost for cost in costs if cost is not None]
    if not priced:
        return None
    return sum(priced, ZERO)


def property_group_total(rooms: Iterable[TripSegment], is_approved: bool) -> Optional[Decimal]:
    """Combined cost of the rooms of one stay, ``None`` when none is priced."""

    return combined_cost(rooms, is_approved)
