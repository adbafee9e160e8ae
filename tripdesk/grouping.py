"""Partition one day's segments into renderable items.

Grouping precedence is explicit: a segment that belongs to a journey of two or
more legs is rendered as part of that journey; otherwise a choice group of two
or more options claims it; otherwise, for hotels, a property group of two or
more rooms. Anything left is a standalone segment, including members of groups
that turned out to have a single member.

Items appear in the order of their first member in the input.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from .constants import JOURNEY_SEGMENT_TYPES
from .details import CharterDetails, FlightDetails
from .formatting import details_of
from .schemas import (
    ChoiceGroupItem,
    DayItem,
    JourneyItem,
    PropertyGroupItem,
    SegmentItem,
    TripSegment,
)


def split_days(segments: Iterable[TripSegment]) -> List[Tuple[int, List[TripSegment]]]:
    """Group segments by day number (ascending), each day in sort order."""

    days: Dict[int, List[TripSegment]] = defaultdict(list)
    for segment in segments:
        days[segment.day_number].append(segment)
    return [
        (day_number, sorted(days[day_number], key=lambda seg: seg.sort_order))
        for day_number in sorted(days)
    ]


def leg_number(segment: TripSegment) -> int:
    details = details_of(segment)
    if isinstance(details, (FlightDetails, CharterDetails)) and details.leg_number is not None:
        return details.leg_number
    return 0


def _journey_groups(segments: Sequence[TripSegment]) -> Dict[str, List[TripSegment]]:
    groups: Dict[str, List[TripSegment]] = defaultdict(list)
    for segment in segments:
        if segment.journey_id and segment.type in JOURNEY_SEGMENT_TYPES:
            groups[segment.journey_id].append(segment)
    return {key: legs for key, legs in groups.items() if len(legs) >= 2}


def _choice_groups(
    segments: Sequence[TripSegment], consumed: Set[int]
) -> Dict[str, List[TripSegment]]:
    groups: Dict[str, List[TripSegment]] = defaultdict(list)
    for segment in segments:
        if segment.choice_group_id and segment.id not in consumed:
            groups[segment.choice_group_id].append(segment)
    return {key: options for key, options in groups.items() if len(options) >= 2}


def build_day_items(segments: Sequence[TripSegment]) -> List[DayItem]:
    """Resolve journeys and choice groups for one day in a single pass."""

    journeys = _journey_groups(segments)
    in_journey = {seg.id for legs in journeys.values() for seg in legs}
    choices = _choice_groups(segments, in_journey)

    items: List[DayItem] = []
    seen_journeys: Set[str] = set()
    seen_choices: Set[str] = set()

    for segment in segments:
        if segment.id in in_journey:
            if segment.journey_id not in seen_journeys:
                seen_journeys.add(segment.journey_id)
                legs = sorted(journeys[segment.journey_id], key=leg_number)
                items.append(JourneyItem(journey_id=segment.journey_id, legs=legs))
            continue

        if segment.choice_group_id in choices:
            if segment.choice_group_id not in seen_choices:
                seen_choices.add(segment.choice_group_id)
                options = sorted(choices[segment.choice_group_id], key=lambda seg: seg.sort_order)
                items.append(
                    ChoiceGroupItem(choice_group_id=segment.choice_group_id, options=options)
                )
            continue

        items.append(SegmentItem(segment=segment))
    return items


def group_properties(items: Sequence[DayItem]) -> List[DayItem]:
    """Fold standalone hotel rooms sharing a property group into one item."""

    rooms: Dict[str, List[TripSegment]] = defaultdict(list)
    for item in items:
        if isinstance(item, SegmentItem) and _is_property_room(item.segment):
            rooms[item.segment.property_group_id].append(item.segment)

    grouped: List[DayItem] = []
    emitted: Set[str] = set()
    for item in items:
        if isinstance(item, SegmentItem) and _is_property_room(item.segment):
            key = item.segment.property_group_id
            if len(rooms[key]) >= 2:
                if key not in emitted:
                    emitted.add(key)
                    grouped.append(PropertyGroupItem(property_group_id=key, rooms=rooms[key]))
                continue
        grouped.append(item)
    return grouped


def _is_property_room(segment: TripSegment) -> bool:
    return segment.type == "hotel" and bool(segment.property_group_id)


def resolve_day(segments: Sequence[TripSegment]) -> List[DayItem]:
    return group_properties(build_day_items(segments))


def resolve_days(segments: Iterable[TripSegment]) -> List[Tuple[int, List[DayItem]]]:
    return [(day_number, resolve_day(day)) for day_number, day in split_days(segments)]
