"""Time helpers for multi-leg journeys: layovers, red-eye hints, clock formatting."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from .constants import (
    LONG_LAYOVER_MINUTES,
    RED_EYE_END_HOUR,
    RED_EYE_START_HOUR,
    TIGHT_LAYOVER_MINUTES,
)
from .details import CharterDetails, FlightDetails
from .schemas import LayoverInfo

LegDetails = Union[FlightDetails, CharterDetails]


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""

    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_duration(minutes: int) -> str:
    hours, remainder = divmod(minutes, 60)
    return f"{hours}h {remainder}m" if hours > 0 else f"{remainder}m"


def _arrival_code(leg: LegDetails) -> str:
    if isinstance(leg, CharterDetails):
        return leg.arrival_location or ""
    return leg.arrival_airport or ""


def _departure_code(leg: LegDetails) -> str:
    if isinstance(leg, CharterDetails):
        return leg.departure_location or ""
    return leg.departure_airport or ""


def calculate_layover(arriving: LegDetails, departing: LegDetails) -> Optional[LayoverInfo]:
    """Ground time between two consecutive legs.

    Returns ``None`` when either UTC timestamp is missing or unreadable, or when
    the next departure is not after the arrival. Callers render that as a plain
    "connection" without timing.
    """

    arrival = parse_instant(arriving.arrival_time_utc)
    departure = parse_instant(departing.departure_time_utc)
    if arrival is None or departure is None or departure <= arrival:
        return None

    minutes = int((departure - arrival).total_seconds() // 60)
    if minutes < TIGHT_LAYOVER_MINUTES:
        flag = "tight"
    elif minutes > LONG_LAYOVER_MINUTES:
        flag = "long"
    else:
        flag = "normal"

    arrival_code = _arrival_code(arriving)
    departure_code = _departure_code(departing)
    return LayoverInfo(
        minutes=minutes,
        display=format_duration(minutes),
        flag=flag,
        airport_change=bool(arrival_code and departure_code and arrival_code != departure_code),
        arrival_airport=arrival_code,
        departure_airport=departure_code,
    )


def is_red_eye(local_time: Optional[str]) -> bool:
    """True when the local departure hour is 20:00 or later, or before 05:00."""

    if not local_time:
        return False
    text = local_time.strip()
    for separator in (" ", "T"):
        if separator in text:
            text = text.split(separator, 1)[1]
            break
    try:
        hour = int(text[:5].split(":")[0])
    except ValueError:
        return False
    return hour >= RED_EYE_START_HOUR or hour < RED_EYE_END_HOUR


def journey_total_time(first_leg: LegDetails, last_leg: LegDetails) -> Optional[str]:
    departure = parse_instant(first_leg.departure_time_utc)
    arrival = parse_instant(last_leg.arrival_time_utc)
    if departure is None or arrival is None:
        return None
    minutes = int((arrival - departure).total_seconds() // 60)
    if minutes <= 0:
        return None
    return format_duration(minutes)


def parse_clock(value: Optional[str]) -> Optional[tuple[int, int]]:
    """Read ``HH:MM`` (seconds ignored) into an ``(hour, minute)`` pair."""

    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) < 2:
        return None
    try:
        hour, minute = int(parts[0]), int(parts[1][:2])
    except ValueError:
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def format_time(value: Optional[str], time_format: str = "24h") -> str:
    if not value:
        return ""
    clock = parse_clock(value)
    if clock is None or time_format == "24h":
        return value
    hour, minute = clock
    period = "PM" if hour >= 12 else "AM"
    hour12 = 12 if hour == 0 else hour - 12 if hour > 12 else hour
    return f"{hour12}:{minute:02d} {period}"
