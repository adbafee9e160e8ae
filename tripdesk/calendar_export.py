"""iCalendar (RFC 5545) feed for one trip version."""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .constants import CALENDAR_PRODUCT, DEFAULT_TIMEZONE
from .formatting import calendar_description, day_date, segment_location
from .grouping import split_days
from .journeys import parse_clock
from .schemas import ExportBundle, TripSegment

logger = logging.getLogger(__name__)

MAX_LINE_OCTETS = 75


def escape_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def fold_line(line: str) -> str:
    """Split a content line into 75-octet chunks without breaking UTF-8 sequences."""

    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return line
    chunks: List[str] = []
    current = ""
    size = 0
    for char in line:
        width = len(char.encode("utf-8"))
        if size + width > MAX_LINE_OCTETS:
            chunks.append(current)
            current = char
            # continuation lines start with a space
            size = 1 + width
        else:
            current += char
            size += width
    chunks.append(current)
    return "\r\n ".join(chunks)


def format_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def format_date_value(value: date) -> str:
    return value.strftime("%Y%m%d")


def _zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, using %s", name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)


def event_times(segment: TripSegment, day: date, zone: ZoneInfo) -> List[str]:
    """DTSTART/DTEND properties for one segment on ``day``."""

    start_clock = parse_clock(segment.start_time)
    if start_clock is None:
        return [
            f"DTSTART;VALUE=DATE:{format_date_value(day)}",
            f"DTEND;VALUE=DATE:{format_date_value(day + timedelta(days=1))}",
        ]

    start = datetime.combine(day, time(*start_clock), tzinfo=zone)
    end_clock = parse_clock(segment.end_time)
    if end_clock is None:
        end = start + timedelta(hours=1)
    else:
        end = datetime.combine(day, time(*end_clock), tzinfo=zone)
        if end <= start:
            end += timedelta(days=1)
    return [f"DTSTART:{format_utc(start)}", f"DTEND:{format_utc(end)}"]


def _event(
    bundle: ExportBundle, segment: TripSegment, zone: ZoneInfo, stamp: str
) -> List[str]:
    lines = [
        "BEGIN:VEVENT",
        f"UID:{segment.id}@tripdesk",
        f"DTSTAMP:{stamp}",
        f"SUMMARY:{escape_text(f'[{segment.type.upper()}] {segment.title}')}",
    ]

    day = day_date(bundle.trip.start_date, segment.day_number)
    if day is not None:
        lines.extend(event_times(segment, day, zone))

    description = calendar_description(segment, show_pricing=bundle.version.show_pricing)
    if description:
        lines.append("DESCRIPTION:" + "\\n".join(escape_text(part) for part in description))
    location = segment_location(segment)
    if location:
        lines.append(f"LOCATION:{escape_text(location)}")
    lines.append(f"CATEGORIES:{segment.type.upper()}")
    lines.append("END:VEVENT")
    return lines


def generate_calendar(bundle: ExportBundle, *, now: Optional[datetime] = None) -> str:
    """Render the bundle's segments as a VCALENDAR document with CRLF line endings."""

    bundle.require_complete()
    trip = bundle.trip
    zone = _zone(trip.timezone)
    stamp = format_utc(now or datetime.now(timezone.utc))

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:-//{escape_text(bundle.organization.name)}//{CALENDAR_PRODUCT}//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_text(trip.title)}",
        f"X-WR-TIMEZONE:{zone.key}",
    ]
    for _, day_segments in split_days(bundle.segments):
        for segment in day_segments:
            lines.extend(_event(bundle, segment, zone, stamp))
    lines.append("END:VCALENDAR")

    return "\r\n".join(fold_line(line) for line in lines) + "\r\n"
