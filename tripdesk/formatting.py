"""Segment text shared by the calendar feed, the printable document and the client view."""
from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional

from .constants import (
    BOOKING_CLASS_LABELS,
    CURRENCY_SYMBOLS,
    SEGMENT_COLORS,
    ZERO_DECIMAL_CURRENCIES,
)
from .details import (
    ActivityDetails,
    CharterDetails,
    FlightDetails,
    HotelDetails,
    NoteDetails,
    RestaurantDetails,
    SegmentDetails,
    TransportDetails,
    parse_details,
)
from .journeys import format_time
from .schemas import TripSegment


def format_money(amount: object, currency: Optional[str] = None) -> str:
    """Format ``amount`` for display; unknown codes fall back to ``"{CODE} {amount}"``."""

    code = (currency or "USD").upper()
    try:
        value = Decimal(str(amount))
        places = Decimal("1") if code in ZERO_DECIMAL_CURRENCIES else Decimal("0.01")
        value = value.quantize(places, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return f"{code} {amount}"

    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{code} {value}"
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,}"


def format_long_date(value: Optional[date]) -> str:
    if value is None:
        return ""
    return f"{value:%B} {value.day}, {value.year}"


def day_date(start_date: Optional[date], day_number: int) -> Optional[date]:
    if start_date is None:
        return None
    return start_date + timedelta(days=day_number - 1)


def booking_class_label(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return BOOKING_CLASS_LABELS.get(value.lower(), value)


def segment_color(segment_type: str) -> str:
    return SEGMENT_COLORS.get(segment_type, SEGMENT_COLORS["note"])


def details_of(segment: TripSegment) -> SegmentDetails:
    return segment.details or parse_details(segment.type, segment.metadata)


def leg_endpoints(details: SegmentDetails) -> tuple[str, str]:
    """Departure and arrival codes of a flight or charter leg."""

    if isinstance(details, FlightDetails):
        return details.departure_airport or "", details.arrival_airport or ""
    if isinstance(details, CharterDetails):
        return details.departure_location or "", details.arrival_location or ""
    return "", ""


def route_text(details: SegmentDetails, arrow: str = " → ") -> Optional[str]:
    departure, arrival = leg_endpoints(details)
    if departure and arrival:
        return f"{departure}{arrow}{arrival}"
    return None


def time_range(segment: TripSegment, time_format: str = "24h") -> Optional[str]:
    if not segment.start_time:
        return None
    start = format_time(segment.start_time, time_format)
    if segment.end_time:
        return f"{start} – {format_time(segment.end_time, time_format)}"
    return start


def detail_lines(segment: TripSegment, time_format: str = "24h") -> List[str]:
    """Type-specific lines for a segment card; absent fields are simply omitted."""

    details = details_of(segment)
    lines: List[str] = []

    if isinstance(details, FlightDetails):
        route = route_text(details)
        if route:
            lines.append(route)
        if details.flight_number:
            lines.append(f"Flight {details.flight_number}")
        if details.airline:
            lines.append(details.airline)
        cabin = booking_class_label(details.booking_class)
        if cabin:
            lines.append(f"Cabin: {cabin}")
        if details.departure_terminal:
            lines.append(f"Departs terminal {details.departure_terminal}")
    elif isinstance(details, CharterDetails):
        route = route_text(details)
        if route:
            lines.append(route)
        if details.operator:
            lines.append(f"Operator: {details.operator}")
        if details.aircraft_type:
            lines.append(f"Aircraft: {details.aircraft_type}")
        if details.fbo_handler:
            lines.append(f"FBO: {details.fbo_handler}")
    elif isinstance(details, HotelDetails):
        if details.hotel_name:
            lines.append(details.hotel_name)
        if details.room_type:
            lines.append(f"Room: {details.room_type}")
        if details.star_rating:
            lines.append(f"{'★' * details.star_rating} rating")
    elif isinstance(details, RestaurantDetails):
        if details.restaurant_name:
            lines.append(details.restaurant_name)
        if details.cuisine:
            lines.append(f"Cuisine: {details.cuisine}")
        if details.guest_name:
            lines.append(f"Guest: {details.guest_name}")
        if details.party_size:
            lines.append(f"Party of {details.party_size}")
    elif isinstance(details, ActivityDetails):
        if details.provider:
            lines.append(f"Provider: {details.provider}")
        if details.category:
            lines.append(f"Category: {details.category}")
        if details.meeting_point:
            lines.append(f"Meeting: {details.meeting_point}")
    elif isinstance(details, TransportDetails):
        if details.provider:
            lines.append(f"Provider: {details.provider}")
        if details.vehicle:
            lines.append(f"Vehicle: {details.vehicle}")
        if details.pickup_location and details.dropoff_location:
            lines.append(f"{details.pickup_location} → {details.dropoff_location}")
    elif isinstance(details, NoteDetails):
        if segment.type == "note":
            lines.append(f"[{details.note_type.upper()}]")
        if details.content:
            lines.append(details.content[:200])

    times = time_range(segment, time_format)
    if times:
        lines.append(f"Time: {times}")
    return lines


def calendar_description(segment: TripSegment, *, show_pricing: bool = True) -> List[str]:
    """Lines of a calendar event description, joined by the caller."""

    details = details_of(segment)
    lines: List[str] = []

    if isinstance(details, FlightDetails):
        if details.airline:
            lines.append(f"Airline: {details.airline}")
        if details.flight_number:
            lines.append(f"Flight: {details.flight_number}")
        route = route_text(details)
        if route:
            lines.append(f"Route: {route}")
    elif isinstance(details, CharterDetails):
        if details.operator:
            lines.append(f"Operator: {details.operator}")
        route = route_text(details)
        if route:
            lines.append(f"Route: {route}")
    elif isinstance(details, HotelDetails):
        if details.hotel_name:
            lines.append(f"Hotel: {details.hotel_name}")
        if details.room_type:
            lines.append(f"Room: {details.room_type}")
    elif isinstance(details, RestaurantDetails):
        if details.restaurant_name:
            lines.append(f"Restaurant: {details.restaurant_name}")
        if details.cuisine:
            lines.append(f"Cuisine: {details.cuisine}")
    elif isinstance(details, ActivityDetails):
        if details.provider:
            lines.append(f"Provider: {details.provider}")
        if details.meeting_point:
            lines.append(f"Meeting Point: {details.meeting_point}")
    elif isinstance(details, TransportDetails):
        if details.provider:
            lines.append(f"Provider: {details.provider}")
        if details.pickup_location:
            lines.append(f"Pickup: {details.pickup_location}")

    confirmation = segment.confirmation_number or details.confirmation_number
    if confirmation:
        lines.append(f"Confirmation: {confirmation}")
    if segment.notes:
        lines.append(f"Notes: {segment.notes}")
    if show_pricing and segment.cost is not None:
        lines.append(f"Cost: {format_money(segment.cost, segment.currency)}")
    return lines


def segment_location(segment: TripSegment) -> str:
    details = details_of(segment)
    if isinstance(details, (FlightDetails, CharterDetails)):
        departure, arrival = leg_endpoints(details)
        if departure and arrival:
            return f"{departure} to {arrival}"
    elif isinstance(details, HotelDetails):
        return details.address or details.hotel_name or segment.title
    elif isinstance(details, RestaurantDetails):
        return details.address or details.restaurant_name or segment.title
    elif isinstance(details, ActivityDetails):
        return details.meeting_point or details.location or segment.title
    elif isinstance(details, TransportDetails):
        return details.pickup_location or segment.subtitle or ""
    return segment.subtitle or ""
