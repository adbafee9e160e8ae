"""Typed views over the free-form ``metadata`` stored on trip segments.

Segments persist their type-specific fields as a JSON object whose keys drifted
over time (``departureAirport`` vs ``departure.iata``, ``photos`` vs
``photoRefs`` ...). :func:`parse_details` resolves those fallbacks once, at the
ingestion boundary, into one Pydantic model per segment type. Render targets
then dispatch on ``details.kind`` instead of probing optional keys.

Malformed values never fail a segment: fields that do not validate are dropped
and the rest of the metadata is kept.
"""
from __future__ import annotations

import logging
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


def _lookup(raw: Dict[str, Any], path: str) -> Any:
    current: Any = raw
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == []


class _Details(BaseModel):
    """Base for every segment details model.

    ``sources`` maps a field to the metadata keys it may be read from, in
    priority order. Dotted keys reach into nested objects.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    sources: ClassVar[Dict[str, Tuple[str, ...]]] = {}

    confirmation_number: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    maps_url: Optional[str] = None

    @classmethod
    def normalize(cls, raw: Dict[str, Any]) -> Dict[str, Any]:
        shared: Dict[str, Tuple[str, ...]] = {
            "confirmation_number": ("confirmationNumber", "confirmation_number"),
            "photos": ("photos", "photoRefs"),
            "address": ("address",),
            "phone": ("phone",),
            "website": ("website",),
            "maps_url": ("mapsUrl", "maps_url"),
        }
        normalized: Dict[str, Any] = {}
        for field, paths in {**shared, **cls.sources}.items():
            for path in paths:
                value = _lookup(raw, path)
                if not _is_blank(value):
                    normalized[field] = value
                    break
        return normalized


class FlightDetails(_Details):
    kind: Literal["flight"] = "flight"

    sources: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "airline": ("airline", "airline.name"),
        "flight_number": ("flightNumber", "flight.iata", "flight_number"),
        "departure_airport": ("departure.iata", "departureAirport", "departure_airport"),
        "arrival_airport": ("arrival.iata", "arrivalAirport", "arrival_airport"),
        "departure_time": ("departure.scheduledTime", "departureTime", "departure_time"),
        "arrival_time": ("arrival.scheduledTime", "arrivalTime", "arrival_time"),
        "departure_time_local": ("departureTimeLocal", "departure.scheduledTimeLocal"),
        "departure_time_utc": ("departureTimeUtc", "departure.scheduledTimeUtc"),
        "arrival_time_utc": ("arrivalTimeUtc", "arrival.scheduledTimeUtc"),
        "departure_terminal": ("departure.terminal", "departureTerminal"),
        "arrival_terminal": ("arrival.terminal", "arrivalTerminal"),
        "booking_class": ("bookingClass", "cabin", "booking_class"),
        "aircraft_type": ("aircraftType", "aircraft.iata"),
        "leg_number": ("legNumber", "leg_number"),
        "stops": ("stops",),
        "passengers": ("passengers", "passengerCount", "quantity"),
    }

    airline: Optional[str] = None
    flight_number: Optional[str] = None
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    departure_time_local: Optional[str] = None
    departure_time_utc: Optional[str] = None
    arrival_time_utc: Optional[str] = None
    departure_terminal: Optional[str] = None
    arrival_terminal: Optional[str] = None
    booking_class: Optional[str] = None
    aircraft_type: Optional[str] = None
    leg_number: Optional[int] = None
    stops: Optional[int] = None
    passengers: Optional[int] = None


class CharterDetails(_Details):
    kind: Literal["charter"] = "charter"

    sources: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "operator": ("operator",),
        "aircraft_type": ("aircraftType",),
        "tail_number": ("tailNumber",),
        "fbo_handler": ("fboHandler",),
        "departure_location": ("departureLocation", "departure.iata", "departureAirport"),
        "arrival_location": ("arrivalLocation", "arrival.iata", "arrivalAirport"),
        "departure_time": ("departureTime", "departure.scheduledTime"),
        "arrival_time": ("arrivalTime", "arrival.scheduledTime"),
        "departure_time_local": ("departureTimeLocal",),
        "departure_time_utc": ("departureTimeUtc",),
        "arrival_time_utc": ("arrivalTimeUtc",),
        "leg_number": ("legNumber",),
        "passengers": ("passengers", "passengerCount"),
    }

    operator: Optional[str] = None
    aircraft_type: Optional[str] = None
    tail_number: Optional[str] = None
    fbo_handler: Optional[str] = None
    departure_location: Optional[str] = None
    arrival_location: Optional[str] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    departure_time_local: Optional[str] = None
    departure_time_utc: Optional[str] = None
    arrival_time_utc: Optional[str] = None
    leg_number: Optional[int] = None
    passengers: Optional[int] = None


class HotelDetails(_Details):
    kind: Literal["hotel"] = "hotel"

    sources: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "hotel_name": ("hotelName", "name"),
        "room_type": ("roomType", "room_type"),
        "star_rating": ("starRating", "stars"),
        "check_in": ("checkInDateTime", "checkIn"),
        "check_out": ("checkOutDateTime", "checkOut"),
        "rooms": ("rooms", "roomCount"),
    }

    hotel_name: Optional[str] = None
    room_type: Optional[str] = None
    star_rating: Optional[int] = Field(None, ge=0, le=7)
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    rooms: Optional[int] = None


class RestaurantDetails(_Details):
    kind: Literal["restaurant"] = "restaurant"

    sources: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "restaurant_name": ("restaurantName", "name"),
        "cuisine": ("cuisine",),
        "party_size": ("partySize",),
        "guest_name": ("guestName",),
        "dress_code": ("dressCode",),
        "reservation_time": ("reservationDateTime", "reservationTime"),
        "price_level": ("priceLevel",),
    }

    restaurant_name: Optional[str] = None
    cuisine: Optional[str] = None
    party_size: Optional[int] = None
    guest_name: Optional[str] = None
    dress_code: Optional[str] = None
    reservation_time: Optional[str] = None
    price_level: Optional[str] = None


class ActivityDetails(_Details):
    kind: Literal["activity"] = "activity"

    sources: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "activity_name": ("activityName", "name"),
        "provider": ("provider",),
        "category": ("category",),
        "meeting_point": ("meetingPoint",),
        "location": ("location",),
        "duration": ("duration",),
        "start_time": ("startDateTime", "startTime"),
    }

    activity_name: Optional[str] = None
    provider: Optional[str] = None
    category: Optional[str] = None
    meeting_point: Optional[str] = None
    location: Optional[str] = None
    duration: Optional[str] = None
    start_time: Optional[str] = None


class TransportDetails(_Details):
    kind: Literal["transport"] = "transport"

    sources: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "transport_type": ("transportType",),
        "provider": ("provider", "operator"),
        "vehicle": ("vehicleDetails", "vehicleType"),
        "pickup_location": ("pickupLocation", "departureLocation"),
        "pickup_time": ("pickupTime", "departureTime"),
        "dropoff_location": ("dropoffLocation", "arrivalLocation"),
        "dropoff_time": ("dropoffTime", "arrivalTime"),
    }

    transport_type: Optional[str] = None
    provider: Optional[str] = None
    vehicle: Optional[str] = None
    pickup_location: Optional[str] = None
    pickup_time: Optional[str] = None
    dropoff_location: Optional[str] = None
    dropoff_time: Optional[str] = None


class NoteDetails(_Details):
    kind: Literal["note"] = "note"

    sources: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "note_type": ("noteType",),
        "content": ("content", "body"),
    }

    note_type: str = "info"
    content: Optional[str] = None


SegmentDetails = Union[
    FlightDetails,
    CharterDetails,
    HotelDetails,
    RestaurantDetails,
    ActivityDetails,
    TransportDetails,
    NoteDetails,
]

DETAILS_BY_TYPE: Dict[str, type[_Details]] = {
    "flight": FlightDetails,
    "charter": CharterDetails,
    "charter_flight": CharterDetails,
    "hotel": HotelDetails,
    "restaurant": RestaurantDetails,
    "activity": ActivityDetails,
    "transport": TransportDetails,
    "note": NoteDetails,
}


def parse_details(segment_type: str, metadata: Any) -> SegmentDetails:
    """Build the typed details for a segment, dropping fields that do not validate."""

    model = DETAILS_BY_TYPE.get(segment_type, NoteDetails)
    raw = metadata if isinstance(metadata, dict) else {}
    normalized = model.normalize(raw)

    while True:
        try:
            return model.model_validate(normalized)
        except ValidationError as exc:
            invalid = {err["loc"][0] for err in exc.errors() if err.get("loc")}
            invalid &= set(normalized)
            if not invalid:
                logger.debug("Discarding unreadable %s metadata", segment_type)
                return model()
            for field in invalid:
                logger.debug(
                    "Dropping malformed %s metadata field %s=%r",
                    segment_type,
                    field,
                    normalized[field],
                )
                normalized.pop(field)
