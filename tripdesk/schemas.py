"""Pydantic schemas powering the Tripdesk API and render pipeline."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from .details import (
    ActivityDetails,
    CharterDetails,
    FlightDetails,
    HotelDetails,
    NoteDetails,
    RestaurantDetails,
    TransportDetails,
    parse_details,
)

SegmentType = Literal[
    "flight", "charter", "charter_flight", "hotel", "transport", "restaurant", "activity", "note"
]
TripStatus = Literal["draft", "planning", "confirmed", "in_progress", "completed", "cancelled"]
DiscountType = Literal["fixed", "percent"]
Refundability = Literal["unknown", "non_refundable", "refundable", "partial"]
TimeFormat = Literal["24h", "12h"]

SegmentDetailsField = Annotated[
    Union[
        FlightDetails,
        CharterDetails,
        HotelDetails,
        RestaurantDetails,
        ActivityDetails,
        TransportDetails,
        NoteDetails,
    ],
    Field(discriminator="kind"),
]


def _split_names(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [name.strip() for name in value.split(",") if name.strip()]
    if isinstance(value, list):
        return [str(name).strip() for name in value if str(name).strip()]
    return []


def _check_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone '{value}'") from exc
    return value


class TimestampMixin(BaseModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Organisations, advisors and clients


class OrganizationBase(BaseModel):
    name: str = Field(..., description="Agency or organisation display name")
    logo_url: Optional[str] = None
    time_format: TimeFormat = Field("24h", description="Clock style used on exports")


class OrganizationCreate(OrganizationBase):
    slug: Optional[str] = Field(None, description="Generated from the name when omitted")


class Organization(OrganizationBase, TimestampMixin):
    id: int
    slug: str


class AdvisorBase(BaseModel):
    full_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class AdvisorCreate(AdvisorBase):
    pass


class Advisor(AdvisorBase, TimestampMixin):
    id: int
    org_id: int


class ClientBase(BaseModel):
    full_name: str = Field(..., description="Client full name")
    email: Optional[EmailStr] = Field(None, description="Primary email address")
    phone: Optional[str] = None
    notes: Optional[str] = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class Client(ClientBase, TimestampMixin):
    id: int
    org_id: int


# Variants


class SegmentVariantBase(BaseModel):
    label: str = Field(..., description="Short name of the option, e.g. Business Class")
    description: Optional[str] = None
    cost: Optional[Decimal] = Field(None, description="Total price of the option")
    currency: str = "USD"
    quantity: int = Field(1, ge=1, description="Rooms or passengers covered by the cost")
    price_per_unit: Optional[Decimal] = None
    variant_type: str = Field(
        "upgrade", description="'upgrade' is shown as a change to the primary option"
    )
    refundability: Refundability = "unknown"
    refund_deadline: Optional[date] = None
    sort_order: int = 0


class SegmentVariantCreate(SegmentVariantBase):
    pass


class SegmentVariantUpdate(BaseModel):
    label: Optional[str] = None
    description: Optional[str] = None
    cost: Optional[Decimal] = None
    currency: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)
    price_per_unit: Optional[Decimal] = None
    variant_type: Optional[str] = None
    refundability: Optional[Refundability] = None
    refund_deadline: Optional[date] = None
    sort_order: Optional[int] = None


class SegmentVariant(SegmentVariantBase, TimestampMixin):
    id: int
    segment_id: int
    is_submitted: bool = False
    is_selected: bool = False


# Segments


class TripSegmentBase(BaseModel):
    day_number: int = Field(..., description="1-based day relative to the trip start")
    sort_order: int = 0
    type: SegmentType
    title: str
    subtitle: Optional[str] = None
    start_time: Optional[str] = Field(None, description="Local HH:MM")
    end_time: Optional[str] = Field(None, description="Local HH:MM")
    confirmation_number: Optional[str] = None
    cost: Optional[Decimal] = None
    currency: str = "USD"
    notes: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("segment_metadata", "metadata"),
        description="Type-specific fields, see tripdesk.details",
    )
    journey_id: Optional[str] = None
    property_group_id: Optional[str] = None
    choice_group_id: Optional[str] = None
    is_choice_selected: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("day_number")
    @classmethod
    def validate_day_number(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("day_number must be greater than zero")
        return value

    @field_validator("photos", mode="before")
    @classmethod
    def normalize_photos(cls, value: Any) -> List[str]:
        return _split_names(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def normalize_metadata(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}


class TripSegmentCreate(TripSegmentBase):
    variants: List[SegmentVariantCreate] = Field(
        default_factory=list, description="Optional priced alternatives created with the segment"
    )


class TripSegmentUpdate(BaseModel):
    day_number: Optional[int] = Field(None, ge=1)
    sort_order: Optional[int] = None
    type: Optional[SegmentType] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    confirmation_number: Optional[str] = None
    cost: Optional[Decimal] = None
    currency: Optional[str] = None
    notes: Optional[str] = None
    photos: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None
    journey_id: Optional[str] = None
    property_group_id: Optional[str] = None
    choice_group_id: Optional[str] = None


class TripSegment(TripSegmentBase, TimestampMixin):
    id: int
    version_id: Optional[int] = None
    trip_id: Optional[int] = None
    has_variants: bool = False
    variants: List[SegmentVariant] = Field(default_factory=list)
    details: Optional[SegmentDetailsField] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @model_validator(mode="after")
    def resolve_details(self) -> "TripSegment":
        self.details = parse_details(self.type, self.metadata)
        return self


class SegmentReorderRequest(BaseModel):
    segment_ids: List[int] = Field(..., min_length=1, description="Segment ids in display order")


# Versions


class TripVersionBase(BaseModel):
    name: str
    show_pricing: bool = True
    discount: Optional[int] = Field(None, ge=0)
    discount_type: DiscountType = "fixed"
    discount_label: Optional[str] = None


class TripVersionCreate(TripVersionBase):
    pass


class TripVersionUpdate(BaseModel):
    name: Optional[str] = None
    show_pricing: Optional[bool] = None
    discount: Optional[int] = Field(None, ge=0)
    discount_type: Optional[DiscountType] = None
    discount_label: Optional[str] = None


class TripVersion(TripVersionBase, TimestampMixin):
    id: int
    trip_id: int
    version_number: int = 1
    is_primary: bool = False


class TripVersionDetail(TripVersion):
    segments: List[TripSegment] = Field(default_factory=list)


class VersionDuplicateRequest(BaseModel):
    name: Optional[str] = Field(None, description="Defaults to '<source name> (copy)'")


# Trips


class TripBase(BaseModel):
    title: str
    destinations: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: TripStatus = "draft"
    budget: Optional[int] = None
    currency: str = "USD"
    timezone: str = Field("UTC", description="IANA zone used for calendar exports")
    client_id: Optional[int] = None
    advisor_id: Optional[int] = None
    companion_names: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("destinations", "companion_names", mode="before")
    @classmethod
    def normalize_names(cls, value: Any) -> List[str]:
        return _split_names(value)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _check_timezone(value)


class TripCreate(TripBase):
    version_name: Optional[str] = Field(None, description="Name of the initial version")

    @model_validator(mode="after")
    def check_dates(self) -> "TripCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TripUpdate(BaseModel):
    title: Optional[str] = None
    destinations: Optional[List[str]] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[TripStatus] = None
    budget: Optional[int] = None
    currency: Optional[str] = None
    timezone: Optional[str] = None
    client_id: Optional[int] = None
    advisor_id: Optional[int] = None
    companion_names: Optional[List[str]] = None
    notes: Optional[str] = None

    @field_validator("destinations", "companion_names", mode="before")
    @classmethod
    def normalize_names(cls, value: Any) -> Optional[List[str]]:
        return None if value is None else _split_names(value)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_timezone(value)


class Trip(TripBase, TimestampMixin):
    id: int
    org_id: int
    approved_version_id: Optional[int] = None
    versions: List[TripVersion] = Field(default_factory=list)


# Render pipeline input


class ExportBundle(BaseModel):
    """Everything one export needs, already loaded and scoped to one organisation.

    ``trip`` and ``version`` are optional here so that a partially loaded bundle
    can still be described; the render targets refuse to run without both.
    """

    trip: Optional[Trip] = None
    version: Optional[TripVersion] = None
    organization: Organization
    advisor: Optional[Advisor] = None
    client: Optional[Client] = None
    segments: List[TripSegment] = Field(default_factory=list)

    @property
    def is_approved(self) -> bool:
        if self.trip is None or self.version is None:
            return False
        return self.trip.approved_version_id is not None and (
            self.trip.approved_version_id == self.version.id
        )

    def require_complete(self) -> None:
        if self.trip is None:
            raise ValueError("Trip data is required to render an itinerary")
        if self.version is None:
            raise ValueError("A trip version is required to render an itinerary")


# Render pipeline output


class LayoverInfo(BaseModel):
    minutes: int
    display: str
    flag: Literal["tight", "long", "normal"]
    airport_change: bool
    arrival_airport: str = ""
    departure_airport: str = ""


class SegmentItem(BaseModel):
    kind: Literal["segment"] = "segment"
    segment: TripSegment


class JourneyItem(BaseModel):
    kind: Literal["journey"] = "journey"
    journey_id: str
    legs: List[TripSegment]


class ChoiceGroupItem(BaseModel):
    kind: Literal["choice_group"] = "choice_group"
    choice_group_id: str
    options: List[TripSegment]


class PropertyGroupItem(BaseModel):
    kind: Literal["property_group"] = "property_group"
    property_group_id: str
    rooms: List[TripSegment]


DayItem = Annotated[
    Union[SegmentItem, JourneyItem, ChoiceGroupItem, PropertyGroupItem],
    Field(discriminator="kind"),
]


class OptionRow(BaseModel):
    variant_id: Optional[int] = None
    label: str
    description: Optional[str] = None
    cost: Optional[Decimal] = None
    currency: str = "USD"
    quantity: int = 1
    per_unit_price: Optional[Decimal] = None
    unit_label: str = "pax"
    refund_text: Optional[str] = None
    is_primary: bool = False
    requested: bool = False


class PricingView(BaseModel):
    """What price and which options to show for one segment or journey."""

    mode: Literal["plain", "options", "selected", "approved"]
    label: str
    price: Optional[Decimal] = None
    currency: str = "USD"
    header: Optional[str] = None
    primary: Optional[OptionRow] = None
    selected: Optional[OptionRow] = None
    options: List[OptionRow] = Field(default_factory=list)


class PricingSummary(BaseModel):
    currency: str = "USD"
    subtotal: Decimal
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[int] = None
    discount_label: Optional[str] = None
    discount_amount: Decimal = Decimal("0")
    total: Decimal


# Document layout


class SegmentBlock(BaseModel):
    kind: Literal["segment"] = "segment"
    segment_id: int
    type: str
    title: str
    subtitle: Optional[str] = None
    detail_lines: List[str] = Field(default_factory=list)
    confirmation: Optional[str] = None
    cost_line: Optional[str] = None
    notes: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    color: str = "#6b7280"
    pricing: Optional[PricingView] = None
    degraded: bool = False


class JourneyLegBlock(BaseModel):
    segment_id: int
    flight_label: str
    airline: Optional[str] = None
    booking_class: Optional[str] = None
    route: Optional[str] = None
    times: Optional[str] = None
    layover_before: Optional[LayoverInfo] = None
    connection_before: bool = False


class JourneyBlock(BaseModel):
    kind: Literal["journey"] = "journey"
    journey_id: str
    origin: str = ""
    destination: str = ""
    stops: int = 1
    total_time: Optional[str] = None
    red_eye: bool = False
    legs: List[JourneyLegBlock] = Field(default_factory=list)
    confirmation: Optional[str] = None
    cost_line: Optional[str] = None
    pricing: Optional[PricingView] = None


class ChoiceBlock(BaseModel):
    kind: Literal["choice_group"] = "choice_group"
    choice_group_id: str
    resolved: bool = False
    options: List[SegmentBlock] = Field(default_factory=list)


class PropertyBlock(BaseModel):
    kind: Literal["property_group"] = "property_group"
    property_group_id: str
    hotel_name: str
    rooms: List[SegmentBlock] = Field(default_factory=list)
    property_total: Optional[Decimal] = None
    property_total_display: Optional[str] = None


DayBlock = Annotated[
    Union[SegmentBlock, JourneyBlock, ChoiceBlock, PropertyBlock],
    Field(discriminator="kind"),
]


class DaySection(BaseModel):
    day_number: int
    label: str
    day_date: Optional[date] = None
    blocks: List[DayBlock] = Field(default_factory=list)


class CoverSection(BaseModel):
    title: str
    destinations: str = ""
    client_name: Optional[str] = None
    companions: List[str] = Field(default_factory=list)
    date_range: Optional[str] = None
    branding: str
    logo_url: Optional[str] = None


class PricingBlock(BaseModel):
    summary: PricingSummary
    subtotal_display: str
    discount_label: Optional[str] = None
    discount_display: Optional[str] = None
    total_display: str


class AdvisorContact(BaseModel):
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    organization: str


class ItineraryDocument(BaseModel):
    trip_id: int
    version_id: int
    version_name: str
    organization_name: str
    is_approved: bool = False
    show_pricing: bool = True
    cover: CoverSection
    days: List[DaySection] = Field(default_factory=list)
    pricing: Optional[PricingBlock] = None
    advisor: Optional[AdvisorContact] = None
    footer: str


class ClientView(BaseModel):
    """Payload of the client approval screen."""

    trip_id: int
    trip_title: str
    version_id: int
    version_name: str
    is_approved: bool = False
    show_pricing: bool = True
    days: List[DaySection] = Field(default_factory=list)
    pricing: Optional[PricingBlock] = None
    advisor: Optional[AdvisorContact] = None
    open_decisions: int = Field(
        0, description="Unresolved choice groups plus segments still offering options"
    )
