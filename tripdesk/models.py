"""SQLAlchemy models for the Tripdesk backend."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    slug = Column(String(160), nullable=False, unique=True)
    logo_url = Column(String(255), nullable=True)
    time_format = Column(String(3), nullable=False, default="24h")

    advisors = relationship("Advisor", back_populates="organization", cascade="all, delete-orphan")
    clients = relationship("Client", back_populates="organization", cascade="all, delete-orphan")
    trips = relationship("Trip", back_populates="organization")


class Advisor(Base, TimestampMixin):
    __tablename__ = "advisors"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    full_name = Column(String(120), nullable=False)
    email = Column(String(120), nullable=True)
    phone = Column(String(50), nullable=True)
    avatar_url = Column(String(255), nullable=True)

    organization = relationship("Organization", back_populates="advisors")
    trips = relationship("Trip", back_populates="advisor")


class Client(Base, TimestampMixin):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    full_name = Column(String(120), nullable=False)
    email = Column(String(120), nullable=True)
    phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    organization = relationship("Organization", back_populates="clients")
    trips = relationship("Trip", back_populates="client")


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    title = Column(String(150), nullable=False)
    destinations = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(String(30), nullable=False, default="draft")
    budget = Column(Integer, nullable=True)
    currency = Column(String(10), nullable=False, default="USD")
    timezone = Column(String(64), nullable=False, default="UTC")
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    advisor_id = Column(Integer, ForeignKey("advisors.id"), nullable=True)
    companion_names = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    # Plain column: trips and versions reference each other.
    approved_version_id = Column(Integer, nullable=True)

    organization = relationship("Organization", back_populates="trips")
    client = relationship("Client", back_populates="trips")
    advisor = relationship("Advisor", back_populates="trips")
    versions = relationship(
        "TripVersion",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="TripVersion.version_number",
    )

    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR start_date IS NULL OR end_date >= start_date",
            name="ck_trips_dates",
        ),
    )


class TripVersion(Base, TimestampMixin):
    __tablename__ = "trip_versions"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    name = Column(String(120), nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    show_pricing = Column(Boolean, nullable=False, default=True)
    discount = Column(Integer, nullable=True)
    discount_type = Column(
        String(10), nullable=False, default="fixed", doc="fixed currency units or percent"
    )
    discount_label = Column(String(120), nullable=True)

    trip = relationship("Trip", back_populates="versions")
    segments = relationship(
        "TripSegment",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="[TripSegment.day_number, TripSegment.sort_order, TripSegment.id]",
    )

    __table_args__ = (
        UniqueConstraint("trip_id", "version_number", name="uq_trip_version_number"),
    )


class TripSegment(Base, TimestampMixin):
    __tablename__ = "trip_segments"

    id = Column(Integer, primary_key=True, index=True)
    version_id = Column(
        Integer, ForeignKey("trip_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    day_number = Column(Integer, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    type = Column(String(30), nullable=False)
    title = Column(String(200), nullable=False)
    subtitle = Column(String(200), nullable=True)
    start_time = Column(String(20), nullable=True)
    end_time = Column(String(20), nullable=True)
    confirmation_number = Column(String(80), nullable=True)
    cost = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(10), nullable=False, default="USD")
    notes = Column(Text, nullable=True)
    photos = Column(JSON, nullable=False, default=list)
    # "metadata" is reserved on declarative classes.
    segment_metadata = Column("metadata", JSON, nullable=False, default=dict)
    journey_id = Column(String(64), nullable=True, index=True)
    property_group_id = Column(String(64), nullable=True, index=True)
    choice_group_id = Column(String(64), nullable=True, index=True)
    is_choice_selected = Column(Boolean, nullable=False, default=False)
    has_variants = Column(Boolean, nullable=False, default=False)

    version = relationship("TripVersion", back_populates="segments")
    variants = relationship(
        "SegmentVariant",
        back_populates="segment",
        cascade="all, delete-orphan",
        order_by="[SegmentVariant.sort_order, SegmentVariant.id]",
    )

    __table_args__ = (CheckConstraint("day_number >= 1", name="ck_trip_segments_day"),)


class SegmentVariant(Base, TimestampMixin):
    __tablename__ = "segment_variants"

    id = Column(Integer, primary_key=True, index=True)
    segment_id = Column(
        Integer, ForeignKey("trip_segments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    label = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    cost = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(10), nullable=False, default="USD")
    quantity = Column(Integer, nullable=False, default=1)
    price_per_unit = Column(Numeric(10, 2), nullable=True)
    variant_type = Column(String(30), nullable=False, default="upgrade")
    refundability = Column(String(20), nullable=False, default="unknown")
    refund_deadline = Column(Date, nullable=True)
    is_submitted = Column(Boolean, nullable=False, default=False)
    is_selected = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    segment = relationship("TripSegment", back_populates="variants")

    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_segment_variants_quantity"),)
