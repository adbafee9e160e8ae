"""CRUD helper functions used by the API routers.

Every lookup takes the caller's organisation id and filters on it, so a row of
another organisation is indistinguishable from a missing one.
"""
from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Sequence
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .constants import DEFAULT_VERSION_NAME

logger = logging.getLogger(__name__)

# Metadata keys that carry booking references.
CONFIRMATION_METADATA_KEYS = ("confirmationNumber", "confirmation_number", "pnr", "bookingReference")

SEGMENT_COPY_FIELDS = (
    "day_number",
    "sort_order",
    "type",
    "title",
    "subtitle",
    "start_time",
    "end_time",
    "cost",
    "currency",
    "notes",
    "journey_id",
    "property_group_id",
    "choice_group_id",
    "is_choice_selected",
    "has_variants",
)

VARIANT_COPY_FIELDS = (
    "label",
    "description",
    "cost",
    "currency",
    "quantity",
    "price_per_unit",
    "variant_type",
    "refundability",
    "refund_deadline",
    "sort_order",
)


def _slugify(value: str) -> str:
    value = value.lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-") or secrets.token_hex(4)


def _ensure_unique_slug(session: Session, slug: str) -> str:
    base = slug
    counter = 1
    while session.scalar(select(models.Organization).where(models.Organization.slug == slug)):
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def _segment_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    if "metadata" in data:
        data["segment_metadata"] = data.pop("metadata") or {}
    return data


def _strip_confirmation(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    cleaned = dict(metadata or {})
    for key in CONFIRMATION_METADATA_KEYS:
        cleaned.pop(key, None)
    return cleaned


# Organisations, advisors and clients


def create_organization(
    session: Session, organization_in: schemas.OrganizationCreate
) -> models.Organization:
    payload = organization_in.model_dump()
    slug = _slugify(payload.pop("slug") or payload["name"])
    organization = models.Organization(slug=_ensure_unique_slug(session, slug), **payload)
    session.add(organization)
    session.flush()
    return organization


def list_organizations(session: Session) -> Sequence[models.Organization]:
    return session.scalars(select(models.Organization).order_by(models.Organization.name)).all()


def get_organization(session: Session, org_id: int) -> models.Organization | None:
    return session.get(models.Organization, org_id)


def create_advisor(
    session: Session, org_id: int, advisor_in: schemas.AdvisorCreate
) -> models.Advisor:
    advisor = models.Advisor(org_id=org_id, **advisor_in.model_dump())
    session.add(advisor)
    session.flush()
    return advisor


def list_advisors(session: Session, org_id: int) -> Sequence[models.Advisor]:
    statement = (
        select(models.Advisor)
        .where(models.Advisor.org_id == org_id)
        .order_by(models.Advisor.full_name)
    )
    return session.scalars(statement).all()


def get_advisor(session: Session, org_id: int, advisor_id: int) -> models.Advisor | None:
    return session.scalar(
        select(models.Advisor).where(
            models.Advisor.id == advisor_id, models.Advisor.org_id == org_id
        )
    )


def create_client(session: Session, org_id: int, client_in: schemas.ClientCreate) -> models.Client:
    client = models.Client(org_id=org_id, **client_in.model_dump())
    session.add(client)
    session.flush()
    return client


def list_clients(session: Session, org_id: int) -> Sequence[models.Client]:
    statement = (
        select(models.Client)
        .where(models.Client.org_id == org_id)
        .order_by(models.Client.full_name)
    )
    return session.scalars(statement).all()


def get_client(session: Session, org_id: int, client_id: int) -> models.Client | None:
    return session.scalar(
        select(models.Client).where(models.Client.id == client_id, models.Client.org_id == org_id)
    )


def update_client(
    session: Session, client: models.Client, client_in: schemas.ClientUpdate
) -> models.Client:
    for field, value in client_in.model_dump(exclude_unset=True).items():
        setattr(client, field, value)
    session.add(client)
    session.flush()
    return client


# Trips


def _check_trip_references(
    session: Session, org_id: int, client_id: Optional[int], advisor_id: Optional[int]
) -> None:
    if client_id is not None and get_client(session, org_id, client_id) is None:
        raise ValueError("Unknown client")
    if advisor_id is not None and get_advisor(session, org_id, advisor_id) is None:
        raise ValueError("Unknown advisor")


def create_trip(session: Session, org_id: int, trip_in: schemas.TripCreate) -> models.Trip:
    payload = trip_in.model_dump()
    version_name = payload.pop("version_name") or DEFAULT_VERSION_NAME
    _check_trip_references(session, org_id, payload["client_id"], payload["advisor_id"])

    trip = models.Trip(org_id=org_id, **payload)
    trip.versions.append(
        models.TripVersion(org_id=org_id, version_number=1, name=version_name, is_primary=True)
    )
    session.add(trip)
    session.flush()
    return trip


def list_trips(
    session: Session, org_id: int, status: Optional[str] = None
) -> Sequence[models.Trip]:
    statement = (
        select(models.Trip)
        .options(selectinload(models.Trip.versions))
        .where(models.Trip.org_id == org_id)
        .order_by(models.Trip.start_date, models.Trip.id)
    )
    if status:
        statement = statement.where(models.Trip.status == status)
    return session.scalars(statement).all()


def get_trip(session: Session, org_id: int, trip_id: int) -> models.Trip | None:
    statement = (
        select(models.Trip)
        .options(selectinload(models.Trip.versions))
        .where(models.Trip.id == trip_id, models.Trip.org_id == org_id)
    )
    return session.scalar(statement)


def update_trip(session: Session, trip: models.Trip, trip_in: schemas.TripUpdate) -> models.Trip:
    data = trip_in.model_dump(exclude_unset=True)
    _check_trip_references(
        session,
        trip.org_id,
        data.get("client_id"),
        data.get("advisor_id"),
    )
    for field, value in data.items():
        setattr(trip, field, value)
    if trip.start_date and trip.end_date and trip.end_date < trip.start_date:
        raise ValueError("end_date must not be before start_date")
    session.add(trip)
    session.flush()
    return trip


def cancel_trip(session: Session, trip: models.Trip) -> models.Trip:
    """Trips are never hard-deleted; cancelling keeps the history."""

    trip.status = "cancelled"
    session.add(trip)
    session.flush()
    logger.info("Trip %s cancelled", trip.id)
    return trip


def _copy_segments(
    source: models.TripVersion, target: models.TripVersion, trip_id: int
) -> None:
    for segment in source.segments:
        clone = models.TripSegment(
            trip_id=trip_id,
            org_id=segment.org_id,
            confirmation_number=None,
            photos=list(segment.photos or []),
            segment_metadata=_strip_confirmation(segment.segment_metadata),
            **{field: getattr(segment, field) for field in SEGMENT_COPY_FIELDS},
        )
        for variant in segment.variants:
            clone.variants.append(
                models.SegmentVariant(
                    org_id=variant.org_id,
                    is_submitted=False,
                    is_selected=False,
                    **{field: getattr(variant, field) for field in VARIANT_COPY_FIELDS},
                )
            )
        target.segments.append(clone)


def duplicate_trip(session: Session, trip: models.Trip) -> models.Trip:
    clone = models.Trip(
        org_id=trip.org_id,
        title=f"{trip.title} (Copy)",
        destinations=list(trip.destinations or []),
        description=trip.description,
        start_date=trip.start_date,
        end_date=trip.end_date,
        status="draft",
        budget=trip.budget,
        currency=trip.currency,
        timezone=trip.timezone,
        client_id=trip.client_id,
        advisor_id=trip.advisor_id,
        companion_names=list(trip.companion_names or []),
        notes=trip.notes,
    )
    session.add(clone)
    session.flush()

    for version in trip.versions:
        version_clone = models.TripVersion(
            org_id=version.org_id,
            version_number=version.version_number,
            name=version.name,
            is_primary=version.is_primary,
            show_pricing=version.show_pricing,
            discount=version.discount,
            discount_type=version.discount_type,
            discount_label=version.discount_label,
        )
        clone.versions.append(version_clone)
        _copy_segments(version, version_clone, clone.id)

    session.add(clone)
    session.flush()
    logger.info("Trip %s duplicated as %s", trip.id, clone.id)
    return clone


# Versions


def _next_version_number(session: Session, org_id: int, trip_id: int) -> int:
    latest = session.scalar(
        select(func.max(models.TripVersion.version_number)).where(
            models.TripVersion.org_id == org_id,
            models.TripVersion.trip_id == trip_id,
        )
    )
    return (latest or 0) + 1


def create_version(
    session: Session, trip: models.Trip, version_in: schemas.TripVersionCreate
) -> models.TripVersion:
    version = models.TripVersion(
        trip_id=trip.id,
        org_id=trip.org_id,
        version_number=_next_version_number(session, trip.org_id, trip.id),
        is_primary=False,
        **version_in.model_dump(),
    )
    session.add(version)
    session.flush()
    return version


def list_versions(session: Session, org_id: int, trip_id: int) -> Sequence[models.TripVersion]:
    statement = (
        select(models.TripVersion)
        .where(models.TripVersion.trip_id == trip_id, models.TripVersion.org_id == org_id)
        .order_by(models.TripVersion.version_number)
    )
    return session.scalars(statement).all()


def get_version(session: Session, org_id: int, version_id: int) -> models.TripVersion | None:
    statement = (
        select(models.TripVersion)
        .options(selectinload(models.TripVersion.segments))
        .where(models.TripVersion.id == version_id, models.TripVersion.org_id == org_id)
    )
    return session.scalar(statement)


def update_version(
    session: Session, version: models.TripVersion, version_in: schemas.TripVersionUpdate
) -> models.TripVersion:
    for field, value in version_in.model_dump(exclude_unset=True).items():
        setattr(version, field, value)
    session.add(version)
    session.flush()
    return version


def duplicate_version(
    session: Session, version: models.TripVersion, name: Optional[str] = None
) -> models.TripVersion:
    clone = models.TripVersion(
        trip_id=version.trip_id,
        org_id=version.org_id,
        version_number=_next_version_number(session, version.org_id, version.trip_id),
        name=name or f"{version.name} (copy)",
        is_primary=False,
        show_pricing=version.show_pricing,
        discount=version.discount,
        discount_type=version.discount_type,
        discount_label=version.discount_label,
    )
    _copy_segments(version, clone, version.trip_id)
    session.add(clone)
    session.flush()
    logger.info("Version %s duplicated as %s", version.id, clone.id)
    return clone


def set_primary_version(session: Session, version: models.TripVersion) -> models.TripVersion:
    for sibling in version.trip.versions:
        sibling.is_primary = sibling.id == version.id
        session.add(sibling)
    session.flush()
    logger.info("Version %s is now primary for trip %s", version.id, version.trip_id)
    return version


def delete_version(session: Session, version: models.TripVersion) -> None:
    trip = version.trip
    if len(trip.versions) <= 1:
        raise ValueError("Cannot delete the only version of a trip")
    if version.is_primary:
        raise ValueError("Cannot delete the primary version; make another version primary first")
    if trip.approved_version_id == version.id:
        trip.approved_version_id = None
        session.add(trip)
    trip.versions.remove(version)
    session.delete(version)
    session.flush()


def approve_version(session: Session, version: models.TripVersion) -> models.TripVersion:
    """Record the client's acceptance of ``version`` and finalise submitted variants."""

    trip = version.trip
    trip.approved_version_id = version.id
    session.add(trip)
    set_primary_version(session, version)

    for segment in version.segments:
        if any(variant.is_selected for variant in segment.variants):
            continue
        submitted = [variant for variant in segment.variants if variant.is_submitted]
        if submitted:
            submitted[0].is_selected = True
            session.add(submitted[0])

    session.flush()
    logger.info("Version %s approved for trip %s", version.id, trip.id)
    return version


# Segments


def create_segment(
    session: Session, version: models.TripVersion, segment_in: schemas.TripSegmentCreate
) -> models.TripSegment:
    payload = _segment_payload(segment_in.model_dump())
    variants_data = payload.pop("variants", [])
    segment = models.TripSegment(
        version_id=version.id,
        trip_id=version.trip_id,
        org_id=version.org_id,
        has_variants=bool(variants_data),
        **payload,
    )
    for variant_data in variants_data:
        segment.variants.append(models.SegmentVariant(org_id=version.org_id, **variant_data))
    session.add(segment)
    session.flush()
    if segment.is_choice_selected and segment.choice_group_id:
        choose_segment(session, segment)
    return segment


def list_segments(session: Session, org_id: int, version_id: int) -> Sequence[models.TripSegment]:
    statement = (
        select(models.TripSegment)
        .options(selectinload(models.TripSegment.variants))
        .where(
            models.TripSegment.version_id == version_id,
            models.TripSegment.org_id == org_id,
        )
        .order_by(
            models.TripSegment.day_number,
            models.TripSegment.sort_order,
            models.TripSegment.id,
        )
    )
    return session.scalars(statement).all()


def get_segment(session: Session, org_id: int, segment_id: int) -> models.TripSegment | None:
    statement = (
        select(models.TripSegment)
        .options(selectinload(models.TripSegment.variants))
        .where(models.TripSegment.id == segment_id, models.TripSegment.org_id == org_id)
    )
    return session.scalar(statement)


def update_segment(
    session: Session, segment: models.TripSegment, segment_in: schemas.TripSegmentUpdate
) -> models.TripSegment:
    for field, value in _segment_payload(segment_in.model_dump(exclude_unset=True)).items():
        setattr(segment, field, value)
    session.add(segment)
    session.flush()
    return segment


def delete_segment(session: Session, segment: models.TripSegment) -> None:
    session.delete(segment)
    session.flush()


def reorder_segments(
    session: Session, version: models.TripVersion, segment_ids: Sequence[int]
) -> Sequence[models.TripSegment]:
    segments = {segment.id: segment for segment in version.segments}
    unknown = [segment_id for segment_id in segment_ids if segment_id not in segments]
    if unknown:
        raise ValueError(f"Segments {unknown} do not belong to version {version.id}")
    for position, segment_id in enumerate(segment_ids):
        segments[segment_id].sort_order = position
        session.add(segments[segment_id])
    session.flush()
    return list_segments(session, version.org_id, version.id)


def choose_segment(session: Session, segment: models.TripSegment) -> models.TripSegment:
    """Mark ``segment`` as the chosen alternative of its choice group."""

    if not segment.choice_group_id:
        raise ValueError("Segment is not part of a choice group")
    siblings = session.scalars(
        select(models.TripSegment).where(
            models.TripSegment.org_id == segment.org_id,
            models.TripSegment.version_id == segment.version_id,
            models.TripSegment.choice_group_id == segment.choice_group_id,
        )
    ).all()
    for sibling in siblings:
        sibling.is_choice_selected = sibling.id == segment.id
        session.add(sibling)
    session.flush()
    return segment


# Variants


def create_variant(
    session: Session, segment: models.TripSegment, variant_in: schemas.SegmentVariantCreate
) -> models.SegmentVariant:
    variant = models.SegmentVariant(
        segment_id=segment.id, org_id=segment.org_id, **variant_in.model_dump()
    )
    segment.has_variants = True
    session.add_all([variant, segment])
    session.flush()
    return variant


def list_variants(session: Session, org_id: int, segment_id: int) -> Sequence[models.SegmentVariant]:
    statement = (
        select(models.SegmentVariant)
        .where(
            models.SegmentVariant.segment_id == segment_id,
            models.SegmentVariant.org_id == org_id,
        )
        .order_by(models.SegmentVariant.sort_order, models.SegmentVariant.id)
    )
    return session.scalars(statement).all()


def get_variant(session: Session, org_id: int, variant_id: int) -> models.SegmentVariant | None:
    return session.scalar(
        select(models.SegmentVariant).where(
            models.SegmentVariant.id == variant_id, models.SegmentVariant.org_id == org_id
        )
    )


def update_variant(
    session: Session, variant: models.SegmentVariant, variant_in: schemas.SegmentVariantUpdate
) -> models.SegmentVariant:
    for field, value in variant_in.model_dump(exclude_unset=True).items():
        setattr(variant, field, value)
    session.add(variant)
    session.flush()
    return variant


def delete_variant(session: Session, variant: models.SegmentVariant) -> None:
    segment = variant.segment
    segment.variants.remove(variant)
    session.delete(variant)
    if not segment.variants:
        segment.has_variants = False
        session.add(segment)
    session.flush()


def submit_variant(session: Session, variant: models.SegmentVariant) -> models.SegmentVariant:
    """Record the client's preferred variant; one submission per segment."""

    for sibling in variant.segment.variants:
        sibling.is_submitted = sibling.id == variant.id
        session.add(sibling)
    session.flush()
    return variant


def select_variant(
    session: Session, org_id: int, variant: models.SegmentVariant
) -> models.SegmentVariant:
    """Lock in ``variant``; any other selection on the segment is cleared."""

    segment = variant.segment
    if segment.org_id != org_id or variant.org_id != org_id:
        raise ValueError("Variant does not belong to this organization")
    for sibling in segment.variants:
        sibling.is_selected = sibling.id == variant.id
        session.add(sibling)
    session.flush()
    logger.info("Variant %s selected for segment %s", variant.id, segment.id)
    return variant


def clear_variant_selection(
    session: Session, segment: models.TripSegment
) -> Sequence[models.SegmentVariant]:
    for variant in segment.variants:
        variant.is_selected = False
        session.add(variant)
    session.flush()
    return list(segment.variants)


# Export input


def resolve_export_version(
    session: Session, trip: models.Trip, version_id: Optional[int] = None
) -> models.TripVersion | None:
    """The requested version, else the approved one, else the primary one."""

    if version_id is not None:
        version = get_version(session, trip.org_id, version_id)
        if version is None or version.trip_id != trip.id:
            return None
        return version
    if trip.approved_version_id is not None:
        approved = get_version(session, trip.org_id, trip.approved_version_id)
        if approved is not None:
            return approved
    primary = [version for version in trip.versions if version.is_primary]
    if primary:
        return primary[0]
    return trip.versions[0] if trip.versions else None


def load_export_bundle(
    session: Session, org_id: int, trip_id: int, version_id: Optional[int] = None
) -> schemas.ExportBundle | None:
    trip = get_trip(session, org_id, trip_id)
    if trip is None:
        return None
    version = resolve_export_version(session, trip, version_id)
    if version is None:
        return None

    organization = get_organization(session, org_id)
    advisor = get_advisor(session, org_id, trip.advisor_id) if trip.advisor_id else None
    client = get_client(session, org_id, trip.client_id) if trip.client_id else None
    segments = list_segments(session, org_id, version.id)

    return schemas.ExportBundle(
        trip=schemas.Trip.model_validate(trip),
        version=schemas.TripVersion.model_validate(version),
        organization=schemas.Organization.model_validate(organization),
        advisor=schemas.Advisor.model_validate(advisor) if advisor else None,
        client=schemas.Client.model_validate(client) if client else None,
        segments=[schemas.TripSegment.model_validate(segment) for segment in segments],
    )
