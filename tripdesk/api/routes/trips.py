"""Trip endpoints, including the versions listed under a trip."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import bad_request, get_db, get_organization, not_found

router = APIRouter(prefix="/trips", tags=["trips"])


def _get_trip_or_404(db: Session, org_id: int, trip_id: int) -> models.Trip:
    trip = crud.get_trip(db, org_id, trip_id)
    if not trip:
        raise not_found("Trip")
    return trip


@router.post("", response_model=schemas.Trip, status_code=status.HTTP_201_CREATED)
def create_trip(
    trip_in: schemas.TripCreate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.Trip:
    try:
        trip = crud.create_trip(db, organization.id, trip_in)
    except ValueError as exc:
        raise bad_request(exc) from exc
    db.refresh(trip)
    return trip


@router.get("", response_model=List[schemas.Trip])
def list_trips(
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
    trip_status: Optional[str] = Query(None, alias="status", description="Filter by trip status"),
) -> List[models.Trip]:
    return list(crud.list_trips(db, organization.id, status=trip_status))


@router.get("/{trip_id}", response_model=schemas.Trip)
def get_trip(
    trip_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.Trip:
    return _get_trip_or_404(db, organization.id, trip_id)


@router.put("/{trip_id}", response_model=schemas.Trip)
def update_trip(
    trip_id: int,
    trip_in: schemas.TripUpdate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.Trip:
    trip = _get_trip_or_404(db, organization.id, trip_id)
    try:
        trip = crud.update_trip(db, trip, trip_in)
    except ValueError as exc:
        raise bad_request(exc) from exc
    db.refresh(trip)
    return trip


@router.delete(
    "/{trip_id}",
    response_model=schemas.Trip,
    summary="Cancel a trip; trips are kept for history",
)
def cancel_trip(
    trip_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.Trip:
    trip = _get_trip_or_404(db, organization.id, trip_id)
    return crud.cancel_trip(db, trip)


@router.post(
    "/{trip_id}/duplicate",
    response_model=schemas.Trip,
    status_code=status.HTTP_201_CREATED,
    summary="Deep-copy a trip without confirmation numbers or client decisions",
)
def duplicate_trip(
    trip_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.Trip:
    trip = _get_trip_or_404(db, organization.id, trip_id)
    clone = crud.duplicate_trip(db, trip)
    db.refresh(clone)
    return clone


@router.get("/{trip_id}/versions", response_model=List[schemas.TripVersion])
def list_versions(
    trip_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> List[models.TripVersion]:
    _get_trip_or_404(db, organization.id, trip_id)
    return list(crud.list_versions(db, organization.id, trip_id))


@router.post(
    "/{trip_id}/versions",
    response_model=schemas.TripVersion,
    status_code=status.HTTP_201_CREATED,
)
def create_version(
    trip_id: int,
    version_in: schemas.TripVersionCreate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripVersion:
    trip = _get_trip_or_404(db, organization.id, trip_id)
    return crud.create_version(db, trip, version_in)
