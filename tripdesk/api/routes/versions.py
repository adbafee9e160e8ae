"""Trip version endpoints and the segments listed under a version."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import bad_request, get_db, get_organization, not_found

router = APIRouter(prefix="/versions", tags=["versions"])


def _get_version_or_404(db: Session, org_id: int, version_id: int) -> models.TripVersion:
    version = crud.get_version(db, org_id, version_id)
    if not version:
        raise not_found("Version")
    return version


@router.get("/{version_id}", response_model=schemas.TripVersionDetail)
def get_version(
    version_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripVersion:
    return _get_version_or_404(db, organization.id, version_id)


@router.put("/{version_id}", response_model=schemas.TripVersion)
def update_version(
    version_id: int,
    version_in: schemas.TripVersionUpdate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripVersion:
    version = _get_version_or_404(db, organization.id, version_id)
    return crud.update_version(db, version, version_in)


@router.delete("/{version_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_version(
    version_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> Response:
    version = _get_version_or_404(db, organization.id, version_id)
    try:
        crud.delete_version(db, version)
    except ValueError as exc:
        raise bad_request(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{version_id}/duplicate",
    response_model=schemas.TripVersion,
    status_code=status.HTTP_201_CREATED,
)
def duplicate_version(
    version_id: int,
    payload: Optional[schemas.VersionDuplicateRequest] = None,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripVersion:
    version = _get_version_or_404(db, organization.id, version_id)
    clone = crud.duplicate_version(db, version, payload.name if payload else None)
    db.refresh(clone)
    return clone


@router.post("/{version_id}/primary", response_model=schemas.TripVersion)
def set_primary_version(
    version_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripVersion:
    version = _get_version_or_404(db, organization.id, version_id)
    return crud.set_primary_version(db, version)


@router.post(
    "/{version_id}/approve",
    response_model=schemas.TripVersion,
    summary="Record the client's approval of this version",
)
def approve_version(
    version_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripVersion:
    version = _get_version_or_404(db, organization.id, version_id)
    return crud.approve_version(db, version)


@router.get("/{version_id}/segments", response_model=List[schemas.TripSegment])
def list_segments(
    version_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> List[models.TripSegment]:
    _get_version_or_404(db, organization.id, version_id)
    return list(crud.list_segments(db, organization.id, version_id))


@router.post(
    "/{version_id}/segments",
    response_model=schemas.TripSegment,
    status_code=status.HTTP_201_CREATED,
)
def create_segment(
    version_id: int,
    segment_in: schemas.TripSegmentCreate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripSegment:
    version = _get_version_or_404(db, organization.id, version_id)
    segment = crud.create_segment(db, version, segment_in)
    db.refresh(segment)
    return segment


@router.post("/{version_id}/segments/reorder", response_model=List[schemas.TripSegment])
def reorder_segments(
    version_id: int,
    payload: schemas.SegmentReorderRequest,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> List[models.TripSegment]:
    version = _get_version_or_404(db, organization.id, version_id)
    try:
        return list(crud.reorder_segments(db, version, payload.segment_ids))
    except ValueError as exc:
        raise bad_request(exc) from exc
