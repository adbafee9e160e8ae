"""Segment endpoints, including the variants attached to a segment."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import bad_request, get_db, get_organization, not_found

router = APIRouter(prefix="/segments", tags=["segments"])


def _get_segment_or_404(db: Session, org_id: int, segment_id: int) -> models.TripSegment:
    segment = crud.get_segment(db, org_id, segment_id)
    if not segment:
        raise not_found("Segment")
    return segment


@router.get("/{segment_id}", response_model=schemas.TripSegment)
def get_segment(
    segment_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripSegment:
    return _get_segment_or_404(db, organization.id, segment_id)


@router.put("/{segment_id}", response_model=schemas.TripSegment)
def update_segment(
    segment_id: int,
    segment_in: schemas.TripSegmentUpdate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripSegment:
    segment = _get_segment_or_404(db, organization.id, segment_id)
    segment = crud.update_segment(db, segment, segment_in)
    db.refresh(segment)
    return segment


@router.delete("/{segment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_segment(
    segment_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> Response:
    segment = _get_segment_or_404(db, organization.id, segment_id)
    crud.delete_segment(db, segment)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{segment_id}/choose",
    response_model=schemas.TripSegment,
    summary="Pick this segment as the chosen option of its choice group",
)
def choose_segment(
    segment_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.TripSegment:
    segment = _get_segment_or_404(db, organization.id, segment_id)
    try:
        segment = crud.choose_segment(db, segment)
    except ValueError as exc:
        raise bad_request(exc) from exc
    db.refresh(segment)
    return segment


@router.get("/{segment_id}/variants", response_model=List[schemas.SegmentVariant])
def list_variants(
    segment_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> List[models.SegmentVariant]:
    _get_segment_or_404(db, organization.id, segment_id)
    return list(crud.list_variants(db, organization.id, segment_id))


@router.post(
    "/{segment_id}/variants",
    response_model=schemas.SegmentVariant,
    status_code=status.HTTP_201_CREATED,
)
def create_variant(
    segment_id: int,
    variant_in: schemas.SegmentVariantCreate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.SegmentVariant:
    segment = _get_segment_or_404(db, organization.id, segment_id)
    return crud.create_variant(db, segment, variant_in)


@router.delete("/{segment_id}/variants/selection", response_model=List[schemas.SegmentVariant])
def clear_variant_selection(
    segment_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> List[models.SegmentVariant]:
    segment = _get_segment_or_404(db, organization.id, segment_id)
    return list(crud.clear_variant_selection(db, segment))
