"""Variant endpoints: edit, remove, client submission and advisor selection."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import bad_request, get_db, get_organization, not_found

router = APIRouter(prefix="/variants", tags=["variants"])


def _get_variant_or_404(db: Session, org_id: int, variant_id: int) -> models.SegmentVariant:
    variant = crud.get_variant(db, org_id, variant_id)
    if not variant:
        raise not_found("Variant")
    return variant


@router.put("/{variant_id}", response_model=schemas.SegmentVariant)
def update_variant(
    variant_id: int,
    variant_in: schemas.SegmentVariantUpdate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.SegmentVariant:
    variant = _get_variant_or_404(db, organization.id, variant_id)
    return crud.update_variant(db, variant, variant_in)


@router.delete("/{variant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_variant(
    variant_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> Response:
    variant = _get_variant_or_404(db, organization.id, variant_id)
    crud.delete_variant(db, variant)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{variant_id}/submit",
    response_model=schemas.SegmentVariant,
    summary="Record the client's preferred option",
)
def submit_variant(
    variant_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.SegmentVariant:
    variant = _get_variant_or_404(db, organization.id, variant_id)
    return crud.submit_variant(db, variant)


@router.post(
    "/{variant_id}/select",
    response_model=schemas.SegmentVariant,
    summary="Lock in this option; other selections on the segment are cleared",
)
def select_variant(
    variant_id: int,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.SegmentVariant:
    variant = _get_variant_or_404(db, organization.id, variant_id)
    try:
        return crud.select_variant(db, organization.id, variant)
    except ValueError as exc:
        raise bad_request(exc) from exc
