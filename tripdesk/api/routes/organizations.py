"""Organisation and advisor endpoints."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import get_db, not_found

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post("", response_model=schemas.Organization, status_code=status.HTTP_201_CREATED)
def create_organization(
    organization_in: schemas.OrganizationCreate, db: Session = Depends(get_db)
) -> models.Organization:
    return crud.create_organization(db, organization_in)


@router.get("", response_model=List[schemas.Organization])
def list_organizations(db: Session = Depends(get_db)) -> List[models.Organization]:
    return list(crud.list_organizations(db))


@router.get("/{org_id}", response_model=schemas.Organization)
def get_organization(
    org_id: int = Path(..., gt=0), db: Session = Depends(get_db)
) -> models.Organization:
    organization = crud.get_organization(db, org_id)
    if not organization:
        raise not_found("Organization")
    return organization


@router.post(
    "/{org_id}/advisors",
    response_model=schemas.Advisor,
    status_code=status.HTTP_201_CREATED,
)
def create_advisor(
    org_id: int, advisor_in: schemas.AdvisorCreate, db: Session = Depends(get_db)
) -> models.Advisor:
    if not crud.get_organization(db, org_id):
        raise not_found("Organization")
    return crud.create_advisor(db, org_id, advisor_in)


@router.get("/{org_id}/advisors", response_model=List[schemas.Advisor])
def list_advisors(org_id: int, db: Session = Depends(get_db)) -> List[models.Advisor]:
    if not crud.get_organization(db, org_id):
        raise not_found("Organization")
    return list(crud.list_advisors(db, org_id))
