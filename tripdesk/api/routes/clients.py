"""Client management endpoints."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import get_db, get_organization, not_found

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("", response_model=schemas.Client, status_code=status.HTTP_201_CREATED)
def create_client(
    client_in: schemas.ClientCreate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.Client:
    return crud.create_client(db, organization.id, client_in)


@router.get("", response_model=List[schemas.Client])
def list_clients(
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
    search: str | None = Query(None, description="Filter clients by name or email substring"),
) -> List[models.Client]:
    clients = crud.list_clients(db, organization.id)
    if search:
        lowered = search.lower()
        clients = [
            client
            for client in clients
            if lowered in (client.full_name or "").lower()
            or lowered in (client.email or "").lower()
        ]
    return list(clients)


@router.get("/{client_id}", response_model=schemas.Client)
def get_client(
    client_id: int = Path(..., gt=0),
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.Client:
    client = crud.get_client(db, organization.id, client_id)
    if not client:
        raise not_found("Client")
    return client


@router.put("/{client_id}", response_model=schemas.Client)
def update_client(
    client_id: int,
    client_in: schemas.ClientUpdate,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> models.Client:
    client = crud.get_client(db, organization.id, client_id)
    if not client:
        raise not_found("Client")
    return crud.update_client(db, client, client_in)
