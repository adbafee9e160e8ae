"""Shared FastAPI dependencies."""
from __future__ import annotations

from typing import Annotated, Generator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, models
from ..database import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Provide a scoped database session to request handlers."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_organization(
    org_id: Annotated[int, Header(alias="X-Org-Id", description="Calling organization")],
    db: Session = Depends(get_db),
) -> models.Organization:
    """Resolve the organization every scoped query filters on."""

    organization = crud.get_organization(db, org_id)
    if not organization:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return organization


def bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def not_found(resource: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{resource} not found")
