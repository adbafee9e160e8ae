"""Itinerary exports: calendar feed, printable document, client view and pricing."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...calendar_export import generate_calendar
from ...document_export import build_client_view, export_document
from ...totals import calculate_totals
from ..deps import bad_request, get_db, get_organization, not_found

router = APIRouter(prefix="/trips", tags=["exports"])

VersionQuery = Query(
    None, description="Version to export; defaults to the approved version, else the primary one"
)


def _load_bundle(
    db: Session, org_id: int, trip_id: int, version_id: Optional[int]
) -> schemas.ExportBundle:
    bundle = crud.load_export_bundle(db, org_id, trip_id, version_id)
    if bundle is None:
        raise not_found("Trip or version")
    return bundle


@router.get(
    "/{trip_id}/calendar.ics",
    response_class=Response,
    summary="Download the itinerary as an iCalendar feed",
)
def export_calendar(
    trip_id: int,
    version_id: Optional[int] = VersionQuery,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> Response:
    bundle = _load_bundle(db, organization.id, trip_id, version_id)
    try:
        content = generate_calendar(bundle)
    except ValueError as exc:
        raise bad_request(exc) from exc
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="trip-{trip_id}.ics"'},
    )


@router.get(
    "/{trip_id}/document",
    response_class=HTMLResponse,
    summary="Render a printable, paginated itinerary document",
)
def export_itinerary_document(
    trip_id: int,
    version_id: Optional[int] = VersionQuery,
    time_format: Optional[str] = Query(None, pattern="^(12h|24h)$"),
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    bundle = _load_bundle(db, organization.id, trip_id, version_id)
    try:
        content = export_document(bundle, time_format=time_format)
    except ValueError as exc:
        raise bad_request(exc) from exc
    return HTMLResponse(content=content)


@router.get(
    "/{trip_id}/view",
    response_model=schemas.ClientView,
    summary="Resolved itinerary for the client approval screen",
)
def client_view(
    trip_id: int,
    version_id: Optional[int] = VersionQuery,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> schemas.ClientView:
    bundle = _load_bundle(db, organization.id, trip_id, version_id)
    try:
        return build_client_view(bundle)
    except ValueError as exc:
        raise bad_request(exc) from exc


@router.get(
    "/{trip_id}/pricing",
    response_model=Optional[schemas.PricingSummary],
    summary="Subtotal, discount and total of a trip version",
)
def pricing_summary(
    trip_id: int,
    version_id: Optional[int] = VersionQuery,
    organization: models.Organization = Depends(get_organization),
    db: Session = Depends(get_db),
) -> Optional[schemas.PricingSummary]:
    bundle = _load_bundle(db, organization.id, trip_id, version_id)
    return calculate_totals(
        bundle.version,
        bundle.segments,
        is_approved=bundle.is_approved,
        currency=bundle.trip.currency,
    )
