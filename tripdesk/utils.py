"""Template environment and branding helpers for printable exports."""
from __future__ import annotations

from typing import Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from .constants import APP_NAME, DEFAULT_POWERED_BY_LABEL, DOCUMENT_PRIMARY_COLOR
from .formatting import format_money
from .schemas import Advisor, ItineraryDocument, Organization

DOCUMENT_TEMPLATE = "itinerary_document.html"

_ENV = Environment(
    loader=PackageLoader("tripdesk", "templates"),
    autoescape=select_autoescape(["html", "xml"]),
    enable_async=False,
)
_ENV.filters["money"] = format_money


def resolve_branding(
    organization: Optional[Organization], advisor: Optional[Advisor] = None
) -> dict[str, Optional[str]]:
    powered_by = DEFAULT_POWERED_BY_LABEL
    cover_line = f"PREPARED BY {APP_NAME.upper()}"
    if organization:
        powered_by = f"{organization.name} • {DEFAULT_POWERED_BY_LABEL}"
        cover_line = f"PREPARED BY {organization.name.upper()}"
        if advisor:
            cover_line = (
                f"CURATED BY {advisor.full_name.upper()} AT {organization.name.upper()}"
            )
    return {
        "powered_by": powered_by,
        "cover_line": cover_line,
        "app_name": APP_NAME,
        "primary_color": DOCUMENT_PRIMARY_COLOR,
        "logo_url": organization.logo_url if organization else None,
    }


def render_itinerary_document(document: ItineraryDocument) -> str:
    """Render the layout model into a printable, paginated HTML document."""

    template = _ENV.get_template(DOCUMENT_TEMPLATE)
    return template.render(document=document, primary_color=DOCUMENT_PRIMARY_COLOR)
