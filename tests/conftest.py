from __future__ import annotations

import os
import sys
from datetime import date
from decimal import Decimal
from itertools import count
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from tripdesk import schemas  # noqa: E402

_ids = count(1000)


@pytest.fixture
def make_segment() -> Callable[..., schemas.TripSegment]:
    def _make(
        segment_id: Optional[int] = None,
        *,
        day_number: int = 1,
        type: str = "activity",
        title: Optional[str] = None,
        cost: Any = None,
        **fields: Any,
    ) -> schemas.TripSegment:
        segment_id = segment_id if segment_id is not None else next(_ids)
        return schemas.TripSegment(
            id=segment_id,
            day_number=day_number,
            type=type,
            title=title or f"Segment {segment_id}",
            cost=Decimal(str(cost)) if cost is not None else None,
            **fields,
        )

    return _make


@pytest.fixture
def make_variant() -> Callable[..., schemas.SegmentVariant]:
    def _make(
        variant_id: Optional[int] = None,
        *,
        segment_id: int = 1,
        label: str = "Upgrade",
        cost: Any = None,
        **fields: Any,
    ) -> schemas.SegmentVariant:
        return schemas.SegmentVariant(
            id=variant_id if variant_id is not None else next(_ids),
            segment_id=segment_id,
            label=label,
            cost=Decimal(str(cost)) if cost is not None else None,
            **fields,
        )

    return _make


@pytest.fixture
def make_version() -> Callable[..., schemas.TripVersion]:
    def _make(**fields: Any) -> schemas.TripVersion:
        values = {"id": 10, "trip_id": 1, "name": "Version 1", "is_primary": True}
        values.update(fields)
        return schemas.TripVersion(**values)

    return _make


@pytest.fixture
def make_bundle(make_version) -> Callable[..., schemas.ExportBundle]:
    def _make(
        segments: list[schemas.TripSegment],
        *,
        approved: bool = False,
        start_date: Optional[date] = date(2024, 6, 1),
        timezone: str = "UTC",
        advisor: bool = True,
        client: bool = True,
        version: Optional[schemas.TripVersion] = None,
        **trip_fields: Any,
    ) -> schemas.ExportBundle:
        version = version or make_version()
        trip = schemas.Trip(
            id=1,
            org_id=1,
            title=trip_fields.pop("title", "Lisbon Escape"),
            destinations=trip_fields.pop("destinations", ["Lisbon", "Sintra"]),
            start_date=start_date,
            end_date=trip_fields.pop("end_date", None),
            timezone=timezone,
            approved_version_id=version.id if approved else None,
            companion_names=trip_fields.pop("companion_names", ["Sam Rivera"]),
            **trip_fields,
        )
        return schemas.ExportBundle(
            trip=trip,
            version=version,
            organization=schemas.Organization(id=1, name="Atlas Travel", slug="atlas-travel"),
            advisor=schemas.Advisor(
                id=1, org_id=1, full_name="Jordan Lee", email="jordan@atlas.example"
            )
            if advisor
            else None,
            client=schemas.Client(id=1, org_id=1, full_name="Alex Morgan") if client else None,
            segments=segments,
        )

    return _make
