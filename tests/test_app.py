from __future__ import annotations

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tripdesk import models  # noqa: E402
from tripdesk.database import Base  # noqa: E402
from tripdesk.main import app, get_db  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


reset_database()


def override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    reset_database()
    with TestClient(app) as client:
        yield client


def create_organization(client: TestClient, name: str = "Atlas Travel") -> dict[str, str]:
    response = client.post("/organizations", json={"name": name})
    assert response.status_code == 201
    return {"X-Org-Id": str(response.json()["id"])}


def create_sample_trip(client: TestClient, headers: dict[str, str], **overrides) -> dict:
    advisor = client.post(
        f"/organizations/{headers['X-Org-Id']}/advisors",
        json={"full_name": "Jordan Lee", "email": "jordan@atlas.example"},
    )
    assert advisor.status_code == 201
    traveller = client.post(
        "/clients",
        json={"full_name": "Alex Morgan", "email": "alex@example.com"},
        headers=headers,
    )
    assert traveller.status_code == 201

    payload = {
        "title": "Lisbon Escape",
        "destinations": "Lisbon, Sintra",
        "start_date": str(date(2024, 6, 1)),
        "end_date": str(date(2024, 6, 5)),
        "timezone": "Europe/Lisbon",
        "client_id": traveller.json()["id"],
        "advisor_id": advisor.json()["id"],
        "companion_names": ["Sam Rivera"],
    }
    payload.update(overrides)
    response = client.post("/trips", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def add_segment(client: TestClient, headers: dict[str, str], version_id: int, **fields) -> dict:
    payload = {"day_number": 1, "type": "activity", "title": "Walking tour"}
    payload.update(fields)
    response = client.post(f"/versions/{version_id}/segments", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_healthcheck(api_client: TestClient) -> None:
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_organization_header_is_required(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    assert api_client.get("/trips").status_code == 422
    missing = api_client.get("/trips", headers={"X-Org-Id": "999"})
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Organization not found"
    assert api_client.get("/trips", headers=headers).json() == []


def test_organization_slugs_are_unique(api_client: TestClient) -> None:
    first = api_client.post("/organizations", json={"name": "Atlas Travel"}).json()
    second = api_client.post("/organizations", json={"name": "Atlas  Travel!"}).json()
    assert first["slug"] == "atlas-travel"
    assert second["slug"] == "atlas-travel-1"
    assert first["time_format"] == "24h"


def test_client_search_and_update(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    for name, email in (("Alex Morgan", "alex@example.com"), ("Robin Hale", "robin@example.com")):
        api_client.post("/clients", json={"full_name": name, "email": email}, headers=headers)

    found = api_client.get("/clients", params={"search": "robin"}, headers=headers).json()
    assert [client["full_name"] for client in found] == ["Robin Hale"]

    updated = api_client.put(
        f"/clients/{found[0]['id']}", json={"phone": "+351 555 0100"}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["phone"] == "+351 555 0100"
    assert updated.json()["email"] == "robin@example.com"


def test_create_trip_starts_with_primary_version(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)

    assert trip["destinations"] == ["Lisbon", "Sintra"]
    assert trip["status"] == "draft"
    assert trip["approved_version_id"] is None
    assert len(trip["versions"]) == 1
    version = trip["versions"][0]
    assert version["name"] == "Version 1"
    assert version["is_primary"] is True
    assert version["version_number"] == 1


def test_trip_validation(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    backwards = api_client.post(
        "/trips",
        json={"title": "Backwards", "start_date": "2024-06-05", "end_date": "2024-06-01"},
        headers=headers,
    )
    assert backwards.status_code == 422

    bad_zone = api_client.post(
        "/trips", json={"title": "Nowhere", "timezone": "Mars/Olympus"}, headers=headers
    )
    assert bad_zone.status_code == 422

    unknown_client = api_client.post(
        "/trips", json={"title": "Ghost", "client_id": 4242}, headers=headers
    )
    assert unknown_client.status_code == 400
    assert unknown_client.json()["detail"] == "Unknown client"

    trip = create_sample_trip(api_client, headers)
    update = api_client.put(
        f"/trips/{trip['id']}", json={"end_date": "2024-05-01"}, headers=headers
    )
    assert update.status_code == 400
    assert api_client.get(f"/trips/{trip['id']}", headers=headers).json()["end_date"] == "2024-06-05"


def test_cancel_trip_keeps_history(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)

    cancelled = api_client.delete(f"/trips/{trip['id']}", headers=headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    listed = api_client.get("/trips", params={"status": "cancelled"}, headers=headers).json()
    assert [item["id"] for item in listed] == [trip["id"]]
    assert api_client.get("/trips", params={"status": "draft"}, headers=headers).json() == []


def test_primary_version_is_exclusive(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)
    first_id = trip["versions"][0]["id"]

    second = api_client.post(
        f"/trips/{trip['id']}/versions", json={"name": "Premium"}, headers=headers
    )
    assert second.status_code == 201
    assert second.json()["version_number"] == 2
    assert second.json()["is_primary"] is False

    promoted = api_client.post(f"/versions/{second.json()['id']}/primary", headers=headers)
    assert promoted.status_code == 200

    versions = api_client.get(f"/trips/{trip['id']}/versions", headers=headers).json()
    assert [(v["id"], v["is_primary"]) for v in versions] == [
        (first_id, False),
        (second.json()["id"], True),
    ]


def test_version_delete_guards(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)
    first_id = trip["versions"][0]["id"]

    only = api_client.delete(f"/versions/{first_id}", headers=headers)
    assert only.status_code == 400
    assert only.json()["detail"] == "Cannot delete the only version of a trip"

    second = api_client.post(
        f"/trips/{trip['id']}/versions", json={"name": "Budget"}, headers=headers
    ).json()
    add_segment(api_client, headers, second["id"])

    primary = api_client.delete(f"/versions/{first_id}", headers=headers)
    assert primary.status_code == 400

    removed = api_client.delete(f"/versions/{second['id']}", headers=headers)
    assert removed.status_code == 204
    assert api_client.get(f"/versions/{second['id']}", headers=headers).status_code == 404
    assert len(api_client.get(f"/trips/{trip['id']}/versions", headers=headers).json()) == 1


def test_segment_crud_and_reorder(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    version_id = create_sample_trip(api_client, headers)["versions"][0]["id"]

    museum = add_segment(api_client, headers, version_id, title="Museum", sort_order=0)
    lunch = add_segment(
        api_client,
        headers,
        version_id,
        type="restaurant",
        title="Lunch",
        sort_order=1,
        metadata={"restaurantName": "Time Out Market", "cuisine": "Portuguese"},
    )
    assert lunch["metadata"]["restaurantName"] == "Time Out Market"
    assert lunch["details"]["kind"] == "restaurant"
    assert lunch["details"]["restaurant_name"] == "Time Out Market"

    updated = api_client.put(
        f"/segments/{museum['id']}", json={"start_time": "10:00"}, headers=headers
    )
    assert updated.json()["start_time"] == "10:00"

    reordered = api_client.post(
        f"/versions/{version_id}/segments/reorder",
        json={"segment_ids": [lunch["id"], museum["id"]]},
        headers=headers,
    )
    assert reordered.status_code == 200
    assert [segment["id"] for segment in reordered.json()] == [lunch["id"], museum["id"]]

    stray = api_client.post(
        f"/versions/{version_id}/segments/reorder",
        json={"segment_ids": [9999]},
        headers=headers,
    )
    assert stray.status_code == 400

    assert api_client.delete(f"/segments/{museum['id']}", headers=headers).status_code == 204
    remaining = api_client.get(f"/versions/{version_id}/segments", headers=headers).json()
    assert [segment["id"] for segment in remaining] == [lunch["id"]]


def test_choose_segment_in_choice_group(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    version_id = create_sample_trip(api_client, headers)["versions"][0]["id"]
    sintra = add_segment(api_client, headers, version_id, title="Sintra", choice_group_id="c1")
    cascais = add_segment(api_client, headers, version_id, title="Cascais", choice_group_id="c1")
    loner = add_segment(api_client, headers, version_id, title="Fado night")

    api_client.post(f"/segments/{sintra['id']}/choose", headers=headers)
    chosen = api_client.post(f"/segments/{cascais['id']}/choose", headers=headers)
    assert chosen.json()["is_choice_selected"] is True
    assert api_client.get(f"/segments/{sintra['id']}", headers=headers).json()[
        "is_choice_selected"
    ] is False

    assert api_client.post(f"/segments/{loner['id']}/choose", headers=headers).status_code == 400


def test_choice_and_version_numbering_ignore_other_organizations(
    api_client: TestClient,
) -> None:
    headers = create_organization(api_client)
    other_org_id = int(create_organization(api_client, "Meridian Journeys")["X-Org-Id"])
    trip = create_sample_trip(api_client, headers)
    version_id = trip["versions"][0]["id"]
    sintra = add_segment(api_client, headers, version_id, title="Sintra", choice_group_id="c1")

    with TestingSessionLocal() as session:
        stray = models.TripSegment(
            version_id=version_id,
            trip_id=trip["id"],
            org_id=other_org_id,
            day_number=1,
            type="activity",
            title="Stray",
            choice_group_id="c1",
            is_choice_selected=True,
        )
        session.add(stray)
        session.add(
            models.TripVersion(
                trip_id=trip["id"], org_id=other_org_id, version_number=7, name="Stray"
            )
        )
        session.commit()
        stray_id = stray.id

    chosen = api_client.post(f"/segments/{sintra['id']}/choose", headers=headers)
    assert chosen.json()["is_choice_selected"] is True
    with TestingSessionLocal() as session:
        assert session.get(models.TripSegment, stray_id).is_choice_selected is True

    created = api_client.post(
        f"/trips/{trip['id']}/versions", json={"name": "Premium"}, headers=headers
    )
    assert created.status_code == 201
    assert created.json()["version_number"] == 2


def test_variant_selection_is_single(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    version_id = create_sample_trip(api_client, headers)["versions"][0]["id"]
    flight = add_segment(
        api_client,
        headers,
        version_id,
        type="flight",
        title="EWR to LIS",
        cost="800.00",
        variants=[
            {"label": "Premium Economy", "cost": "1200.00", "sort_order": 1},
            {"label": "Business", "cost": "2400.00", "sort_order": 2},
        ],
    )
    assert flight["has_variants"] is True
    first, second = flight["variants"]

    api_client.post(f"/variants/{first['id']}/select", headers=headers)
    api_client.post(f"/variants/{second['id']}/select", headers=headers)
    variants = api_client.get(f"/segments/{flight['id']}/variants", headers=headers).json()
    assert [variant["is_selected"] for variant in variants] == [False, True]

    cleared = api_client.delete(f"/segments/{flight['id']}/variants/selection", headers=headers)
    assert [variant["is_selected"] for variant in cleared.json()] == [False, False]

    api_client.post(f"/variants/{first['id']}/submit", headers=headers)
    api_client.post(f"/variants/{second['id']}/submit", headers=headers)
    variants = api_client.get(f"/segments/{flight['id']}/variants", headers=headers).json()
    assert [variant["is_submitted"] for variant in variants] == [False, True]

    for variant in variants:
        assert api_client.delete(f"/variants/{variant['id']}", headers=headers).status_code == 204
    assert api_client.get(f"/segments/{flight['id']}", headers=headers).json()["has_variants"] is False


def test_approval_locks_in_submitted_variant(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)
    version_id = trip["versions"][0]["id"]
    hotel = add_segment(
        api_client,
        headers,
        version_id,
        type="hotel",
        title="Memmo Alfama",
        cost="300.00",
        variants=[{"label": "River Suite", "cost": "450.00"}],
    )
    variant_id = hotel["variants"][0]["id"]
    api_client.post(f"/variants/{variant_id}/submit", headers=headers)

    before = api_client.get(f"/trips/{trip['id']}/pricing", headers=headers).json()
    assert Decimal(before["total"]) == Decimal("300")

    approved = api_client.post(f"/versions/{version_id}/approve", headers=headers)
    assert approved.status_code == 200
    assert approved.json()["is_primary"] is True

    assert api_client.get(f"/trips/{trip['id']}", headers=headers).json()[
        "approved_version_id"
    ] == version_id
    variant = api_client.get(f"/segments/{hotel['id']}/variants", headers=headers).json()[0]
    assert variant["is_selected"] is True

    after = api_client.get(f"/trips/{trip['id']}/pricing", headers=headers).json()
    assert Decimal(after["total"]) == Decimal("450")


def test_duplicate_trip_strips_bookings(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)
    version_id = trip["versions"][0]["id"]
    flight = add_segment(
        api_client,
        headers,
        version_id,
        type="flight",
        title="TP202",
        confirmation_number="ABC123",
        choice_group_id="c1",
        is_choice_selected=True,
        metadata={"pnr": "XYZ789", "confirmationNumber": "ABC123", "airline": "TAP"},
        variants=[{"label": "Business", "cost": "2400.00"}],
    )
    variant_id = flight["variants"][0]["id"]
    api_client.post(f"/variants/{variant_id}/submit", headers=headers)
    api_client.post(f"/versions/{version_id}/approve", headers=headers)

    response = api_client.post(f"/trips/{trip['id']}/duplicate", headers=headers)
    assert response.status_code == 201
    clone = response.json()
    assert clone["id"] != trip["id"]
    assert clone["title"] == "Lisbon Escape (Copy)"
    assert clone["status"] == "draft"
    assert clone["approved_version_id"] is None
    assert [version["is_primary"] for version in clone["versions"]] == [True]

    detail = api_client.get(f"/versions/{clone['versions'][0]['id']}", headers=headers).json()
    (segment,) = detail["segments"]
    assert segment["confirmation_number"] is None
    assert segment["metadata"] == {"airline": "TAP"}
    assert segment["is_choice_selected"] is True
    (variant,) = segment["variants"]
    assert variant["is_submitted"] is False
    assert variant["is_selected"] is False

    original = api_client.get(f"/segments/{flight['id']}", headers=headers).json()
    assert original["confirmation_number"] == "ABC123"


def test_duplicate_version(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)
    version_id = trip["versions"][0]["id"]
    add_segment(api_client, headers, version_id, confirmation_number="Q1")

    copy = api_client.post(f"/versions/{version_id}/duplicate", headers=headers)
    assert copy.status_code == 201
    assert copy.json()["name"] == "Version 1 (copy)"
    assert copy.json()["version_number"] == 2
    assert copy.json()["is_primary"] is False

    named = api_client.post(
        f"/versions/{version_id}/duplicate", json={"name": "Slower pace"}, headers=headers
    ).json()
    assert named["name"] == "Slower pace"
    assert named["version_number"] == 3

    segments = api_client.get(f"/versions/{copy.json()['id']}/segments", headers=headers).json()
    assert [segment["confirmation_number"] for segment in segments] == [None]


def test_organizations_are_isolated(api_client: TestClient) -> None:
    atlas = create_organization(api_client, "Atlas Travel")
    rival = create_organization(api_client, "Rival Journeys")
    trip = create_sample_trip(api_client, atlas)
    version_id = trip["versions"][0]["id"]
    segment = add_segment(api_client, atlas, version_id, variants=[{"label": "VIP"}])

    assert api_client.get("/trips", headers=rival).json() == []
    assert api_client.get(f"/trips/{trip['id']}", headers=rival).status_code == 404
    assert api_client.get(f"/versions/{version_id}", headers=rival).status_code == 404
    assert api_client.get(f"/segments/{segment['id']}", headers=rival).status_code == 404
    assert (
        api_client.post(f"/variants/{segment['variants'][0]['id']}/select", headers=rival).status_code
        == 404
    )
    assert api_client.get(f"/trips/{trip['id']}/calendar.ics", headers=rival).status_code == 404
    assert api_client.get("/clients", headers=rival).json() == []
    assert (
        api_client.post(
            f"/versions/{version_id}/segments",
            json={"day_number": 1, "type": "note", "title": "Sneaky"},
            headers=rival,
        ).status_code
        == 404
    )


def test_calendar_export(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)
    version_id = trip["versions"][0]["id"]
    segment = add_segment(
        api_client, headers, version_id, title="Dinner, fado", type="restaurant", start_time="19:30"
    )

    response = api_client.get(f"/trips/{trip['id']}/calendar.ics", headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/calendar")
    assert f'filename="trip-{trip["id"]}.ics"' in response.headers["content-disposition"]

    body = response.text
    assert body.startswith("BEGIN:VCALENDAR\r\n")
    assert f"UID:{segment['id']}@tripdesk" in body
    assert "SUMMARY:[RESTAURANT] Dinner\\, fado" in body
    # 19:30 in Lisbon during summer time
    assert "DTSTART:20240601T183000Z" in body


def test_document_and_client_view(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)
    version_id = trip["versions"][0]["id"]
    api_client.put(
        f"/versions/{version_id}",
        json={"discount": 10, "discount_type": "percent"},
        headers=headers,
    )
    for title, cost in (("Deluxe King", "200.00"), ("Junior Suite", "150.00")):
        add_segment(
            api_client,
            headers,
            version_id,
            type="hotel",
            title=title,
            cost=cost,
            property_group_id="memmo",
            metadata={"hotelName": "Memmo Alfama", "roomType": title},
        )
    add_segment(api_client, headers, version_id, day_number=2, title="Sintra", choice_group_id="c1")
    add_segment(api_client, headers, version_id, day_number=2, title="Cascais", choice_group_id="c1")

    document = api_client.get(f"/trips/{trip['id']}/document", headers=headers)
    assert document.status_code == 200
    assert document.headers["content-type"].startswith("text/html")
    html = document.text
    assert "Property Total: $350.00" in html
    assert "Discount (10%)" in html
    assert "-$35.00" in html
    assert "$315.00" in html
    assert "CURATED BY JORDAN LEE AT ATLAS TRAVEL" in html

    view = api_client.get(f"/trips/{trip['id']}/view", headers=headers).json()
    assert view["version_id"] == version_id
    assert view["open_decisions"] == 1
    assert [day["day_number"] for day in view["days"]] == [1, 2]
    assert view["pricing"]["total_display"] == "$315.00"

    pricing = api_client.get(f"/trips/{trip['id']}/pricing", headers=headers).json()
    assert Decimal(pricing["subtotal"]) == Decimal("350")
    assert Decimal(pricing["discount_amount"]) == Decimal("35")


def test_export_version_selection(api_client: TestClient) -> None:
    headers = create_organization(api_client)
    trip = create_sample_trip(api_client, headers)
    other_trip = create_sample_trip(api_client, headers, title="Porto Weekend")
    first_id = trip["versions"][0]["id"]
    draft = api_client.post(
        f"/trips/{trip['id']}/versions", json={"name": "Draft B"}, headers=headers
    ).json()

    default_view = api_client.get(f"/trips/{trip['id']}/view", headers=headers).json()
    assert default_view["version_id"] == first_id

    explicit = api_client.get(
        f"/trips/{trip['id']}/view", params={"version_id": draft["id"]}, headers=headers
    ).json()
    assert explicit["version_name"] == "Draft B"

    api_client.post(f"/versions/{draft['id']}/approve", headers=headers)
    approved = api_client.get(f"/trips/{trip['id']}/view", headers=headers).json()
    assert approved["version_id"] == draft["id"]
    assert approved["is_approved"] is True

    foreign = api_client.get(
        f"/trips/{trip['id']}/view",
        params={"version_id": other_trip["versions"][0]["id"]},
        headers=headers,
    )
    assert foreign.status_code == 404

    empty = api_client.get(f"/trips/{other_trip['id']}/pricing", headers=headers)
    assert empty.status_code == 200
    assert empty.json() is None
