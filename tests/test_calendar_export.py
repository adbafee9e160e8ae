from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tripdesk.calendar_export import escape_text, fold_line, generate_calendar

NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def unfold(text: str) -> list[str]:
    return text.replace("\r\n ", "").split("\r\n")


def event_lines(text: str, uid: str) -> list[str]:
    lines = unfold(text)
    start = lines.index(f"UID:{uid}") - 1
    end = lines.index("END:VEVENT", start)
    return lines[start:end + 1]


def test_calendar_envelope(make_segment, make_bundle) -> None:
    text = generate_calendar(make_bundle([make_segment(1)], timezone="Europe/Lisbon"), now=NOW)
    lines = unfold(text)

    assert text.endswith("END:VCALENDAR\r\n")
    assert "\n" not in text.replace("\r\n", "")
    assert lines[0] == "BEGIN:VCALENDAR"
    assert "VERSION:2.0" in lines
    assert "PRODID:-//Atlas Travel//Tripdesk//EN" in lines
    assert "X-WR-CALNAME:Lisbon Escape" in lines
    assert "X-WR-TIMEZONE:Europe/Lisbon" in lines
    assert "DTSTAMP:20240501T093000Z" in lines


def test_segment_without_time_is_all_day(make_segment, make_bundle) -> None:
    bundle = make_bundle([make_segment(7, day_number=2, type="note", title="Free day")])
    lines = event_lines(generate_calendar(bundle, now=NOW), "7@tripdesk")

    assert "DTSTART;VALUE=DATE:20240602" in lines
    assert "DTEND;VALUE=DATE:20240603" in lines
    assert "SUMMARY:[NOTE] Free day" in lines
    assert "CATEGORIES:NOTE" in lines


def test_unreadable_start_time_is_all_day(make_segment, make_bundle) -> None:
    bundle = make_bundle([make_segment(7, start_time="after lunch")])
    lines = event_lines(generate_calendar(bundle, now=NOW), "7@tripdesk")
    assert "DTSTART;VALUE=DATE:20240601" in lines


def test_timed_event_converted_from_trip_zone(make_segment, make_bundle) -> None:
    segment = make_segment(3, day_number=2, start_time="14:00")
    bundle = make_bundle([segment], timezone="Europe/Lisbon")
    lines = event_lines(generate_calendar(bundle, now=NOW), "3@tripdesk")

    # Lisbon is UTC+1 in June; no end time means one hour
    assert "DTSTART:20240602T130000Z" in lines
    assert "DTEND:20240602T140000Z" in lines


def test_end_before_start_rolls_to_next_day(make_segment, make_bundle) -> None:
    segment = make_segment(4, start_time="22:00", end_time="01:30")
    lines = event_lines(generate_calendar(make_bundle([segment]), now=NOW), "4@tripdesk")
    assert "DTSTART:20240601T220000Z" in lines
    assert "DTEND:20240602T013000Z" in lines


def test_no_dates_without_trip_start(make_segment, make_bundle) -> None:
    bundle = make_bundle([make_segment(5, start_time="09:00")], start_date=None)
    lines = event_lines(generate_calendar(bundle, now=NOW), "5@tripdesk")
    assert not any(line.startswith(("DTSTART", "DTEND")) for line in lines)


def test_unknown_zone_falls_back_to_utc(make_segment, make_bundle, caplog) -> None:
    bundle = make_bundle([make_segment(6, start_time="09:00")])
    bundle.trip.timezone = "Mars/Olympus"
    text = generate_calendar(bundle, now=NOW)
    assert "X-WR-TIMEZONE:UTC" in unfold(text)
    assert "DTSTART:20240601T090000Z" in unfold(text)
    assert "Unknown time zone" in caplog.text


def test_description_is_escaped_once(make_segment, make_bundle) -> None:
    segment = make_segment(
        8,
        type="restaurant",
        title="Dinner, wine; cheese",
        notes="Ask for the terrace\nbring a jacket",
        cost=120,
        metadata={"restaurantName": "Belcanto", "cuisine": "Portuguese, modern"},
    )
    lines = event_lines(generate_calendar(make_bundle([segment]), now=NOW), "8@tripdesk")

    assert "SUMMARY:[RESTAURANT] Dinner\\, wine\\; cheese" in lines
    description = next(line for line in lines if line.startswith("DESCRIPTION:"))
    assert description == (
        "DESCRIPTION:Restaurant: Belcanto\\nCuisine: Portuguese\\, modern"
        "\\nNotes: Ask for the terrace\\nbring a jacket\\nCost: $120.00"
    )
    assert "LOCATION:Belcanto" in lines


def test_cost_hidden_when_pricing_hidden(make_segment, make_bundle, make_version) -> None:
    bundle = make_bundle(
        [make_segment(9, cost=80, notes="Tickets at the door")],
        version=make_version(show_pricing=False),
    )
    text = generate_calendar(bundle, now=NOW)
    assert "Cost:" not in text
    assert "Notes: Tickets at the door" in text


def test_flight_event_describes_route(make_segment, make_bundle) -> None:
    segment = make_segment(
        11,
        type="flight",
        title="TAP 202",
        metadata={
            "airline": "TAP",
            "flightNumber": "TP202",
            "departureAirport": "EWR",
            "arrivalAirport": "LIS",
        },
        confirmation_number="ABC123",
    )
    lines = event_lines(generate_calendar(make_bundle([segment]), now=NOW), "11@tripdesk")
    description = next(line for line in lines if line.startswith("DESCRIPTION:"))

    assert "Route: EWR → LIS" in description
    assert "Confirmation: ABC123" in description
    assert "LOCATION:EWR to LIS" in lines


def test_long_lines_fold_at_75_octets(make_segment, make_bundle) -> None:
    title = "Guided tour of the Jerónimos Monastery and Belém Tower with lunch by the river"
    text = generate_calendar(make_bundle([make_segment(12, title=title)]), now=NOW)

    for line in text.split("\r\n"):
        assert len(line.encode("utf-8")) <= 75
    assert f"SUMMARY:[ACTIVITY] {title}" in unfold(text)


def test_fold_line_keeps_multibyte_characters_whole() -> None:
    folded = fold_line("SUMMARY:" + "é" * 60)
    parts = folded.split("\r\n")
    assert len(parts) == 2
    assert parts[1].startswith(" ")
    for part in parts:
        part.encode("utf-8").decode("utf-8")
        assert len(part.encode("utf-8")) <= 75


@pytest.mark.parametrize(
    "raw, escaped",
    [
        ("a,b", "a\\,b"),
        ("a;b", "a\\;b"),
        ("a\\b", "a\\\\b"),
        ("line\nnext", "line\\nnext"),
        ("line\r\nnext", "line\\nnext"),
    ],
)
def test_escape_text(raw: str, escaped: str) -> None:
    assert escape_text(raw) == escaped


def test_incomplete_bundle_is_rejected(make_bundle) -> None:
    bundle = make_bundle([])
    bundle.version = None
    with pytest.raises(ValueError, match="version is required"):
        generate_calendar(bundle)
