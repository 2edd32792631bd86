"""
Booking creation endpoint.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.dialects import postgresql

import booking_service
import models
from conftest import add_booking, add_rule
from scheduling import to_naive_utc

NEW_YORK = ZoneInfo("America/New_York")


def next_monday_at(hour, minute=0):
    today = datetime.now(NEW_YORK).date()
    monday = today + timedelta(days=(7 - today.weekday()) % 7 + 7)
    return datetime(monday.year, monday.month, monday.day, hour, minute, tzinfo=NEW_YORK)


def payload(start, end, **extra):
    body = {
        "clientName": "  Alex Client ",
        "clientEmail": "alex@example.com",
        "startTime": start.isoformat(),
        "endTime": end.isoformat(),
    }
    body.update(extra)
    return body


@pytest.fixture
def monday_hours(db, host):
    return add_rule(db, host, 1, "09:00", "17:00")


def test_books_an_available_time(client, db, host, monday_hours):
    start = next_monday_at(10)
    end = start + timedelta(minutes=30)

    response = client.post("/bookings/jane-doe", json=payload(start, end, clientPhone=" 555-0100 ", notes=" hi "))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["clientPhone"] == "555-0100"

    booking = db.get(models.Booking, body["bookingId"])
    assert booking.client_name == "Alex Client"
    assert booking.notes == "hi"
    assert booking.status == "CONFIRMED"
    assert booking.start_time == to_naive_utc(start)
    assert booking.google_event_id is None
    assert booking.created_at.tzinfo is None
    assert abs(datetime.now(timezone.utc).replace(tzinfo=None) - booking.created_at) < timedelta(minutes=5)


def test_booked_time_shows_up_as_blocked(client, db, host, monday_hours):
    start = next_monday_at(11, 30)
    client.post("/bookings/host-1", json=payload(start, start + timedelta(minutes=30)))

    slots = client.get("/availability/host-1").json()["bookedSlots"]

    assert {"date": start.date().isoformat(), "startTime": "11:30", "source": "booking", "localTime": "11:30 AM"} in slots


def test_overlapping_booking_is_rejected(client, db, host, monday_hours):
    start = next_monday_at(10)
    add_booking(db, host, to_naive_utc(start), to_naive_utc(start + timedelta(minutes=30)))

    overlapping = start + timedelta(minutes=15)
    response = client.post("/bookings/host-1", json=payload(overlapping, overlapping + timedelta(minutes=30)))

    assert response.status_code == 409
    assert response.json()["detail"] == "Requested slot already booked"


def test_conflict_check_runs_under_a_host_row_lock(client, db, host, monday_hours):
    statement = booking_service._lock_host_query(db, "host-1").statement
    assert "FOR UPDATE" in str(statement.compile(dialect=postgresql.dialect()))

    start = next_monday_at(13)
    with patch.object(booking_service, "_lock_host_query", wraps=booking_service._lock_host_query) as lock:
        response = client.post("/bookings/host-1", json=payload(start, start + timedelta(minutes=30)))

    assert response.status_code == 200
    lock.assert_called_once()
    assert lock.call_args.args[1] == "host-1"


def test_back_to_back_booking_is_allowed(client, db, host, monday_hours):
    start = next_monday_at(10)
    add_booking(db, host, to_naive_utc(start), to_naive_utc(start + timedelta(minutes=30)))

    follow_up = start + timedelta(minutes=30)
    response = client.post("/bookings/host-1", json=payload(follow_up, follow_up + timedelta(minutes=30)))

    assert response.status_code == 200


def test_time_outside_availability_is_rejected(client, db, host, monday_hours):
    start = next_monday_at(16, 45)

    response = client.post("/bookings/host-1", json=payload(start, start + timedelta(minutes=30)))

    assert response.status_code == 400
    assert response.json()["detail"] == "Requested slot falls outside availability"


def test_day_without_rules_is_rejected(client, db, host, monday_hours):
    start = next_monday_at(10) + timedelta(days=1)

    response = client.post("/bookings/host-1", json=payload(start, start + timedelta(minutes=30)))

    assert response.status_code == 400
    assert response.json()["detail"] == "No availability defined for the requested day"


def test_end_before_start_is_rejected(client, db, host, monday_hours):
    start = next_monday_at(10)

    response = client.post("/bookings/host-1", json=payload(start, start))

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid start/end time"


def test_invalid_email_fails_validation(client, host, monday_hours):
    start = next_monday_at(10)

    response = client.post(
        "/bookings/host-1", json=payload(start, start + timedelta(minutes=30), clientEmail="not-an-email")
    )

    assert response.status_code == 422


def test_unknown_host_is_404(client, host):
    start = next_monday_at(10)

    response = client.post("/bookings/nobody", json=payload(start, start + timedelta(minutes=30)))

    assert response.status_code == 404


def test_calendar_event_id_is_stored(client, db, host, monday_hours):
    start = next_monday_at(9)

    with patch("google_calendar_api.create_calendar_event", return_value="evt-123") as create_event:
        response = client.post("/bookings/host-1", json=payload(start, start + timedelta(minutes=30)))

    assert response.status_code == 200
    create_event.assert_called_once()
    db.expire_all()
    assert db.get(models.Booking, response.json()["bookingId"]).google_event_id == "evt-123"


def test_calendar_failure_does_not_fail_the_booking(client, db, host, monday_hours):
    start = next_monday_at(9)

    with patch("google_calendar_api.create_calendar_event", side_effect=RuntimeError("quota exceeded")):
        response = client.post("/bookings/host-1", json=payload(start, start + timedelta(minutes=30)))

    assert response.status_code == 200
    assert db.get(models.Booking, response.json()["bookingId"]) is not None
