# booking-backend/booking_service.py

import logging
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

import google_calendar_api
import models
from config import DEFAULT_HOST_TIMEZONE
from exceptions import BookingConflictError, InvalidBookingError
from hosts import resolve_host
from schemas import BookingRequest, BookingResponse
from scheduling import parse_time, sunday_based_weekday, to_naive_utc, to_utc

logger = logging.getLogger(__name__)


def _minutes_into_day(local_start, local_value) -> int:
    # Counted from the start day's midnight so an end past midnight lands beyond 24:00
    day_offset = (local_value.date() - local_start.date()).days
    return day_offset * 24 * 60 + local_value.hour * 60 + local_value.minute


def _lock_host_query(db: Session, host_id: str):
    # Serializes concurrent bookings for one host (row lock where the database supports it)
    return db.query(models.User).filter(models.User.id == host_id).with_for_update()


def create_booking(db: Session, slug: str, request: BookingRequest) -> BookingResponse:
    """
    Book ``request`` with the host behind ``slug``.

    The requested window has to fit inside one of the host's active rules for that
    weekday (in the host's timezone) and must not overlap an existing booking.
    """
    host = resolve_host(db, slug)

    start = to_utc(request.start_time)
    end = to_utc(request.end_time)
    if start >= end:
        raise InvalidBookingError("Invalid start/end time")

    tz = ZoneInfo(host.timezone or DEFAULT_HOST_TIMEZONE)
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)
    day_of_week = sunday_based_weekday(local_start.date())
    start_minutes = _minutes_into_day(local_start, local_start)
    end_minutes = _minutes_into_day(local_start, local_end)

    rules = (
        db.query(models.Availability)
        .filter(
            models.Availability.user_id == host.id,
            models.Availability.day_of_week == day_of_week,
            models.Availability.is_active.is_(True),
        )
        .all()
    )
    if not rules:
        raise InvalidBookingError("No availability defined for the requested day")
    if not any(
        parse_time(rule.start_time) <= start_minutes and end_minutes <= parse_time(rule.end_time)
        for rule in rules
    ):
        raise InvalidBookingError("Requested slot falls outside availability")

    _lock_host_query(db, host.id).one()
    conflict = (
        db.query(models.Booking)
        .filter(
            models.Booking.user_id == host.id,
            models.Booking.start_time < to_naive_utc(end),
            models.Booking.end_time > to_naive_utc(start),
        )
        .first()
    )
    if conflict:
        raise BookingConflictError("Requested slot already booked")

    client_phone = (request.client_phone or "").strip() or None
    booking = models.Booking(
        user_id=host.id,
        client_name=request.client_name,
        client_email=request.client_email.strip(),
        client_phone=client_phone,
        start_time=to_naive_utc(start),
        end_time=to_naive_utc(end),
        notes=(request.notes or "").strip() or None,
        status="CONFIRMED",
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(f"Booking {booking.id} created for user {host.id} at {start.isoformat()}")

    # A calendar hiccup must not undo a confirmed booking
    try:
        event_id = google_calendar_api.create_calendar_event(db, host, booking)
    except Exception as e:
        logger.error(f"Failed to create Google Calendar event for booking {booking.id}: {e}")
    else:
        if event_id:
            booking.google_event_id = event_id
            db.commit()
            logger.info(f"Google Calendar event created: {event_id}")

    return BookingResponse(booking_id=booking.id, client_phone=client_phone)
