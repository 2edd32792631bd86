# booking-backend/availability_service.py

import logging
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

import google_calendar_api
import models
from config import (
    BOOKING_LOOKAHEAD_MONTHS,
    DEFAULT_HOST_TIMEZONE,
    EXTERNAL_LOOKAHEAD_MONTHS,
    SLOT_LOOKAHEAD_DAYS,
)
from hosts import resolve_host
from schemas import AvailabilityResponse, WeeklyAvailabilityRule
from scheduling import BusyInterval, add_months, resolve_blocked_slots, to_naive_utc

logger = logging.getLogger(__name__)


def active_rules(db: Session, host: models.User) -> List[WeeklyAvailabilityRule]:
    rows = (
        db.query(models.Availability)
        .filter(models.Availability.user_id == host.id, models.Availability.is_active.is_(True))
        .order_by(models.Availability.day_of_week, models.Availability.start_time)
        .all()
    )
    return [WeeklyAvailabilityRule.from_row(row) for row in rows]


def external_busy_times(db: Session, host: models.User, now: datetime) -> List[BusyInterval]:
    """Busy intervals from the host's Google Calendar, or nothing if Google could not be reached."""
    result = google_calendar_api.get_busy_times(db, host, now, add_months(now, EXTERNAL_LOOKAHEAD_MONTHS))
    if not result.ok:
        logger.warning(f"Continuing without Google Calendar data for user {host.id}: {result.error}")
        return []
    logger.info(f"Google Calendar busy times fetched: count={len(result.intervals)} user_id={host.id}")
    return result.intervals


def get_host_availability(
    db: Session,
    slug: str,
    now: Optional[datetime] = None,
    days: int = SLOT_LOOKAHEAD_DAYS,
) -> AvailabilityResponse:
    """
    Everything the booking page needs to draw a host's calendar: the weekly rules
    to build the slot grid from, plus the (date, time) pairs already taken.

    Raises HostNotFoundError when the slug matches nobody.
    """
    now = now or datetime.now(timezone.utc)
    host = resolve_host(db, slug)
    host_timezone = host.timezone or DEFAULT_HOST_TIMEZONE
    tz = ZoneInfo(host_timezone)
    logger.info(f"Availability request: slug={slug} user_id={host.id} now={now.isoformat()}")

    rules = active_rules(db, host)

    # No lower bound: past bookings are returned too
    booking_horizon = add_months(now, BOOKING_LOOKAHEAD_MONTHS)
    bookings = (
        db.query(models.Booking)
        .filter(models.Booking.user_id == host.id, models.Booking.start_time < to_naive_utc(booking_horizon))
        .all()
    )
    logger.info(f"Bookings fetched: count={len(bookings)} user_id={host.id}")

    busy = external_busy_times(db, host, now)
    booked_slots = resolve_blocked_slots(rules, bookings, busy, now, tz, days)

    return AvailabilityResponse(
        availability=rules,
        booked_slots=booked_slots,
        host_timezone=host_timezone,
        primary_color=host.company.primary_color if host.company else None,
    )
