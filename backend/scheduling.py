# booking-backend/scheduling.py
"""
Slot generation and blocked-slot resolution for the public booking page.

Nothing in here touches the database or the network: callers hand over the
host's rules, bookings, external busy intervals and "now", and get back the
same blocked list every time for the same inputs.
"""

import calendar
import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, List, NamedTuple, Sequence

from config import DEFAULT_SLOT_DURATION_MINUTES, SLOT_LOOKAHEAD_DAYS
from schemas import BlockedSlotEntry

logger = logging.getLogger(__name__)


class BusyInterval(NamedTuple):
    start: datetime
    end: datetime


class GeneratedSlot(NamedTuple):
    start: datetime
    end: datetime
    start_time_24: str


def parse_time(value: str) -> int:
    """'09:30' -> 570"""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_time(minutes: int) -> str:
    """570 -> '09:30'"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_local_time(hour: int, minute: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def sunday_based_weekday(day: date) -> int:
    """Weekday number used by availability rules: Sunday is 0, Saturday is 6."""
    return (day.weekday() + 1) % 7


def to_utc(value: datetime) -> datetime:
    # Naive datetimes come out of the database and are UTC by convention
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _exists(wall: datetime) -> bool:
    # Times inside a spring-forward gap do not survive a round trip through UTC
    return wall.astimezone(timezone.utc).astimezone(wall.tzinfo).replace(tzinfo=None) == wall.replace(tzinfo=None)


def generate_slots(rule, day: date, tz: tzinfo) -> List[GeneratedSlot]:
    """
    Lay out the bookable slots a weekly rule produces on one calendar day.

    Slots start at the rule's start time, last ``duration_minutes`` each and are
    separated by ``buffer_minutes``. The last slot is the one that still ends at
    or before the rule's end time. Times are wall-clock times on ``day`` in ``tz``.
    Slots touching a wall-clock time skipped by a DST jump are left out.
    """
    start_min = parse_time(rule.start_time)
    end_min = parse_time(rule.end_time)
    duration = rule.duration_minutes or DEFAULT_SLOT_DURATION_MINUTES
    buffer = rule.buffer_minutes or 0

    midnight = datetime.combine(day, time(0, 0), tzinfo=tz)
    slots: List[GeneratedSlot] = []
    cursor = start_min
    while cursor + duration <= end_min:
        start = midnight + timedelta(minutes=cursor)
        end = midnight + timedelta(minutes=cursor + duration)
        if _exists(start) and _exists(end):
            slots.append(GeneratedSlot(start=start, end=end, start_time_24=format_time(cursor)))
        cursor += duration + buffer
    return slots


def has_overlap(slot_start: datetime, slot_end: datetime, busy_periods: Iterable[BusyInterval]) -> bool:
    # Two periods overlap if start1 < end2 and end1 > start2
    return any(slot_start < busy.end and slot_end > busy.start for busy in busy_periods)


def external_blocked_slots(
    rules: Sequence,
    busy_periods: Sequence[BusyInterval],
    today: date,
    tz: tzinfo,
    days: int = SLOT_LOOKAHEAD_DAYS,
) -> List[BlockedSlotEntry]:
    """Generated slots over the next ``days`` days that collide with an external busy interval."""
    blocked: List[BlockedSlotEntry] = []
    if not busy_periods:
        return blocked

    for offset in range(days):
        check_date = today + timedelta(days=offset)
        weekday = sunday_based_weekday(check_date)
        for rule in rules:
            if rule.day_of_week != weekday or not rule.active:
                continue
            for slot in generate_slots(rule, check_date, tz):
                if not has_overlap(slot.start, slot.end, busy_periods):
                    continue
                entry = BlockedSlotEntry(
                    date=slot.start.date().isoformat(),
                    start_time=slot.start_time_24,
                    source="external",
                    local_time=format_local_time(slot.start.hour, slot.start.minute),
                )
                logger.debug(
                    f"Blocking slot {entry.date} {entry.start_time} due to external calendar "
                    f"({slot.start.isoformat()} - {slot.end.isoformat()})"
                )
                blocked.append(entry)
    return blocked


def booking_blocked_slots(bookings: Iterable, tz: tzinfo) -> List[BlockedSlotEntry]:
    """
    One entry per booking at its own start time in the host timezone.

    Bookings are not snapped onto the slot grid: the widget matches them by exact
    date and time string against the slots it regenerates from the rules.
    """
    blocked = []
    for booking in bookings:
        local_start = to_utc(booking.start_time).astimezone(tz)
        blocked.append(
            BlockedSlotEntry(
                date=local_start.strftime("%Y-%m-%d"),
                start_time=local_start.strftime("%H:%M"),
                source="booking",
                local_time=format_local_time(local_start.hour, local_start.minute),
            )
        )
    return blocked


def resolve_blocked_slots(
    rules: Sequence,
    bookings: Iterable,
    busy_periods: Sequence[BusyInterval],
    now: datetime,
    tz: tzinfo,
    days: int = SLOT_LOOKAHEAD_DAYS,
) -> List[BlockedSlotEntry]:
    """Merge booking and external-calendar blocks, ordered by (date, start time)."""
    today = to_utc(now).astimezone(tz).date()
    from_bookings = booking_blocked_slots(bookings, tz)
    from_external = external_blocked_slots(rules, busy_periods, today, tz, days)
    logger.info(
        f"Total blocked slots: {len(from_bookings) + len(from_external)} "
        f"(bookings={len(from_bookings)}, external={len(from_external)})"
    )
    # Both keys are zero-padded, so string order is chronological order
    return sorted(from_bookings + from_external, key=lambda entry: (entry.date, entry.start_time))


def to_naive_utc(value: datetime) -> datetime:
    """The form datetimes are stored in."""
    return to_utc(value).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` later, clamped to the end of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
