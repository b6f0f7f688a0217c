"""Room availability and booking rules.

Every room is booked in the same ten one-hour slots, 08:00 to 18:00. A slot
counts as occupied when a meeting *starts* in that hour; meetings are assumed
to be one hour long and slot aligned, so overlaps that start at a different
hour are not detected here.

The single active booking rule is only checked against whatever meetings the
caller already holds. That snapshot can be stale, so the booking store has to
enforce the rule again when the meeting is created.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from dateutil import tz

import config
from model import Meeting, TimeSlot

logger = logging.getLogger(__name__)

slot_hours = range(8, 18)
slot_length = timedelta(hours=1)
time_slots = [f"{hour:02d}:00" for hour in slot_hours]

## errors

class BookingRejected(Exception):
    message = "Booking rejected"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)

class MissingSelection(BookingRejected):
    message = "Please select a date and time"

class ActiveBookingExists(BookingRejected):
    message = "You already have an open booking. Cancel your current booking to create a new one."

class PastSelection(BookingRejected):
    message = "Bookings cannot start in the past"

## time

def local_zone():
    if config.timezone_name:
        zone = tz.gettz(config.timezone_name)
        if zone is not None:
            return zone
        logger.warning("Unknown timezone %s, using the host's local zone", config.timezone_name)
    return tz.tzlocal()

def local_time(moment: datetime):
    # naive timestamps are already local wall-clock time
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(local_zone()).replace(tzinfo=None)

def local_now():
    return datetime.now(local_zone()).replace(tzinfo=None)

def slot_window(day: date, slot: str):
    if slot not in time_slots:
        raise ValueError(f"'{slot}' is not one of the bookable slots")
    start = datetime(day.year, day.month, day.day, int(slot.split(":")[0]))
    return start, start + slot_length

def slot_end_label(slot: str):
    return f"{int(slot.split(':')[0]) + 1:02d}:00"

## occupancy

def compute_daily_slots(meetings: Iterable[Meeting], day: date) -> list[TimeSlot]:
    by_hour: dict[int, Meeting] = {}
    for meeting in meetings:
        start = local_time(meeting.start_time)
        if start.date() != day:
            continue
        # first meeting wins if the store ever returns two for the same hour
        by_hour.setdefault(start.hour, meeting)

    slots = []
    for hour, label in zip(slot_hours, time_slots):
        meeting = by_hour.get(hour)
        slots.append(TimeSlot(time=label, is_occupied=meeting is not None, meeting=meeting))
    return slots

## booking rules

def is_active(meeting: Meeting, now: datetime):
    return local_time(meeting.start_time) > local_time(now)

def active_bookings(meetings: Iterable[Meeting], now: datetime):
    return [meeting for meeting in meetings if is_active(meeting, now)]

def validate_new_booking(
    existing_user_meetings: Iterable[Meeting],
    proposed_start: Optional[datetime],
    proposed_end: Optional[datetime],
    now: datetime,
):
    """Check a proposed booking before it is sent to the booking store.

    Raises a ``BookingRejected`` subclass when the user has to change something
    and ``ValueError`` when the window was not built from a slot. Returns None
    when the booking may be submitted.
    """
    if proposed_start is None or proposed_end is None:
        raise MissingSelection()

    start = local_time(proposed_start)
    end = local_time(proposed_end)
    if start.hour not in slot_hours or start != start.replace(minute=0, second=0, microsecond=0):
        raise ValueError(f"Booking start {start.isoformat()} is not on a slot boundary")
    if end - start != slot_length:
        raise ValueError("Booking must last exactly one slot")

    if active_bookings(existing_user_meetings, now):
        raise ActiveBookingExists()
    if start < local_time(now):
        raise PastSelection()

## listings

def sort_meetings(meetings: Iterable[Meeting]):
    return sorted(meetings, key=lambda meeting: local_time(meeting.start_time))

def meetings_on(meetings: Iterable[Meeting], day: date):
    return [meeting for meeting in meetings if local_time(meeting.start_time).date() == day]

def upcoming_meetings(meetings: Iterable[Meeting], now: datetime, limit: int = 5):
    return sort_meetings(active_bookings(meetings, now))[:limit]

## reconciliation

def merge_by_id(items: list, item):
    merged = [existing for existing in items if existing.id != item.id]
    merged.append(item)
    return merged

def remove_by_id(items: list, id: str):
    return [existing for existing in items if existing.id != id]
