"""
Time-slot overlap rules.

Pure functions, no database access. Times are minutes since midnight; an
interval whose end is at or before its start runs past midnight and gets
1440 added to its end. Intervals are half-open, so a booking ending at 11:00
and another starting at 11:00 do not collide.
"""
import logging
from dataclasses import dataclass
from datetime import time

from roomdesk.errors import ValidationError
from roomdesk.models.statuses import (BookingStatus, RequestStatus,
                                      BLOCKING_BOOKING_STATUSES, BLOCKING_REQUEST_STATUSES)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class Interval:
    start: int
    end: int

    @classmethod
    def of(cls, start, end):
        return cls(to_minutes(start), to_minutes(end))

    @property
    def wraps(self):
        return self.end <= self.start

    @property
    def minutes(self):
        n = normalize(self)
        return n.end - n.start


def to_minutes(value):
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, time):
        minutes = value.hour * 60 + value.minute
    else:
        try:
            parts = str(value).strip().split(":")
            minutes = int(parts[0]) * 60 + (int(parts[1]) if len(parts) > 1 else 0)
        except (ValueError, IndexError):
            raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValidationError(f"Time '{value}' is outside a 24h clock")
    return minutes


def normalize(interval):
    if interval.end <= interval.start:
        return Interval(interval.start, interval.end + MINUTES_PER_DAY)
    return interval


def _half_open_overlap(a, b):
    return not (a.end <= b.start or a.start >= b.end)


def overlaps(candidate, existing):
    """True when the two intervals share any minute on the same date.

    An overnight interval (e.g. 23:00-01:00) also collides with early-morning
    intervals of the same date (00:00-02:00), so the other side is compared
    one day earlier and later as well.
    """
    a, b = normalize(candidate), normalize(existing)
    for shift in (0, MINUTES_PER_DAY, -MINUTES_PER_DAY):
        if _half_open_overlap(a, Interval(b.start + shift, b.end + shift)):
            return True
    return False


def duration_hours(start, end):
    return Interval.of(start, end).minutes / 60.0


def validate_interval(start, end, duration=None):
    """Return the Interval for (start, end), rejecting impossible input."""
    interval = Interval.of(start, end)
    # identical start and end reads as either nothing or a full day; neither is bookable
    if interval.start == interval.end:
        raise ValidationError("Start and end time must differ")
    hours = interval.minutes / 60.0
    if duration is not None:
        try:
            given = float(duration)
        except (TypeError, ValueError):
            raise ValidationError(f"Duration '{duration}' is not a number")
        if abs(given - hours) > 0.01:
            raise ValidationError(
                f"Duration {given:g}h does not match {_fmt(interval.start)}-{_fmt(interval.end)} ({hours:g}h)")
    return interval


def _fmt(minutes):
    return f"{(minutes // 60) % 24:02d}:{minutes % 60:02d}"


def booking_blocks(booking, room_id, on_date):
    status = BookingStatus.parse(booking.status)
    return (booking.room_id == room_id
            and booking.date == on_date
            and status in BLOCKING_BOOKING_STATUSES)


def request_blocks(req, room_id, on_date, now):
    if req.room_id is None or req.room_id != room_id or req.booking_date != on_date:
        return False
    return request_is_live(req, now)


def request_is_live(req, now):
    """A request holds its slot while active and unconverted.

    A pending request past its payment window without a payment proof is
    already dead, whether or not the expiry sweep has marked it yet.
    """
    if getattr(req, "booking_id", None) is not None:
        return False
    status = RequestStatus.parse(req.status)
    if status not in BLOCKING_REQUEST_STATUSES:
        return False
    if (status == RequestStatus.PENDING and req.expired_at is not None and req.expired_at <= now
            and not getattr(req, "payment_proof_url", None)):
        return False
    return True


def is_room_free(room_id, on_date, candidate, bookings, requests, now, exclude_request_id=None):
    for b in bookings:
        if booking_blocks(b, room_id, on_date) and overlaps(candidate, Interval.of(b.start_time, b.end_time)):
            logger.debug("room %s busy on %s: booking %s", room_id, on_date, getattr(b, "bid", None))
            return False
    for r in requests:
        if exclude_request_id is not None and r.id == exclude_request_id:
            continue
        if request_blocks(r, room_id, on_date, now) and overlaps(candidate, Interval.of(r.start_time, r.end_time)):
            logger.debug("room %s busy on %s: request %s", room_id, on_date, getattr(r, "bid", None))
            return False
    return True
