"""
Tests for the pure time-slot overlap rules.
"""
from datetime import date, datetime, time, timedelta
from itertools import product
from types import SimpleNamespace

import pytest

from roomdesk.errors import ValidationError
from roomdesk.services.overlap import (Interval, overlaps, normalize, is_room_free, to_minutes,
                                       validate_interval, duration_hours)

DAY = date(2024, 1, 10)
NOW = datetime(2024, 1, 10, 8, 0)


def hours(a, b):
    return Interval(a * 60, (b % 24) * 60)


def booking(room_id, start, end, status="BO", on_date=DAY):
    return SimpleNamespace(room_id=room_id, date=on_date, start_time=time.fromisoformat(start),
                           end_time=time.fromisoformat(end), status=status, bid="BO-X")


def request(room_id, start, end, status="pending", expired_at=None, on_date=DAY, proof=None, booking_id=None,
            req_id=1):
    return SimpleNamespace(id=req_id, room_id=room_id, booking_date=on_date, start_time=time.fromisoformat(start),
                           end_time=time.fromisoformat(end), status=status, expired_at=expired_at,
                           payment_proof_url=proof, booking_id=booking_id, bid="BR-X")


def test_overlap_is_symmetric():
    """overlaps(A, B) == overlaps(B, A) over a grid that includes overnight intervals."""
    samples = [hours(s, e) for s, e in [(9, 11), (10, 12), (11, 13), (23, 1), (0, 2), (22, 24), (1, 3), (8, 9)]]
    for a, b in product(samples, repeat=2):
        assert overlaps(a, b) == overlaps(b, a), (a, b)


def test_interval_overlaps_itself():
    for a in [hours(9, 11), hours(23, 1), hours(0, 1)]:
        assert overlaps(a, a)


def test_touching_intervals_do_not_overlap():
    assert not overlaps(hours(9, 11), hours(11, 13))
    assert not overlaps(hours(11, 13), hours(9, 11))
    assert not overlaps(hours(23, 1), hours(1, 3))


def test_overnight_wraparound_detects_overlap():
    """23:00-01:00 normalizes to 23-25 and collides with 00:00-02:00 on the same date."""
    assert normalize(hours(23, 1)) == Interval(23 * 60, 25 * 60)
    assert overlaps(hours(23, 1), hours(0, 2))
    assert overlaps(hours(22, 2), hours(23, 24))


def test_partial_overlap():
    assert overlaps(hours(9, 11), hours(10, 12))
    assert overlaps(hours(9, 17), hours(12, 13))


def test_to_minutes_accepts_strings_and_times():
    assert to_minutes("09:30") == 570
    assert to_minutes(time(23, 15)) == 1395
    with pytest.raises(ValidationError):
        to_minutes("25:00")
    with pytest.raises(ValidationError):
        to_minutes("nope")


def test_validate_interval():
    assert validate_interval("09:00", "11:00").minutes == 120
    assert validate_interval("23:00", "01:00", duration=2).minutes == 120
    assert duration_hours("22:30", "00:00") == 1.5
    with pytest.raises(ValidationError):
        validate_interval("10:00", "10:00")
    with pytest.raises(ValidationError):
        validate_interval("09:00", "11:00", duration=3)


def test_room_free_against_bookings():
    """Existing BO 09:00-11:00: 10-12 is taken, 11-13 is free (touching)."""
    existing = [booking(1, "09:00", "11:00")]
    assert not is_room_free(1, DAY, hours(10, 12), existing, [], NOW)
    assert is_room_free(1, DAY, hours(11, 13), existing, [], NOW)


def test_room_free_ignores_other_rooms_dates_and_inactive_bookings():
    existing = [
        booking(2, "09:00", "11:00"),
        booking(1, "09:00", "11:00", on_date=DAY + timedelta(days=1)),
        booking(1, "09:00", "11:00", status="CO"),
        booking(1, "09:00", "11:00", status="BATAL"),
    ]
    assert is_room_free(1, DAY, hours(9, 11), existing, [], NOW)
    assert not is_room_free(1, DAY, hours(9, 11), [booking(1, "09:00", "11:00", status="CI")], [], NOW)


def test_live_requests_block_the_room():
    for status in ("pending", "confirmed", "check-in"):
        reqs = [request(1, "09:00", "11:00", status=status, expired_at=NOW + timedelta(minutes=5))]
        assert not is_room_free(1, DAY, hours(10, 12), [], reqs, NOW), status
    for status in ("cancelled", "expired", "completed"):
        reqs = [request(1, "09:00", "11:00", status=status)]
        assert is_room_free(1, DAY, hours(10, 12), [], reqs, NOW), status


def test_overdue_pending_request_is_ignored_before_sweep():
    """A pending request 5 minutes past its payment window no longer holds the room."""
    overdue = request(1, "09:00", "11:00", expired_at=NOW - timedelta(minutes=5))
    assert is_room_free(1, DAY, hours(9, 11), [], [overdue], NOW)


def test_overdue_request_with_payment_proof_still_holds():
    paid = request(1, "09:00", "11:00", expired_at=NOW - timedelta(minutes=5), proof="https://x/proof.jpg")
    assert not is_room_free(1, DAY, hours(9, 11), [], [paid], NOW)


def test_unassigned_and_converted_requests_never_block_a_room():
    unassigned = request(None, "09:00", "11:00", status="confirmed")
    converted = request(1, "09:00", "11:00", status="confirmed", booking_id=42)
    assert is_room_free(1, DAY, hours(9, 11), [], [unassigned, converted], NOW)


def test_excluded_request_is_skipped():
    own = request(1, "09:00", "11:00", status="confirmed", req_id=7)
    assert is_room_free(1, DAY, hours(9, 11), [], [own], NOW, exclude_request_id=7)
    assert not is_room_free(1, DAY, hours(9, 11), [], [own], NOW)
