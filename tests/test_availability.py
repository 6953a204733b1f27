"""
Tests for category availability counting and the DB-backed availability views.
"""
from datetime import timedelta
from types import SimpleNamespace

from conftest import BOOKING_DAY, NOW, add_booking
from roomdesk.extension.extensions import db
from roomdesk.models import BookingRequest
from roomdesk.models.statuses import RequestStatus, PaymentMethod
from roomdesk.services.availability_service import (available_room_count, category_availability,
                                                    category_variants, room_availability, unassigned_demand)
from roomdesk.services.overlap import Interval
from test_overlap import booking


def room(room_id, category_id=1, status="Aktif"):
    return SimpleNamespace(id=room_id, category_id=category_id, status=status)


def test_counts_free_active_rooms_only():
    rooms = [room(1), room(2), room(3, status="Rusak"), room(4, category_id=2)]
    result = available_room_count(1, BOOKING_DAY, Interval(540, 660), rooms, [], [], NOW)
    assert result.count == 2
    assert result.available


def test_count_never_increases_as_bookings_are_added():
    """Holding the candidate fixed, adding overlapping bookings can only lower the count."""
    rooms = [room(i) for i in range(1, 5)]
    candidate = Interval(9 * 60, 11 * 60)
    bookings = []
    previous = available_room_count(1, BOOKING_DAY, candidate, rooms, bookings, [], NOW).count
    assert previous == 4
    for room_id, (start, end) in zip([1, 1, 2, 3, 4], [("08:00", "10:00"), ("10:00", "12:00"),
                                                       ("10:30", "11:30"), ("06:00", "07:00"),
                                                       ("10:59", "13:00")]):
        bookings.append(booking(room_id, start, end))
        current = available_room_count(1, BOOKING_DAY, candidate, rooms, bookings, [], NOW).count
        assert current <= previous
        previous = current
    assert previous == 1
    assert not available_room_count(1, BOOKING_DAY, candidate, rooms[:1], bookings, [], NOW).available


def test_unassigned_demand_counts_live_category_requests():
    live = SimpleNamespace(id=1, room_id=None, category_id=1, booking_date=BOOKING_DAY,
                           start_time=booking(1, "09:00", "11:00").start_time,
                           end_time=booking(1, "09:00", "11:00").end_time,
                           status="pending", expired_at=NOW + timedelta(minutes=3),
                           payment_proof_url=None, booking_id=None)
    overdue = SimpleNamespace(**{**vars(live), "id": 2, "expired_at": NOW - timedelta(minutes=1)})
    other_category = SimpleNamespace(**{**vars(live), "id": 3, "category_id": 2})
    candidate = Interval(10 * 60, 12 * 60)
    assert unassigned_demand(1, BOOKING_DAY, candidate, [live, overdue, other_category], NOW) == 1
    assert unassigned_demand(1, BOOKING_DAY, candidate, [live], NOW, exclude_request_id=1) == 0


def test_category_availability_from_database(seed):
    add_booking(seed, seed.vip1, "09:00", "11:00")
    rows = {r["categoryName"]: r for r in category_availability(seed.store_id, BOOKING_DAY, "10:00", "12:00",
                                                                now=NOW)}
    assert rows["VIP"]["count"] == 1
    assert rows["VIP"]["available"]
    assert rows["Regular"]["count"] == 1

    rows = {r["categoryName"]: r for r in category_availability(seed.store_id, BOOKING_DAY, "11:00", "13:00",
                                                                now=NOW)}
    assert rows["VIP"]["count"] == 2


def test_expired_pending_request_does_not_reduce_availability(seed):
    """End-to-end: a request 5 minutes past its window is not counted though still 'pending'."""
    db.session.add(BookingRequest(
        bid="BR-MLG-20240110-901", store_id=seed.store_id, room_id=seed.vip1, category_id=seed.vip_id,
        booking_date=BOOKING_DAY, start_time=booking(1, "09:00", "11:00").start_time,
        end_time=booking(1, "09:00", "11:00").end_time, duration=2, customer_name="Late Payer",
        customer_phone="081234567890", payment_method=PaymentMethod.QRIS, status=RequestStatus.PENDING,
        confirmation_token="tok-overdue", expired_at=NOW - timedelta(minutes=5), created_at=NOW,
    ))
    db.session.commit()

    rooms = {r["roomName"]: r for r in room_availability(seed.store_id, BOOKING_DAY, "09:00", "11:00", now=NOW)}
    assert rooms["VIP 1"]["free"]
    assert not rooms["VIP 3"]["free"]   # broken

    rooms = {r["roomName"]: r for r in room_availability(seed.store_id, BOOKING_DAY, "09:00", "11:00",
                                                         now=NOW - timedelta(minutes=10))}
    assert not rooms["VIP 1"]["free"]


def test_category_variants_are_merged_by_name_cheapest_first(seed):
    variants = category_variants(seed.store_id, seed.vip_id)
    names = [v["variantName"] for v in variants]
    assert names == ["2 Hours", "3 Hours"]
    assert variants[0]["price"] == 100000.0
