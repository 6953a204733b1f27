"""
Room and category availability.

The counting helpers work on plain lists and never touch the database, so
dashboards can preview freely. The authoritative check runs inside the
writing transaction after lock_pool() has taken row locks on the category
and its rooms.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import or_

from roomdesk.errors import NotFoundError
from roomdesk.extension.extensions import db
from roomdesk.models.booking import Booking
from roomdesk.models.bookingRequest import BookingRequest
from roomdesk.models.room import Room, RoomCategory, RoomVariant
from roomdesk.models.statuses import (RoomStatus, RequestStatus,
                                      BLOCKING_BOOKING_STATUSES, BLOCKING_REQUEST_STATUSES)
from roomdesk.services.db_utils import read_with_retry
from roomdesk.services.overlap import Interval, is_room_free, overlaps, request_is_live
from roomdesk.services.time_utils import utcnow


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    count: int


@dataclass
class Occupancy:
    bookings: List[Booking]
    requests: List[BookingRequest]


def available_room_count(category_id, on_date, candidate, rooms, bookings, requests, now,
                         exclude_request_id=None):
    free = 0
    for room in rooms:
        if room.category_id != category_id or room.status != RoomStatus.ACTIVE:
            continue
        if is_room_free(room.id, on_date, candidate, bookings, requests, now, exclude_request_id):
            free += 1
    return AvailabilityResult(available=free > 0, count=free)


def unassigned_demand(category_id, on_date, candidate, requests, now, exclude_request_id=None):
    """Live requests for the category that still wait for a room and overlap the candidate."""
    held = 0
    for r in requests:
        if r.room_id is not None or r.category_id != category_id or r.booking_date != on_date:
            continue
        if exclude_request_id is not None and r.id == exclude_request_id:
            continue
        if request_is_live(r, now) and overlaps(candidate, Interval.of(r.start_time, r.end_time)):
            held += 1
    return held


def pool_capacity(category_id, on_date, candidate, rooms, occupancy, now, exclude_request_id=None):
    """Free rooms in the category minus what unassigned requests already hold."""
    result = available_room_count(category_id, on_date, candidate, rooms, occupancy.bookings,
                                  occupancy.requests, now, exclude_request_id)
    return result.count - unassigned_demand(category_id, on_date, candidate, occupancy.requests, now,
                                            exclude_request_id)


def _query_occupancy(store_id, on_date, now):
    bookings = (Booking.query
                .filter(Booking.store_id == store_id, Booking.date == on_date)
                .filter(Booking.status.in_(BLOCKING_BOOKING_STATUSES))
                .all())
    requests = (BookingRequest.query
                .filter(BookingRequest.store_id == store_id, BookingRequest.booking_date == on_date)
                .filter(BookingRequest.status.in_(BLOCKING_REQUEST_STATUSES))
                .filter(BookingRequest.booking_id.is_(None))
                # an overdue pending request stops counting before the sweep flips it
                .filter(or_(BookingRequest.status != RequestStatus.PENDING,
                            BookingRequest.expired_at.is_(None),
                            BookingRequest.expired_at > now,
                            BookingRequest.payment_proof_url.isnot(None)))
                .all())
    return Occupancy(bookings=bookings, requests=requests)


def load_occupancy(store_id, on_date, now=None, retry=True):
    """Blocking bookings and live requests for a store/date.

    Pass retry=False inside a writing transaction: a retry would roll back and lose the held locks.
    """
    now = now or utcnow()
    if retry:
        return read_with_retry(_query_occupancy, store_id, on_date, now)
    return _query_occupancy(store_id, on_date, now)


def lock_pool(store_id, category_id=None, room_ids=None):
    """SELECT ... FOR UPDATE on the category row, then its rooms ordered by id.

    Every writer that claims an interval goes through here, always in the same
    order, so concurrent claims on one room or pool serialize instead of deadlocking.
    """
    if category_id is not None:
        category = (RoomCategory.query
                    .filter_by(id=category_id, store_id=store_id)
                    .with_for_update()
                    .first())
        if category is None:
            raise NotFoundError(f"Category {category_id} not found in this store")
    q = Room.query.filter(Room.store_id == store_id)
    if category_id is not None:
        q = q.filter(or_(Room.category_id == category_id, Room.id.in_(room_ids or [])))
    elif room_ids:
        q = q.filter(Room.id.in_(room_ids))
    return q.order_by(Room.id.asc()).with_for_update().all()


def category_availability(store_id, on_date, start, end, now=None) -> List[Dict]:
    now = now or utcnow()
    candidate = Interval.of(start, end)

    def _load():
        categories = (RoomCategory.query
                      .filter_by(store_id=store_id, is_active=True)
                      .order_by(RoomCategory.name.asc())
                      .all())
        rooms = Room.query.filter_by(store_id=store_id, status=RoomStatus.ACTIVE).all()
        return categories, rooms

    categories, rooms = read_with_retry(_load)
    occupancy = load_occupancy(store_id, on_date, now)
    out = []
    for cat in categories:
        result = available_room_count(cat.id, on_date, candidate, rooms, occupancy.bookings,
                                      occupancy.requests, now)
        out.append({
            "categoryId": cat.id,
            "categoryName": cat.name,
            "available": result.available,
            "count": result.count,
            "held": unassigned_demand(cat.id, on_date, candidate, occupancy.requests, now),
        })
    return out


def room_availability(store_id, on_date, start, end, now=None) -> List[Dict]:
    now = now or utcnow()
    candidate = Interval.of(start, end)
    rooms = read_with_retry(lambda: Room.query.filter_by(store_id=store_id).order_by(Room.name.asc()).all())
    occupancy = load_occupancy(store_id, on_date, now)
    return [{
        "roomId": room.id,
        "roomName": room.name,
        "categoryId": room.category_id,
        "status": room.status.label,
        "free": room.status == RoomStatus.ACTIVE and is_room_free(
            room.id, on_date, candidate, occupancy.bookings, occupancy.requests, now),
    } for room in rooms]


def category_variants(store_id, category_id) -> List[Dict]:
    """Variants offered for a category: active variants of its Active rooms, one per name, cheapest first."""
    variants = read_with_retry(lambda: (
        db.session.query(RoomVariant)
        .join(Room, Room.id == RoomVariant.room_id)
        .filter(Room.store_id == store_id, Room.category_id == category_id,
                Room.status == RoomStatus.ACTIVE, RoomVariant.is_active.is_(True))
        .order_by(RoomVariant.price.asc(), RoomVariant.id.asc())
        .all()))
    merged = {}
    for v in variants:
        merged.setdefault(v.variant_name, v)
    return [{
        "variantName": v.variant_name,
        "duration": float(v.duration),
        "price": float(v.price),
        "description": v.description,
    } for v in merged.values()]


def find_category_variant(store_id, category_id, variant_name) -> Optional[Dict]:
    for v in category_variants(store_id, category_id):
        if v["variantName"] == variant_name:
            return v
    return None
