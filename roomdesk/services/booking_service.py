from flask import current_app
from sqlalchemy.exc import IntegrityError

from roomdesk.errors import ConflictError, NotFoundError, ValidationError
from roomdesk.extension.extensions import db
from roomdesk.models.booking import Booking, BookingProduct
from roomdesk.models.bookingRequest import BookingRequest
from roomdesk.models.room import Room, RoomVariant
from roomdesk.models.statuses import BookingStatus, RequestStatus, RoomStatus, BLOCKING_REQUEST_STATUSES
from roomdesk.services.availability_service import lock_pool, load_occupancy, pool_capacity
from roomdesk.services.bid_service import next_bid, BidPrefix
from roomdesk.services.db_utils import rollback_on_error
from roomdesk.services.booking_state import resolve_transition, stamp, LedgerEffect
from roomdesk.services.event_service import emit_activity, emit_availability_changed, ActionType
from roomdesk.services.overlap import is_room_free, validate_interval
from roomdesk.services.room_status_service import upsert_status
from roomdesk.services.time_utils import utcnow, parse_date, parse_time, store_today
from roomdesk.services.validators import clean_name, clean_phone, clean_text, clean_money, clean_int

SLOT_TAKEN = "Room is already booked for this time slot"
SAVE_FAILED = "The booking clashes with an existing record; refresh and try again"


def get_booking(store_id, booking_id, lock=False):
    q = Booking.query.filter_by(id=booking_id, store_id=store_id)
    if lock:
        q = q.with_for_update()
    booking = q.first()
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


def list_bookings(store_id, on_date, status=None):
    q = Booking.query.filter_by(store_id=store_id, date=on_date)
    if status:
        q = q.filter(Booking.status == BookingStatus.parse(status))
    return q.order_by(Booking.start_time.asc(), Booking.id.asc()).all()


def claim_room(store_id, room_id, on_date, interval, now, category_id=None, exclude_request_id=None):
    """Lock the room (and its category pool) and make sure the interval is still free.

    Must run inside the transaction that inserts the claim; returns the locked Room.
    """
    room = Room.query.filter_by(id=room_id, store_id=store_id).first()
    if room is None:
        raise NotFoundError(f"Room {room_id} not found in this store")
    if category_id is not None and room.category_id != category_id:
        raise ValidationError(f"Room {room.name} is not in the requested category")

    rooms = lock_pool(store_id, room.category_id, [room.id])
    room = next(r for r in rooms if r.id == room_id)
    if room.status != RoomStatus.ACTIVE:
        raise ConflictError(f"Room {room.name} is {room.status.label.lower()} and can't be booked")

    occupancy = load_occupancy(store_id, on_date, now, retry=False)
    if not is_room_free(room.id, on_date, interval, occupancy.bookings, occupancy.requests, now,
                        exclude_request_id):
        raise ConflictError(SLOT_TAKEN)
    if room.category_id is not None and pool_capacity(room.category_id, on_date, interval, rooms, occupancy,
                                                      now, exclude_request_id) < 1:
        raise ConflictError("Every room in this category is already held by pending requests for this time slot")
    return room


def _products_from_payload(items):
    lines = []
    seen = set()
    for item in items or []:
        name = clean_name(item.get("productName") or item.get("product_name"), max_len=120, field="Product name")
        if name.lower() in seen:
            raise ValidationError(f"Product '{name}' is listed twice; put the total in one line's quantity")
        seen.add(name.lower())
        price = clean_money(item.get("productPrice", item.get("product_price")), field="Product price")
        qty = clean_int(item.get("quantity", 1), "Quantity")
        if qty <= 0:
            raise ValidationError("Quantity must be at least 1")
        lines.append(BookingProduct(product_name=name, product_price=price, quantity=qty, subtotal=price * qty))
    return lines


@rollback_on_error
def create_booking(ctx, payload, now=None):
    """Staff creates a Reserved booking for a concrete room."""
    ctx.require('create_bookings')
    now = now or utcnow()

    on_date = parse_date(payload.get("date"))
    start = parse_time(payload.get("startTime") or payload.get("start_time"), "startTime")
    end = parse_time(payload.get("endTime") or payload.get("end_time"), "endTime")
    interval = validate_interval(start, end, payload.get("duration"))
    room_id = clean_int(payload.get("roomId") or payload.get("room_id"), "roomId")

    customer_name = clean_name(payload.get("customerName") or payload.get("customer_name"))
    phone = clean_phone(payload.get("phone"), required=False)
    note = clean_text(payload.get("note"), 500, "Note")
    reference_no = clean_text(payload.get("referenceNo") or payload.get("reference_no"), 200, "Reference number")
    price = clean_money(payload.get("price", 0))
    dual = bool(payload.get("dualPayment"))
    price_2 = clean_money(payload.get("price2"), field="Second price", required=dual)
    products = _products_from_payload(payload.get("products"))

    variant_id = payload.get("variantId")
    if variant_id is not None:
        variant = RoomVariant.query.filter_by(id=variant_id, room_id=room_id, is_active=True).first()
        if variant is None:
            raise ValidationError(f"Variant {variant_id} is not offered for this room")

    try:
        room = claim_room(ctx.store_id, room_id, on_date, interval, now)
        booking = Booking(
            bid=next_bid(ctx.store_id, on_date, BidPrefix.BOOKING),
            store_id=ctx.store_id,
            room_id=room.id,
            date=on_date,
            start_time=start,
            end_time=end,
            duration=interval.minutes / 60.0,
            status=BookingStatus.RESERVED,
            customer_name=customer_name,
            phone=phone,
            reference_no=reference_no,
            note=note,
            variant_id=variant_id,
            price=price,
            payment_method=payload.get("paymentMethod"),
            dual_payment=dual,
            price_2=price_2,
            payment_method_2=payload.get("paymentMethod2") if dual else None,
            created_by=ctx.actor_id,
            created_at=now,
            confirmed_by=ctx.actor_id,
            confirmed_at=now,
        )
        booking.products = products
        db.session.add(booking)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f"create_booking integrity error: {e.orig}")
        raise ConflictError(SAVE_FAILED)

    current_app.logger.info(f"booking {booking.bid} created for room {room.name} on {on_date} by {ctx.actor_id}")
    emit_activity(ctx.store_id, ActionType.CREATED, 'booking', booking.id,
                  f"Booking {booking.bid} for {customer_name} in {room.name}, "
                  f"{on_date.isoformat()} {start:%H:%M}-{end:%H:%M}", actor=ctx)
    emit_availability_changed(ctx.store_id, on_date, 'booking_created')
    return booking


def apply_transition(ctx, booking, target, now):
    """Move a locked booking to target inside the caller's transaction. Does not commit."""
    transition = resolve_transition(booking.status, target, ctx)

    if transition.action == ActionType.RESTORE:
        interval = validate_interval(booking.start_time, booking.end_time)
        claim_room(booking.store_id, booking.room_id, booking.date, interval, now)

    stamp(booking, transition.target, ctx.actor_id, now)

    ledger_status = transition.ledger_status
    if transition.ledger == LedgerEffect.DIRTY_TODAY:
        upsert_status(booking.room_id, store_today(now), ledger_status, ctx.actor_id)
    elif transition.ledger == LedgerEffect.READY_ON_BOOKING_DATE:
        upsert_status(booking.room_id, booking.date, ledger_status, ctx.actor_id)
    return transition


@rollback_on_error
def change_status(ctx, booking_id, target, expected_version=None, now=None):
    now = now or utcnow()
    booking = get_booking(ctx.store_id, booking_id, lock=True)
    if expected_version is not None and booking.version != clean_int(expected_version, "version"):
        raise ConflictError("This booking was changed by someone else. Refresh and try again.")

    source = booking.status
    transition = apply_transition(ctx, booking, target, now)
    db.session.commit()

    current_app.logger.info(f"booking {booking.bid} {source.value} -> {booking.status.value} by {ctx.actor_id}")
    emit_activity(ctx.store_id, transition.action, 'booking', booking.id,
                  f"Booking {booking.bid} {source.label} -> {booking.status.label}", actor=ctx)
    emit_availability_changed(ctx.store_id, booking.date, f'booking_{transition.action}')
    return booking


@rollback_on_error
def delete_booking(ctx, booking_id):
    """Permanent delete. Line items go first, then the booking."""
    ctx.require('delete_bookings')
    booking = get_booking(ctx.store_id, booking_id, lock=True)
    if booking.status == BookingStatus.CANCELLED:
        ctx.require_superuser("Cancelled bookings can only be deleted by an administrator")

    bid, on_date = booking.bid, booking.date
    removed_lines = BookingProduct.query.filter_by(booking_id=booking.id).delete(synchronize_session=False)
    db.session.expire(booking, ["products"])

    # a request converted into this booking must not start holding the slot again
    for req in BookingRequest.query.filter_by(booking_id=booking.id).all():
        if req.status in BLOCKING_REQUEST_STATUSES:
            req.status = RequestStatus.CANCELLED
        req.booking_id = None
        req.append_note(f"Booking {bid} deleted by {ctx.label}")

    db.session.delete(booking)
    db.session.commit()

    current_app.logger.info(f"booking {bid} deleted with {removed_lines} line item(s) by {ctx.actor_id}")
    emit_activity(ctx.store_id, ActionType.DELETED, 'booking', booking_id, f"Booking {bid} permanently deleted",
                  actor=ctx)
    emit_availability_changed(ctx.store_id, on_date, 'booking_deleted')
    return bid
