"""
Customer booking requests.

    pending   -> confirmed | cancelled | expired
    confirmed -> check-in | cancelled
    check-in  -> completed

A request is created by the public form with a payment window (expired_at)
and an unguessable confirmation token. The customer confirms or cancels
through the token link; staff later convert it into a real booking on a
concrete room, which marks the request consumed (booking_id set).
"""
import secrets
from datetime import timedelta

from flask import current_app
from sqlalchemy import func, literal, and_, or_
from sqlalchemy.exc import IntegrityError

from roomdesk.errors import (ConflictError, NotFoundError, ValidationError, ExpiredError, RateLimitedError)
from roomdesk.extension.extensions import db
from roomdesk.models.booking import Booking
from roomdesk.models.bookingRequest import BookingRequest
from roomdesk.models.room import RoomCategory
from roomdesk.models.statuses import BookingStatus, RequestStatus, PaymentMethod
from roomdesk.models.store import Store
from roomdesk.services.availability_service import lock_pool, load_occupancy, pool_capacity, find_category_variant
from roomdesk.services.bid_service import next_bid, BidPrefix
from roomdesk.services.booking_service import claim_room, apply_transition, SAVE_FAILED
from roomdesk.services.booking_state import stamp
from roomdesk.services.db_utils import rollback_on_error
from roomdesk.services.event_service import (emit_activity, emit_availability_changed,
                                             emit_booking_request_created, ActionType)
from roomdesk.services.overlap import validate_interval
from roomdesk.services.time_utils import utcnow, parse_date, parse_time, store_today
from roomdesk.services.validators import clean_name, clean_phone, clean_money, clean_int, clean_text

_PENDING, _CONFIRMED, _CANCELLED, _EXPIRED, _CHECK_IN, _COMPLETED = (
    RequestStatus.PENDING, RequestStatus.CONFIRMED, RequestStatus.CANCELLED,
    RequestStatus.EXPIRED, RequestStatus.CHECK_IN, RequestStatus.COMPLETED)

REQUEST_TRANSITIONS = {
    _PENDING: {_CONFIRMED, _CANCELLED, _EXPIRED},
    _CONFIRMED: {_CHECK_IN, _CANCELLED},
    _CHECK_IN: {_COMPLETED},
    _CANCELLED: set(),
    _EXPIRED: set(),
    _COMPLETED: set(),
}

EXPIRED_NOTE = "Expired automatically: payment window elapsed"


def generate_token():
    return secrets.token_urlsafe(32)


def confirmation_url(token):
    base = current_app.config.get("PUBLIC_BASE_URL", "").rstrip("/")
    return f"{base}/public/booking-requests/confirm?token={token}"


def _move(req, target, note=None):
    if target not in REQUEST_TRANSITIONS[req.status]:
        raise ConflictError(f"A {req.status.value} booking request can't become {target.value}")
    req.status = target
    if note:
        req.append_note(note)


# -----------------------------------------------------------------------------
# Rate limiting
# -----------------------------------------------------------------------------
def check_rate_limit(phone, now=None):
    """Rolling-window count of requests created by this phone. Raises once the quota is used up."""
    now = now or utcnow()
    max_requests = current_app.config.get("RATE_LIMIT_MAX_REQUESTS", 5)
    window = timedelta(minutes=current_app.config.get("RATE_LIMIT_WINDOW_MINUTES", 60))
    since = now - window

    count, oldest = (db.session.query(func.count(BookingRequest.id), func.min(BookingRequest.created_at))
                     .filter(BookingRequest.customer_phone == phone, BookingRequest.created_at > since)
                     .one())
    if count >= max_requests:
        retry_after = max(1, int((oldest + window - now).total_seconds()) + 1)
        current_app.logger.warning(f"rate limit hit for phone {phone}: {count} requests in {window}")
        raise RateLimitedError(
            f"Too many booking requests from this phone number. Try again in {retry_after // 60 + 1} minute(s).",
            retry_after=retry_after,
        )
    return max_requests - count


# -----------------------------------------------------------------------------
# Intake
# -----------------------------------------------------------------------------
@rollback_on_error
def create_request(store_id, payload, now=None, start_timer=True, actor=None):
    """Public intake. Claims a slot in the chosen category; the room is assigned later by staff."""
    now = now or utcnow()
    store = Store.query.filter_by(id=store_id, is_active=True).first()
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")

    customer_name = clean_name(payload.get("customerName"), min_len=2)
    phone = clean_phone(payload.get("customerPhone"))
    payment_method = PaymentMethod.parse(payload.get("paymentMethod"))
    on_date = parse_date(payload.get("bookingDate"), "bookingDate")
    if on_date < store_today(now):
        raise ValidationError("Booking date is in the past")
    start = parse_time(payload.get("startTime"), "startTime")
    end = parse_time(payload.get("endTime"), "endTime")
    interval = validate_interval(start, end, payload.get("duration"))
    category_id = clean_int(payload.get("categoryId"), "categoryId")

    category = RoomCategory.query.filter_by(id=category_id, store_id=store_id, is_active=True).first()
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")

    variant_name = payload.get("variantName")
    if variant_name:
        variant = find_category_variant(store_id, category_id, variant_name)
        if variant is None:
            raise ValidationError(f"'{variant_name}' is not offered for {category.name}")
        room_price = total_price = clean_money(variant["price"])
    else:
        room_price = clean_money(payload.get("roomPrice", payload.get("totalPrice")), field="Room price")
        total_price = clean_money(payload.get("totalPrice"), field="Total price")

    check_rate_limit(phone, now)

    rooms = lock_pool(store_id, category.id)
    occupancy = load_occupancy(store_id, on_date, now, retry=False)
    if pool_capacity(category.id, on_date, interval, rooms, occupancy, now) < 1:
        raise ConflictError(f"No {category.name} room is available for this time slot anymore")

    window = current_app.config.get("PAYMENT_WINDOW_MINUTES", 10)
    req = BookingRequest(
        bid=next_bid(store_id, on_date, BidPrefix.BOOKING_REQUEST),
        store_id=store_id,
        category_id=category.id,
        category_name=category.name,
        variant_name=variant_name,
        booking_date=on_date,
        start_time=start,
        end_time=end,
        duration=interval.minutes / 60.0,
        room_price=room_price,
        total_price=total_price,
        customer_name=customer_name,
        customer_phone=phone,
        payment_method=payment_method,
        status=_PENDING,
        confirmation_token=generate_token(),
        expired_at=now + timedelta(minutes=window) if start_timer else None,
        payment_step_started_at=now if start_timer else None,
        created_at=now,
    )
    if actor is not None:
        req.append_note(f"Entered by {actor.label}")
    db.session.add(req)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.error(f"create_request integrity error: {e.orig}")
        raise ConflictError("Could not save the booking request, please try again")

    emit_booking_request_created(req, confirmation_url(req.confirmation_token))
    emit_availability_changed(store_id, on_date, 'request_created')
    return req


@rollback_on_error
def start_payment_timer(request_id, store_id=None, token=None, minutes=None, now=None):
    """Open the payment window. A window that is already running is never extended."""
    now = now or utcnow()
    req = _locked_request(request_id=request_id, store_id=store_id, token=token)
    if req.status != _PENDING:
        raise ConflictError(f"Payment timer can only start for a pending request, this one is {req.status.value}")
    if req.expired_at is None:
        minutes = minutes or current_app.config.get("PAYMENT_WINDOW_MINUTES", 10)
        req.expired_at = now + timedelta(minutes=int(minutes))
        req.payment_step_started_at = now
        db.session.commit()
        current_app.logger.info(f"payment timer started for {req.bid}, expires {req.expired_at}")
        emit_activity(req.store_id, ActionType.UPDATED, 'booking_request', req.id,
                      f"Payment timer started for request {req.bid}, pay by {req.expired_at:%H:%M} UTC")
    return req


# -----------------------------------------------------------------------------
# Token link actions (unauthenticated)
# -----------------------------------------------------------------------------
def _locked_request(request_id=None, store_id=None, token=None):
    q = BookingRequest.query
    if token is not None:
        q = q.filter_by(confirmation_token=token)
    else:
        q = q.filter_by(id=request_id)
        if store_id is not None:
            q = q.filter_by(store_id=store_id)
    req = q.with_for_update().first()
    if req is None:
        raise NotFoundError("This booking link is not valid" if token is not None
                            else f"Booking request {request_id} not found")
    return req


def is_overdue(req, now):
    return (req.status == _PENDING and req.expired_at is not None and req.expired_at <= now
            and not req.payment_proof_url)


def _expire_now(req, now):
    _move(req, _EXPIRED, EXPIRED_NOTE)
    db.session.commit()
    emit_activity(req.store_id, ActionType.EXPIRE, 'booking_request', req.id, f"Request {req.bid} expired")
    emit_availability_changed(req.store_id, req.booking_date, 'request_expired')


@rollback_on_error
def get_by_token(token, now=None):
    """Show the request behind a link, expiring it first if its window already elapsed."""
    now = now or utcnow()
    if not token:
        raise NotFoundError("This booking link is not valid")
    req = _locked_request(token=token)
    if is_overdue(req, now):
        _expire_now(req, now)
    else:
        db.session.commit()
    return req


@rollback_on_error
def confirm_by_token(token, now=None):
    """Returns (request, changed). Confirming twice is a no-op success."""
    now = now or utcnow()
    req = _locked_request(token=token)
    if req.status == _CONFIRMED:
        db.session.commit()
        return req, False
    if is_overdue(req, now):
        _expire_now(req, now)
        raise ExpiredError("The payment window for this booking request has closed")
    if req.status != _PENDING:
        raise ExpiredError(f"This booking request is already {req.status.value} and can't be confirmed")

    _move(req, _CONFIRMED, f"Confirmed by customer at {now:%Y-%m-%d %H:%M} UTC")
    db.session.commit()
    emit_activity(req.store_id, ActionType.CONFIRM, 'booking_request', req.id,
                  f"Request {req.bid} confirmed by customer {req.customer_name}")
    return req, True


@rollback_on_error
def cancel_by_token(token, now=None):
    """Returns (request, changed). Cancelling twice is a no-op success."""
    now = now or utcnow()
    req = _locked_request(token=token)
    if req.status == _CANCELLED:
        db.session.commit()
        return req, False
    if req.status not in (_PENDING, _CONFIRMED):
        raise ExpiredError(f"This booking request is already {req.status.value} and can't be cancelled")
    if req.is_consumed:
        raise ConflictError("This request already became a booking; please contact the store to cancel")

    _move(req, _CANCELLED, f"Cancelled by customer at {now:%Y-%m-%d %H:%M} UTC")
    db.session.commit()
    emit_activity(req.store_id, ActionType.CANCEL, 'booking_request', req.id,
                  f"Request {req.bid} cancelled by customer {req.customer_name}")
    emit_availability_changed(req.store_id, req.booking_date, 'request_cancelled')
    return req, True


def handle_link(token, action=None, now=None):
    """Dispatch a confirmation link: action is confirm, cancel or empty to just show state."""
    if not token:
        raise NotFoundError("This booking link is not valid")
    if not action:
        return get_by_token(token, now), False
    if action == 'confirm':
        return confirm_by_token(token, now)
    if action == 'cancel':
        return cancel_by_token(token, now)
    raise ValidationError(f"Unknown action '{action}', expected confirm or cancel")


@rollback_on_error
def submit_payment_proof(token, proof_url, now=None):
    """Attach the uploaded proof reference. A request with proof is no longer auto-expired."""
    now = now or utcnow()
    proof_url = clean_text(proof_url, 500, "Payment proof URL")
    if not proof_url or not proof_url.startswith(("http://", "https://")):
        raise ValidationError("Payment proof must be an http(s) URL")
    req = _locked_request(token=token)
    if is_overdue(req, now):
        _expire_now(req, now)
        raise ExpiredError("The payment window for this booking request has closed")
    if req.status not in (_PENDING, _CONFIRMED):
        raise ExpiredError(f"This booking request is already {req.status.value}")
    req.payment_proof_url = proof_url
    req.append_note("Payment proof submitted")
    db.session.commit()
    current_app.logger.info(f"payment proof attached to {req.bid}")
    emit_activity(req.store_id, ActionType.UPDATED, 'booking_request', req.id,
                  f"Payment proof submitted for request {req.bid}")
    return req


# -----------------------------------------------------------------------------
# Staff actions
# -----------------------------------------------------------------------------
def list_requests(store_id, status=None, on_date=None):
    q = BookingRequest.query.filter_by(store_id=store_id)
    if status:
        q = q.filter(BookingRequest.status == RequestStatus.parse(status))
    if on_date:
        q = q.filter(BookingRequest.booking_date == parse_date(on_date))
    return q.order_by(BookingRequest.created_at.desc()).all()


@rollback_on_error
def convert_to_booking(ctx, request_id, room_id, status=BookingStatus.RESERVED, now=None):
    """Turn a request into a booking on a concrete room. Both rows commit together or not at all."""
    ctx.require('manage_booking_requests')
    ctx.require('create_bookings')
    now = now or utcnow()
    target = BookingStatus.parse(status)
    if target not in (BookingStatus.RESERVED, BookingStatus.CHECKED_IN):
        raise ValidationError("A converted request starts as BO or CI")

    req = _locked_request(request_id=request_id, store_id=ctx.store_id)
    if req.is_consumed:
        raise ConflictError(f"Request {req.bid} was already converted into a booking")
    if is_overdue(req, now):
        raise ExpiredError(f"Request {req.bid} expired before payment arrived")
    if req.status == _PENDING and not req.payment_proof_url:
        raise ConflictError(f"Request {req.bid} is still waiting for payment")
    if req.status not in (_PENDING, _CONFIRMED):
        raise ConflictError(f"Request {req.bid} is {req.status.value} and can't be converted")

    interval = validate_interval(req.start_time, req.end_time)
    room = claim_room(ctx.store_id, clean_int(room_id, "roomId"), req.booking_date, interval, now,
                      category_id=req.category_id, exclude_request_id=req.id)

    booking = Booking(
        bid=next_bid(ctx.store_id, req.booking_date, BidPrefix.BOOKING),
        store_id=ctx.store_id,
        room_id=room.id,
        date=req.booking_date,
        start_time=req.start_time,
        end_time=req.end_time,
        duration=req.duration,
        customer_name=req.customer_name,
        phone=req.customer_phone,
        reference_no=req.bid,
        price=req.total_price,
        payment_method=req.payment_method.value,
        created_by=ctx.actor_id,
        created_at=now,
        status=BookingStatus.RESERVED,
    )
    stamp(booking, BookingStatus.RESERVED, ctx.actor_id, now)
    if target == BookingStatus.CHECKED_IN:
        stamp(booking, BookingStatus.CHECKED_IN, ctx.actor_id, now)
    db.session.add(booking)
    db.session.flush()

    if req.status == _PENDING:
        _move(req, _CONFIRMED)
    if target == BookingStatus.CHECKED_IN:
        _move(req, _CHECK_IN)
    req.booking_id = booking.id
    req.room_id = room.id
    req.room_name = room.name
    req.processed_by = ctx.actor_id
    req.processed_at = now
    req.append_note(f"Converted to booking {booking.bid} in {room.name} by {ctx.label}")
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f"convert_to_booking integrity error: {e.orig}")
        raise ConflictError(SAVE_FAILED)

    current_app.logger.info(f"request {req.bid} converted to booking {booking.bid} by {ctx.actor_id}")
    emit_activity(ctx.store_id, ActionType.CREATED, 'booking', booking.id,
                  f"Booking {booking.bid} created from request {req.bid} in {room.name}", actor=ctx)
    emit_availability_changed(ctx.store_id, req.booking_date, 'request_converted')
    return req, booking


def _linked_booking(req):
    if req.booking_id is None:
        return None
    return Booking.query.filter_by(id=req.booking_id).with_for_update().first()


@rollback_on_error
def check_in_request(ctx, request_id, now=None):
    ctx.require('manage_booking_requests')
    now = now or utcnow()
    req = _locked_request(request_id=request_id, store_id=ctx.store_id)
    booking = _linked_booking(req)
    if booking is None:
        raise ConflictError(f"Assign a room to request {req.bid} before checking in")
    _move(req, _CHECK_IN, f"Checked in by {ctx.label}")
    if booking.status == BookingStatus.RESERVED:
        apply_transition(ctx, booking, BookingStatus.CHECKED_IN, now)
    req.processed_by, req.processed_at = ctx.actor_id, now
    db.session.commit()
    emit_activity(ctx.store_id, ActionType.CHECK_IN, 'booking_request', req.id, f"Request {req.bid} checked in",
                  actor=ctx)
    return req


@rollback_on_error
def complete_request(ctx, request_id, now=None):
    ctx.require('manage_booking_requests')
    now = now or utcnow()
    req = _locked_request(request_id=request_id, store_id=ctx.store_id)
    _move(req, _COMPLETED, f"Completed by {ctx.label}")
    booking = _linked_booking(req)
    if booking is not None and booking.status in (BookingStatus.RESERVED, BookingStatus.CHECKED_IN):
        apply_transition(ctx, booking, BookingStatus.CHECKED_OUT, now)
    req.processed_by, req.processed_at = ctx.actor_id, now
    db.session.commit()
    emit_activity(ctx.store_id, ActionType.CHECK_OUT, 'booking_request', req.id, f"Request {req.bid} completed",
                  actor=ctx)
    emit_availability_changed(ctx.store_id, req.booking_date, 'request_completed')
    return req


@rollback_on_error
def staff_cancel_request(ctx, request_id, reason=None, now=None):
    ctx.require('manage_booking_requests')
    now = now or utcnow()
    req = _locked_request(request_id=request_id, store_id=ctx.store_id)
    if req.status == _CANCELLED:
        return req
    _move(req, _CANCELLED, f"Cancelled by {ctx.label}" + (f": {reason}" if reason else ""))
    booking = _linked_booking(req)
    if booking is not None and booking.status != BookingStatus.CANCELLED:
        apply_transition(ctx, booking, BookingStatus.CANCELLED, now)
    req.processed_by, req.processed_at = ctx.actor_id, now
    db.session.commit()
    emit_activity(ctx.store_id, ActionType.CANCEL, 'booking_request', req.id, f"Request {req.bid} cancelled",
                  actor=ctx)
    emit_availability_changed(ctx.store_id, req.booking_date, 'request_cancelled')
    return req


# -----------------------------------------------------------------------------
# Sweeps
# -----------------------------------------------------------------------------
def _append_note_sql(column, note):
    return func.coalesce(column + literal("\n"), literal("")) + literal(note)


def expire_pending_requests(now=None):
    """Mark overdue pending requests expired. A single conditional UPDATE, so concurrent runs are no-ops."""
    now = now or utcnow()
    table = BookingRequest.__table__
    stmt = (table.update()
            .where(table.c.status == _PENDING,
                   table.c.expired_at.isnot(None),
                   table.c.expired_at <= now,
                   table.c.payment_proof_url.is_(None),
                   table.c.booking_id.is_(None))
            .values(status=_EXPIRED, updated_at=now,
                    admin_notes=_append_note_sql(table.c.admin_notes, EXPIRED_NOTE))
            .returning(table.c.id, table.c.bid, table.c.store_id, table.c.booking_date))
    try:
        touched = db.session.execute(stmt).all()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    for row in touched:
        emit_activity(row.store_id, ActionType.EXPIRE, 'booking_request', row.id,
                      f"Request {row.bid} expired: payment window elapsed")
    for store_id, on_date in sorted({(row.store_id, row.booking_date) for row in touched}):
        emit_availability_changed(store_id, on_date, 'requests_expired')
    if touched:
        current_app.logger.info(f"expired {len(touched)} overdue booking request(s)")
    return len(touched)


def cleanup_abandoned_requests(now=None):
    """Delete requests nobody paid for: expired long enough ago, or left pending too long."""
    now = now or utcnow()
    retention = timedelta(minutes=current_app.config.get("EXPIRED_RETENTION_MINUTES", 60))
    stale = timedelta(hours=current_app.config.get("REQUEST_STALE_HOURS", 24))
    q = (BookingRequest.query
         .filter(BookingRequest.payment_proof_url.is_(None), BookingRequest.booking_id.is_(None))
         .filter(or_(
             and_(BookingRequest.status.in_([_PENDING, _EXPIRED]),
                  BookingRequest.expired_at.isnot(None),
                  BookingRequest.expired_at < now - retention),
             and_(BookingRequest.status == _PENDING, BookingRequest.created_at < now - stale),
         )))
    try:
        deleted = q.delete(synchronize_session=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    if deleted:
        current_app.logger.info(f"deleted {deleted} abandoned booking request(s)")
    return deleted
