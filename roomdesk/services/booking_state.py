"""
Legal status transitions of a booking.

    BO -> CI -> CO        normal stay
    BO -> CO              walk-through checkout
    BO/CI/CO -> BATAL     cancel
    BATAL -> BO           restore, superuser only

Anything not in TRANSITIONS is rejected. Once cancelled, a booking is frozen
for everyone except the superuser role.
"""
from dataclasses import dataclass
from typing import Optional

from roomdesk.errors import ConflictError
from roomdesk.models.statuses import BookingStatus, DailyStatus
from roomdesk.services.event_service import ActionType

FROZEN_MESSAGE = "This booking was already cancelled and can only be restored by an administrator"


class LedgerEffect:
    DIRTY_TODAY = 'dirty_today'
    READY_ON_BOOKING_DATE = 'ready_on_booking_date'


@dataclass(frozen=True)
class Transition:
    source: BookingStatus
    target: BookingStatus
    permission: Optional[str]
    action: str
    ledger: Optional[str] = None
    superuser_only: bool = False

    @property
    def ledger_status(self):
        if self.ledger == LedgerEffect.DIRTY_TODAY:
            return DailyStatus.DIRTY
        if self.ledger == LedgerEffect.READY_ON_BOOKING_DATE:
            return DailyStatus.READY
        return None


_BO, _CI, _CO, _BATAL = (BookingStatus.RESERVED, BookingStatus.CHECKED_IN,
                         BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED)

TRANSITIONS = {
    (_BO, _CI): Transition(_BO, _CI, 'edit_bookings', ActionType.CHECK_IN),
    (_CI, _CO): Transition(_CI, _CO, 'edit_bookings', ActionType.CHECK_OUT, LedgerEffect.DIRTY_TODAY),
    (_BO, _CO): Transition(_BO, _CO, 'edit_bookings', ActionType.CHECK_OUT, LedgerEffect.DIRTY_TODAY),
    (_BO, _BATAL): Transition(_BO, _BATAL, 'cancel_bookings', ActionType.CANCEL,
                              LedgerEffect.READY_ON_BOOKING_DATE),
    (_CI, _BATAL): Transition(_CI, _BATAL, 'cancel_bookings', ActionType.CANCEL,
                              LedgerEffect.READY_ON_BOOKING_DATE),
    (_CO, _BATAL): Transition(_CO, _BATAL, 'cancel_checkout_bookings', ActionType.CANCEL,
                              LedgerEffect.READY_ON_BOOKING_DATE),
    (_BATAL, _BO): Transition(_BATAL, _BO, None, ActionType.RESTORE, superuser_only=True),
}

_DENIALS = {
    'edit_bookings': "You don't have permission to check bookings in or out",
    'cancel_bookings': "You don't have permission to cancel bookings",
    'cancel_checkout_bookings': "Cancelling a checked-out booking needs the cancel-checked-out permission",
}


def allowed_targets(source):
    source = BookingStatus.parse(source)
    return [t.target for (s, _), t in TRANSITIONS.items() if s == source]


def resolve_transition(source, target, ctx):
    """Return the Transition for source -> target or raise why the actor can't take it."""
    source = BookingStatus.parse(source)
    target = BookingStatus.parse(target)

    if source == _BATAL:
        ctx.require_superuser(FROZEN_MESSAGE)

    transition = TRANSITIONS.get((source, target))
    if transition is None:
        if source == target:
            raise ConflictError(f"Booking is already {target.label}")
        raise ConflictError(f"A {source.label} booking can't be changed to {target.label}")

    if transition.superuser_only:
        ctx.require_superuser(FROZEN_MESSAGE)
    else:
        ctx.require(transition.permission, _DENIALS.get(transition.permission))
    return transition


def stamp(booking, target, actor_id, now):
    """Record who moved the booking into target, and when."""
    target = BookingStatus.parse(target)
    if target == _BO:
        booking.confirmed_by, booking.confirmed_at = actor_id, now
    elif target == _CI:
        booking.checked_in_by, booking.checked_in_at = actor_id, now
    elif target == _CO:
        booking.checked_out_by, booking.checked_out_at = actor_id, now
    elif target == _BATAL:
        booking.cancelled_by, booking.cancelled_at = actor_id, now
    else:
        raise AssertionError(f"unhandled booking status {target!r}")
    booking.status = target
