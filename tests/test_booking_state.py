"""
Exhaustive checks of the booking status transition table.
"""
from itertools import product

import pytest

from conftest import ALL_PERMISSIONS
from roomdesk.errors import AuthorizationError, ConflictError, ValidationError
from roomdesk.models.statuses import BookingStatus as S
from roomdesk.services.booking_state import resolve_transition, allowed_targets, LedgerEffect, TRANSITIONS

LEGAL = {
    (S.RESERVED, S.CHECKED_IN),
    (S.CHECKED_IN, S.CHECKED_OUT),
    (S.RESERVED, S.CHECKED_OUT),
    (S.RESERVED, S.CANCELLED),
    (S.CHECKED_IN, S.CANCELLED),
    (S.CHECKED_OUT, S.CANCELLED),
    (S.CANCELLED, S.RESERVED),
}


def test_every_pair_for_a_fully_permitted_non_admin(staff):
    """Legal pairs succeed except restore; anything out of Cancelled is frozen for non-admins."""
    for source, target in product(S, S):
        if source == S.CANCELLED:
            with pytest.raises(AuthorizationError) as exc:
                resolve_transition(source, target, staff)
            assert "can only be restored by an administrator" in str(exc.value)
        elif (source, target) in LEGAL:
            assert resolve_transition(source, target, staff).target == target
        else:
            with pytest.raises(ConflictError):
                resolve_transition(source, target, staff)


def test_every_pair_for_admin(admin):
    for source, target in product(S, S):
        if (source, target) in LEGAL:
            assert resolve_transition(source, target, admin).target == target
        else:
            with pytest.raises(ConflictError):
                resolve_transition(source, target, admin)


def test_checked_in_cannot_go_back_to_reserved(admin):
    with pytest.raises(ConflictError):
        resolve_transition("CI", "BO", admin)


def test_unknown_status_is_a_validation_error(admin):
    with pytest.raises(ValidationError):
        resolve_transition("BO", "XX", admin)


def test_permissions_gate_each_transition(make_ctx):
    clerk = make_ctx("clerk", {"view_bookings"})
    with pytest.raises(AuthorizationError):
        resolve_transition("BO", "CI", clerk)

    canceller = make_ctx("clerk", {"cancel_bookings"})
    assert resolve_transition("CI", "BATAL", canceller).target == S.CANCELLED
    with pytest.raises(AuthorizationError) as exc:
        resolve_transition("CO", "BATAL", canceller)
    assert "checked-out" in str(exc.value)

    senior = make_ctx("clerk", {"cancel_bookings", "cancel_checkout_bookings"})
    assert resolve_transition("CO", "BATAL", senior).target == S.CANCELLED


def test_restore_needs_superuser_even_with_all_permissions(make_ctx):
    with pytest.raises(AuthorizationError):
        resolve_transition("BATAL", "BO", make_ctx("leader", ALL_PERMISSIONS))


def test_ledger_effects():
    effects = {(s, t): TRANSITIONS[(s, t)].ledger for s, t in LEGAL}
    assert effects[(S.CHECKED_IN, S.CHECKED_OUT)] == LedgerEffect.DIRTY_TODAY
    assert effects[(S.RESERVED, S.CHECKED_OUT)] == LedgerEffect.DIRTY_TODAY
    assert effects[(S.CHECKED_OUT, S.CANCELLED)] == LedgerEffect.READY_ON_BOOKING_DATE
    assert effects[(S.RESERVED, S.CHECKED_IN)] is None
    assert effects[(S.CANCELLED, S.RESERVED)] is None


def test_allowed_targets():
    assert set(allowed_targets("BO")) == {S.CHECKED_IN, S.CHECKED_OUT, S.CANCELLED}
    assert set(allowed_targets("CO")) == {S.CANCELLED}
