"""Tests for booking status transitions."""

import pytest

from lifton.engine.errors import BookingNotEligible, InvalidTransition
from lifton.engine.lifecycle import can_transition, ensure_open_for_offers, ensure_transition
from lifton.models.booking import BookingStatus as S


@pytest.mark.parametrize(
    "current, target",
    [
        (S.PENDING, S.ACCEPTED),
        (S.PENDING, S.CANCELLED),
        (S.ACCEPTED, S.IN_PROGRESS),
        (S.ACCEPTED, S.CANCELLED),
        (S.IN_PROGRESS, S.COMPLETED),
    ],
)
def test_allowed(current, target):
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (S.PENDING, S.IN_PROGRESS),
        (S.PENDING, S.COMPLETED),
        (S.ACCEPTED, S.PENDING),
        (S.IN_PROGRESS, S.CANCELLED),
        (S.COMPLETED, S.PENDING),
        (S.CANCELLED, S.ACCEPTED),
    ],
)
def test_forbidden(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransition) as exc:
        ensure_transition(current, target)
    assert exc.value.extra == {"current": current.value, "target": target.value}


def test_only_pending_takes_offers():
    ensure_open_for_offers("pending")
    for status in (S.ACCEPTED, S.IN_PROGRESS, S.COMPLETED, S.CANCELLED):
        with pytest.raises(BookingNotEligible):
            ensure_open_for_offers(status)
