from __future__ import annotations

from ..models.booking import BookingStatus
from .errors import BookingNotEligible, InvalidTransition

# Разрешённые переходы статусов заявки; назад дороги нет
ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING:     frozenset({BookingStatus.ACCEPTED, BookingStatus.CANCELLED}),
    BookingStatus.ACCEPTED:    frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED}),
}

CANCELLABLE = frozenset({BookingStatus.PENDING, BookingStatus.ACCEPTED})


def can_transition(current, target) -> bool:
    return BookingStatus(target) in ALLOWED_TRANSITIONS.get(BookingStatus(current), frozenset())


def ensure_transition(current, target) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(BookingStatus(current).value, BookingStatus(target).value)


def ensure_open_for_offers(status) -> None:
    # ставки, торг и прямое согласие только пока заявка pending
    st = BookingStatus(status)
    if st != BookingStatus.PENDING:
        raise BookingNotEligible(st.value)
