"""
Торг пассажира и водителя по одной заявке.

Состояние переговоров задано размеченным типом: в каждом варианте только те поля,
которые в нём имеют смысл. "Живым" всегда является ровно одно предложение:
в AwaitingDriver это цена пассажира, в AwaitingRider встречная цена
водителя.

    AwaitingDriver (pending)  <->  AwaitingRider (countered)
            |                              |
            +--> Accepted | Rejected | Expired <--+

Движок не пишет в хранилище. После Accepted вызывающий обязан сам выставить
итоговую цену заявки (см. services.bargains.accept).
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Union

from ..models.bargain import BargainStatus
from .actors import Role
from .errors import AlreadyTerminal, InvalidAmount, NothingToAccept


@dataclass(frozen=True)
class AwaitingDriver:
    rider_offer: int
    expires_at: dt.datetime


@dataclass(frozen=True)
class AwaitingRider:
    driver_counter: int
    expires_at: dt.datetime


@dataclass(frozen=True)
class Accepted:
    final_fare: int


@dataclass(frozen=True)
class Rejected:
    pass


@dataclass(frozen=True)
class Expired:
    pass


BargainState = Union[AwaitingDriver, AwaitingRider, Accepted, Rejected, Expired]

OPEN_STATES = (AwaitingDriver, AwaitingRider)

_STATUS = {
    AwaitingDriver: BargainStatus.PENDING,
    AwaitingRider: BargainStatus.COUNTERED,
    Accepted: BargainStatus.ACCEPTED,
    Rejected: BargainStatus.REJECTED,
    Expired: BargainStatus.EXPIRED,
}


def status_of(state: BargainState) -> BargainStatus:
    return _STATUS[type(state)]


def is_open(state: BargainState) -> bool:
    return isinstance(state, OPEN_STATES)


def whose_turn(state: BargainState) -> Role | None:
    if isinstance(state, AwaitingDriver):
        return Role.DRIVER
    if isinstance(state, AwaitingRider):
        return Role.RIDER
    return None


def live_amount(state: BargainState) -> int | None:
    if isinstance(state, AwaitingDriver):
        return state.rider_offer
    if isinstance(state, AwaitingRider):
        return state.driver_counter
    if isinstance(state, Accepted):
        return state.final_fare
    return None


def state_from_record(rec, now: dt.datetime) -> BargainState:
    """Строка booking_bargains -> состояние; просроченный открытый торг читается как Expired."""
    status = BargainStatus(rec.status)
    if status == BargainStatus.ACCEPTED:
        return Accepted(final_fare=rec.final_fare)
    if status == BargainStatus.REJECTED:
        return Rejected()
    if status == BargainStatus.EXPIRED or rec.expires_at <= now:
        return Expired()
    if status == BargainStatus.PENDING:
        return AwaitingDriver(rider_offer=rec.rider_offer, expires_at=rec.expires_at)
    return AwaitingRider(driver_counter=rec.driver_counter, expires_at=rec.expires_at)


def _check_amount(amount) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidAmount()
    return amount


def _proposal(role: Role, amount: int, now: dt.datetime, ttl_sec: int) -> BargainState:
    expires_at = now + dt.timedelta(seconds=ttl_sec)
    if role == Role.RIDER:
        return AwaitingDriver(rider_offer=amount, expires_at=expires_at)
    if role == Role.DRIVER:
        return AwaitingRider(driver_counter=amount, expires_at=expires_at)
    raise PermissionError("Торговаться могут только пассажир и водитель")


def open_thread(role: Role, amount, now: dt.datetime, ttl_sec: int) -> BargainState:
    return _proposal(Role(role), _check_amount(amount), now, ttl_sec)


def propose(state: BargainState, role: Role, amount, now: dt.datetime, ttl_sec: int) -> BargainState:
    """
    Пассажир всегда пишет в rider_offer, водитель в driver_counter. Ход
    переходит другой стороне, окно истечения отсчитывается заново.
    """
    if not is_open(state):
        raise AlreadyTerminal(status_of(state).value)
    return _proposal(Role(role), _check_amount(amount), now, ttl_sec)


def accept(state: BargainState, role: Role) -> Accepted:
    if not is_open(state):
        raise AlreadyTerminal(status_of(state).value)
    role = Role(role)
    if role == Role.RIDER and isinstance(state, AwaitingRider):
        return Accepted(final_fare=state.driver_counter)
    if role == Role.DRIVER and isinstance(state, AwaitingDriver):
        return Accepted(final_fare=state.rider_offer)
    if role not in (Role.RIDER, Role.DRIVER):
        raise PermissionError("Торговаться могут только пассажир и водитель")
    raise NothingToAccept()


def reject(state: BargainState, role: Role) -> Rejected:
    if not is_open(state):
        raise AlreadyTerminal(status_of(state).value)
    if Role(role) not in (Role.RIDER, Role.DRIVER):
        raise PermissionError("Торговаться могут только пассажир и водитель")
    return Rejected()


def expire(state: BargainState) -> BargainState:
    return Expired() if is_open(state) else state
