"""
Торги водителей за заявку.

Функции работают с любыми записями, у которых есть поля id, driver_id,
amount, status, created_at, expires_at: со строками из БД и с BidView.
Ставка pending с прошедшим expires_at везде читается как expired
(ленивое истечение), принять её нельзя.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal, ROUND_CEILING
from typing import Iterable

from ..models.bid import BidStatus
from ..models.booking import BookingStatus
from .errors import BidBelowMinimum, BidNotPending, BookingNotEligible, DuplicateBid, InvalidAmount
from .fare import to_decimal

DEFAULT_FLOOR_RATIO = Decimal("0.7")


@dataclass(frozen=True)
class BidView:
    id: int
    booking_id: int
    driver_id: int
    amount: int
    created_at: dt.datetime
    expires_at: dt.datetime
    status: BidStatus = BidStatus.PENDING


@dataclass(frozen=True)
class RankedBid:
    bid: object
    is_lowest: bool


def effective_status(bid, now: dt.datetime) -> BidStatus:
    status = BidStatus(bid.status)
    if status == BidStatus.PENDING and bid.expires_at <= now:
        return BidStatus.EXPIRED
    return status


def is_live(bid, now: dt.datetime) -> bool:
    return effective_status(bid, now) == BidStatus.PENDING


def minimum_bid(reference_fare, floor_ratio=DEFAULT_FLOOR_RATIO) -> int:
    # наименьшая целая ставка, не ниже floor_ratio * reference_fare
    raw = to_decimal(reference_fare) * to_decimal(floor_ratio)
    return int(raw.to_integral_value(rounding=ROUND_CEILING))


def bid_expiry(now: dt.datetime, ttl_sec: int) -> dt.datetime:
    return now + dt.timedelta(seconds=ttl_sec)


def check_submission(
    booking_status,
    reference_fare,
    driver_id,
    amount,
    existing_bids: Iterable,
    now: dt.datetime,
    floor_ratio=DEFAULT_FLOOR_RATIO,
) -> None:
    """Проверки перед вставкой новой ставки; ничего не пишет."""
    status = BookingStatus(booking_status)
    if status != BookingStatus.PENDING:
        raise BookingNotEligible(status.value)
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidAmount()

    for b in existing_bids:
        if b.driver_id == driver_id and is_live(b, now):
            raise DuplicateBid()

    minimum = minimum_bid(reference_fare, floor_ratio)
    if amount < minimum:
        raise BidBelowMinimum(minimum)


def _order_key(bid):
    # дешевле выше; при равной цене выигрывает тот, кто раньше
    return (bid.amount, bid.created_at, bid.id or 0)


def determine_lowest(bids: Iterable, now: dt.datetime):
    live = [b for b in bids if is_live(b, now)]
    if not live:
        return None
    return min(live, key=_order_key)


def rank_bids(bids: Iterable, now: dt.datetime) -> list[RankedBid]:
    live = sorted((b for b in bids if is_live(b, now)), key=_order_key)
    return [RankedBid(bid=b, is_lowest=(i == 0)) for i, b in enumerate(live)]


def ensure_acceptable(bid, booking_status, now: dt.datetime) -> None:
    """
    Предварительная проверка для понятного сообщения. Решает не она, а
    условный UPDATE в хранилище: между проверкой и записью статус может
    смениться.

    Сначала сама ставка: отклонённая или истёкшая ставка даёт BidNotPending,
    даже если заявку уже забрал другой водитель.
    """
    if not is_live(bid, now):
        raise BidNotPending()
    status = BookingStatus(booking_status)
    if status != BookingStatus.PENDING:
        raise BookingNotEligible(status.value)
