# lifton/services/bids.py
from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import utcnow
from ..engine import bids as bid_engine
from ..engine.actors import Actor
from ..engine.errors import BidNotPending, BookingNotEligible, DuplicateBid
from ..models.bid import BidStatus, DriverBid
from ..models.booking import Booking
from .bookings import (
    close_open_offers, ensure_visible, final_fare_for, get_booking, ensure_booking_owner, settle_booking,
)

logger = logging.getLogger(__name__)


def _bids_for_booking(db: Session, booking_id: int, status: BidStatus | None = None) -> list[DriverBid]:
    q = select(DriverBid).where(DriverBid.booking_id == booking_id)
    if status is not None:
        q = q.where(DriverBid.status == status)
    return list(db.execute(q.order_by(DriverBid.amount.asc(), DriverBid.created_at.asc())).scalars().all())


def expire_bids(db: Session, now: dt.datetime, booking_id: int | None = None,
                driver_id: int | None = None) -> int:
    """Помечает просроченные pending-ставки как expired. Коммит за вызывающим."""
    cond = [DriverBid.status == BidStatus.PENDING, DriverBid.expires_at <= now]
    if booking_id is not None:
        cond.append(DriverBid.booking_id == booking_id)
    if driver_id is not None:
        cond.append(DriverBid.driver_id == driver_id)
    res = db.execute(
        update(DriverBid).where(*cond)
        .values(status=BidStatus.EXPIRED, is_lowest=False)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


def refresh_lowest_hint(db: Session, booking_id: int, now: dt.datetime) -> None:
    # is_lowest лишь подсказка для бейджа; истина считается при чтении
    bids = _bids_for_booking(db, booking_id, BidStatus.PENDING)
    lowest = bid_engine.determine_lowest(bids, now)
    for b in bids:
        b.is_lowest = lowest is not None and b.id == lowest.id


# водитель делает ставку
def submit_bid(db: Session, actor: Actor, booking_id: int, amount,
               now: dt.datetime | None = None) -> DriverBid:
    if not actor.is_driver:
        raise PermissionError("Ставки делают только водители")
    now = now or utcnow()
    booking = get_booking(db, booking_id)

    existing = _bids_for_booking(db, booking.id, BidStatus.PENDING)
    bid_engine.check_submission(
        booking.status,
        booking.reference_fare,
        actor.id,
        amount,
        existing,
        now,
        settings.BID_FLOOR_RATIO,
    )

    # просроченная, но ещё не убранная ставка не должна мешать новой
    expire_bids(db, now, booking_id=booking.id, driver_id=actor.id)

    bid = DriverBid(
        booking_id=booking.id,
        driver_id=actor.id,
        amount=amount,
        status=BidStatus.PENDING,
        created_at=now,
        expires_at=bid_engine.bid_expiry(now, settings.BID_TTL_SEC),
    )
    db.add(bid)
    try:
        db.flush()
    except IntegrityError:
        # параллельная вставка того же водителя
        db.rollback()
        raise DuplicateBid()

    refresh_lowest_hint(db, booking.id, now)
    db.commit()
    db.refresh(bid)
    logger.info("bid %s: driver %s offers %s on booking %s", bid.id, actor.id, amount, booking.id)
    return bid


def list_bids(db: Session, actor: Actor, booking_id: int, now: dt.datetime | None = None) -> list[dict]:
    now = now or utcnow()
    booking = get_booking(db, booking_id)
    ensure_visible(booking, actor)

    ranked = bid_engine.rank_bids(_bids_for_booking(db, booking.id, BidStatus.PENDING), now)
    return [
        {
            "bid_id": r.bid.id,
            "driver_id": r.bid.driver_id,
            "amount": r.bid.amount,
            "is_lowest": r.is_lowest,
            "mine": actor.is_driver and r.bid.driver_id == actor.id,
            "created_at": r.bid.created_at.isoformat(),
            "expires_at": r.bid.expires_at.isoformat(),
        }
        for r in ranked
    ]


def bid_view(bid: DriverBid, now: dt.datetime | None = None) -> dict:
    now = now or utcnow()
    return {
        "bid_id": bid.id,
        "booking_id": bid.booking_id,
        "driver_id": bid.driver_id,
        "amount": bid.amount,
        "status": bid_engine.effective_status(bid, now).value,
        "is_lowest": bid.is_lowest,
        "created_at": bid.created_at.isoformat() if bid.created_at else None,
        "expires_at": bid.expires_at.isoformat() if bid.expires_at else None,
    }


# пассажир принимает ставку: водитель назначается, цена фиксируется
def accept_bid(db: Session, actor: Actor, bid_id: int, now: dt.datetime | None = None) -> Booking:
    """
    Выигрывает только первый: ставка и заявка меняются условными UPDATE
    (status = pending), отдельные SELECT-проверки ничего не гарантируют.
    Проигравший получает BidNotPending или BookingNotEligible.

    Порядок блокировок как у торга, прямого согласия и отмены: сначала
    строка заявки, потом ставки.
    """
    now = now or utcnow()
    bid = db.get(DriverBid, bid_id)
    if not bid:
        raise LookupError("Ставка не найдена")
    booking = get_booking(db, bid.booking_id)
    ensure_booking_owner(booking, actor)
    bid_engine.ensure_acceptable(bid, booking.status, now)

    if not settle_booking(
        db, booking.id,
        driver_id=bid.driver_id,
        final_fare=final_fare_for(booking, bid.amount),
        now=now,
        accepted_bid_id=bid.id,
    ):
        db.rollback()
        db.refresh(booking)
        db.refresh(bid)
        logger.info("bid %s acceptance lost: booking %s is %s", bid_id, booking.id, booking.status.value)
        if not bid_engine.is_live(bid, now):
            raise BidNotPending()
        raise BookingNotEligible(booking.status.value)

    res = db.execute(
        update(DriverBid)
        .where(
            DriverBid.id == bid.id,
            DriverBid.status == BidStatus.PENDING,
            DriverBid.expires_at > now,
        )
        .values(status=BidStatus.ACCEPTED)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        logger.info("bid %s acceptance lost: no longer pending", bid_id)
        raise BidNotPending()

    close_open_offers(db, booking.id, now, keep_bid_id=bid.id)
    db.commit()
    db.refresh(booking)
    db.refresh(bid)
    logger.info("bid %s accepted: booking %s -> driver %s, final fare %s",
                bid.id, booking.id, bid.driver_id, booking.final_fare)
    return booking
