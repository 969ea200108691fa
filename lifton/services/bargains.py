# lifton/services/bargains.py
from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..db import utcnow
from ..engine import bargain as bargain_engine
from ..engine.actors import Actor
from ..engine.errors import AlreadyTerminal, BargainChanged, BookingNotEligible, NotParticipant
from ..engine.lifecycle import ensure_open_for_offers
from ..models.bargain import Bargain, BargainStatus, OPEN_BARGAIN_STATUSES
from ..models.booking import Booking
from .bookings import close_open_offers, ensure_visible, final_fare_for, get_booking, settle_booking

logger = logging.getLogger(__name__)


def latest_bargain(db: Session, booking_id: int) -> Bargain | None:
    # одна активная ветка на заявку; при пересоздании побеждает последняя
    return db.execute(
        select(Bargain)
        .where(Bargain.booking_id == booking_id)
        .order_by(Bargain.created_at.desc(), Bargain.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _ensure_participant(booking: Booking, thread: Bargain | None, actor: Actor) -> None:
    if actor.is_rider:
        if booking.rider_id != actor.id:
            raise NotParticipant()
    elif actor.is_driver:
        if thread is not None and thread.driver_id is not None and thread.driver_id != actor.id:
            raise NotParticipant()
    else:
        raise PermissionError("Торговаться могут только пассажир и водитель")


def _mark_expired(db: Session, thread: Bargain, now: dt.datetime) -> None:
    # ленивое истечение: фиксируем в БД то, что уже видно при чтении
    db.execute(
        update(Bargain)
        .where(
            Bargain.id == thread.id,
            Bargain.status.in_(OPEN_BARGAIN_STATUSES),
            Bargain.expires_at <= now,
        )
        .values(status=BargainStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(thread)


def bargain_view(thread: Bargain, now: dt.datetime | None = None) -> dict:
    now = now or utcnow()
    state = bargain_engine.state_from_record(thread, now)
    turn = bargain_engine.whose_turn(state)
    return {
        "id": thread.id,
        "booking_id": thread.booking_id,
        "rider_id": thread.rider_id,
        "driver_id": thread.driver_id,
        "original_fare": thread.original_fare,
        "rider_offer": thread.rider_offer,
        "driver_counter": thread.driver_counter,
        "live_amount": bargain_engine.live_amount(state),
        "final_fare": thread.final_fare,
        "status": bargain_engine.status_of(state).value,
        "turn": turn.value if turn else None,
        "expires_at": thread.expires_at.isoformat() if thread.expires_at else None,
        "seconds_left": max(0, int((thread.expires_at - now).total_seconds())) if bargain_engine.is_open(state) else 0,
    }


def get_bargain(db: Session, actor: Actor, booking_id: int) -> Bargain:
    booking = get_booking(db, booking_id)
    ensure_visible(booking, actor)
    thread = latest_bargain(db, booking.id)
    if not thread:
        raise LookupError("Торг по заявке не начат")
    return thread


def propose(db: Session, actor: Actor, booking_id: int, amount,
            now: dt.datetime | None = None, restart: bool = False) -> Bargain:
    """
    Предложение цены. Нет ветки: создаём (original_fare = оценка заявки);
    есть открытая: перезаписываем поле своей стороны, ход переходит
    другой стороне, окно истечения сбрасывается. Поля предложений пишутся
    по принципу "последняя запись выигрывает", статус показывает, чей ход.
    """
    now = now or utcnow()
    booking = get_booking(db, booking_id)
    ensure_open_for_offers(booking.status)
    thread = latest_bargain(db, booking.id)
    _ensure_participant(booking, thread, actor)

    state = bargain_engine.state_from_record(thread, now) if thread else None
    recreate = (
        thread is None
        or (restart and isinstance(state, (bargain_engine.Rejected, bargain_engine.Expired)))
    )

    if recreate:
        new_state = bargain_engine.open_thread(actor.role, amount, now, settings.BARGAIN_TTL_SEC)
        if thread is not None and thread.status in OPEN_BARGAIN_STATUSES:
            _mark_expired(db, thread, now)
        thread = Bargain(
            booking_id=booking.id,
            rider_id=booking.rider_id,
            driver_id=actor.id if actor.is_driver else None,
            original_fare=booking.estimated_fare,
            rider_offer=amount if actor.is_rider else None,
            driver_counter=amount if actor.is_driver else None,
            status=bargain_engine.status_of(new_state),
            created_at=now,
            updated_at=now,
            expires_at=new_state.expires_at,
        )
        db.add(thread)
        db.commit()
        db.refresh(thread)
        logger.info("bargain %s opened on booking %s by %s: %s", thread.id, booking.id, actor.role.value, amount)
        return thread

    try:
        new_state = bargain_engine.propose(state, actor.role, amount, now, settings.BARGAIN_TTL_SEC)
    except AlreadyTerminal:
        if isinstance(state, bargain_engine.Expired):
            _mark_expired(db, thread, now)
        raise

    values = {
        "status": bargain_engine.status_of(new_state),
        "expires_at": new_state.expires_at,
        "updated_at": now,
    }
    if actor.is_rider:
        values["rider_offer"] = amount
    else:
        values["driver_counter"] = amount
        if thread.driver_id is None:
            values["driver_id"] = actor.id

    res = db.execute(
        update(Bargain)
        .where(
            Bargain.id == thread.id,
            Bargain.status.in_(OPEN_BARGAIN_STATUSES),
            Bargain.expires_at > now,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        db.refresh(thread)
        raise AlreadyTerminal(bargain_engine.status_of(bargain_engine.state_from_record(thread, now)).value)

    db.commit()
    db.refresh(thread)
    logger.info("bargain %s: %s proposes %s", thread.id, actor.role.value, amount)
    return thread


def accept(db: Session, actor: Actor, booking_id: int, now: dt.datetime | None = None) -> tuple[Bargain, Booking]:
    """
    Принять последнюю цену другой стороны.

    Сам движок цену заявки не трогает: здесь, как его потребитель, мы
    фиксируем final_fare заявки тем же условным UPDATE, что и при ставках.
    """
    now = now or utcnow()
    booking = get_booking(db, booking_id)
    thread = latest_bargain(db, booking.id)
    if not thread:
        raise LookupError("Торг по заявке не начат")
    _ensure_participant(booking, thread, actor)

    state = bargain_engine.state_from_record(thread, now)
    try:
        accepted = bargain_engine.accept(state, actor.role)
    except AlreadyTerminal:
        if isinstance(state, bargain_engine.Expired):
            _mark_expired(db, thread, now)
        raise
    ensure_open_for_offers(booking.status)

    expected_status = bargain_engine.status_of(state)
    live_col = Bargain.driver_counter if actor.is_rider else Bargain.rider_offer
    driver_id = thread.driver_id if thread.driver_id is not None else actor.id

    # заявку блокируем раньше ветки, в том же порядке, что и принятие ставки
    if not settle_booking(
        db, booking.id,
        driver_id=driver_id,
        final_fare=final_fare_for(booking, accepted.final_fare),
        now=now,
    ):
        db.rollback()
        db.refresh(booking)
        db.refresh(thread)
        fresh = bargain_engine.state_from_record(thread, now)
        logger.info("bargain %s acceptance lost: booking %s is %s", thread.id, booking.id, booking.status.value)
        if not bargain_engine.is_open(fresh):
            raise AlreadyTerminal(bargain_engine.status_of(fresh).value)
        raise BookingNotEligible(booking.status.value)

    res = db.execute(
        update(Bargain)
        .where(
            Bargain.id == thread.id,
            Bargain.status == expected_status,
            live_col == accepted.final_fare,
            Bargain.expires_at > now,
        )
        .values(
            status=BargainStatus.ACCEPTED,
            final_fare=accepted.final_fare,
            driver_id=driver_id,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        db.refresh(thread)
        fresh = bargain_engine.state_from_record(thread, now)
        logger.info("bargain %s acceptance lost: now %s", thread.id, bargain_engine.status_of(fresh).value)
        if not bargain_engine.is_open(fresh):
            raise AlreadyTerminal(bargain_engine.status_of(fresh).value)
        raise BargainChanged()

    close_open_offers(db, booking.id, now)
    db.commit()
    db.refresh(thread)
    db.refresh(booking)
    logger.info("bargain %s accepted at %s: booking %s -> driver %s",
                thread.id, accepted.final_fare, booking.id, driver_id)
    return thread, booking


def reject(db: Session, actor: Actor, booking_id: int, now: dt.datetime | None = None) -> Bargain:
    now = now or utcnow()
    booking = get_booking(db, booking_id)
    thread = latest_bargain(db, booking.id)
    if not thread:
        raise LookupError("Торг по заявке не начат")
    _ensure_participant(booking, thread, actor)

    state = bargain_engine.state_from_record(thread, now)
    try:
        bargain_engine.reject(state, actor.role)
    except AlreadyTerminal:
        if isinstance(state, bargain_engine.Expired):
            _mark_expired(db, thread, now)
        raise

    res = db.execute(
        update(Bargain)
        .where(
            Bargain.id == thread.id,
            Bargain.status.in_(OPEN_BARGAIN_STATUSES),
            Bargain.expires_at > now,
        )
        .values(status=BargainStatus.REJECTED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        db.refresh(thread)
        raise AlreadyTerminal(bargain_engine.status_of(bargain_engine.state_from_record(thread, now)).value)
    db.commit()
    db.refresh(thread)
    return thread


def expire_bargains(db: Session, now: dt.datetime) -> int:
    res = db.execute(
        update(Bargain)
        .where(Bargain.status.in_(OPEN_BARGAIN_STATUSES), Bargain.expires_at <= now)
        .values(status=BargainStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0
