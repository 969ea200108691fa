# lifton/services/bookings.py
from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..db import utcnow
from ..engine.actors import Actor
from ..engine.bids import minimum_bid
from ..engine.errors import BookingNotEligible, InvalidAmount, InvalidTransition
from ..engine.fare import (
    PricingSnapshot, compare_competitors, estimate_fare, estimate_travel_minutes, road_distance_km,
)
from ..engine.fees import fee_breakdown, insurance_fee
from ..engine.lifecycle import CANCELLABLE, ensure_open_for_offers, ensure_transition
from ..models.bargain import Bargain, BargainStatus, OPEN_BARGAIN_STATUSES
from ..models.bid import BidStatus, DriverBid
from ..models.booking import Booking, BookingStatus, PaymentMode, RiderCategory, ServiceType

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS)


# утилиты

def get_booking(db: Session, booking_id: int) -> Booking:
    b = db.get(Booking, booking_id)
    if not b:
        raise LookupError("Заявка не найдена")
    return b


def ensure_booking_owner(booking: Booking, actor: Actor) -> None:
    if not actor.is_rider or booking.rider_id != actor.id:
        raise PermissionError("Доступ только для автора заявки")


def ensure_assigned_driver(booking: Booking, actor: Actor) -> None:
    if not actor.is_driver or booking.driver_id != actor.id:
        raise PermissionError("Доступ только для назначенного водителя")


def ensure_visible(booking: Booking, actor: Actor) -> None:
    if actor.is_admin:
        return
    if actor.is_rider and booking.rider_id == actor.id:
        return
    if actor.is_driver and (booking.driver_id == actor.id or booking.status == BookingStatus.PENDING):
        return
    raise PermissionError("Нет доступа")


def _check_coords(lat, lng) -> tuple[float, float]:
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        raise ValueError("Укажите координаты точек")
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValueError("Координаты вне допустимого диапазона")
    return lat, lng


# ---------- Оценка ----------

def quote(
    snapshot: PricingSnapshot,
    service_type,
    pickup: tuple[float, float],
    drop: tuple[float, float],
    rider_category=RiderCategory.STANDARD,
    insurance: bool = False,
) -> dict:
    """Оценка для экрана заказа; всё пересчитывается здесь, клиенту не доверяем."""
    plat, plng = _check_coords(*pickup)
    dlat, dlng = _check_coords(*drop)
    distance = road_distance_km(plat, plng, dlat, dlng)
    fare = estimate_fare(distance, service_type, snapshot, rider_category)
    fees = fee_breakdown(fare, distance, insurance, settings.PLATFORM_FEE_RATE)
    competitors = compare_competitors(distance, fare, snapshot.competitors_for(service_type))

    return {
        "service_type": ServiceType(service_type).value,
        "distance_km": distance,
        "eta_min": estimate_travel_minutes(distance, service_type),
        "estimated_fare": fare,
        "minimum_offer": minimum_bid(fare, settings.BID_FLOOR_RATIO),
        "insurance_fee": fees.insurance_fee,
        "platform_fee": fees.platform_fee,
        "rider_total": fees.rider_total,
        "competitors": [c.model_dump() for c in competitors],
    }


# ---------- Создание ----------

def create_booking(
    db: Session,
    actor: Actor,
    snapshot: PricingSnapshot,
    *,
    service_type,
    pickup_address: str,
    pickup: tuple[float, float],
    drop_address: str,
    drop: tuple[float, float],
    rider_category=RiderCategory.STANDARD,
    insurance_opt_in: bool = False,
    payment_mode=PaymentMode.CASH,
    offered_fare: int | None = None,
    notes: str | None = None,
    now: dt.datetime | None = None,
) -> Booking:
    if not actor.is_rider:
        raise PermissionError("Заявки создают только пассажиры")
    now = now or utcnow()

    active = db.execute(
        select(Booking.id).where(
            Booking.rider_id == actor.id,
            Booking.status.in_(ACTIVE_STATUSES),
        ).limit(1)
    ).scalar_one_or_none()
    if active:
        raise ValueError("У вас уже есть активная заявка")

    pickup_address = (pickup_address or "").strip()
    drop_address = (drop_address or "").strip()
    if not pickup_address or not drop_address:
        raise ValueError("Укажите адреса отправления и назначения")

    plat, plng = _check_coords(*pickup)
    dlat, dlng = _check_coords(*drop)

    # расстояние, цену и сборы считаем заново по координатам
    distance = road_distance_km(plat, plng, dlat, dlng)
    estimated = estimate_fare(distance, service_type, snapshot, rider_category)
    fees = fee_breakdown(estimated, distance, insurance_opt_in, settings.PLATFORM_FEE_RATE)

    if offered_fare is not None:
        lo = minimum_bid(estimated, settings.BID_FLOOR_RATIO)
        if not isinstance(offered_fare, int) or isinstance(offered_fare, bool) or not (lo <= offered_fare <= estimated):
            raise InvalidAmount(
                f"Предложите цену от ₹{lo} до ₹{estimated}", minimum=lo, maximum=estimated
            )

    booking = Booking(
        rider_id=actor.id,
        service_type=ServiceType(service_type),
        rider_category=RiderCategory(rider_category),
        pickup_address=pickup_address,
        pickup_lat=plat,
        pickup_lng=plng,
        drop_address=drop_address,
        drop_lat=dlat,
        drop_lng=dlng,
        distance_km=distance,
        estimated_fare=estimated,
        offered_fare=offered_fare,
        base_fare=estimated,
        insurance_opt_in=bool(insurance_opt_in),
        insurance_fee=fees.insurance_fee,
        platform_fee=fees.platform_fee,
        payment_mode=PaymentMode(payment_mode),
        notes=(notes or "").strip() or None,
        status=BookingStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("booking %s created: %s %.1f km fare=%s offered=%s",
                booking.id, booking.service_type.value, distance, estimated, offered_fare)
    return booking


# ---------- Фиксация цены ----------

def settle_booking(
    db: Session,
    booking_id: int,
    *,
    driver_id: int,
    final_fare: int,
    now: dt.datetime,
    accepted_bid_id: int | None = None,
) -> bool:
    """
    Условный UPDATE: заявка переходит в accepted только если она ещё pending.
    Общий для ставок, торга и прямого согласия: итоговую цену фиксирует
    ровно один из них. Коммит делает вызывающий.
    """
    res = db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
        .values(
            status=BookingStatus.ACCEPTED,
            driver_id=driver_id,
            final_fare=final_fare,
            accepted_bid_id=accepted_bid_id,
            accepted_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def close_open_offers(db: Session, booking_id: int, now: dt.datetime, keep_bid_id: int | None = None) -> None:
    # все живые ставки и открытые торги по заявке больше не принимаются
    cond = [DriverBid.booking_id == booking_id, DriverBid.status == BidStatus.PENDING]
    if keep_bid_id is not None:
        cond.append(DriverBid.id != keep_bid_id)
    db.execute(
        update(DriverBid).where(*cond)
        .values(status=BidStatus.REJECTED, is_lowest=False)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(Bargain)
        .where(Bargain.booking_id == booking_id, Bargain.status.in_(OPEN_BARGAIN_STATUSES))
        .values(status=BargainStatus.REJECTED, updated_at=now)
        .execution_options(synchronize_session=False)
    )


def final_fare_for(booking: Booking, amount: int) -> int:
    # страховку пересчитываем по сохранённому расстоянию, не доверяя полю
    return amount + insurance_fee(booking.distance_km, booking.insurance_opt_in)


def _refreshed_status(db: Session, booking: Booking) -> str:
    db.refresh(booking)
    return booking.status.value


# водитель соглашается на цену пассажира (или оценку) как есть
def accept_estimate(db: Session, actor: Actor, booking_id: int, now: dt.datetime | None = None) -> Booking:
    if not actor.is_driver:
        raise PermissionError("Взять заявку может только водитель")
    now = now or utcnow()
    booking = get_booking(db, booking_id)
    ensure_open_for_offers(booking.status)

    fare = final_fare_for(booking, booking.reference_fare)
    if not settle_booking(db, booking.id, driver_id=actor.id, final_fare=fare, now=now):
        db.rollback()
        raise BookingNotEligible(_refreshed_status(db, booking))
    close_open_offers(db, booking.id, now)
    db.commit()
    db.refresh(booking)
    logger.info("booking %s taken by driver %s at %s", booking.id, actor.id, fare)
    return booking


# отмена пассажиром
def cancel_booking(db: Session, actor: Actor, booking_id: int, now: dt.datetime | None = None) -> Booking:
    now = now or utcnow()
    booking = get_booking(db, booking_id)
    ensure_booking_owner(booking, actor)
    if booking.status not in CANCELLABLE:
        raise InvalidTransition(booking.status.value, BookingStatus.CANCELLED.value)

    res = db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status.in_(tuple(CANCELLABLE)))
        .values(status=BookingStatus.CANCELLED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise InvalidTransition(_refreshed_status(db, booking), BookingStatus.CANCELLED.value)
    close_open_offers(db, booking.id, now)
    db.commit()
    db.refresh(booking)
    logger.info("booking %s cancelled by rider %s", booking.id, actor.id)
    return booking


def move_status(db: Session, actor: Actor, booking_id: int, new_status_str: str,
                now: dt.datetime | None = None) -> Booking:
    now = now or utcnow()
    booking = get_booking(db, booking_id)
    ensure_assigned_driver(booking, actor)

    try:
        target = BookingStatus(new_status_str)
    except ValueError:
        raise ValueError("Недопустимый статус")
    if target == BookingStatus.CANCELLED:
        raise ValueError("Отменять заявку нужно через /cancel")

    current = booking.status
    ensure_transition(current, target)
    res = db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == current)
        .values(status=target, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise InvalidTransition(_refreshed_status(db, booking), target.value)
    db.commit()
    db.refresh(booking)
    return booking


def list_bookings(db: Session, actor: Actor, limit: int = 50) -> list[Booking]:
    if actor.is_driver:
        q = select(Booking).where(
            (Booking.status == BookingStatus.PENDING) | (Booking.driver_id == actor.id)
        )
    elif actor.is_admin:
        q = select(Booking)
    else:
        q = select(Booking).where(Booking.rider_id == actor.id)
    return list(db.execute(q.order_by(Booking.id.desc()).limit(limit)).scalars().all())
