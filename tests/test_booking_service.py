"""Tests for booking creation, direct acceptance, cancellation and trip status."""

import datetime as dt

import pytest

from conftest import DRIVER_A, DRIVER_B, DROP, OTHER_RIDER, PICKUP, RIDER, T0, ADMIN
from lifton.engine.bids import minimum_bid
from lifton.engine.errors import (
    AlreadyTerminal,
    BookingNotEligible,
    InvalidAmount,
    InvalidTransition,
    NoPricingConfigured,
)
from lifton.engine.fare import estimate_fare, road_distance_km
from lifton.engine.fees import insurance_fee, platform_fee
from lifton.models.bargain import Bargain, BargainStatus
from lifton.models.bid import BidStatus
from lifton.models.booking import BookingStatus
from lifton.services import bargains as bargain_service
from lifton.services import bids as bid_service
from lifton.services import bookings as booking_service


def test_create_prices_on_server(booking_factory, snapshot):
    b = booking_factory(insurance_opt_in=True)
    distance = road_distance_km(*PICKUP, *DROP)

    assert b.status == BookingStatus.PENDING
    assert b.distance_km == distance
    assert b.estimated_fare == estimate_fare(distance, "cab", snapshot)
    assert b.base_fare == b.estimated_fare
    assert b.insurance_fee == insurance_fee(distance, True)
    assert b.platform_fee == platform_fee(b.estimated_fare)
    assert b.offered_fare is None
    assert b.reference_fare == b.estimated_fare
    assert b.created_at == T0


def test_premium_category_is_priced_in(booking_factory, snapshot):
    b = booking_factory(rider_category="kids")
    assert b.estimated_fare == estimate_fare(b.distance_km, "cab", snapshot, "kids")


def test_offered_fare_within_range(booking_factory, snapshot):
    estimate = estimate_fare(road_distance_km(*PICKUP, *DROP), "cab", snapshot)
    lo = minimum_bid(estimate)
    b = booking_factory(offered_fare=lo)
    assert b.offered_fare == lo
    assert b.reference_fare == lo


@pytest.mark.parametrize("delta", [-1, "over"])
def test_offered_fare_out_of_range(booking_factory, snapshot, delta):
    estimate = estimate_fare(road_distance_km(*PICKUP, *DROP), "cab", snapshot)
    lo = minimum_bid(estimate)
    offered = lo - 1 if delta == -1 else estimate + 1
    with pytest.raises(InvalidAmount) as exc:
        booking_factory(offered_fare=offered)
    assert exc.value.extra == {"minimum": lo, "maximum": estimate}


def test_only_riders_create(booking_factory):
    with pytest.raises(PermissionError):
        booking_factory(actor=DRIVER_A)


def test_one_active_booking_per_rider(booking_factory):
    booking_factory()
    with pytest.raises(ValueError):
        booking_factory()
    booking_factory(actor=OTHER_RIDER)


def test_addresses_required(booking_factory):
    with pytest.raises(ValueError):
        booking_factory(pickup_address="  ")


@pytest.mark.parametrize("pickup", [(None, None), (91.0, 77.0), ("abc", 77.0)])
def test_bad_coordinates(booking_factory, pickup):
    with pytest.raises(ValueError):
        booking_factory(pickup=pickup)


def test_inactive_service_not_bookable(booking_factory):
    with pytest.raises(NoPricingConfigured):
        booking_factory(service_type="bike_taxi")


def test_quote(snapshot):
    q = booking_service.quote(snapshot, "cab", PICKUP, DROP, insurance=True)
    assert q["estimated_fare"] == estimate_fare(q["distance_km"], "cab", snapshot)
    assert q["minimum_offer"] == minimum_bid(q["estimated_fare"])
    assert q["rider_total"] == q["estimated_fare"] + q["insurance_fee"]
    assert [c["competitor_name"] for c in q["competitors"]] == ["Uber", "Ola"]
    assert q["eta_min"] > 0


def test_driver_accepts_estimate(db, booking_factory):
    b = booking_factory(insurance_opt_in=True)
    taken = booking_service.accept_estimate(db, DRIVER_A, b.id, now=T0)
    assert taken.status == BookingStatus.ACCEPTED
    assert taken.driver_id == DRIVER_A.id
    assert taken.final_fare == b.estimated_fare + b.insurance_fee
    assert taken.accepted_at == T0


def test_driver_accepts_rider_price(db, booking_factory, snapshot):
    lo = minimum_bid(estimate_fare(road_distance_km(*PICKUP, *DROP), "cab", snapshot))
    b = booking_factory(offered_fare=lo)
    taken = booking_service.accept_estimate(db, DRIVER_A, b.id, now=T0)
    assert taken.final_fare == lo


def test_second_direct_accept_loses(db, booking_factory):
    b = booking_factory()
    booking_service.accept_estimate(db, DRIVER_A, b.id, now=T0)
    with pytest.raises(BookingNotEligible):
        booking_service.accept_estimate(db, DRIVER_B, b.id, now=T0)


def test_direct_accept_closes_offers(db, booking_factory):
    b = booking_factory()
    bid = bid_service.submit_bid(db, DRIVER_B, b.id, b.estimated_fare, now=T0)
    thread = bargain_service.propose(db, RIDER, b.id, b.estimated_fare - 5, now=T0)
    booking_service.accept_estimate(db, DRIVER_A, b.id, now=T0)
    db.refresh(bid)
    db.refresh(thread)
    assert bid.status == BidStatus.REJECTED
    assert thread.status == BargainStatus.REJECTED


def test_riders_cannot_take_bookings(db, booking_factory):
    b = booking_factory()
    with pytest.raises(PermissionError):
        booking_service.accept_estimate(db, RIDER, b.id, now=T0)


def test_cancel_pending(db, booking_factory):
    b = booking_factory()
    bid = bid_service.submit_bid(db, DRIVER_A, b.id, b.estimated_fare, now=T0)
    cancelled = booking_service.cancel_booking(db, RIDER, b.id, now=T0)
    assert cancelled.status == BookingStatus.CANCELLED
    db.refresh(bid)
    assert bid.status == BidStatus.REJECTED
    # после отмены можно создать новую заявку
    booking_factory()


def test_cancel_closes_bargain(db, booking_factory):
    b = booking_factory()
    bargain_service.propose(db, RIDER, b.id, b.estimated_fare - 10, now=T0)
    thread = bargain_service.propose(db, DRIVER_A, b.id, b.estimated_fare - 5, now=T0)
    booking_service.cancel_booking(db, RIDER, b.id, now=T0)
    db.expire_all()

    assert db.get(Bargain, thread.id).status == BargainStatus.REJECTED
    with pytest.raises(AlreadyTerminal):
        bargain_service.accept(db, RIDER, b.id, now=T0)
    with pytest.raises(BookingNotEligible):
        bargain_service.propose(db, DRIVER_A, b.id, b.estimated_fare, now=T0)
    with pytest.raises(BookingNotEligible):
        bargain_service.propose(db, RIDER, b.id, b.estimated_fare - 1, now=T0, restart=True)

    cancelled = booking_service.get_booking(db, b.id)
    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.driver_id is None
    assert cancelled.final_fare is None


def test_cancel_by_stranger(db, booking_factory):
    b = booking_factory()
    with pytest.raises(PermissionError):
        booking_service.cancel_booking(db, OTHER_RIDER, b.id, now=T0)


def test_cancel_twice(db, booking_factory):
    b = booking_factory()
    booking_service.cancel_booking(db, RIDER, b.id, now=T0)
    with pytest.raises(InvalidTransition):
        booking_service.cancel_booking(db, RIDER, b.id, now=T0)


def test_trip_progress(db, booking_factory):
    b = booking_factory()
    booking_service.accept_estimate(db, DRIVER_A, b.id, now=T0)
    later = T0 + dt.timedelta(minutes=5)
    assert booking_service.move_status(db, DRIVER_A, b.id, "in_progress", now=later).status == BookingStatus.IN_PROGRESS
    assert booking_service.move_status(db, DRIVER_A, b.id, "completed", now=later).status == BookingStatus.COMPLETED
    with pytest.raises(InvalidTransition):
        booking_service.move_status(db, DRIVER_A, b.id, "in_progress", now=later)


def test_only_assigned_driver_moves_status(db, booking_factory):
    b = booking_factory()
    booking_service.accept_estimate(db, DRIVER_A, b.id, now=T0)
    with pytest.raises(PermissionError):
        booking_service.move_status(db, DRIVER_B, b.id, "in_progress", now=T0)


@pytest.mark.parametrize("target", ["cancelled", "flying"])
def test_move_status_rejects_bad_targets(db, booking_factory, target):
    b = booking_factory()
    booking_service.accept_estimate(db, DRIVER_A, b.id, now=T0)
    with pytest.raises(ValueError):
        booking_service.move_status(db, DRIVER_A, b.id, target, now=T0)


def test_missing_booking(db):
    with pytest.raises(LookupError):
        booking_service.get_booking(db, 999)


def test_listing_by_role(db, booking_factory):
    mine = booking_factory()
    other = booking_factory(actor=OTHER_RIDER)
    booking_service.accept_estimate(db, DRIVER_A, other.id, now=T0)

    assert [b.id for b in booking_service.list_bookings(db, RIDER)] == [mine.id]
    # водитель видит открытые заявки и свои
    assert {b.id for b in booking_service.list_bookings(db, DRIVER_A)} == {mine.id, other.id}
    assert [b.id for b in booking_service.list_bookings(db, DRIVER_B)] == [mine.id]
    assert len(booking_service.list_bookings(db, ADMIN)) == 2
