"""
Property-based tests for bid validation and ranking.

Only live bids compete: a pending bid whose window has passed reads as
expired everywhere, and the cheapest live bid (earliest on a tie) is the
one marked lowest.
"""

import datetime as dt

import pytest
from hypothesis import given, strategies as st

from lifton.engine.bids import (
    BidView,
    check_submission,
    determine_lowest,
    effective_status,
    ensure_acceptable,
    minimum_bid,
    rank_bids,
)
from lifton.engine.errors import (
    BidBelowMinimum,
    BidNotPending,
    BookingNotEligible,
    DuplicateBid,
    InvalidAmount,
)
from lifton.models.bid import BidStatus
from lifton.models.booking import BookingStatus

NOW = dt.datetime(2026, 3, 1, 9, 0, 0)


def make_bid(id, driver_id, amount, age_sec=0, ttl_sec=300, status=BidStatus.PENDING):
    created = NOW - dt.timedelta(seconds=age_sec)
    return BidView(
        id=id,
        booking_id=1,
        driver_id=driver_id,
        amount=amount,
        created_at=created,
        expires_at=created + dt.timedelta(seconds=ttl_sec),
        status=status,
    )


bids = st.lists(
    st.builds(
        make_bid,
        id=st.integers(1, 10_000),
        driver_id=st.integers(1, 50),
        amount=st.integers(1, 5_000),
        age_sec=st.integers(0, 600),
        status=st.sampled_from(list(BidStatus)),
    ),
    max_size=20,
    unique_by=lambda b: b.id,
)


@pytest.mark.parametrize(
    "reference, expected",
    [(100, 70), (101, 71), (124, 87), (1, 1), (10, 7)],
)
def test_minimum_bid_rounds_up(reference, expected):
    assert minimum_bid(reference) == expected


@given(reference=st.integers(1, 100_000))
def test_minimum_bid_is_smallest_allowed(reference):
    m = minimum_bid(reference)
    assert m * 10 >= reference * 7
    assert (m - 1) * 10 < reference * 7


def test_minimum_bid_custom_ratio():
    assert minimum_bid(200, "0.5") == 100


def test_submission_at_minimum_accepted():
    check_submission(BookingStatus.PENDING, 100, 7, 70, [], NOW)


def test_submission_below_minimum():
    with pytest.raises(BidBelowMinimum) as exc:
        check_submission(BookingStatus.PENDING, 100, 7, 69, [], NOW)
    assert exc.value.minimum == 70
    assert "₹70" in exc.value.message


def test_submission_above_reference_allowed():
    check_submission(BookingStatus.PENDING, 100, 7, 150, [], NOW)


@pytest.mark.parametrize("amount", [0, -5, 10.5, "90", True, None])
def test_submission_invalid_amount(amount):
    with pytest.raises(InvalidAmount):
        check_submission(BookingStatus.PENDING, 100, 7, amount, [], NOW)


@pytest.mark.parametrize("status", [BookingStatus.ACCEPTED, BookingStatus.CANCELLED, BookingStatus.COMPLETED])
def test_submission_on_closed_booking(status):
    with pytest.raises(BookingNotEligible):
        check_submission(status, 100, 7, 90, [], NOW)


def test_duplicate_live_bid_rejected():
    existing = [make_bid(1, 7, 95)]
    with pytest.raises(DuplicateBid):
        check_submission(BookingStatus.PENDING, 100, 7, 90, existing, NOW)


def test_expired_bid_does_not_block_resubmission():
    existing = [make_bid(1, 7, 95, age_sec=301)]
    check_submission(BookingStatus.PENDING, 100, 7, 90, existing, NOW)


def test_other_drivers_bids_do_not_block():
    existing = [make_bid(1, 8, 95)]
    check_submission(BookingStatus.PENDING, 100, 7, 90, existing, NOW)


def test_pending_past_expiry_reads_expired():
    bid = make_bid(1, 7, 90, age_sec=300)
    assert effective_status(bid, NOW) == BidStatus.EXPIRED
    assert effective_status(make_bid(2, 7, 90, age_sec=299), NOW) == BidStatus.PENDING


def test_lowest_breaks_ties_by_time():
    early = make_bid(1, 7, 90, age_sec=60)
    late = make_bid(2, 8, 90, age_sec=10)
    pricier = make_bid(3, 9, 95, age_sec=100)
    assert determine_lowest([late, pricier, early], NOW) is early


def test_lowest_ignores_expired_and_closed():
    cheap_expired = make_bid(1, 7, 71, age_sec=400)
    cheap_rejected = make_bid(2, 8, 72, status=BidStatus.REJECTED)
    live = make_bid(3, 9, 99)
    assert determine_lowest([cheap_expired, cheap_rejected, live], NOW) is live


def test_lowest_of_nothing():
    assert determine_lowest([], NOW) is None
    assert determine_lowest([make_bid(1, 7, 80, age_sec=500)], NOW) is None


@given(bids=bids)
def test_exactly_one_lowest_among_live(bids):
    ranked = rank_bids(bids, NOW)
    live = [b for b in bids if effective_status(b, NOW) == BidStatus.PENDING]
    assert len(ranked) == len(live)
    if live:
        assert sum(r.is_lowest for r in ranked) == 1
        assert ranked[0].is_lowest
        assert ranked[0].bid.amount == min(b.amount for b in live)
        assert ranked[0].bid is determine_lowest(bids, NOW)
    amounts = [r.bid.amount for r in ranked]
    assert amounts == sorted(amounts)


def test_acceptable_bid():
    ensure_acceptable(make_bid(1, 7, 90), BookingStatus.PENDING, NOW)


def test_expired_bid_not_acceptable():
    with pytest.raises(BidNotPending):
        ensure_acceptable(make_bid(1, 7, 90, age_sec=301), BookingStatus.PENDING, NOW)


def test_rejected_bid_not_acceptable():
    with pytest.raises(BidNotPending):
        ensure_acceptable(make_bid(1, 7, 90, status=BidStatus.REJECTED), BookingStatus.PENDING, NOW)


def test_bid_on_assigned_booking_not_acceptable():
    with pytest.raises(BookingNotEligible):
        ensure_acceptable(make_bid(1, 7, 90), BookingStatus.ACCEPTED, NOW)


def test_dead_bid_reported_before_booking_status():
    # сосед победителя: ставка отклонена, заявка уже accepted
    with pytest.raises(BidNotPending):
        ensure_acceptable(make_bid(1, 7, 90, status=BidStatus.REJECTED), BookingStatus.ACCEPTED, NOW)
    with pytest.raises(BidNotPending):
        ensure_acceptable(make_bid(1, 7, 90, age_sec=301), BookingStatus.CANCELLED, NOW)
