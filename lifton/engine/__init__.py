"""Доменный движок цен: оценка, сборы, ставки водителей, торг."""

from .actors import Actor, Role
from .errors import (
    LiftonError,
    InvalidDistance,
    NoPricingConfigured,
    InvalidAmount,
    DuplicateBid,
    BidBelowMinimum,
    BidNotPending,
    NothingToAccept,
    AlreadyTerminal,
    BargainChanged,
    BookingNotEligible,
    NotParticipant,
    InvalidTransition,
)
from .fare import PricingSnapshot, PricingTerms, CompetitorTerms, estimate_fare
from .fees import insurance_fee, platform_fee, fee_breakdown
from .bids import determine_lowest, minimum_bid

__all__ = [
    "Actor", "Role",
    "LiftonError", "InvalidDistance", "NoPricingConfigured", "InvalidAmount",
    "DuplicateBid", "BidBelowMinimum", "BidNotPending", "NothingToAccept",
    "AlreadyTerminal", "BargainChanged", "BookingNotEligible", "NotParticipant",
    "InvalidTransition",
    "PricingSnapshot", "PricingTerms", "CompetitorTerms", "estimate_fare",
    "insurance_fee", "platform_fee", "fee_breakdown",
    "determine_lowest", "minimum_bid",
]
