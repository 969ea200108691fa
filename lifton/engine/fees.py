from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from .fare import round_money, to_decimal

INSURANCE_RATE_PER_KM = Decimal("0.5")
INSURANCE_MIN_FEE = 1
INSURANCE_MAX_FEE = 15
DEFAULT_PLATFORM_FEE_RATE = Decimal("0.05")


def insurance_fee(distance_km, enabled: bool) -> int:
    """clamp(round(distance * 0.5), 1, 15) при включённой страховке, иначе 0."""
    if not enabled:
        return 0
    raw = round_money(to_decimal(max(float(distance_km or 0), 0.0)) * INSURANCE_RATE_PER_KM)
    return min(INSURANCE_MAX_FEE, max(INSURANCE_MIN_FEE, raw))


def platform_fee(base_fare, rate=DEFAULT_PLATFORM_FEE_RATE) -> int:
    # всегда от базовой цены до страховки и до торга
    return round_money(to_decimal(base_fare) * to_decimal(rate))


class FeeBreakdown(BaseModel):
    base_fare: int = Field(ge=0)
    insurance_fee: int = Field(ge=0)
    platform_fee: int = Field(ge=0)
    rider_total: int = Field(ge=0)


def fee_breakdown(base_fare: int, distance_km, insurance_enabled: bool,
                  rate=DEFAULT_PLATFORM_FEE_RATE) -> FeeBreakdown:
    ins = insurance_fee(distance_km, insurance_enabled)
    return FeeBreakdown(
        base_fare=base_fare,
        insurance_fee=ins,
        platform_fee=platform_fee(base_fare, rate),
        rider_total=base_fare + ins,
    )
