"""
Оценка стоимости поездки.

Чистые функции: на вход расстояние, услуга, снимок тарифов и категория
пассажира; снимок тарифов вызывающий обновляет сам, движок его не меняет.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping

from pydantic import BaseModel

from ..models.booking import ServiceType, RiderCategory
from .errors import InvalidDistance, NoPricingConfigured

# надбавка за особую категорию, применяется ПОСЛЕ минимальной цены
PREMIUM_MULTIPLIERS: dict[RiderCategory, Decimal] = {
    RiderCategory.STANDARD: Decimal("1.0"),
    RiderCategory.KIDS: Decimal("1.15"),
    RiderCategory.SENIOR: Decimal("1.10"),
}

EARTH_RADIUS_KM = 6371.0
ROAD_FACTOR = 1.2   # дорога длиннее прямой примерно на 20%

AVG_SPEED_KMH: dict[ServiceType, int] = {
    ServiceType.BIKE_TAXI: 25,
    ServiceType.AUTO_RICKSHAW: 20,
    ServiceType.CAB: 30,
    ServiceType.PARCEL_DELIVERY: 20,
    ServiceType.HEAVY_GOODS: 15,
    ServiceType.PACKERS_MOVERS: 15,
    ServiceType.INTERCITY_GOODS: 40,
}
DEFAULT_SPEED_KMH = 20


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> int:
    # до целой единицы валюты, половина вверх
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PricingTerms:
    service_type: ServiceType
    base_fare: Decimal
    per_km_rate: Decimal
    minimum_fare: Decimal
    surge_multiplier: Decimal = Decimal("1")
    is_active: bool = True


@dataclass(frozen=True)
class CompetitorTerms:
    competitor_name: str
    service_type: ServiceType
    base_fare: Decimal
    per_km_rate: Decimal
    surge_multiplier: Decimal = Decimal("1")


@dataclass(frozen=True)
class PricingSnapshot:
    rules: Mapping[ServiceType, PricingTerms] = field(default_factory=dict)
    competitors: tuple[CompetitorTerms, ...] = ()

    def rule_for(self, service_type) -> PricingTerms:
        st = ServiceType(service_type)
        rule = self.rules.get(st)
        if rule is None or not rule.is_active:
            raise NoPricingConfigured(st.value)
        return rule

    def competitors_for(self, service_type) -> list[CompetitorTerms]:
        st = ServiceType(service_type)
        return [c for c in self.competitors if c.service_type == st]


def _check_distance(distance_km) -> Decimal:
    try:
        d = float(distance_km)
    except (TypeError, ValueError):
        raise InvalidDistance()
    if math.isnan(d) or math.isinf(d) or d <= 0:
        raise InvalidDistance()
    return to_decimal(d)


def estimate_fare(
    distance_km,
    service_type,
    pricing: PricingSnapshot,
    rider_category=RiderCategory.STANDARD,
) -> int:
    """
    fare = max(minimum_fare, (base_fare + distance * per_km_rate) * surge),
    затем надбавка категории, затем округление до целого.
    """
    d = _check_distance(distance_km)
    rule = pricing.rule_for(service_type)

    metered = (rule.base_fare + d * rule.per_km_rate) * rule.surge_multiplier
    fare = max(rule.minimum_fare, metered)
    fare = fare * PREMIUM_MULTIPLIERS[RiderCategory(rider_category)]
    return round_money(fare)


def road_distance_km(pickup_lat: float, pickup_lng: float, drop_lat: float, drop_lng: float) -> float:
    """Расстояние по дороге: гаверсинус по прямой * 1.2, с точностью до 0.1 км."""
    phi1, phi2 = math.radians(pickup_lat), math.radians(drop_lat)
    d_phi = math.radians(drop_lat - pickup_lat)
    d_lambda = math.radians(drop_lng - pickup_lng)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # для почти противоположных точек округление даёт a чуть больше 1
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    straight = EARTH_RADIUS_KM * c
    return round(straight * ROAD_FACTOR, 1)


def estimate_travel_minutes(distance_km: float, service_type) -> int:
    try:
        speed = AVG_SPEED_KMH.get(ServiceType(service_type), DEFAULT_SPEED_KMH)
    except ValueError:
        speed = DEFAULT_SPEED_KMH
    return round_money(to_decimal(distance_km) / speed * 60)


class CompetitorQuote(BaseModel):
    competitor_name: str
    fare: int
    saving: int   # сколько пассажир экономит у нас (может быть < 0)


def compare_competitors(
    distance_km, our_fare: int, competitors: Iterable[CompetitorTerms]
) -> list[CompetitorQuote]:
    d = _check_distance(distance_km)
    out = []
    for c in competitors:
        fare = round_money((c.base_fare + d * c.per_km_rate) * c.surge_multiplier)
        out.append(CompetitorQuote(competitor_name=c.competitor_name, fare=fare, saving=fare - our_fare))
    out.sort(key=lambda q: q.fare)
    return out
