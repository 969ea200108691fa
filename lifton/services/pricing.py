# lifton/services/pricing.py
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..engine.fare import CompetitorTerms, PricingSnapshot, PricingTerms, to_decimal
from ..models.booking import ServiceType
from ..models.pricing import CompetitorPrice, PricingRule

logger = logging.getLogger(__name__)


def load_snapshot(db: Session) -> PricingSnapshot:
    """Неизменяемый снимок тарифов на один запрос."""
    rules = db.execute(select(PricingRule)).scalars().all()
    competitors = db.execute(
        select(CompetitorPrice).order_by(CompetitorPrice.competitor_name)
    ).scalars().all()

    return PricingSnapshot(
        rules={
            ServiceType(r.service_type): PricingTerms(
                service_type=ServiceType(r.service_type),
                base_fare=to_decimal(r.base_fare),
                per_km_rate=to_decimal(r.per_km_rate),
                minimum_fare=to_decimal(r.minimum_fare),
                surge_multiplier=to_decimal(r.surge_multiplier if r.surge_multiplier is not None else 1),
                is_active=bool(r.is_active),
            )
            for r in rules
        },
        competitors=tuple(
            CompetitorTerms(
                competitor_name=c.competitor_name,
                service_type=ServiceType(c.service_type),
                base_fare=to_decimal(c.base_fare),
                per_km_rate=to_decimal(c.per_km_rate),
                surge_multiplier=to_decimal(c.surge_multiplier if c.surge_multiplier is not None else 1),
            )
            for c in competitors
        ),
    )


def _money(payload: dict, key: str, default=None, minimum=Decimal("0")) -> Decimal:
    raw = payload.get(key, default)
    if raw in (None, ""):
        raise ValueError(f"Поле {key} обязательно")
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"Поле {key}: ожидается число")
    if not value.is_finite() or value < minimum:
        raise ValueError(f"Поле {key} должно быть не меньше {minimum}")
    return value


def upsert_pricing_rule(db: Session, service_type: str, payload: dict) -> PricingRule:
    try:
        st = ServiceType(service_type)
    except ValueError:
        raise ValueError("Неизвестная услуга")

    rule = db.execute(select(PricingRule).where(PricingRule.service_type == st)).scalar_one_or_none()
    current = {}
    if rule:
        current = {
            "base_fare": rule.base_fare,
            "per_km_rate": rule.per_km_rate,
            "minimum_fare": rule.minimum_fare,
            "surge_multiplier": rule.surge_multiplier,
        }

    base_fare = _money(payload, "base_fare", current.get("base_fare"))
    per_km_rate = _money(payload, "per_km_rate", current.get("per_km_rate"))
    minimum_fare = _money(payload, "minimum_fare", current.get("minimum_fare"))
    # множитель ниже 1 сделал бы тариф дешевле базового
    surge = _money(payload, "surge_multiplier", current.get("surge_multiplier", 1), minimum=Decimal("1"))
    is_active = bool(payload.get("is_active", rule.is_active if rule else True))

    if not rule:
        rule = PricingRule(service_type=st)
        db.add(rule)
    rule.base_fare = base_fare
    rule.per_km_rate = per_km_rate
    rule.minimum_fare = minimum_fare
    rule.surge_multiplier = surge
    rule.is_active = is_active
    db.commit()
    db.refresh(rule)

    logger.info("pricing rule %s updated: base=%s per_km=%s min=%s surge=%s active=%s",
                st.value, base_fare, per_km_rate, minimum_fare, surge, is_active)
    return rule


def upsert_competitor_price(db: Session, competitor_name: str, service_type: str, payload: dict) -> CompetitorPrice:
    name = (competitor_name or "").strip()
    if not name:
        raise ValueError("Укажите название конкурента")
    try:
        st = ServiceType(service_type)
    except ValueError:
        raise ValueError("Неизвестная услуга")

    row = db.execute(
        select(CompetitorPrice).where(
            CompetitorPrice.competitor_name == name,
            CompetitorPrice.service_type == st,
        )
    ).scalar_one_or_none()
    current = {}
    if row:
        current = {
            "base_fare": row.base_fare,
            "per_km_rate": row.per_km_rate,
            "surge_multiplier": row.surge_multiplier,
        }

    if not row:
        row = CompetitorPrice(competitor_name=name, service_type=st)
        db.add(row)
    row.base_fare = _money(payload, "base_fare", current.get("base_fare"))
    row.per_km_rate = _money(payload, "per_km_rate", current.get("per_km_rate"))
    row.surge_multiplier = _money(payload, "surge_multiplier", current.get("surge_multiplier", 1), minimum=Decimal("1"))
    db.commit()
    db.refresh(row)
    return row


def snapshot_to_public(snapshot: PricingSnapshot) -> dict:
    return {
        "rules": [
            {
                "service_type": t.service_type.value,
                "base_fare": float(t.base_fare),
                "per_km_rate": float(t.per_km_rate),
                "minimum_fare": float(t.minimum_fare),
                "surge_multiplier": float(t.surge_multiplier),
                "is_active": t.is_active,
            }
            for t in sorted(snapshot.rules.values(), key=lambda t: t.service_type.value)
        ],
        "competitors": [
            {
                "competitor_name": c.competitor_name,
                "service_type": c.service_type.value,
                "base_fare": float(c.base_fare),
                "per_km_rate": float(c.per_km_rate),
                "surge_multiplier": float(c.surge_multiplier),
            }
            for c in snapshot.competitors
        ],
    }
