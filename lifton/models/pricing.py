from sqlalchemy import Column, Integer, String, DateTime, Boolean, Numeric, Enum, UniqueConstraint
from sqlalchemy.sql import func
from .base import Base
from .booking import ServiceType


def _values(e):
    return [m.value for m in e]


class PricingRule(Base):
    # тариф платформы, правит админ
    __tablename__ = "service_pricing"
    id = Column(Integer, primary_key=True)
    service_type = Column(Enum(ServiceType, values_callable=_values), nullable=False, unique=True)

    base_fare = Column(Numeric(10, 2), nullable=False)
    per_km_rate = Column(Numeric(10, 2), nullable=False)
    minimum_fare = Column(Numeric(10, 2), nullable=False)
    surge_multiplier = Column(Numeric(4, 2), nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CompetitorPrice(Base):
    # только для сравнения на экране
    __tablename__ = "competitor_prices"
    id = Column(Integer, primary_key=True)
    competitor_name = Column(String(80), nullable=False)
    service_type = Column(Enum(ServiceType, values_callable=_values), nullable=False)

    base_fare = Column(Numeric(10, 2), nullable=False)
    per_km_rate = Column(Numeric(10, 2), nullable=False)
    surge_multiplier = Column(Numeric(4, 2), nullable=False, default=1)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("competitor_name", "service_type", name="uq_competitor_service"),)
