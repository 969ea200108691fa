# lifton/models/booking.py
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Boolean, Float, Enum, Index
)
from sqlalchemy.sql import func
import enum
from .base import Base


def _values(e):
    return [m.value for m in e]


class ServiceType(str, enum.Enum):
    BIKE_TAXI       = "bike_taxi"
    AUTO_RICKSHAW   = "auto_rickshaw"
    CAB             = "cab"
    PARCEL_DELIVERY = "parcel_delivery"
    HEAVY_GOODS     = "heavy_goods"
    PACKERS_MOVERS  = "packers_movers"
    INTERCITY_GOODS = "intercity_goods"


class PaymentMode(str, enum.Enum):
    CASH   = "cash"
    ONLINE = "online"
    WALLET = "wallet"


class RiderCategory(str, enum.Enum):
    STANDARD = "standard"
    KIDS     = "kids"     # детская перевозка
    SENIOR   = "senior"   # пожилые пассажиры


class BookingStatus(str, enum.Enum):
    PENDING     = "pending"
    ACCEPTED    = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED   = "completed"
    CANCELLED   = "cancelled"


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True)

    rider_id = Column(BigInteger, nullable=False, index=True)
    service_type = Column(Enum(ServiceType, values_callable=_values), nullable=False)
    rider_category = Column(
        Enum(RiderCategory, values_callable=_values), nullable=False, default=RiderCategory.STANDARD
    )

    pickup_address = Column(String(300), nullable=False)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    drop_address = Column(String(300), nullable=False)
    drop_lat = Column(Float, nullable=False)
    drop_lng = Column(Float, nullable=False)

    distance_km = Column(Float, nullable=False)   # считаем на сервере по координатам

    # цены в целых единицах валюты
    estimated_fare = Column(Integer, nullable=False)  # оценка движка
    offered_fare = Column(Integer, nullable=True)     # цена, предложенная пассажиром
    base_fare = Column(Integer, nullable=False)       # опорная цена до торга
    final_fare = Column(Integer, nullable=True)

    insurance_opt_in = Column(Boolean, nullable=False, default=False)
    insurance_fee = Column(Integer, nullable=False, default=0)
    platform_fee = Column(Integer, nullable=False, default=0)
    payment_mode = Column(Enum(PaymentMode, values_callable=_values), nullable=False, default=PaymentMode.CASH)
    notes = Column(String(500), nullable=True)

    driver_id = Column(BigInteger, nullable=True, index=True)
    accepted_bid_id = Column(Integer, nullable=True)

    status = Column(Enum(BookingStatus, values_callable=_values), nullable=False, default=BookingStatus.PENDING)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())
    accepted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_bookings_status", "status"),
    )

    @property
    def reference_fare(self) -> int:
        # цена, от которой считается минимальная ставка
        return self.offered_fare or self.estimated_fare

    def to_dict(self):
        return {
            "id": self.id,
            "rider_id": self.rider_id,
            "status": self.status.value if hasattr(self.status, "value") else self.status,
            "service_type": self.service_type.value if hasattr(self.service_type, "value") else self.service_type,
            "rider_category": (
                self.rider_category.value if hasattr(self.rider_category, "value") else self.rider_category
            ),
            "pickup": {"address": self.pickup_address, "lat": self.pickup_lat, "lng": self.pickup_lng},
            "drop": {"address": self.drop_address, "lat": self.drop_lat, "lng": self.drop_lng},
            "distance_km": self.distance_km,
            "estimated_fare": self.estimated_fare,
            "offered_fare": self.offered_fare,
            "base_fare": self.base_fare,
            "final_fare": self.final_fare,
            "insurance_opt_in": self.insurance_opt_in,
            "insurance_fee": self.insurance_fee,
            "platform_fee": self.platform_fee,
            "payment_mode": self.payment_mode.value if hasattr(self.payment_mode, "value") else self.payment_mode,
            "notes": self.notes,
            "driver_id": self.driver_id,
            "accepted_bid_id": self.accepted_bid_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
        }
