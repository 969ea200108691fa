from sqlalchemy import Column, Integer, BigInteger, DateTime, ForeignKey, Enum, Index
from sqlalchemy.sql import func
import enum
from .base import Base


class BargainStatus(str, enum.Enum):
    PENDING   = "pending"     # ход водителя: висит предложение пассажира
    COUNTERED = "countered"   # ход пассажира: висит встречная цена водителя
    ACCEPTED  = "accepted"
    REJECTED  = "rejected"
    EXPIRED   = "expired"


OPEN_BARGAIN_STATUSES = (BargainStatus.PENDING, BargainStatus.COUNTERED)


class Bargain(Base):
    __tablename__ = "booking_bargains"
    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    rider_id = Column(BigInteger, nullable=False)
    driver_id = Column(BigInteger, nullable=True)

    original_fare = Column(Integer, nullable=False)
    rider_offer = Column(Integer, nullable=True)
    driver_counter = Column(Integer, nullable=True)
    final_fare = Column(Integer, nullable=True)

    status = Column(
        Enum(BargainStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BargainStatus.PENDING,
    )
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now())
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_booking_bargains_booking_created", "booking_id", "created_at"),)
