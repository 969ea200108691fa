from sqlalchemy import (
    Column, Integer, BigInteger, DateTime, Boolean, ForeignKey, Enum, Index
)
from sqlalchemy.sql import func, text
import enum
from .base import Base


class BidStatus(str, enum.Enum):
    PENDING  = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED  = "expired"


class DriverBid(Base):
    __tablename__ = "driver_bids"
    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    driver_id = Column(BigInteger, nullable=False, index=True)
    amount = Column(Integer, nullable=False)

    # денормализованная подсказка для бейджа, может устареть
    is_lowest = Column(Boolean, nullable=False, default=False)

    status = Column(
        Enum(BidStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BidStatus.PENDING,
    )
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_driver_bids_booking_status", "booking_id", "status"),
        Index("ix_driver_bids_booking_amount", "booking_id", "amount"),
        # не больше одной живой ставки водителя на заявку, даже при гонке вставок
        Index(
            "uq_driver_bids_one_pending",
            "booking_id", "driver_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )
