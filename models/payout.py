"""
models/payout.py  –  Weekly rider payouts

One record per rider per Sunday-to-Sunday week. The contributing orders
are copied into rider_payout_orders as a read-only snapshot of their
frozen financial split.
"""

from sqlalchemy import (
    Column, Integer, ForeignKey, DateTime, DECIMAL,
    Enum as SAEnum, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class PayoutStatus(str, enum.Enum):
    pending = "pending"    # computed, not yet settled
    paid    = "paid"       # settled by admin; terminal


class RiderPayout(Base):
    __tablename__ = "rider_payouts"
    __table_args__ = (
        UniqueConstraint("rider_id", "week_start", name="uq_rider_payouts_rider_week"),
    )

    payout_id  = Column(Integer, primary_key=True, index=True, autoincrement=True)
    rider_id   = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    week_start = Column(DateTime, nullable=False, index=True)
    week_end   = Column(DateTime, nullable=False)

    # Totals over the snapshot lines
    total_gross      = Column(DECIMAL(12, 2), nullable=False, default=0)
    total_commission = Column(DECIMAL(12, 2), nullable=False, default=0)
    total_rider_net  = Column(DECIMAL(12, 2), nullable=False, default=0)
    order_count      = Column(Integer, nullable=False, default=0)

    status  = Column(SAEnum(PayoutStatus), nullable=False, default=PayoutStatus.pending, index=True)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    rider  = relationship("User")
    orders = relationship(
        "RiderPayoutOrder",
        back_populates="payout",
        order_by="RiderPayoutOrder.line_id",
        cascade="all, delete-orphan",
    )


class RiderPayoutOrder(Base):
    __tablename__ = "rider_payout_orders"

    line_id           = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payout_id         = Column(Integer, ForeignKey("rider_payouts.payout_id", ondelete="CASCADE"), nullable=False, index=True)
    # Denormalised snapshot, not a live reference
    order_id          = Column(Integer, nullable=False, index=True)
    delivered_at      = Column(DateTime, nullable=False)
    gross_amount      = Column(DECIMAL(12, 2), nullable=False)
    commission_amount = Column(DECIMAL(12, 2), nullable=False)
    rider_net_amount  = Column(DECIMAL(12, 2), nullable=False)

    payout = relationship("RiderPayout", back_populates="orders")
