from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum, DECIMAL, Float, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class OrderStatus(str, enum.Enum):
    pending = "pending"
    assigned = "assigned"
    picked_up = "picked_up"
    delivering = "delivering"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"


class PriceRequestStatus(str, enum.Enum):
    requested = "requested"
    accepted = "accepted"
    rejected = "rejected"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_customer_created", "customer_id", "created_at"),
        Index("ix_orders_rider_status", "rider_id", "status"),
    )

    order_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    # Set once by the conditional accept UPDATE, never cleared
    rider_id = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)

    # Route
    pickup_address = Column(String(500), nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    dropoff_address = Column(String(500), nullable=False)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)
    distance_km = Column(Float, nullable=True)

    items = Column(Text, nullable=False, default="")
    price = Column(DECIMAL(12, 2), nullable=False, default=0)
    original_price = Column(DECIMAL(12, 2), nullable=True)

    # Price negotiation: a rider may ask for a new price while the order is pending
    requested_price = Column(DECIMAL(12, 2), nullable=True)
    price_request_status = Column(Enum(PriceRequestStatus), nullable=True)
    price_request_reason = Column(String(255), nullable=True)
    price_requested_by = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    price_requested_at = Column(DateTime, nullable=True)
    price_responded_at = Column(DateTime, nullable=True)

    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.pending, index=True)

    # Delivery sub-record
    otp_code = Column(String(10), nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)
    otp_attempts = Column(Integer, nullable=False, default=0)
    otp_verified_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True, index=True)
    proof_photo_url = Column(String(500), nullable=True)
    recipient_name = Column(String(255), nullable=True)
    recipient_phone = Column(String(20), nullable=True)
    delivery_note = Column(Text, nullable=True)

    # Financial split, frozen once at delivery
    gross_amount = Column(DECIMAL(12, 2), nullable=True)
    commission_rate_pct = Column(DECIMAL(5, 2), nullable=True)
    commission_amount = Column(DECIMAL(12, 2), nullable=True)
    rider_net_amount = Column(DECIMAL(12, 2), nullable=True)

    # Cash on delivery
    payment_method = Column(String(20), nullable=False, default="cash")
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.pending)
    payment_ref = Column(String(100), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship("User", foreign_keys=[customer_id])
    rider = relationship("User", foreign_keys=[rider_id])
    timeline = relationship(
        "OrderTimelineEntry",
        back_populates="order",
        order_by="OrderTimelineEntry.entry_id",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.delivered, OrderStatus.cancelled)


class OrderTimelineEntry(Base):
    """Append-only audit trail; rows are inserted, never updated or deleted."""

    __tablename__ = "order_timeline"

    entry_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(OrderStatus), nullable=False)
    note = Column(String(500), nullable=True)
    at = Column(DateTime, nullable=False)

    order = relationship("Order", back_populates="timeline")
