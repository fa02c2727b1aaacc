"""
models/notification.py - In-app notifications
Rows written by utils.notification_helper.publish(); read through /notifications
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Boolean, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class NotificationType(str, enum.Enum):
    order_created = "order_created"
    order_assigned = "order_assigned"
    order_status_updated = "order_status_updated"
    order_cancelled = "order_cancelled"
    delivery_otp = "delivery_otp"
    delivery_verified = "delivery_verified"
    delivery_proof_updated = "delivery_proof_updated"
    price_change_requested = "price_change_requested"
    price_change_accepted = "price_change_accepted"
    price_change_rejected = "price_change_rejected"
    payout_generated = "payout_generated"
    payout_paid = "payout_paid"
    chat_message = "chat_message"
    system = "system"


class Notification(Base):
    __tablename__ = "notifications"

    notification_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    notification_type = Column(Enum(NotificationType), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    reference_id = Column(Integer, nullable=True)
    reference_type = Column(String(50), nullable=True)
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    # Relationships
    user = relationship("User", back_populates="notifications")

    def to_dict(self) -> dict:
        return {
            "notification_id": self.notification_id,
            "notification_type": self.notification_type.value,
            "title": self.title,
            "message": self.message,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "is_read": bool(self.is_read),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
