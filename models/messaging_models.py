from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base


class OrderChatMessage(Base):
    __tablename__ = "order_chat_messages"

    message_id  = Column(Integer, primary_key=True, autoincrement=True)
    order_id    = Column(Integer, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id   = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    content     = Column(Text, nullable=False)
    read_at     = Column(DateTime, nullable=True)
    sent_at     = Column(DateTime, nullable=False, index=True)

    sender      = relationship("User", foreign_keys=[sender_id])


class SupportMessage(Base):
    """One support thread per user; admins answer in the owner's thread."""

    __tablename__ = "support_messages"

    message_id    = Column(Integer, primary_key=True, autoincrement=True)
    thread_owner_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id     = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    sender_type   = Column(Enum("customer", "rider", "admin", name="support_sender_type"), nullable=False)
    content       = Column(Text, nullable=False)
    sent_at       = Column(DateTime, nullable=False, index=True)
