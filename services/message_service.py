import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from models.messaging_models import OrderChatMessage, SupportMessage
from models.notification import NotificationType
from models.user import User, UserType
from services import access
from services.order_service import get_order
from utils import notification_helper
from utils.dates import utcnow
from utils.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500


def _clean_content(content: Optional[str]) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message content is required")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message must be at most {MAX_MESSAGE_LENGTH} characters")
    return text


class MessageService:
    def __init__(self, db: Session):
        self.db = db

    # ── Order chat ─────────────────────────────────────────────

    def get_order_messages(self, user: User, order_id: int, now: Optional[datetime] = None) -> List[OrderChatMessage]:
        """Messages for an order, oldest first. Marks the caller's incoming ones as read."""
        order = get_order(self.db, order_id)
        access.require_order_chat_access(user, order)

        messages = (
            self.db.query(OrderChatMessage)
            .filter(OrderChatMessage.order_id == order_id)
            .order_by(OrderChatMessage.sent_at.asc(), OrderChatMessage.message_id.asc())
            .all()
        )

        unread = [m for m in messages if m.receiver_id == user.user_id and m.read_at is None]
        if unread:
            read_at = now or utcnow()
            for m in unread:
                m.read_at = read_at
            self.db.commit()
        return messages

    def send_order_message(
        self,
        user: User,
        order_id: int,
        content: str,
        now: Optional[datetime] = None,
    ) -> OrderChatMessage:
        order = get_order(self.db, order_id)
        access.require_order_chat_access(user, order)
        text = _clean_content(content)

        # Customer talks to the rider; rider and admin talk to the customer
        receiver_id = order.rider_id if user.user_id == order.customer_id else order.customer_id

        message = OrderChatMessage(
            order_id=order_id,
            sender_id=user.user_id,
            receiver_id=receiver_id,
            content=text,
            sent_at=now or utcnow(),
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)

        notification_helper.notify_chat_message(self.db, receiver_id, order_id)
        return message

    # ── Support chat ───────────────────────────────────────────

    def _thread_owner(self, thread_owner_id: int) -> User:
        owner = self.db.query(User).filter(User.user_id == thread_owner_id).first()
        if not owner:
            raise NotFoundError("User not found")
        return owner

    def get_support_messages(self, user: User, thread_owner_id: int) -> List[SupportMessage]:
        access.require_support_thread_access(user, thread_owner_id)
        self._thread_owner(thread_owner_id)
        return (
            self.db.query(SupportMessage)
            .filter(SupportMessage.thread_owner_id == thread_owner_id)
            .order_by(SupportMessage.sent_at.asc(), SupportMessage.message_id.asc())
            .all()
        )

    def send_support_message(
        self,
        user: User,
        thread_owner_id: int,
        content: str,
        now: Optional[datetime] = None,
    ) -> SupportMessage:
        access.require_support_thread_access(user, thread_owner_id)
        owner = self._thread_owner(thread_owner_id)
        text = _clean_content(content)

        message = SupportMessage(
            thread_owner_id=owner.user_id,
            sender_id=user.user_id,
            sender_type=user.user_type.value,
            content=text,
            sent_at=now or utcnow(),
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)

        if user.user_type == UserType.admin and owner.user_id != user.user_id:
            notification_helper.publish(
                self.db, owner.user_id, NotificationType.system,
                "Support replied", "You have a new reply from support",
            )
        logger.info(f"Support message in thread {owner.user_id} from {user.user_type.value} {user.user_id}")
        return message
