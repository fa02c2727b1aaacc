from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from database import get_db
from models.messaging_models import OrderChatMessage, SupportMessage
from models.user import User
from services.message_service import MessageService
from utils.dependencies import get_current_active_user

router = APIRouter(prefix="/chat", tags=["Chat"])


class SendMessageRequest(BaseModel):
    content: str


def order_message_to_dict(m: OrderChatMessage) -> dict:
    return {
        "id": m.message_id,
        "orderId": m.order_id,
        "senderId": m.sender_id,
        "receiverId": m.receiver_id,
        "content": m.content,
        "sentAt": m.sent_at.isoformat(),
        "readAt": m.read_at.isoformat() if m.read_at else None,
    }


def support_message_to_dict(m: SupportMessage) -> dict:
    return {
        "id": m.message_id,
        "threadOwnerId": m.thread_owner_id,
        "senderId": m.sender_id,
        "senderType": m.sender_type,
        "content": m.content,
        "sentAt": m.sent_at.isoformat(),
    }


# ── Order chat ─────────────────────────────────────────────────

@router.get("/orders/{order_id}/messages")
def get_order_messages(
    order_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    messages = MessageService(db).get_order_messages(current_user, order_id)
    return {
        "success": True,
        "message": "Messages retrieved successfully",
        "messages": [order_message_to_dict(m) for m in messages],
    }


@router.post("/orders/{order_id}/messages", status_code=status.HTTP_201_CREATED)
def send_order_message(
    order_id: int,
    request: SendMessageRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    msg = MessageService(db).send_order_message(current_user, order_id, request.content)
    return {
        "success": True,
        "message": "Message sent",
        "chatMessage": order_message_to_dict(msg),
    }


# ── Support chat ───────────────────────────────────────────────

@router.get("/support/{user_id}/messages")
def get_support_messages(
    user_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    messages = MessageService(db).get_support_messages(current_user, user_id)
    return {
        "success": True,
        "message": "Messages retrieved successfully",
        "messages": [support_message_to_dict(m) for m in messages],
    }


@router.post("/support/{user_id}/messages", status_code=status.HTTP_201_CREATED)
def send_support_message(
    user_id: int,
    request: SendMessageRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    msg = MessageService(db).send_support_message(current_user, user_id, request.content)
    return {
        "success": True,
        "message": "Message sent",
        "chatMessage": support_message_to_dict(msg),
    }
