# utils/notification_helper.py
# Best-effort notifications for order and payout events.
# publish() never raises: a failed notification is logged and dropped so the
# state change that triggered it still reports success.

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from models.notification import Notification, NotificationType
from utils.cache import cache, notification_keys

logger = logging.getLogger(__name__)


def publish(
    db: Session,
    user_id: int,
    notification_type: NotificationType,
    title: str,
    message: str,
    reference_id: Optional[int] = None,
    reference_type: Optional[str] = None,
) -> Optional[Notification]:
    """Persist a notification for *user_id*; returns None if it could not be stored."""
    try:
        notif = Notification(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            reference_id=reference_id,
            reference_type=reference_type,
        )
        db.add(notif)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"Failed to notify user {user_id} ({notification_type.value}): {e}")
        return None

    cache.delete(*notification_keys(user_id))
    return notif


def _money(amount) -> str:
    return f"₦{Decimal(amount or 0):,.2f}"


def notify_order_created(db: Session, customer_id: int, order_id: int):
    return publish(
        db, customer_id, NotificationType.order_created,
        "Order created",
        f"Your order #{order_id} has been created. We're finding a rider for you.",
        order_id, "order",
    )


def notify_order_assigned(db: Session, customer_id: int, rider_id: int, order_id: int):
    publish(
        db, customer_id, NotificationType.order_assigned,
        "Order assigned",
        f"A rider has been assigned to your order #{order_id}",
        order_id, "order",
    )
    publish(
        db, rider_id, NotificationType.order_assigned,
        "Order assigned",
        f"You've been assigned to order #{order_id}",
        order_id, "order",
    )


_STATUS_MESSAGES = {
    "picked_up": ("Order picked up", "Your order has been picked up by the rider"),
    "delivering": ("Out for delivery", "Your order is on the way to the dropoff location"),
    "delivered": ("Order delivered", "Your order has been successfully delivered"),
    "cancelled": ("Order cancelled", "This order has been cancelled"),
}


def notify_status_changed(db: Session, order, status_value: str):
    """Tell the customer (and the rider, if any) about a status change"""
    title, message = _STATUS_MESSAGES.get(
        status_value, ("Order updated", f"Order status changed to {status_value}")
    )
    kind = NotificationType.order_cancelled if status_value == "cancelled" else NotificationType.order_status_updated
    publish(db, order.customer_id, kind, title, message, order.order_id, "order")
    if order.rider_id:
        publish(
            db, order.rider_id, kind, title,
            f"Order #{order.order_id} is now {status_value.replace('_', ' ')}",
            order.order_id, "order",
        )


def notify_delivery_otp(db: Session, customer_id: int, order_id: int, code: str):
    return publish(
        db, customer_id, NotificationType.delivery_otp,
        "Delivery code",
        f"Your delivery code is {code}. Share this code with the rider at the dropoff location.",
        order_id, "order",
    )


def notify_delivery_verified(db: Session, order):
    for user_id in (order.customer_id, order.rider_id):
        publish(
            db, user_id, NotificationType.delivery_verified,
            "Delivery verified",
            f"Order #{order.order_id} has been delivered and verified",
            order.order_id, "order",
        )


def notify_proof_updated(db: Session, customer_id: int, order_id: int):
    return publish(
        db, customer_id, NotificationType.delivery_proof_updated,
        "Delivery proof updated",
        f"Delivery proof for order #{order_id} has been updated",
        order_id, "order",
    )


def notify_payout_generated(db: Session, payout):
    return publish(
        db, payout.rider_id, NotificationType.payout_generated,
        "Weekly payout generated",
        f"Your weekly earnings of {_money(payout.total_rider_net)} have been calculated and are ready for payment",
        payout.payout_id, "payout",
    )


def notify_payout_paid(db: Session, payout):
    return publish(
        db, payout.rider_id, NotificationType.payout_paid,
        "Payment received",
        f"Your weekly earnings of {_money(payout.total_rider_net)} have been paid",
        payout.payout_id, "payout",
    )


def notify_chat_message(db: Session, receiver_id: int, order_id: int):
    return publish(
        db, receiver_id, NotificationType.chat_message,
        "New message",
        f"You have a new message for order #{order_id}",
        order_id, "order",
    )


def notify_price_change_requested(db: Session, customer_id: int, order_id: int, amount, reason: Optional[str] = None):
    message = f"Rider requested ₦{Decimal(amount):,.0f} for order #{order_id}"
    if reason:
        message += f" - {reason}"
    return publish(
        db, customer_id, NotificationType.price_change_requested,
        "Price change requested", message,
        order_id, "order",
    )


def notify_price_change_answered(db: Session, rider_id: int, order_id: int, accepted: bool, amount):
    if accepted:
        return publish(
            db, rider_id, NotificationType.price_change_accepted,
            "Price change accepted",
            f"Customer accepted ₦{Decimal(amount):,.0f} for order #{order_id}",
            order_id, "order",
        )
    return publish(
        db, rider_id, NotificationType.price_change_rejected,
        "Price change rejected",
        f"Customer rejected your price change request for order #{order_id}",
        order_id, "order",
    )
