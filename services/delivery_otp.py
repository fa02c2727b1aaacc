"""
services/delivery_otp.py  –  Proof-of-delivery codes

The assigned rider asks for a code, the customer receives it as a
notification, and the rider submits what the customer reads out. A correct,
unexpired code is the normal way an order reaches `delivered`.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from models.order import Order, OrderStatus
from models.user import User, UserType
from services import access
from services.order_service import (
    ACTIVE_STATUSES, append_timeline, commit_and_refresh, complete_delivery, conditional_update,
    get_order,
)
from utils import notification_helper
from utils.dates import utcnow
from utils.exceptions import ExpiredError, InvalidCodeError, InvalidStateError, NotFoundError
from utils.otp_manager import otp_manager

logger = logging.getLogger(__name__)

# Issuing a code from these statuses also moves the order to `delivering`
_ADVANCE_ON_ISSUE = (OrderStatus.assigned, OrderStatus.picked_up)


def issue_otp(
    db: Session,
    rider: User,
    order_id: int,
    now: Optional[datetime] = None,
) -> Tuple[Order, datetime]:
    """
    Generate a fresh delivery code for an active order.

    Any previous code is replaced and the attempt counter resets. The code is
    sent to the customer only; the caller gets the order and the expiry.
    """
    access.require_role(rider, UserType.rider, action="generate delivery codes")
    now = now or utcnow()

    order = get_order(db, order_id)
    access.require_assigned_rider(rider, order)
    if order.status not in ACTIVE_STATUSES:
        raise InvalidStateError(
            f"Cannot generate a delivery code for an order that is {order.status.value}"
        )

    code = otp_manager.generate_otp()
    expires_at = otp_manager.get_expiry_time(now)
    current = order.status

    values = dict(otp_code=code, otp_expires_at=expires_at, otp_attempts=0, otp_verified_at=None)
    if current in _ADVANCE_ON_ISSUE:
        values["status"] = OrderStatus.delivering

    conditional_update(
        db,
        order,
        expected=[current],
        conflict_message="Order changed while generating the code; reload and retry",
        **values,
    )
    append_timeline(db, order.order_id, OrderStatus.delivering, "Delivery OTP generated", now)
    commit_and_refresh(db, order)

    logger.info(f"🔑 Delivery OTP issued for order {order_id} (expires {expires_at.isoformat()})")
    notification_helper.notify_delivery_otp(db, order.customer_id, order.order_id, code)
    if current in _ADVANCE_ON_ISSUE:
        notification_helper.notify_status_changed(db, order, OrderStatus.delivering.value)
    return order, expires_at


def verify_otp(
    db: Session,
    rider: User,
    order_id: int,
    code: str,
    now: Optional[datetime] = None,
) -> Order:
    """
    Check a submitted code and complete the delivery.

    Check order: active status, a code exists, not expired, attempts left,
    code matches. A wrong code burns one attempt; once attempts run out the
    code is voided and the rider must request a new one.
    """
    access.require_role(rider, UserType.rider, action="verify delivery codes")
    now = now or utcnow()

    order = get_order(db, order_id)
    access.require_assigned_rider(rider, order)

    if order.status == OrderStatus.delivered:
        raise InvalidStateError("Order already delivered")
    if order.status not in ACTIVE_STATUSES:
        raise InvalidStateError(f"Cannot verify delivery for an order that is {order.status.value}")
    if not order.otp_code or not order.otp_expires_at:
        raise NotFoundError("No delivery code found. Ask for a new code.")
    if otp_manager.is_otp_expired(order.otp_expires_at, now):
        raise ExpiredError("Delivery code expired. Request a new one.")
    if not otp_manager.can_attempt(order.otp_attempts or 0):
        raise InvalidCodeError("Too many incorrect attempts. Request a new code.")

    expected = order.otp_code
    if not code or not otp_manager.codes_match(code, expected):
        _record_failed_attempt(db, order, expected)
        raise InvalidCodeError("Incorrect delivery code")

    # The code must still be the one we checked when the row is written
    complete_delivery(
        db,
        order,
        "Delivery verified with OTP",
        now,
        otp_verified=True,
        extra_criteria=(Order.otp_code == expected,),
    )
    logger.info(f"✅ Order {order_id} delivered with verified OTP by rider {rider.user_id}")
    notification_helper.notify_delivery_verified(db, order)
    return order


def _record_failed_attempt(db: Session, order: Order, expected: str) -> None:
    attempts = (order.otp_attempts or 0) + 1
    values = {"otp_attempts": Order.otp_attempts + 1}
    if not otp_manager.can_attempt(attempts):
        values.update(otp_code=None, otp_expires_at=None)

    db.execute(
        update(Order)
        .where(Order.order_id == order.order_id, Order.otp_code == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    remaining = otp_manager.get_attempts_remaining(attempts)
    logger.warning(f"Wrong delivery code for order {order.order_id} ({remaining} attempts left)")
