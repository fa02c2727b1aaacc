"""
services/order_service.py  –  Order lifecycle

    pending -> assigned -> picked_up -> delivering -> delivered
    (start may skip picked_up; cancel from any non-terminal status)

Every status write is a conditional UPDATE on the status the caller saw, so
two concurrent writers can never both win; the loser gets ConflictError.
Each successful transition inserts exactly one order_timeline row in the
same transaction.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from config import settings
from models.order import Order, OrderStatus, OrderTimelineEntry, PaymentStatus, PriceRequestStatus
from models.user import User, UserType
from services import access
from services.financial import compute_financial, to_decimal
from services.pricing import estimate_price
from services.settings_service import get_commission_rate, pricing_table
from utils import notification_helper
from utils.dates import utcnow
from utils.exceptions import (
    ConflictError, ForbiddenError, InvalidStateError, InvalidTransitionError, NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (OrderStatus.assigned, OrderStatus.picked_up, OrderStatus.delivering)
TERMINAL_STATUSES = (OrderStatus.delivered, OrderStatus.cancelled)

# action -> (statuses it may be applied from, resulting status)
TRANSITIONS = {
    "pickup": ({OrderStatus.assigned}, OrderStatus.picked_up),
    "start": ({OrderStatus.assigned, OrderStatus.picked_up}, OrderStatus.delivering),
    "deliver": ({OrderStatus.picked_up, OrderStatus.delivering}, OrderStatus.delivered),
    "cancel": (
        {OrderStatus.pending, OrderStatus.assigned, OrderStatus.picked_up, OrderStatus.delivering},
        OrderStatus.cancelled,
    ),
}

CUSTOMER_CANCELLABLE = {OrderStatus.pending, OrderStatus.assigned}


def get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.order_id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def append_timeline(db: Session, order_id: int, status: OrderStatus, note: str, at: datetime) -> None:
    db.add(OrderTimelineEntry(order_id=order_id, status=status, note=note[:500], at=at))


def conditional_update(
    db: Session,
    order: Order,
    expected: Iterable[OrderStatus],
    conflict_message: str,
    extra_criteria: Tuple = (),
    **values,
) -> None:
    """UPDATE orders SET ... WHERE order_id = ? AND status IN (expected); 0 rows -> ConflictError."""
    stmt = (
        update(Order)
        .where(Order.order_id == order.order_id, Order.status.in_(list(expected)), *extra_criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError(conflict_message)


def commit_and_refresh(db: Session, order: Order) -> Order:
    db.commit()
    db.refresh(order)
    return order


# ── Creation ────────────────────────────────────────────────────────────────

def _clean_point(point: Optional[dict]) -> dict:
    if not point or not str(point.get("address") or "").strip():
        raise ValidationError("Pickup and dropoff addresses are required")
    return {
        "address": str(point["address"]).strip(),
        "lat": point.get("lat"),
        "lng": point.get("lng"),
    }


def create_order(
    db: Session,
    customer: User,
    pickup: Optional[dict],
    dropoff: Optional[dict],
    items: Optional[str] = "",
    price: Optional[Decimal] = None,
    now: Optional[datetime] = None,
) -> Order:
    """New order in `pending` with its first timeline entry."""
    access.require_role(customer, UserType.customer, action="create orders")
    now = now or utcnow()

    pickup_point = _clean_point(pickup)
    dropoff_point = _clean_point(dropoff)

    estimate = estimate_price(pickup_point, dropoff_point, pricing_table(db), settings.PRICE_ROAD_FACTOR)
    if price is None:
        final_price = estimate["price"]
    else:
        final_price = to_decimal(price)
        if final_price < 0:
            raise ValidationError("Price cannot be negative")

    order = Order(
        customer_id=customer.user_id,
        pickup_address=pickup_point["address"],
        pickup_lat=pickup_point["lat"],
        pickup_lng=pickup_point["lng"],
        dropoff_address=dropoff_point["address"],
        dropoff_lat=dropoff_point["lat"],
        dropoff_lng=dropoff_point["lng"],
        distance_km=estimate["distance_km"],
        items=(items or "").strip(),
        price=final_price,
        original_price=final_price,
        status=OrderStatus.pending,
        otp_attempts=0,
        payment_method="cash",
        payment_status=PaymentStatus.pending,
        created_at=now,
    )
    db.add(order)
    db.flush()
    append_timeline(db, order.order_id, OrderStatus.pending, "Order created", now)
    commit_and_refresh(db, order)

    logger.info(f"Order {order.order_id} created by customer {customer.user_id} (price={final_price})")
    notification_helper.notify_order_created(db, customer.user_id, order.order_id)
    return order


# ── Acceptance ──────────────────────────────────────────────────────────────

def accept_order(db: Session, rider: User, order_id: int, now: Optional[datetime] = None) -> Order:
    """pending -> assigned; exactly one rider can win."""
    access.require_role(rider, UserType.rider, action="accept orders")
    now = now or utcnow()

    result = db.execute(
        update(Order)
        .where(
            Order.order_id == order_id,
            Order.status == OrderStatus.pending,
            Order.rider_id.is_(None),
        )
        .values(rider_id=rider.user_id, status=OrderStatus.assigned)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        get_order(db, order_id)
        raise ConflictError("Order already assigned")

    append_timeline(db, order_id, OrderStatus.assigned, f"Rider {rider.user_id} accepted", now)
    db.commit()

    order = get_order(db, order_id)
    db.refresh(order)
    logger.info(f"Order {order_id} accepted by rider {rider.user_id}")
    notification_helper.notify_order_assigned(db, order.customer_id, rider.user_id, order_id)
    return order


# ── Price negotiation ───────────────────────────────────────────────────────

PRICE_LOCKED_MESSAGE = "Price can only be changed before order acceptance. Once accepted, price is locked."


def _naira(amount: Decimal) -> str:
    return f"₦{amount:,.0f}"


def request_price_change(
    db: Session,
    rider: User,
    order_id: int,
    requested_price,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """
    A rider asks for a different price on a pending order.

    Only one request may be open at a time. The price is rounded to a whole
    currency unit; it only replaces order.price if the customer accepts.
    """
    access.require_role(rider, UserType.rider, action="request price changes")
    now = now or utcnow()

    try:
        amount = to_decimal(requested_price)
    except (TypeError, ValueError, ArithmeticError):
        amount = None
    if amount is None or not amount.is_finite() or amount <= 0:
        raise ValidationError("Valid requested price is required")
    amount = amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    reason = (reason or "").strip() or None

    order = get_order(db, order_id)
    if order.status != OrderStatus.pending:
        raise InvalidTransitionError(PRICE_LOCKED_MESSAGE)
    if order.price_request_status == PriceRequestStatus.requested:
        raise InvalidStateError("Price request already pending")

    conditional_update(
        db,
        order,
        expected=[OrderStatus.pending],
        conflict_message="Order changed while requesting a new price; reload and retry",
        extra_criteria=(or_(
            Order.price_request_status.is_(None),
            Order.price_request_status != PriceRequestStatus.requested,
        ),),
        requested_price=amount,
        price_request_status=PriceRequestStatus.requested,
        price_request_reason=reason[:255] if reason else None,
        price_requested_by=rider.user_id,
        price_requested_at=now,
        price_responded_at=None,
    )
    note = f"Rider requested price change: {_naira(amount)}"
    if reason:
        note += f" ({reason})"
    append_timeline(db, order.order_id, OrderStatus.pending, note, now)
    commit_and_refresh(db, order)

    logger.info(f"Order {order_id}: rider {rider.user_id} requested price {amount}")
    notification_helper.notify_price_change_requested(db, order.customer_id, order.order_id, amount, reason)
    return order


def respond_to_price_request(
    db: Session,
    customer: User,
    order_id: int,
    accept: bool,
    now: Optional[datetime] = None,
) -> Order:
    """Customer accepts (price becomes the requested one) or rejects an open request."""
    access.require_role(customer, UserType.customer, action="respond to price requests")
    now = now or utcnow()

    order = get_order(db, order_id)
    if not access.is_order_customer(customer, order):
        raise ForbiddenError("Not your order")
    if order.price_request_status != PriceRequestStatus.requested:
        raise InvalidStateError("No pending price request")
    if order.status != OrderStatus.pending:
        raise InvalidTransitionError(PRICE_LOCKED_MESSAGE)

    requested = to_decimal(order.requested_price)
    requested_by = order.price_requested_by
    if accept:
        values = dict(price=requested, price_request_status=PriceRequestStatus.accepted)
        note = f"Customer accepted price change: {_naira(requested)}"
    else:
        values = dict(requested_price=None, price_request_status=PriceRequestStatus.rejected)
        note = "Customer rejected price change"

    conditional_update(
        db,
        order,
        expected=[OrderStatus.pending],
        conflict_message="Order changed while answering the price request; reload and retry",
        extra_criteria=(
            Order.price_request_status == PriceRequestStatus.requested,
            Order.requested_price == requested,
        ),
        price_responded_at=now,
        **values,
    )
    append_timeline(db, order.order_id, OrderStatus.pending, note, now)
    commit_and_refresh(db, order)

    logger.info(f"Order {order_id}: customer {'accepted' if accept else 'rejected'} price {requested}")
    if requested_by:
        notification_helper.notify_price_change_answered(db, requested_by, order.order_id, accept, requested)
    return order


# ── Delivery completion (shared by manual deliver and OTP verification) ─────

def complete_delivery(
    db: Session,
    order: Order,
    note: str,
    now: datetime,
    otp_verified: bool = False,
    extra_criteria: Tuple = (),
) -> Order:
    """
    Move an active order to `delivered` and freeze its financial split.

    The commission rate is read now and passed into compute_financial; the
    frozen numbers never change afterwards. Any outstanding OTP is spent.
    """
    split = compute_financial(order.price, get_commission_rate(db))

    values = dict(
        status=OrderStatus.delivered,
        delivered_at=now,
        otp_code=None,
        gross_amount=split.gross_amount,
        commission_rate_pct=split.commission_rate_pct,
        commission_amount=split.commission_amount,
        rider_net_amount=split.rider_net_amount,
    )
    if otp_verified:
        values["otp_verified_at"] = now

    conditional_update(
        db,
        order,
        expected=[order.status],
        conflict_message="Order changed while completing delivery; reload and retry",
        extra_criteria=(Order.gross_amount.is_(None),) + tuple(extra_criteria),
        **values,
    )
    append_timeline(db, order.order_id, OrderStatus.delivered, note, now)
    commit_and_refresh(db, order)

    logger.info(
        f"Order {order.order_id} delivered: gross={split.gross_amount} "
        f"commission={split.commission_amount} rider_net={split.rider_net_amount}"
    )
    return order


# ── Rider / admin status actions ────────────────────────────────────────────

def advance_order(
    db: Session,
    actor: User,
    order_id: int,
    action: str,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Apply pickup / start / deliver / cancel as the assigned rider or an admin."""
    access.require_role(actor, UserType.rider, UserType.admin, action="update order status")
    now = now or utcnow()

    order = get_order(db, order_id)
    access.require_assigned_rider_or_admin(actor, order)

    if action not in TRANSITIONS:
        raise InvalidTransitionError(f"Invalid action: {action}")
    allowed_from, target = TRANSITIONS[action]
    if order.status not in allowed_from:
        raise InvalidTransitionError(
            f"Cannot {action} an order that is {order.status.value}"
        )

    by = "admin" if actor.user_type == UserType.admin else "rider"
    if target == OrderStatus.delivered:
        complete_delivery(db, order, note or f"Marked delivered by {by}", now)
    else:
        values = {"status": target}
        if target == OrderStatus.cancelled:
            values["otp_code"] = None
        conditional_update(
            db,
            order,
            expected=[order.status],
            conflict_message="Order changed while updating status; reload and retry",
            **values,
        )
        default_note = f"Cancelled by {by}" if target == OrderStatus.cancelled else f"Status set to {target.value}"
        append_timeline(db, order.order_id, target, note or default_note, now)
        commit_and_refresh(db, order)
        logger.info(f"Order {order_id}: {action} -> {target.value} by {by} {actor.user_id}")

    notification_helper.notify_status_changed(db, order, target.value)
    return order


def cancel_order_as_customer(
    db: Session,
    customer: User,
    order_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    access.require_role(customer, UserType.customer, action="cancel orders here")
    now = now or utcnow()

    order = get_order(db, order_id)
    if not access.is_order_customer(customer, order):
        raise ForbiddenError("You don't have permission to cancel this order")
    if order.status == OrderStatus.cancelled:
        raise InvalidTransitionError("Order is already cancelled")
    if order.status not in CUSTOMER_CANCELLABLE:
        raise InvalidTransitionError(
            f"Cannot cancel an order that is {order.status.value.replace('_', ' ')}"
        )

    conditional_update(
        db,
        order,
        expected=[order.status],
        conflict_message="Order changed while cancelling; reload and retry",
        status=OrderStatus.cancelled,
        otp_code=None,
    )
    note = f"Cancelled by customer. Reason: {reason}" if reason else "Cancelled by customer"
    append_timeline(db, order.order_id, OrderStatus.cancelled, note, now)
    commit_and_refresh(db, order)

    logger.info(f"Order {order_id} cancelled by customer {customer.user_id}")
    notification_helper.notify_status_changed(db, order, OrderStatus.cancelled.value)
    return order


# ── Delivery proof ──────────────────────────────────────────────────────────

def update_delivery_proof(
    db: Session,
    rider: User,
    order_id: int,
    photo_url: Optional[str] = None,
    recipient_name: Optional[str] = None,
    recipient_phone: Optional[str] = None,
    note: Optional[str] = None,
    payment_received: bool = False,
    now: Optional[datetime] = None,
) -> Order:
    access.require_role(rider, UserType.rider, action="update delivery proof")
    now = now or utcnow()

    order = get_order(db, order_id)
    access.require_assigned_rider(rider, order)
    if order.status == OrderStatus.cancelled:
        raise InvalidStateError("Cannot update delivery proof on a cancelled order")

    if photo_url:
        order.proof_photo_url = photo_url
    if recipient_name:
        order.recipient_name = recipient_name
    if recipient_phone:
        order.recipient_phone = recipient_phone
    if note:
        order.delivery_note = note
    if payment_received:
        order.payment_status = PaymentStatus.paid
        order.payment_ref = f"cash-{order.order_id}-{int(now.timestamp())}"
        append_timeline(db, order.order_id, order.status, "Payment confirmed by rider", now)
    append_timeline(db, order.order_id, order.status, "Delivery proof updated", now)
    commit_and_refresh(db, order)

    notification_helper.notify_proof_updated(db, order.customer_id, order.order_id)
    return order


# ── Reads ───────────────────────────────────────────────────────────────────

def get_order_for_user(db: Session, user: User, order_id: int) -> Order:
    order = get_order(db, order_id)
    access.require_order_viewer(user, order)
    return order


def _search_and_status(query, search: Optional[str], status: Optional[OrderStatus]):
    if search and search.strip():
        term = search.strip()
        pattern = f"%{term}%"
        clauses = [
            Order.items.ilike(pattern),
            Order.pickup_address.ilike(pattern),
            Order.dropoff_address.ilike(pattern),
        ]
        if term.isdigit():
            clauses.append(Order.order_id == int(term))
        query = query.filter(or_(*clauses))
    if status:
        query = query.filter(Order.status == status)
    return query


def _page(query, page: int, page_size: int) -> Tuple[List[Order], int]:
    total = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.order_id.desc()) \
        .offset((page - 1) * page_size) \
        .limit(page_size) \
        .all()
    return orders, total


def list_customer_orders(
    db: Session,
    customer: User,
    page: int = 1,
    page_size: int = 20,
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
) -> Tuple[List[Order], int]:
    access.require_role(customer, UserType.customer, action="list their orders")
    query = db.query(Order).filter(Order.customer_id == customer.user_id)
    return _page(_search_and_status(query, search, status), page, page_size)


def list_all_orders(
    db: Session,
    admin: User,
    page: int = 1,
    page_size: int = 20,
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    rider_id: Optional[int] = None,
    customer_id: Optional[int] = None,
) -> Tuple[List[Order], int]:
    """Every order on the platform, newest first (admin console)."""
    access.require_role(admin, UserType.admin, action="list all orders")
    query = db.query(Order)
    if rider_id is not None:
        query = query.filter(Order.rider_id == rider_id)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    return _page(_search_and_status(query, search, status), page, page_size)


def list_available_orders(db: Session, rider: User, limit: int = 100) -> List[Order]:
    access.require_role(rider, UserType.rider, action="browse available orders")
    return db.query(Order) \
        .filter(Order.status == OrderStatus.pending, Order.rider_id.is_(None)) \
        .order_by(Order.created_at.asc(), Order.order_id.asc()) \
        .limit(limit) \
        .all()


def list_rider_orders(db: Session, rider: User, status: Optional[OrderStatus] = None) -> List[Order]:
    access.require_role(rider, UserType.rider, action="list assigned orders")
    query = db.query(Order).filter(Order.rider_id == rider.user_id)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.order_id.desc()).all()
