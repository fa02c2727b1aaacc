"""
services/payout_service.py  –  Weekly rider payouts

generate_for_week() recomputes the whole Sunday-to-Sunday window every time
and upserts one rider_payouts row per rider keyed on (rider_id, week_start).
Re-running it converges on the same totals. Rows already marked paid are
never touched again; they come back in `skipped` instead.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from models.order import Order, OrderStatus
from models.payout import PayoutStatus, RiderPayout, RiderPayoutOrder
from models.user import User, UserType
from services import access
from services.financial import round2, to_decimal
from utils import notification_helper
from utils.dates import utcnow, week_range
from utils.exceptions import AlreadyPaidError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    week_start: datetime
    week_end: datetime
    payouts: List[RiderPayout] = field(default_factory=list)
    skipped: List[RiderPayout] = field(default_factory=list)


def _snapshot_line(order: Order) -> RiderPayoutOrder:
    if order.gross_amount is not None:
        gross = to_decimal(order.gross_amount)
        commission = to_decimal(order.commission_amount)
        rider_net = to_decimal(order.rider_net_amount)
    else:
        # Delivered before splits were frozen: the rider keeps the full price
        gross = round2(order.price or 0)
        commission = Decimal("0.00")
        rider_net = gross

    return RiderPayoutOrder(
        order_id=order.order_id,
        delivered_at=order.delivered_at,
        gross_amount=gross,
        commission_amount=commission,
        rider_net_amount=rider_net,
    )


def _apply_lines(payout: RiderPayout, lines: List[RiderPayoutOrder]) -> None:
    totals = _totals(lines)
    payout.orders = lines
    payout.total_gross = totals["gross"]
    payout.total_commission = totals["commission"]
    payout.total_rider_net = totals["rider_net"]
    payout.order_count = totals["count"]


def _delivered_orders(
    db: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    rider_id: Optional[int] = None,
):
    query = db.query(Order).filter(Order.status == OrderStatus.delivered, Order.rider_id.isnot(None))
    if start is not None:
        query = query.filter(Order.delivered_at >= start)
    if end is not None:
        query = query.filter(Order.delivered_at < end)
    if rider_id is not None:
        query = query.filter(Order.rider_id == rider_id)
    return query


def _delivered_orders_by_rider(db: Session, start: datetime, end: datetime) -> Dict[int, List[Order]]:
    orders = _delivered_orders(db, start, end) \
        .order_by(Order.delivered_at.asc(), Order.order_id.asc()) \
        .all()

    grouped: Dict[int, List[Order]] = {}
    for order in orders:
        grouped.setdefault(order.rider_id, []).append(order)
    return grouped


def _upsert_payout(
    db: Session,
    rider_id: int,
    start: datetime,
    end: datetime,
    orders: List[Order],
) -> Tuple[RiderPayout, bool]:
    """
    Write the payout for one rider/week. Returns (payout, written); written is
    False when the existing row is already paid and was left alone.
    """
    for attempt in range(2):
        payout = db.query(RiderPayout) \
            .filter(RiderPayout.rider_id == rider_id, RiderPayout.week_start == start) \
            .with_for_update() \
            .first()

        if payout and payout.status == PayoutStatus.paid:
            db.rollback()
            return payout, False

        if payout is None:
            payout = RiderPayout(
                rider_id=rider_id,
                week_start=start,
                week_end=end,
                status=PayoutStatus.pending,
            )
            db.add(payout)

        payout.week_end = end
        _apply_lines(payout, [_snapshot_line(o) for o in orders])
        try:
            db.commit()
        except IntegrityError:
            # Another run inserted the same (rider, week) first; update theirs
            db.rollback()
            if attempt:
                raise
            logger.info(f"Payout for rider {rider_id} week {start.date()} created concurrently, retrying")
            continue
        db.refresh(payout)
        return payout, True


def generate_for_week(
    db: Session,
    week_start: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """
    Aggregate delivered orders in the week containing `week_start`
    (default: the current week) into per-rider payouts.
    """
    start, end = week_range(week_start or now or utcnow())
    result = GenerationResult(week_start=start, week_end=end)

    by_rider = _delivered_orders_by_rider(db, start, end)

    if settings.PAYOUT_INCLUDE_IDLE_RIDERS:
        idle = db.query(User.user_id) \
            .filter(User.user_type == UserType.rider, User.is_active.is_(True)) \
            .all()
        for (rider_id,) in idle:
            by_rider.setdefault(rider_id, [])

    for rider_id in sorted(by_rider):
        payout, written = _upsert_payout(db, rider_id, start, end, by_rider[rider_id])
        if written:
            result.payouts.append(payout)
        else:
            result.skipped.append(payout)

    logger.info(
        f"💰 Payouts for week {start.date()}: {len(result.payouts)} written, "
        f"{len(result.skipped)} already paid"
    )
    for payout in result.payouts:
        notification_helper.notify_payout_generated(db, payout)
    return result


def list_payouts(
    db: Session,
    rider_id: Optional[int] = None,
    status: Optional[PayoutStatus] = None,
    week_start: Optional[datetime] = None,
) -> List[RiderPayout]:
    query = db.query(RiderPayout)
    if rider_id is not None:
        query = query.filter(RiderPayout.rider_id == rider_id)
    if status:
        query = query.filter(RiderPayout.status == status)
    if week_start:
        query = query.filter(RiderPayout.week_start == week_range(week_start)[0])
    return query.order_by(RiderPayout.week_start.desc(), RiderPayout.payout_id.desc()).all()


def list_rider_payouts(db: Session, rider: User) -> List[RiderPayout]:
    access.require_role(rider, UserType.rider, action="view their payouts")
    return list_payouts(db, rider_id=rider.user_id)


def get_payout(db: Session, payout_id: int) -> RiderPayout:
    payout = db.query(RiderPayout).filter(RiderPayout.payout_id == payout_id).first()
    if not payout:
        raise NotFoundError("Payout not found")
    return payout


def get_payout_for_user(db: Session, user: User, payout_id: int) -> RiderPayout:
    payout = get_payout(db, payout_id)
    if not access.is_admin(user) and payout.rider_id != user.user_id:
        raise ForbiddenError("You don't have access to this payout")
    return payout


@dataclass
class EarningsSummary:
    week_start: datetime
    week_end: datetime
    trips: List[Tuple[Order, RiderPayoutOrder]]
    week_totals: dict
    all_time_totals: dict
    payout: Optional[RiderPayout] = None


def _totals(lines: List[RiderPayoutOrder]) -> dict:
    return {
        "gross": round2(sum((line.gross_amount for line in lines), Decimal(0))),
        "commission": round2(sum((line.commission_amount for line in lines), Decimal(0))),
        "rider_net": round2(sum((line.rider_net_amount for line in lines), Decimal(0))),
        "count": len(lines),
    }


def rider_earnings(db: Session, rider: User, now: Optional[datetime] = None) -> EarningsSummary:
    """
    The calling rider's current week as it stands (whether or not a payout
    has been generated yet), plus all-time delivered totals.
    """
    access.require_role(rider, UserType.rider, action="view earnings")
    start, end = week_range(now or utcnow())

    week_orders = _delivered_orders(db, start, end, rider_id=rider.user_id) \
        .order_by(Order.delivered_at.desc(), Order.order_id.desc()) \
        .all()
    trips = [(order, _snapshot_line(order)) for order in week_orders]

    all_time = [_snapshot_line(o) for o in _delivered_orders(db, rider_id=rider.user_id).all()]

    payout = db.query(RiderPayout) \
        .filter(RiderPayout.rider_id == rider.user_id, RiderPayout.week_start == start) \
        .first()

    return EarningsSummary(
        week_start=start,
        week_end=end,
        trips=trips,
        week_totals=_totals([line for _, line in trips]),
        all_time_totals=_totals(all_time),
        payout=payout,
    )


def mark_paid(
    db: Session,
    admin: User,
    payout_id: int,
    now: Optional[datetime] = None,
    strict: bool = False,
) -> Tuple[RiderPayout, bool]:
    """
    pending -> paid. Idempotent: a payout that is already paid is returned
    as-is with its original paid_at, and `changed` is False.

    With strict=True a second settlement raises AlreadyPaidError instead.
    """
    access.require_role(admin, UserType.admin, action="settle payouts")
    now = now or utcnow()

    payout = get_payout(db, payout_id)
    if payout.status == PayoutStatus.paid:
        if strict:
            raise AlreadyPaidError("Payout already marked as paid")
        return payout, False

    result = db.execute(
        update(RiderPayout)
        .where(RiderPayout.payout_id == payout_id, RiderPayout.status == PayoutStatus.pending)
        .values(status=PayoutStatus.paid, paid_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(payout)
    if result.rowcount != 1:
        # Settled by a concurrent request
        if strict:
            raise AlreadyPaidError("Payout already marked as paid")
        return payout, False

    logger.info(f"✅ Payout {payout_id} marked paid by admin {admin.user_id} ({payout.total_rider_net})")
    notification_helper.notify_payout_paid(db, payout)
    return payout, True
