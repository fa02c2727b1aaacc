from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional
from database import get_db
from models.payout import PayoutStatus, RiderPayout
from models.user import User
from services import payout_service
from utils.dates import parse_datetime
from utils.dependencies import get_current_active_user, require_admin
from utils.exceptions import ValidationError
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payouts", tags=["Payouts"])


class GeneratePayoutsRequest(BaseModel):
    weekStart: Optional[str] = None


def _parse_week_start(value: Optional[str]):
    if not value:
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        raise ValidationError("weekStart must be an ISO date or datetime")


def payout_to_dict(payout: RiderPayout, include_orders: bool = True) -> dict:
    data = {
        "id": payout.payout_id,
        "riderId": payout.rider_id,
        "riderName": payout.rider.full_name if payout.rider else None,
        "weekStart": payout.week_start.isoformat(),
        "weekEnd": payout.week_end.isoformat(),
        "totals": {
            "gross": float(payout.total_gross),
            "commission": float(payout.total_commission),
            "riderNet": float(payout.total_rider_net),
            "count": payout.order_count,
        },
        "status": payout.status.value,
        "paidAt": payout.paid_at.isoformat() if payout.paid_at else None,
    }
    if include_orders:
        data["orders"] = [
            {
                "orderId": line.order_id,
                "deliveredAt": line.delivered_at.isoformat(),
                "grossAmount": float(line.gross_amount),
                "commissionAmount": float(line.commission_amount),
                "riderNetAmount": float(line.rider_net_amount),
            }
            for line in payout.orders
        ]
    return data


@router.post("/generate")
def generate_payouts(
    request: Optional[GeneratePayoutsRequest] = None,
    week_start_query: Optional[str] = Query(None, alias="weekStart"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Aggregate delivered orders of a week into rider payouts. Safe to re-run."""
    raw = (request.weekStart if request else None) or week_start_query
    result = payout_service.generate_for_week(db, week_start=_parse_week_start(raw))
    logger.info(f"Payout generation for {result.week_start.date()} triggered by admin {current_user.user_id}")
    return {
        "success": True,
        "message": f"{len(result.payouts)} payouts generated",
        "weekStart": result.week_start.isoformat(),
        "weekEnd": result.week_end.isoformat(),
        "payouts": [payout_to_dict(p) for p in result.payouts],
        "skipped": [payout_to_dict(p, include_orders=False) for p in result.skipped],
    }


@router.get("")
def list_payouts(
    rider_id: Optional[int] = Query(None, alias="riderId"),
    status_filter: Optional[PayoutStatus] = Query(None, alias="status"),
    week_start: Optional[str] = Query(None, alias="weekStart"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    payouts = payout_service.list_payouts(
        db, rider_id=rider_id, status=status_filter, week_start=_parse_week_start(week_start),
    )
    return {
        "success": True,
        "message": "Payouts retrieved successfully",
        "payouts": [payout_to_dict(p) for p in payouts],
    }


@router.get("/mine")
def list_my_payouts(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    payouts = payout_service.list_rider_payouts(db, current_user)
    return {
        "success": True,
        "message": "Payouts retrieved successfully",
        "payouts": [payout_to_dict(p) for p in payouts],
    }


@router.get("/{payout_id}")
def get_payout(
    payout_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    payout = payout_service.get_payout_for_user(db, current_user, payout_id)
    return {
        "success": True,
        "message": "Payout retrieved successfully",
        "payout": payout_to_dict(payout),
    }


@router.patch("/{payout_id}/mark-paid")
def mark_payout_paid(
    payout_id: int,
    strict: bool = Query(False),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Settle a payout. Repeat calls succeed unless ?strict=true, which answers 409."""
    payout, changed = payout_service.mark_paid(db, current_user, payout_id, strict=strict)
    return {
        "success": True,
        "message": "Payout marked as paid" if changed else "Payout already marked as paid",
        "payout": payout_to_dict(payout),
    }
