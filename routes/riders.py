from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from database import get_db
from models.user import User
from services import payout_service
from services.location_service import update_rider_location
from utils.dependencies import get_current_active_user
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/riders", tags=["Riders"])


class UpdateRiderLocationRequest(BaseModel):
    lat: float
    lng: float
    online: bool = True


@router.patch("/location")
def update_location(
    request: UpdateRiderLocationRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Rider presence feed, shown to customers on active orders"""
    location = update_rider_location(
        db, current_user, request.lat, request.lng, online=request.online,
    )
    return {
        "success": True,
        "message": "Location updated",
        "location": location.to_dict(),
    }


def _totals_to_dict(totals: dict) -> dict:
    return {
        "gross": float(totals["gross"]),
        "commission": float(totals["commission"]),
        "riderNet": float(totals["rider_net"]),
        "count": totals["count"],
    }


@router.get("/earnings")
def get_earnings(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Current-week trips and totals, this week's payout (if generated), all-time totals"""
    summary = payout_service.rider_earnings(db, current_user)
    payout = summary.payout
    return {
        "success": True,
        "message": "Earnings retrieved successfully",
        "currentWeek": {
            "weekStart": summary.week_start.isoformat(),
            "weekEnd": summary.week_end.isoformat(),
            "totals": _totals_to_dict(summary.week_totals),
            "trips": [
                {
                    "orderId": order.order_id,
                    "deliveredAt": order.delivered_at.isoformat() if order.delivered_at else None,
                    "pickup": order.pickup_address,
                    "dropoff": order.dropoff_address,
                    "items": order.items,
                    "price": float(order.price or 0),
                    "grossAmount": float(line.gross_amount),
                    "commissionAmount": float(line.commission_amount),
                    "riderNetAmount": float(line.rider_net_amount),
                }
                for order, line in summary.trips
            ],
            "payout": {
                "id": payout.payout_id,
                "status": payout.status.value,
                "paidAt": payout.paid_at.isoformat() if payout.paid_at else None,
            } if payout else None,
        },
        "allTime": {
            "totals": _totals_to_dict(summary.all_time_totals),
        },
    }
