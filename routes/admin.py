from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from database import get_db
from config import settings
from models.order import OrderStatus
from models.user import User
from routes.orders import order_to_dict
from services import order_service
from utils.dependencies import require_admin
from utils.responses import pagination_meta
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _party(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.user_id,
        "fullName": user.full_name,
        "email": user.email,
        "phoneNumber": user.phone_number,
    }


@router.get("/orders")
def list_all_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    rider_id: Optional[int] = Query(None, alias="riderId"),
    customer_id: Optional[int] = Query(None, alias="customerId"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """All orders, newest first, with customer and rider contact details"""
    orders, total = order_service.list_all_orders(
        db,
        current_user,
        page=page,
        page_size=page_size,
        search=search,
        status=status_filter,
        rider_id=rider_id,
        customer_id=customer_id,
    )
    data = []
    for order in orders:
        item = order_to_dict(order, current_user)
        item["customer"] = _party(order.customer)
        item["rider"] = _party(order.rider)
        data.append(item)

    return {
        "success": True,
        "message": "Orders retrieved successfully",
        "orders": data,
        "pagination": pagination_meta(page, page_size, total),
    }
