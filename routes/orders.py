from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from decimal import Decimal
from database import get_db
from config import settings
from models.order import Order, OrderStatus
from models.user import User
from services import access, delivery_otp, order_service
from services.financial import FinancialSplit
from services.location_service import rider_location_for_order
from services.pricing import estimate_price
from services.settings_service import pricing_table
from utils.dependencies import get_current_active_user
from utils.responses import pagination_meta
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


def enum_val(v):
    """Return .value if it's an enum, otherwise the value itself (or None)."""
    if v is None:
        return None
    return v.value if hasattr(v, "value") else v


def iso(dt):
    return dt.isoformat() if dt else None


def money(v):
    return float(v) if v is not None else None


# ===== SCHEMAS =====

class PointRequest(BaseModel):
    address: str = ""
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class CreateOrderRequest(BaseModel):
    pickup: Optional[PointRequest] = None
    dropoff: Optional[PointRequest] = None
    items: Optional[str] = ""
    price: Optional[Decimal] = None


class EstimateRequest(BaseModel):
    pickup: PointRequest
    dropoff: PointRequest


class StatusActionRequest(BaseModel):
    action: str
    note: Optional[str] = None


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None


class VerifyOTPRequest(BaseModel):
    code: str

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, v):
        """Some clients send the code as a JSON number"""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class PriceChangeRequest(BaseModel):
    requestedPrice: Decimal
    reason: Optional[str] = None


class PriceResponseRequest(BaseModel):
    accept: bool


class DeliveryProofRequest(BaseModel):
    photoUrl: Optional[str] = None
    recipientName: Optional[str] = None
    recipientPhone: Optional[str] = None
    note: Optional[str] = None
    paymentReceived: bool = False


# ===== SERIALIZATION =====

def order_to_dict(order: Order, viewer: Optional[User] = None, rider_location: Optional[dict] = None) -> dict:
    financial = None
    if order.gross_amount is not None:
        financial = FinancialSplit(
            gross_amount=order.gross_amount,
            commission_rate_pct=order.commission_rate_pct,
            commission_amount=order.commission_amount,
            rider_net_amount=order.rider_net_amount,
        ).as_dict()

    price_negotiation = None
    if order.price_request_status is not None:
        price_negotiation = {
            "status": enum_val(order.price_request_status),
            "requestedPrice": money(order.requested_price),
            "reason": order.price_request_reason,
            "requestedBy": order.price_requested_by,
            "requestedAt": iso(order.price_requested_at),
            "respondedAt": iso(order.price_responded_at),
        }

    delivery = {
        "otpExpiresAt": iso(order.otp_expires_at),
        "otpVerifiedAt": iso(order.otp_verified_at),
        "otpAttempts": order.otp_attempts or 0,
        "deliveredAt": iso(order.delivered_at),
        "photoUrl": order.proof_photo_url,
        "recipientName": order.recipient_name,
        "recipientPhone": order.recipient_phone,
        "note": order.delivery_note,
    }
    # Only the customer ever sees the live code; they read it out to the rider
    if viewer is not None and access.is_order_customer(viewer, order) and order.otp_code:
        delivery["otpCode"] = order.otp_code

    data = {
        "id": order.order_id,
        "customerId": order.customer_id,
        "riderId": order.rider_id,
        "status": enum_val(order.status),
        "items": order.items,
        "price": money(order.price),
        "originalPrice": money(order.original_price),
        "priceNegotiation": price_negotiation,
        "pickup": {"address": order.pickup_address, "lat": order.pickup_lat, "lng": order.pickup_lng},
        "dropoff": {"address": order.dropoff_address, "lat": order.dropoff_lat, "lng": order.dropoff_lng},
        "distanceKm": order.distance_km,
        "timeline": [
            {"status": enum_val(t.status), "note": t.note, "at": iso(t.at)}
            for t in order.timeline
        ],
        "delivery": delivery,
        "financial": financial,
        "payment": {
            "method": order.payment_method,
            "status": enum_val(order.payment_status),
            "ref": order.payment_ref,
        },
        "createdAt": iso(order.created_at),
        "updatedAt": iso(order.updated_at),
    }
    if rider_location is not None:
        data["riderLocation"] = rider_location
    return data


# ===== ENDPOINTS =====

@router.post("/estimate")
def estimate_order_price(
    request: EstimateRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Price quote for a pickup/dropoff pair"""
    estimate = estimate_price(
        request.pickup.model_dump(),
        request.dropoff.model_dump(),
        pricing_table(db),
        settings.PRICE_ROAD_FACTOR,
    )
    return {
        "success": True,
        "message": "Price estimated",
        "distanceKm": estimate["distance_km"],
        "price": money(estimate["price"]),
        "source": estimate["source"],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    request: CreateOrderRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Create a delivery order (customers only)"""
    order = order_service.create_order(
        db,
        current_user,
        pickup=request.pickup.model_dump() if request.pickup else None,
        dropoff=request.dropoff.model_dump() if request.dropoff else None,
        items=request.items,
        price=request.price,
    )
    return {
        "success": True,
        "message": "Order created successfully",
        "order": order_to_dict(order, current_user),
    }


@router.get("/mine")
def list_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """The calling customer's orders, newest first"""
    orders, total = order_service.list_customer_orders(
        db, current_user, page=page, page_size=page_size, search=search, status=status_filter,
    )
    return {
        "success": True,
        "message": "Orders retrieved successfully",
        "orders": [order_to_dict(o, current_user) for o in orders],
        "pagination": pagination_meta(page, page_size, total),
    }


@router.get("/available")
def list_available_orders(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Unassigned pending orders, oldest first"""
    orders = order_service.list_available_orders(db, current_user)
    return {
        "success": True,
        "message": "Available orders retrieved successfully",
        "orders": [order_to_dict(o, current_user) for o in orders],
    }


@router.get("/assigned")
def list_assigned_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Orders the calling rider has accepted"""
    orders = order_service.list_rider_orders(db, current_user, status=status_filter)
    return {
        "success": True,
        "message": "Assigned orders retrieved successfully",
        "orders": [order_to_dict(o, current_user) for o in orders],
    }


@router.get("/{order_id}")
def get_order(
    order_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Order detail for its customer, its assigned rider, or an admin"""
    order = order_service.get_order_for_user(db, current_user, order_id)
    return {
        "success": True,
        "message": "Order retrieved successfully",
        "order": order_to_dict(order, current_user, rider_location_for_order(db, order)),
    }


@router.patch("/{order_id}/accept")
def accept_order(
    order_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    order = order_service.accept_order(db, current_user, order_id)
    return {
        "success": True,
        "message": "Order accepted",
        "order": order_to_dict(order, current_user),
    }


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: int,
    request: StatusActionRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Apply pickup / start / deliver / cancel"""
    order = order_service.advance_order(db, current_user, order_id, request.action, note=request.note)
    return {
        "success": True,
        "message": f"Order {enum_val(order.status).replace('_', ' ')}",
        "order": order_to_dict(order, current_user),
    }


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    request: Optional[CancelOrderRequest] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Customer cancellation while the order is still pending or assigned"""
    reason = request.reason if request else None
    order = order_service.cancel_order_as_customer(db, current_user, order_id, reason=reason)
    return {
        "success": True,
        "message": "Order cancelled",
        "order": order_to_dict(order, current_user),
    }


@router.post("/{order_id}/delivery/otp")
def generate_delivery_otp(
    order_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Issue a delivery code; it is sent to the customer, not returned here"""
    order, expires_at = delivery_otp.issue_otp(db, current_user, order_id)
    return {
        "success": True,
        "message": "Delivery code sent to the customer",
        "expiresAt": iso(expires_at),
        "order": order_to_dict(order, current_user),
    }


@router.post("/{order_id}/delivery/verify")
def verify_delivery_otp(
    order_id: int,
    request: VerifyOTPRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    order = delivery_otp.verify_otp(db, current_user, order_id, request.code)
    return {
        "success": True,
        "message": "Delivery verified",
        "order": order_to_dict(order, current_user),
    }


@router.patch("/{order_id}/delivery")
def update_delivery_proof(
    order_id: int,
    request: DeliveryProofRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    order = order_service.update_delivery_proof(
        db,
        current_user,
        order_id,
        photo_url=request.photoUrl,
        recipient_name=request.recipientName,
        recipient_phone=request.recipientPhone,
        note=request.note,
        payment_received=request.paymentReceived,
    )
    return {
        "success": True,
        "message": "Delivery proof updated",
        "order": order_to_dict(order, current_user),
    }


@router.post("/{order_id}/price-request")
def request_price_change(
    order_id: int,
    request: PriceChangeRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Rider proposes a new price before the order is accepted"""
    order = order_service.request_price_change(
        db, current_user, order_id, request.requestedPrice, reason=request.reason,
    )
    return {
        "success": True,
        "message": "Price change requested",
        "order": order_to_dict(order, current_user),
    }


@router.post("/{order_id}/price-request/respond")
def respond_to_price_request(
    order_id: int,
    request: PriceResponseRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    order = order_service.respond_to_price_request(db, current_user, order_id, request.accept)
    return {
        "success": True,
        "message": "Price change accepted" if request.accept else "Price change rejected",
        "order": order_to_dict(order, current_user),
    }
