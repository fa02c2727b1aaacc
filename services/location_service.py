import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from models.location import RiderLocation
from models.order import Order
from models.user import User, UserType
from services import access
from services.order_service import ACTIVE_STATUSES
from utils.dates import utcnow
from utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


def update_rider_location(
    db: Session,
    rider: User,
    lat: float,
    lng: float,
    online: bool = True,
    now: Optional[datetime] = None,
) -> RiderLocation:
    """Upsert the rider's latest position"""
    access.require_role(rider, UserType.rider, action="share their location")
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError("Invalid coordinates")

    location = db.query(RiderLocation).filter(RiderLocation.rider_id == rider.user_id).first()
    if location is None:
        location = RiderLocation(rider_id=rider.user_id)
        db.add(location)

    location.latitude = lat
    location.longitude = lng
    location.online = online
    location.last_seen = now or utcnow()
    db.commit()
    db.refresh(location)
    return location


def rider_location_for_order(db: Session, order: Order) -> Optional[dict]:
    """Rider position shown alongside an active order; None otherwise."""
    if order.rider_id is None or order.status not in ACTIVE_STATUSES:
        return None
    location = db.query(RiderLocation).filter(RiderLocation.rider_id == order.rider_id).first()
    return location.to_dict() if location else None
