from .user import User, UserType
from .order import Order, OrderStatus, OrderTimelineEntry, PaymentStatus
from .payout import RiderPayout, RiderPayoutOrder, PayoutStatus
from .notification import Notification, NotificationType
from .location import RiderLocation
from .platform_settings import PlatformSettings
from .messaging_models import OrderChatMessage, SupportMessage

__all__ = [
    "User",
    "UserType",
    "Order",
    "OrderStatus",
    "OrderTimelineEntry",
    "PaymentStatus",
    "RiderPayout",
    "RiderPayoutOrder",
    "PayoutStatus",
    "Notification",
    "NotificationType",
    "RiderLocation",
    "PlatformSettings",
    "OrderChatMessage",
    "SupportMessage",
]
