from .auth import router as auth_router
from .orders import router as orders_router
from .payouts import router as payouts_router
from .chat import router as chat_router
from .notifications import router as notifications_router
from .riders import router as riders_router
from .settings import router as settings_router
from .admin import router as admin_router

__all__ = [
    "auth_router",
    "orders_router",
    "payouts_router",
    "chat_router",
    "notifications_router",
    "riders_router",
    "settings_router",
    "admin_router",
]
