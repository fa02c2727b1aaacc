"""
services/access.py  –  Who may read or act on an order

Three capability classes only: the order's customer, the order's assigned
rider, and admins. Rider actions additionally require user_id == order.rider_id;
being "a rider" is never enough. Chat needs an assigned rider on top of that.
"""

from models.order import Order
from models.user import User, UserType
from utils.exceptions import AuthorizationError, ForbiddenError, ValidationError


def is_admin(user: User) -> bool:
    return user.user_type == UserType.admin


def is_order_customer(user: User, order: Order) -> bool:
    return order.customer_id == user.user_id


def is_order_rider(user: User, order: Order) -> bool:
    return (
        user.user_type == UserType.rider
        and order.rider_id is not None
        and order.rider_id == user.user_id
    )


def can_view_order(user: User, order: Order) -> bool:
    return is_admin(user) or is_order_customer(user, order) or is_order_rider(user, order)


def require_role(user: User, *roles: UserType, action: str = "perform this action") -> None:
    if user.user_type not in roles:
        names = " or ".join(r.value for r in roles)
        raise AuthorizationError(f"Only {names} accounts can {action}")


def require_order_viewer(user: User, order: Order) -> None:
    if not can_view_order(user, order):
        raise ForbiddenError("You don't have access to this order")


def require_assigned_rider(user: User, order: Order) -> None:
    """The caller must be a rider AND the rider on this order."""
    require_role(user, UserType.rider, action="perform this action")
    if order.rider_id != user.user_id:
        raise ForbiddenError("Not your order")


def require_assigned_rider_or_admin(user: User, order: Order) -> None:
    require_role(user, UserType.rider, UserType.admin, action="update order status")
    if user.user_type == UserType.rider and order.rider_id != user.user_id:
        raise ForbiddenError("Not your order")


def require_order_chat_access(user: User, order: Order) -> None:
    require_order_viewer(user, order)
    if order.rider_id is None:
        raise ValidationError("No rider assigned to this order yet")


def can_access_support_thread(user: User, thread_owner_id: int) -> bool:
    return is_admin(user) or user.user_id == thread_owner_id


def require_support_thread_access(user: User, thread_owner_id: int) -> None:
    if not can_access_support_thread(user, thread_owner_id):
        raise ForbiddenError("You don't have access to this support conversation")
