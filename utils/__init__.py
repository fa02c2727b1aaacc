from .security import hash_password, verify_password, create_access_token, verify_token
from .dependencies import get_current_user, get_current_active_user, require_role, require_admin
from .responses import error_response, pagination_meta

__all__ = [
    "hash_password",
    "verify_password",
    "create_access_token",
    "verify_token",
    "get_current_user",
    "get_current_active_user",
    "require_role",
    "require_admin",
    "pagination_meta",
    "error_response",
]
