"""
Authentication dependencies.

The flag engine only needs to know who is calling; these resolve the
bearer token to a User (or None for anonymous callers).
"""

from .dependencies import (
    AdminUser,
    CurrentUser,
    get_current_user,
    get_current_user_optional,
    require_admin_user,
)

__all__ = [
    "AdminUser",
    "CurrentUser",
    "get_current_user",
    "get_current_user_optional",
    "require_admin_user",
]
