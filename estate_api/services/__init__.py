"""Application services."""

from .auth import AuthService
from .user import UserService

__all__ = ["AuthService", "UserService"]
