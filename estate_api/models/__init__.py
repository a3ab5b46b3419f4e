"""Database models."""

from .base import Base, TimestampMixin, AuditMixin
from .user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "AuditMixin",
    "User",
]
