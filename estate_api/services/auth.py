"""
Authentication service.

Issues and verifies the bearer tokens that identify the caller whose
context feature flags are evaluated for.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import structlog
from jose import jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from estate_api.core.config import settings

from .user import UserService

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthService:
    """Password hashing, login and JWT access tokens."""

    def __init__(self, db: AsyncSession | None = None):
        self.db = db

    def hash_password(self, password: str) -> str:
        """Hash a password."""
        return pwd_context.hash(password)

    def verify_password(self, plain: str, hashed: str) -> bool:
        """Verify password against hash."""
        return pwd_context.verify(plain, hashed)

    async def login(self, email: str, password: str) -> str | None:
        """Check credentials and return an access token, or None."""
        user = await UserService(self.db).get_by_email(email)

        if not user or not self.verify_password(password, user.password_hash):
            logger.info("auth.failed", email=email)
            return None

        if not user.is_active:
            logger.info("auth.inactive", user_id=str(user.id))
            return None

        logger.info("auth.login", user_id=str(user.id))
        return self.create_access_token(user.id)

    def create_access_token(self, user_id: UUID | str) -> str:
        """Create JWT access token."""
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.auth.access_token_expire_minutes
        )
        payload = {
            "sub": str(user_id),
            "exp": expire,
            "type": "access",
        }
        return jwt.encode(
            payload,
            settings.auth.secret_key,
            algorithm=settings.auth.algorithm,
        )

    def decode_access_token(self, token: str) -> str | None:
        """
        Return the subject of a valid access token, else None.

        Raises:
            JWTError: If the token is malformed, expired or badly signed
        """
        payload = jwt.decode(
            token,
            settings.auth.secret_key,
            algorithms=[settings.auth.algorithm],
        )
        if payload.get("type") != "access":
            return None
        return payload.get("sub")
