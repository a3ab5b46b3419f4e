"""
Authentication schemas.
"""

from pydantic import BaseModel


class TokenResponse(BaseModel):
    """Access token response (OAuth2 password flow shape)."""
    access_token: str
    token_type: str = "bearer"
