"""
Authentication routes.

Issues the bearer tokens that flag evaluation and the admin routes rely on.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from estate_api.api.dependencies.database import get_db
from estate_api.schemas.auth import TokenResponse
from estate_api.services.auth import AuthService

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """Login with email (as ``username``) and password."""
    token = await AuthService(db).login(
        email=form_data.username,
        password=form_data.password,
    )
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(access_token=token)
