"""
FastAPI dependency injection.
Provides DB sessions, API key validation and the request principal.
"""

from typing import Optional

import jwt
import structlog
from fastapi import Header, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database import get_session
from app.models.enums import UserRole

logger = structlog.get_logger(__name__)


class Principal(BaseModel):
    """Verified identity carried by the auth cookie."""
    id: int
    email: Optional[str] = None
    role: str = "customer"
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class InvalidToken(Exception):
    pass


async def get_db() -> AsyncSession:
    """Yield an async DB session."""
    async for session in get_session():
        yield session


async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[str]:
    """
    Verify API key if configured.
    If API_KEY is not set, all requests are allowed (dev mode).
    """
    if settings.API_KEY is None:
        return None

    if x_api_key is None or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return x_api_key


def decode_principal(token: str) -> Principal:
    """Verify the token signature and map its claims to a Principal."""
    if not settings.JWT_SECRET:
        raise InvalidToken("JWT_SECRET is not configured")
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.InvalidTokenError as e:
        raise InvalidToken(str(e)) from e

    user_id = claims.get("id", claims.get("sub"))
    try:
        return Principal(
            id=int(user_id),
            email=claims.get("email"),
            role=claims.get("role") or "customer",
            name=claims.get("full_name") or claims.get("name"),
        )
    except (TypeError, ValueError) as e:
        raise InvalidToken("token has no usable user id") from e


async def get_principal(request: Request) -> Optional[Principal]:
    """
    Principal for this request, or None when no auth cookie is sent.
    A cookie that fails verification is a 401.
    """
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        return None
    try:
        principal = decode_principal(token)
    except InvalidToken as e:
        logger.warning("auth_token_rejected", reason=str(e))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    request.state.principal = principal
    return principal
