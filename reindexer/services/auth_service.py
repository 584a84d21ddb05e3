"""Authentication: JWT bearer tokens and principal resolution."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models.user import User

logger = logging.getLogger(__name__)

# Tokens come from the identity provider; a missing one means anonymous
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class TokenData(BaseModel):
    """Claims the API reads from a bearer token."""

    user_id: Optional[str] = None
    email: Optional[str] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a token carrying the given claims.

    Tokens are normally issued by the identity provider; this is used by
    the CLI runner and the tests.

    Args:
        data: Claims; "sub" must hold the user id
        expires_delta: Lifetime, JWT_EXPIRATION_MINUTES when omitted

    Returns:
        Encoded JWT
    """
    lifetime = expires_delta or timedelta(minutes=settings.jwt_expiration_minutes)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[TokenData]:
    """Verify a token; None when it is invalid, expired or has no subject."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    subject = claims.get("sub")
    if subject is None:
        return None
    return TokenData(user_id=subject, email=claims.get("email"))


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
    """Get a user by their ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Get a user by their email address."""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Resolve the caller from the bearer token.

    FastAPI dependency. Unlike a strict login dependency it never raises:
    a missing, invalid or stale token yields None (anonymous).
    """
    token_data = decode_access_token(token) if token else None
    if token_data is None:
        if token:
            logger.debug("Ignoring invalid bearer token")
        return None

    try:
        return await get_user_by_id(db, UUID(token_data.user_id))
    except ValueError:
        logger.debug("Ignoring token with non-UUID subject %r", token_data.user_id)
        return None


class UserPrincipalResolver:
    """Principal resolver over an already-authenticated caller."""

    def __init__(self, principal: Any) -> None:
        self._principal = principal

    def current_principal(self) -> Any:
        return self._principal

    def is_administrator(self, principal: Any) -> bool:
        """Only User rows flagged is_admin are administrators."""
        return isinstance(principal, User) and principal.is_administrator
