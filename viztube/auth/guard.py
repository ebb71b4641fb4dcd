"""Request authentication: resolve the caller from an access token."""

from typing import Annotated

from fastapi import Cookie, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.auth.tokens import verify_access_token
from viztube.db import crud
from viztube.db.models import User
from viztube.db.session import get_session

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[len("bearer ") :].strip() or None
    return None


async def require_user(
    access_cookie: Annotated[str | None, Cookie(alias=ACCESS_COOKIE)] = None,
    authorization: Annotated[str | None, Header()] = None,
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    FastAPI dependency that requires a valid access token.

    The token is read from the ``accessToken`` cookie, falling back to an
    ``Authorization: Bearer`` header.

    Args:
        access_cookie: The access token cookie value
        authorization: The Authorization header value
        db: Database session

    Returns:
        The authenticated User object

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired, or the
            user no longer exists
    """
    token = access_cookie or bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized request: No token provided")

    user_id = verify_access_token(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired access token")

    user = await crud.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid Access Token: User not found")

    return user
