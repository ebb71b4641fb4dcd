"""Access and refresh token issuing and verification (JWT, HS256)."""

import time
import uuid

from jose import JWTError, jwt

from viztube.config import get_settings
from viztube.db.models import User

ALGORITHM = "HS256"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def create_access_token(user: User) -> str:
    """Create a short-lived access token carrying the user's identity."""
    settings = get_settings()
    now = int(time.time())
    payload = {
        "sub": user.id,
        "email": user.email,
        "username": user.username,
        "full_name": user.full_name,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + settings.access_token_expire_minutes * 60,
    }
    return jwt.encode(payload, settings.access_token_secret, algorithm=ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    """Create a long-lived refresh token that only carries the user ID."""
    settings = get_settings()
    now = int(time.time())
    payload = {
        "sub": user_id,
        "type": REFRESH_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + settings.refresh_token_expire_days * 86400,
    }
    return jwt.encode(payload, settings.refresh_token_secret, algorithm=ALGORITHM)


def _verify(token: str, secret: str, token_type: str) -> str | None:
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload.get("sub")


def verify_access_token(token: str) -> str | None:
    """Verify an access token and return the user ID, or None if invalid."""
    return _verify(token, get_settings().access_token_secret, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str) -> str | None:
    """Verify a refresh token and return the user ID, or None if invalid."""
    return _verify(token, get_settings().refresh_token_secret, REFRESH_TOKEN_TYPE)
