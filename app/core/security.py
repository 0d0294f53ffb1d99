"""
Bearer token authentication
Tokens are issued by the identity service; this service only verifies them
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.errors import AuthenticationError

logger = logging.getLogger(__name__)

# auto_error=False so a missing header renders through the AppError handler
bearer_scheme = HTTPBearer(auto_error=False)


def _get_secret_key() -> str:
    if not settings.JWT_SECRET_KEY:
        logger.error("JWT_SECRET_KEY is not set, rejecting all tokens")
        raise AuthenticationError("Authentication is not configured")
    return settings.JWT_SECRET_KEY


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token for a user.

    Args:
        user_id: Subject of the token
        expires_delta: Lifetime, defaults to JWT_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES))
    payload = {"sub": str(user_id), "iat": now, "exp": expire}
    return jwt.encode(payload, _get_secret_key(), algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Decode a token and return the user id it was issued for.

    Raises:
        AuthenticationError: If the token is invalid, expired or has no integer subject
    """
    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token", "INVALID_TOKEN")

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Token has no valid subject", "INVALID_TOKEN")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> int:
    """FastAPI dependency returning the authenticated user's id"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token", "MISSING_TOKEN")
    return decode_access_token(credentials.credentials)
