"""
JWT authentication for the revenue dashboard API.

Tokens are HS256 JWTs carrying ``userId``, ``username`` and ``role``.
Request handlers obtain the caller through the ``get_current_user``
dependency, which re-reads the user row on every request so that
deactivated accounts are rejected even while their token is still valid.
"""

from datetime import datetime, timedelta
from typing import Optional
import logging

from fastapi import Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .exceptions import APIError, AuthenticationError, PermissionError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    """Token payload data."""

    user_id: int
    username: Optional[str] = None
    role: Optional[str] = None


class TokenExpiredError(Exception):
    pass


class InvalidTokenError(Exception):
    pass


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Stored password hash could not be parsed")
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed access token.

    ``data`` should contain ``userId``, ``username`` and ``role``.
    """
    to_encode = data.copy()
    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(hours=settings.jwt_expire_hours))
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenData:
    """
    Decode and validate a token.

    Raises:
        TokenExpiredError: the signature is valid but the token expired
        InvalidTokenError: the token is malformed, tampered or incomplete
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except ExpiredSignatureError:
        logger.warning("Token has expired")
        raise TokenExpiredError("Token expired")
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise InvalidTokenError("Invalid token")

    user_id = payload.get("userId")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise InvalidTokenError("Invalid token")

    return TokenData(
        user_id=user_id,
        username=payload.get("username"),
        role=payload.get("role"),
    )


def get_active_user(db: Session, user_id: int):
    """Return the user row if it exists and is active, else None."""
    from modules.users.models.user_models import User, UserStatus

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.status != UserStatus.ACTIVE.value:
        return None
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
):
    """Resolve the authenticated user for the current request."""
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Access token required", error_code="TOKEN_MISSING")

    try:
        token_data = decode_token(credentials.credentials)
    except (TokenExpiredError, InvalidTokenError):
        raise APIError(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
            error_code="TOKEN_INVALID",
        )

    user = get_active_user(db, token_data.user_id)
    if user is None:
        raise AuthenticationError("User not found or inactive", error_code="USER_INACTIVE")

    return user


async def require_admin(current_user=Depends(get_current_user)):
    if current_user.role != "admin":
        logger.warning(f"User {current_user.username} denied admin access")
        raise PermissionError("Admin access required")
    return current_user
