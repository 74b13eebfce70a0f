"""Login, token refresh and logout flows.

Token signing and request authentication live in ``core.auth``; this
module applies the account rules (input length, credentials, status) and
writes the audit trail for each session event.
"""

from typing import Optional
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from core.auth import (
    InvalidTokenError,
    TokenExpiredError,
    create_access_token,
    decode_token,
    get_active_user,
    verify_password,
)
from core.config import settings
from core.exceptions import AuthenticationError, PermissionError
from modules.audit.models.audit_models import AuditActionType
from modules.audit.services.audit_service import AuditService, safe_log_action
from modules.users.models.user_models import User, UserStatus

from ..schemas.auth_schemas import AuthUser, TokenResponse

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def _issue_token(user: User) -> TokenResponse:
    token = create_access_token(
        {"userId": user.id, "username": user.username, "role": user.role}
    )
    return TokenResponse(
        token=token,
        user=AuthUser.model_validate(user),
        expiresIn=f"{settings.jwt_expire_hours}h",
    )


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def login(
        self, username: Optional[str], password: Optional[str], request: Optional[Request] = None
    ) -> TokenResponse:
        username = (username or "").strip()
        password = (password or "").strip()

        if not username or not password:
            raise ValueError("Username and password are required")
        if len(username) < MIN_USERNAME_LENGTH:
            raise ValueError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user = self.db.query(User).filter(User.username == username).first()
        if user is None or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for username '{username}'")
            raise AuthenticationError("Invalid credentials", error_code="INVALID_CREDENTIALS")

        if user.status != UserStatus.ACTIVE.value:
            logger.warning(f"Login attempt on deactivated account '{username}'")
            raise PermissionError("Account is deactivated", error_code="ACCOUNT_DEACTIVATED")

        AuditService(self.db).log_action(
            user_id=user.id,
            action_type=AuditActionType.LOGIN.value,
            table_name="users",
            record_id=user.id,
            new_values={"username": user.username},
            request=request,
        )
        logger.info(f"User {user.username} logged in")
        return _issue_token(user)

    def refresh(self, token: Optional[str], request: Optional[Request] = None) -> TokenResponse:
        if not token:
            raise AuthenticationError("Access token required", error_code="TOKEN_MISSING")

        try:
            token_data = decode_token(token)
        except TokenExpiredError:
            raise AuthenticationError("Token expired", error_code="TOKEN_EXPIRED")
        except InvalidTokenError:
            raise AuthenticationError("Invalid token", error_code="TOKEN_INVALID")

        user = get_active_user(self.db, token_data.user_id)
        if user is None:
            raise AuthenticationError("User not found or inactive", error_code="USER_INACTIVE")

        safe_log_action(
            self.db,
            user_id=user.id,
            action_type=AuditActionType.TOKEN_REFRESH.value,
            table_name="users",
            record_id=user.id,
            request=request,
        )
        return _issue_token(user)

    def logout(self, user: User, request: Optional[Request] = None) -> bool:
        """Record the logout. Returns whether the audit entry was written."""
        written, _ = safe_log_action(
            self.db,
            user_id=user.id,
            action_type=AuditActionType.LOGOUT.value,
            table_name="users",
            record_id=user.id,
            new_values={"username": user.username},
            request=request,
        )
        if not written:
            logger.warning(f"Logout for {user.username} completed without audit entry")
        return written
