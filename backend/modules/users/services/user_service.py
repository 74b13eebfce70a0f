# backend/modules/users/services/user_service.py

from typing import List, Optional
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from core.auth import get_password_hash
from modules.audit.models.audit_models import AuditActionType
from modules.audit.services.audit_service import AuditService

from ..models.user_models import User, UserStatus
from ..schemas.user_schemas import UserCreate, VALID_ROLES

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def create_user(
        self, data: UserCreate, created_by: User, request: Optional[Request] = None
    ) -> User:
        if not data.username or not data.password or not data.role:
            raise ValueError("Username, password, and role are required")
        if data.role not in VALID_ROLES:
            raise ValueError(f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}")
        if self.get_by_username(data.username):
            raise ValueError("Username already exists")

        user = User(
            username=data.username,
            password_hash=get_password_hash(data.password),
            role=data.role,
            status=UserStatus.ACTIVE.value,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        AuditService(self.db).log_action(
            user_id=created_by.id,
            action_type=AuditActionType.USER_MANAGEMENT.value,
            table_name="users",
            record_id=user.id,
            new_values={"username": user.username, "role": user.role, "action": "create_user"},
            request=request,
        )
        logger.info(f"User {user.username} created by {created_by.username}")
        return user
