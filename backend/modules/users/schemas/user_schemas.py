# backend/modules/users/schemas/user_schemas.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.user_models import UserRole


class UserCreate(BaseModel):
    username: Optional[str] = Field(None, max_length=50)
    password: Optional[str] = None
    role: Optional[str] = None

    @field_validator("username")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v


class UserResponse(BaseModel):
    id: int
    username: str
    role: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    users: List[UserResponse]


class UserCreatedResponse(BaseModel):
    success: bool = True
    message: str = "User created successfully"
    user: UserResponse


VALID_ROLES = [role.value for role in UserRole]
