# backend/modules/auth/schemas/auth_schemas.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class AuthUser(BaseModel):
    id: int
    username: str
    role: str

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    success: bool = True
    token: str
    user: AuthUser
    expiresIn: str


class LogoutResponse(BaseModel):
    success: bool = True
    message: str = "Logged out successfully"
    timestamp: datetime
