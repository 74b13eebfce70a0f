"""
Authentication routes for the revenue dashboard API.

Provides login, token refresh, logout and the current-user lookup.
"""

from datetime import datetime
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.auth import get_current_user, security
from core.database import get_db

from ..schemas.auth_schemas import AuthUser, LoginRequest, LogoutResponse, TokenResponse
from ..services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """
    Authenticate with username and password and receive a 24 hour token.

    ## Example
    ```bash
    curl -X POST "http://localhost:8000/api/auth/login" \\
         -H "Content-Type: application/json" \\
         -d '{"username": "admin", "password": "changeme"}'
    ```
    """
    try:
        return AuthService(db).login(payload.username, payload.password, request)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed",
        )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
):
    """Exchange a still-valid token for a fresh one."""
    token = credentials.credentials if credentials else None
    try:
        return AuthService(db).refresh(token, request)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Token refresh error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Token refresh failed",
        )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Log out the current user. Always succeeds once authenticated."""
    AuthService(db).logout(current_user, request)
    return LogoutResponse(timestamp=datetime.utcnow())


@router.get("/me", response_model=AuthUser)
async def read_current_user(current_user=Depends(get_current_user)):
    return AuthUser.model_validate(current_user)
