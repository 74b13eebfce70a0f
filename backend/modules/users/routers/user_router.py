# backend/modules/users/routers/user_router.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from core.auth import require_admin
from core.database import get_db

from ..schemas.user_schemas import (
    UserCreate,
    UserCreatedResponse,
    UserListResponse,
    UserResponse,
)
from ..services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])
logger = logging.getLogger(__name__)


@router.get("", response_model=UserListResponse)
async def list_users(
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    """List all dashboard users (admin only)."""
    try:
        users = UserService(db).list_users()
        return UserListResponse(users=[UserResponse.model_validate(u) for u in users])
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch users",
        )


@router.post("", response_model=UserCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    """Create a user account (admin only)."""
    try:
        user = UserService(db).create_user(payload, current_user, request)
        return UserCreatedResponse(user=UserResponse.model_validate(user))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user",
        )
