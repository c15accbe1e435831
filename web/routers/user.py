"""
User Profile API Router
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from services.auth import Principal
from services.user_service import UserService
from web.dependencies import get_principal, get_session

router = APIRouter(prefix="/api/profile", tags=["user"])


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None


@router.get("")
async def get_profile(
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """Get current user profile"""
    return UserService(session).get(principal.id).summary()


@router.put("")
async def update_profile(
    data: ProfileUpdate,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """Update name / avatar / phone / password (email and role are not self-service)"""
    user = UserService(session).update_profile(principal, **data.model_dump(exclude_unset=True))
    return {"success": True, "user": user.summary()}
