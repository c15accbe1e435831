"""
认证路由 - 注册 / 登录（JWT Bearer）
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from pydantic import BaseModel, EmailStr
from sqlmodel import Session

from services.auth import issue_token
from services.config import ServiceConfig
from services.user_service import UserService
from web.dependencies import client_ip, get_session, get_settings, limiter, login_rate_limit
from web.uploads import discard_image, save_image

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    avatar_url: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


def _auth_response(user, settings: ServiceConfig) -> dict:
    return {"token": issue_token(user, settings), "user": user.summary()}


@router.post("/register")
async def register(
    data: RegisterRequest,
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    """注册市民账号（JSON）"""
    user = UserService(session).register(
        name=data.name,
        email=data.email,
        password=data.password,
        avatar_url=data.avatar_url,
    )
    return _auth_response(user, settings)


@router.post("/register/citizen")
async def register_citizen(
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    avatar: Optional[UploadFile] = File(None),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    """注册市民账号（multipart，可上传头像）"""
    avatar_url = await save_image(avatar, settings.UPLOAD_DIR)
    try:
        user = UserService(session).register(
            name=name,
            email=email,
            password=password,
            avatar_url=avatar_url,
        )
    except Exception:
        discard_image(avatar_url, settings.UPLOAD_DIR)
        raise
    return _auth_response(user, settings)


@router.post("/login")
@limiter.limit(login_rate_limit)
async def login(
    request: Request,
    data: LoginRequest,
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    """邮箱 + 密码登录，返回 token 和用户信息"""
    user = UserService(session).authenticate(data.email, data.password)
    logger.info(f"🔐 [Auth] Login: {user.user_id} ({user.role.value}) from {client_ip(request)}")
    return _auth_response(user, settings)
