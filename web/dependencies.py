import logging
from typing import Callable, Iterator, Optional

from fastapi import Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlmodel import Session

from services.auth import IdentityResolver, Principal, require_role
from services.config import ServiceConfig, config
from services.db.connection import Database
from services.db.models import UserRole

logger = logging.getLogger(__name__)

# Initialize Limiter
limiter = Limiter(key_func=get_remote_address)

# limiter 是进程级的；create_app 用注入的配置覆盖登录限流
_rate_limits = {"login": config.LOGIN_RATE_LIMIT}


def configure_rate_limits(settings: ServiceConfig) -> None:
    _rate_limits["login"] = settings.LOGIN_RATE_LIMIT


def login_rate_limit() -> str:
    return _rate_limits["login"]


# --- Store / config (constructed in web_app lifespan, stored on app.state) ---

def get_database(request: Request) -> Database:
    return request.app.state.db


def get_settings(request: Request) -> ServiceConfig:
    return request.app.state.settings


def get_payment_provider(request: Request):
    return request.app.state.payment_provider


def get_session(db: Database = Depends(get_database)) -> Iterator[Session]:
    """FastAPI dependency for database session"""
    session = db.session()
    try:
        yield session
    finally:
        session.close()


# --- Auth Dependency ---

def get_principal(
    request: Request,
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
) -> Principal:
    """从 Authorization: Bearer <token> 解析当前用户"""
    return IdentityResolver(session, settings).resolve(request.headers.get("Authorization"))


def require_roles(*roles: UserRole) -> Callable[..., Principal]:
    """生成按角色校验的依赖；admin 满足所有角色要求"""

    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        return require_role(principal, *roles)

    return dependency


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
