"""
JWT 签发与校验
"""
import logging
from datetime import timedelta

import jwt

from services.config import ServiceConfig
from services.db.models import User, utcnow
from services.errors import Unauthenticated

logger = logging.getLogger(__name__)


def issue_token(user: User, settings: ServiceConfig) -> str:
    now_time = utcnow()
    payload = {
        "sub": user.user_id,
        "email": user.email,
        "role": user.role.value,
        "iat": now_time,
        "exp": now_time + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, settings: ServiceConfig) -> dict:
    """校验签名与过期时间，返回 payload"""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"🔐 [Auth] Invalid token: {e}")
        raise Unauthenticated("Invalid token")
    return payload
