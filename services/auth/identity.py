"""Bearer credential → request-scoped principal."""
from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session

from services.config import ServiceConfig
from services.db.models import SubscriptionTier, User, UserRole
from services.errors import AccountBlocked, Unauthenticated, UserNotFound

from .tokens import decode_token


@dataclass(frozen=True)
class Principal:
    id: str
    name: str
    email: str
    role: UserRole
    subscription: SubscriptionTier
    avatar_url: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_premium(self) -> bool:
        return self.subscription == SubscriptionTier.PREMIUM

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.user_id,
            name=user.name,
            email=user.email,
            role=user.role,
            subscription=user.subscription,
            avatar_url=user.avatar_url,
        )


def extract_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthenticated("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise Unauthenticated("Malformed Authorization header")
    return token


class IdentityResolver:
    """只读：校验 token 后从数据库取最新的用户信息（角色、订阅都以数据库为准）"""

    def __init__(self, session: Session, settings: ServiceConfig):
        self.session = session
        self.settings = settings

    def resolve(self, authorization: Optional[str]) -> Principal:
        token = extract_bearer(authorization)
        payload = decode_token(token, self.settings)

        user = self.session.get(User, payload["sub"])
        if not user:
            raise UserNotFound()
        if user.is_blocked:
            raise AccountBlocked()
        return Principal.from_user(user)
