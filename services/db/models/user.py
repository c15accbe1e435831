# services/db/models/user.py
import uuid
from typing import Optional

from sqlmodel import Field, SQLModel

from .base import SubscriptionTier, TimeStamped, UserRole


def new_user_id() -> str:
    return uuid.uuid4().hex


class User(TimeStamped, SQLModel, table=True):
    """平台用户：市民、工作人员或管理员。主键为不透明的十六进制字符串。"""
    user_id: str = Field(default_factory=new_user_id, primary_key=True, max_length=32)
    name: str = Field(max_length=128)
    email: str = Field(index=True, unique=True, max_length=255)
    password_hash: str = Field(max_length=255)

    role: UserRole = Field(default=UserRole.CITIZEN, index=True)
    subscription: SubscriptionTier = Field(default=SubscriptionTier.FREE)
    is_blocked: bool = Field(default=False, nullable=False)

    avatar_url: Optional[str] = Field(default=None, max_length=512)
    phone: Optional[str] = Field(default=None, max_length=32)  # 工作人员联系方式

    # 累计创建的问题数（删除问题不回退），用于免费额度
    issues_created: int = Field(default=0, nullable=False)

    def summary(self) -> dict:
        """对外展示的用户信息（不含密码哈希）"""
        return {
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "subscription": self.subscription.value,
            "is_blocked": self.is_blocked,
            "avatar_url": self.avatar_url,
            "phone": self.phone,
            "issues_created": self.issues_created,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
