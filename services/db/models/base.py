"""Base models and enums shared across SQLModel tables."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp.

    SQLModel 默认使用 naive datetime，如果不做处理 SQLite 会混用本地时间。
    统一调用该 helper，确保所有表都保存 UTC 时间。
    """

    return datetime.now(timezone.utc)


class TimeStamped(SQLModel, table=False):
    """Mixin that stores creation/update timestamps in UTC."""

    created_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class UserRole(str, Enum):
    CITIZEN = "citizen"
    STAFF = "staff"
    ADMIN = "admin"


class SubscriptionTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class IssueStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class IssuePriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


class PaymentType(str, Enum):
    BOOST = "boost"
    PREMIUM = "premium"
