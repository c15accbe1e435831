"""Aggregate exports for SQLModel tables."""

from .base import (
    IssuePriority,
    IssueStatus,
    PaymentType,
    SubscriptionTier,
    TimeStamped,
    UserRole,
    utcnow,
)
from .issue import Issue, IssueComment, IssueReaction, IssueTimelineEntry, IssueUpvote
from .payment import PaymentRecord
from .user import User

__all__ = [
    "Issue",
    "IssueComment",
    "IssuePriority",
    "IssueReaction",
    "IssueStatus",
    "IssueTimelineEntry",
    "IssueUpvote",
    "PaymentRecord",
    "PaymentType",
    "SubscriptionTier",
    "TimeStamped",
    "User",
    "UserRole",
    "utcnow",
]
