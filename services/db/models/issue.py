"""问题 (Issue) 及其子表：点赞、表态、评论、时间线."""

from datetime import datetime
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel, UniqueConstraint

from .base import IssuePriority, IssueStatus, TimeStamped, utcnow


class Issue(TimeStamped, SQLModel, table=True):
    """市民上报的问题.

    状态与优先级只能通过 IssueService / PaymentService 修改，
    每次影响状态的操作都会追加一条时间线记录。
    """

    __tablename__ = "issue"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="user.user_id", index=True, max_length=32)
    citizen_name: str = Field(max_length=128)

    title: str = Field(max_length=256, index=True)
    description: str = Field(max_length=4096)
    category: str = Field(max_length=64, index=True)
    location: str = Field(max_length=256)

    status: IssueStatus = Field(default=IssueStatus.PENDING, index=True)
    priority: IssuePriority = Field(default=IssuePriority.NORMAL, index=True)

    # 指派的工作人员（冗余保存姓名，工作人员被删除后仍可展示）
    assigned_staff_id: Optional[str] = Field(default=None, index=True, max_length=32)
    assigned_staff_name: Optional[str] = Field(default=None, max_length=128)

    image_url: Optional[str] = Field(default=None, max_length=512)

    upvotes: List["IssueUpvote"] = Relationship(
        back_populates="issue",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    reactions: List["IssueReaction"] = Relationship(
        back_populates="issue",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "IssueReaction.id"},
    )
    comments: List["IssueComment"] = Relationship(
        back_populates="issue",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "IssueComment.id"},
    )
    timeline: List["IssueTimelineEntry"] = Relationship(
        back_populates="issue",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "IssueTimelineEntry.id"},
    )


class IssueUpvote(SQLModel, table=True):
    __tablename__ = "issue_upvote"
    __table_args__ = (UniqueConstraint("issue_id", "user_id", name="uq_upvote_issue_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(foreign_key="issue.id", index=True)
    user_id: str = Field(index=True, max_length=32)
    created_at: datetime = Field(default_factory=utcnow)

    issue: Optional[Issue] = Relationship(back_populates="upvotes")


class IssueReaction(SQLModel, table=True):
    """每个用户对每个问题最多一条表态."""

    __tablename__ = "issue_reaction"
    __table_args__ = (UniqueConstraint("issue_id", "user_id", name="uq_reaction_issue_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(foreign_key="issue.id", index=True)
    user_id: str = Field(index=True, max_length=32)
    type: str = Field(max_length=32)
    created_at: datetime = Field(default_factory=utcnow)

    issue: Optional[Issue] = Relationship(back_populates="reactions")


class IssueComment(SQLModel, table=True):
    """评论只追加，不可编辑/删除；保存评论时的昵称与头像快照."""

    __tablename__ = "issue_comment"

    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(foreign_key="issue.id", index=True)
    user_id: str = Field(index=True, max_length=32)
    text: str = Field(max_length=2048)
    name: str = Field(max_length=128)
    avatar_url: Optional[str] = Field(default=None, max_length=512)
    created_at: datetime = Field(default_factory=utcnow)

    issue: Optional[Issue] = Relationship(back_populates="comments")


class IssueTimelineEntry(SQLModel, table=True):
    __tablename__ = "issue_timeline"

    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(foreign_key="issue.id", index=True)
    status: IssueStatus
    message: str = Field(max_length=1024)
    updated_by: str = Field(max_length=128)  # 操作人姓名
    actor_id: Optional[str] = Field(default=None, max_length=32)
    created_at: datetime = Field(default_factory=utcnow)

    issue: Optional[Issue] = Relationship(back_populates="timeline")
