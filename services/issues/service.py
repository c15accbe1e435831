"""问题服务层 - 状态机、表态、点赞、评论与时间线."""

import logging
from typing import Optional, Tuple

from sqlalchemy import delete, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from services.auth import Principal, require_assigned, require_owner, require_role
from services.config import ServiceConfig
from services.db.models import (
    Issue,
    IssueComment,
    IssuePriority,
    IssueReaction,
    IssueStatus,
    IssueTimelineEntry,
    IssueUpvote,
    SubscriptionTier,
    User,
    UserRole,
    utcnow,
)
from services.errors import (
    InvalidOperation,
    InvalidTransition,
    NotFound,
    QuotaExceeded,
    ValidationError,
)

log = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "category", "location")

# 工作人员状态接口只能做的变化
STAFF_TRANSITIONS = {(IssueStatus.IN_PROGRESS, IssueStatus.RESOLVED)}

# 已结束的问题不能再加急
CLOSED_STATUSES = (IssueStatus.RESOLVED, IssueStatus.REJECTED)


def _clean(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


class IssueService:
    """问题服务，所有修改都先做权限/校验，再在同一个事务里写入状态和时间线."""

    def __init__(self, session: Session, settings: ServiceConfig):
        """初始化服务.

        Args:
            session: SQLModel/SQLAlchemy Session
            settings: 服务配置（免费额度等）
        """
        self.session = session
        self.settings = settings

    # --- helpers ---

    def _append_timeline(self, issue: Issue, message: str, principal: Principal) -> IssueTimelineEntry:
        entry = IssueTimelineEntry(
            status=issue.status,
            message=message,
            updated_by=principal.name,
            actor_id=principal.id,
        )
        issue.timeline.append(entry)
        issue.updated_at = utcnow()
        return entry

    def _commit(self, issue: Issue) -> Issue:
        self.session.add(issue)
        self.session.commit()
        self.session.refresh(issue)
        return issue

    def get(self, issue_id: int) -> Issue:
        issue = self.session.get(Issue, issue_id)
        if not issue:
            raise NotFound("Issue not found")
        return issue

    # --- creation ---

    def create(
        self,
        principal: Principal,
        title: str,
        description: str,
        category: str,
        location: str,
        image_url: Optional[str] = None,
    ) -> Issue:
        """市民提交问题.

        免费用户累计最多提交 ``FREE_ISSUE_LIMIT`` 个问题；额度检查与计数
        是同一条条件 UPDATE，避免并发时超额。高级会员的问题默认高优先级。
        """
        require_role(principal, UserRole.CITIZEN)
        fields = {
            "title": _clean(title, "title"),
            "description": _clean(description, "description"),
            "category": _clean(category, "category"),
            "location": _clean(location, "location"),
        }

        result = self.session.exec(
            update(User)
            .where(User.user_id == principal.id)
            .where(
                or_(
                    User.subscription == SubscriptionTier.PREMIUM,
                    User.issues_created < self.settings.FREE_ISSUE_LIMIT,
                )
            )
            .values(issues_created=User.issues_created + 1)
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise QuotaExceeded()

        owner = self.session.get(User, principal.id)
        premium = owner.subscription == SubscriptionTier.PREMIUM

        issue = Issue(
            user_id=principal.id,
            citizen_name=principal.name,
            image_url=image_url,
            priority=IssuePriority.HIGH if premium else IssuePriority.NORMAL,
            **fields,
        )
        if premium:
            self._append_timeline(issue, "Issue reported by premium citizen (high priority)", principal)
        else:
            self._append_timeline(issue, "Issue reported by citizen", principal)

        self._commit(issue)
        log.info(f"📝 Issue {issue.id} created by {principal.id} (priority={issue.priority.value})")
        return issue

    # --- owner operations ---

    def edit(self, principal: Principal, issue_id: int, **changes) -> Issue:
        issue = self.get(issue_id)
        require_owner(principal, issue)
        if issue.status != IssueStatus.PENDING:
            raise InvalidTransition("Only pending issues can be edited")

        updates = {}
        for field in EDITABLE_FIELDS:
            value = changes.get(field)
            if value is not None:
                updates[field] = _clean(value, field)
        if not updates:
            raise ValidationError("Nothing to update")

        for field, value in updates.items():
            setattr(issue, field, value)
        self._append_timeline(issue, "Issue edited", principal)
        return self._commit(issue)

    def delete(self, principal: Principal, issue_id: int) -> None:
        issue = self.get(issue_id)
        require_owner(principal, issue)
        if principal.role != UserRole.ADMIN and issue.status != IssueStatus.PENDING:
            raise InvalidTransition("Only pending issues can be deleted")

        self.session.delete(issue)
        self.session.commit()
        log.info(f"🗑️ Issue {issue_id} deleted by {principal.id}")

    # --- engagement ---

    def react(self, principal: Principal, issue_id: int, reaction_type: str) -> IssueReaction:
        """设置表态：覆盖该用户之前的表态（每人每个问题最多一条）."""
        reaction_type = _clean(reaction_type, "type")
        issue = self.get(issue_id)

        for attempt in range(2):
            now_time = utcnow()
            result = self.session.exec(
                update(IssueReaction)
                .where(IssueReaction.issue_id == issue_id, IssueReaction.user_id == principal.id)
                .values(type=reaction_type, created_at=now_time)
            )
            if result.rowcount == 0:
                self.session.add(
                    IssueReaction(
                        issue_id=issue_id,
                        user_id=principal.id,
                        type=reaction_type,
                        created_at=now_time,
                    )
                )
            try:
                self.session.commit()
                break
            except IntegrityError:
                # 并发插入冲突：回滚后走 UPDATE 分支
                self.session.rollback()
                if attempt:
                    raise

        self.session.expire(issue)
        return self.session.exec(
            select(IssueReaction).where(
                IssueReaction.issue_id == issue_id, IssueReaction.user_id == principal.id
            )
        ).one()

    def toggle_upvote(self, principal: Principal, issue_id: int) -> Tuple[bool, int]:
        """点赞开关：已点赞则取消，否则点赞. 返回 (是否已点赞, 点赞总数)."""
        issue = self.get(issue_id)
        if issue.user_id == principal.id:
            raise InvalidOperation("You cannot upvote your own issue")

        result = self.session.exec(
            delete(IssueUpvote).where(
                IssueUpvote.issue_id == issue_id, IssueUpvote.user_id == principal.id
            )
        )
        upvoted = result.rowcount == 0
        if upvoted:
            self.session.add(IssueUpvote(issue_id=issue_id, user_id=principal.id))
        try:
            self.session.commit()
        except IntegrityError:
            # 另一个请求刚刚插入了同一条点赞
            self.session.rollback()
            upvoted = True

        self.session.expire(issue)
        return upvoted, self.upvote_count(issue_id)

    def upvote_count(self, issue_id: int) -> int:
        return self.session.exec(
            select(func.count()).select_from(IssueUpvote).where(IssueUpvote.issue_id == issue_id)
        ).one()

    def comment(self, principal: Principal, issue_id: int, text: str) -> IssueComment:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment cannot be empty")
        issue = self.get(issue_id)

        comment = IssueComment(
            issue_id=issue_id,
            user_id=principal.id,
            text=text,
            name=principal.name,
            avatar_url=principal.avatar_url,
        )
        self.session.add(comment)
        self.session.commit()
        self.session.refresh(comment)
        self.session.expire(issue)
        return comment

    # --- admin / staff workflow ---

    def assign(self, principal: Principal, issue_id: int, staff_id: str) -> Issue:
        require_role(principal, UserRole.ADMIN)
        issue = self.get(issue_id)
        if issue.status not in (IssueStatus.PENDING, IssueStatus.IN_PROGRESS):
            raise InvalidTransition(f"Cannot assign a {issue.status.value} issue")

        staff = self.session.get(User, staff_id) if staff_id else None
        if not staff or staff.role != UserRole.STAFF:
            raise NotFound("Staff member not found")
        if staff.is_blocked:
            raise InvalidOperation("Cannot assign a blocked staff member")

        issue.status = IssueStatus.IN_PROGRESS
        issue.assigned_staff_id = staff.user_id
        issue.assigned_staff_name = staff.name
        self._append_timeline(issue, f"Assigned to {staff.name}", principal)
        self._commit(issue)
        log.info(f"👷 Issue {issue_id} assigned to staff {staff.user_id}")
        return issue

    def reject(self, principal: Principal, issue_id: int, reason: Optional[str] = None) -> Issue:
        require_role(principal, UserRole.ADMIN)
        issue = self.get(issue_id)
        if issue.status == IssueStatus.REJECTED:
            raise InvalidTransition("Issue is already rejected")

        issue.status = IssueStatus.REJECTED
        self._append_timeline(issue, (reason or "").strip() or "Issue rejected by admin", principal)
        self._commit(issue)
        log.info(f"⛔ Issue {issue_id} rejected by {principal.id}")
        return issue

    def update_status(
        self, principal: Principal, issue_id: int, status: str, note: Optional[str] = None
    ) -> Issue:
        """工作人员推进状态，附带说明.

        唯一允许的变化是 in-progress → resolved（管理员也一样）；
        进入 in-progress 只能通过 assign，驳回只能通过 reject。
        """
        try:
            target = IssueStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown status: {status}")

        issue = self.get(issue_id)
        require_assigned(principal, issue)

        current = issue.status
        if (current, target) not in STAFF_TRANSITIONS:
            raise InvalidTransition(f"Cannot change status from {current.value} to {target.value}")

        issue.status = target
        self._append_timeline(issue, (note or "").strip() or f"Status changed to {target.value}", principal)
        self._commit(issue)
        log.info(f"🔧 Issue {issue_id}: {current.value} -> {target.value} by {principal.id}")
        return issue

    def mark_boosted(self, issue: Issue, payment_session_id: str, principal: Principal) -> None:
        """设置高优先级并写时间线；不提交，由支付流程与支付记录一起提交."""
        issue.priority = IssuePriority.HIGH
        self._append_timeline(issue, f"Priority boosted (payment {payment_session_id})", principal)
        self.session.add(issue)

    def ensure_can_boost(self, principal: Principal, issue: Issue) -> None:
        require_owner(principal, issue)
        if issue.priority == IssuePriority.HIGH:
            raise InvalidOperation("Issue already has high priority")
        self.ensure_open(issue)

    def ensure_open(self, issue: Issue) -> None:
        if issue.status in CLOSED_STATUSES:
            raise InvalidTransition(f"Cannot boost a {issue.status.value} issue")
