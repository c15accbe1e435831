"""问题列表查询：筛选、搜索、分页与优先级排序."""

import math
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import case, false, func
from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from services.db.models import Issue, IssuePriority, IssueStatus

DEFAULT_LIMIT = 8
MAX_LIMIT = 100


def _is_unset(value: Optional[str]) -> bool:
    return value is None or not str(value).strip() or str(value).strip().lower() == "all"


@dataclass
class IssueQuery:
    owner_id: Optional[str] = None  # 仅查看自己的问题时填写
    category: Optional[str] = None
    status: Optional[str] = None
    search: Optional[str] = None
    assigned_staff_id: Optional[str] = None
    page: int = 1
    limit: int = DEFAULT_LIMIT

    def normalized(self) -> "IssueQuery":
        """page 从 1 开始；limit 限制在 [1, MAX_LIMIT]"""
        page = max(int(self.page or 1), 1)
        limit = int(self.limit or DEFAULT_LIMIT)
        limit = min(max(limit, 1), MAX_LIMIT)
        return IssueQuery(
            owner_id=self.owner_id,
            category=self.category,
            status=self.status,
            search=self.search,
            assigned_staff_id=self.assigned_staff_id,
            page=page,
            limit=limit,
        )


@dataclass
class IssuePage:
    issues: List[Issue]
    total: int
    total_pages: int
    page: int
    limit: int


# 高优先级排在前面
PRIORITY_RANK = case((Issue.priority == IssuePriority.HIGH, 0), else_=1)


class IssueQueryEngine:
    def __init__(self, session: Session):
        self.session = session

    def _conditions(self, query: IssueQuery) -> list:
        conditions = []
        if query.owner_id:
            conditions.append(Issue.user_id == query.owner_id)
        if query.assigned_staff_id:
            conditions.append(Issue.assigned_staff_id == query.assigned_staff_id)
        if not _is_unset(query.category):
            conditions.append(Issue.category == query.category.strip())
        if not _is_unset(query.status):
            try:
                conditions.append(Issue.status == IssueStatus(query.status.strip()))
            except ValueError:
                # 未知状态不会匹配任何问题
                conditions.append(false())
        if query.search and query.search.strip():
            conditions.append(
                func.lower(Issue.title).contains(query.search.strip().lower(), autoescape=True)
            )
        return conditions

    def search(self, query: IssueQuery) -> IssuePage:
        """按 (优先级降序, 创建时间降序) 返回一页问题；页码越界返回空列表."""
        query = query.normalized()
        conditions = self._conditions(query)

        total = self.session.exec(
            select(func.count()).select_from(Issue).where(*conditions)
        ).one()

        statement = (
            select(Issue)
            .where(*conditions)
            .options(selectinload(Issue.upvotes), selectinload(Issue.reactions))
            .order_by(PRIORITY_RANK, col(Issue.created_at).desc(), col(Issue.id).desc())
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
        )
        issues = list(self.session.exec(statement).all())

        return IssuePage(
            issues=issues,
            total=total,
            total_pages=math.ceil(total / query.limit),
            page=query.page,
            limit=query.limit,
        )

    def latest_resolved(self, limit: int = 6) -> List[Issue]:
        limit = min(max(int(limit or 6), 1), MAX_LIMIT)
        statement = (
            select(Issue)
            .where(Issue.status == IssueStatus.RESOLVED)
            .order_by(col(Issue.updated_at).desc(), col(Issue.id).desc())
            .limit(limit)
        )
        return list(self.session.exec(statement).all())
