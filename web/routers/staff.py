"""
Staff Router - 工作人员查看与处理问题
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from services.auth import Principal
from services.config import ServiceConfig
from services.db.models import UserRole
from services.issues import IssueQuery, IssueQueryEngine, IssueService, issue_to_dict
from web.dependencies import get_session, get_settings, require_roles

router = APIRouter(prefix="/staff", tags=["Staff"])

require_staff = require_roles(UserRole.STAFF)


class StatusUpdateRequest(BaseModel):
    status: str
    note: Optional[str] = None


def _page_response(result) -> dict:
    return {
        "issues": [issue_to_dict(i) for i in result.issues],
        "total": result.total,
        "total_pages": result.total_pages,
        "page": result.page,
    }


@router.get("/issues")
async def list_issues(
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    principal: Principal = Depends(require_staff),
    session: Session = Depends(get_session),
):
    result = IssueQueryEngine(session).search(
        IssueQuery(category=category, status=status, search=search, page=page, limit=limit)
    )
    return _page_response(result)


@router.get("/issues/my-assigned")
async def my_assigned_issues(
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    principal: Principal = Depends(require_staff),
    session: Session = Depends(get_session),
):
    """指派给当前工作人员的问题"""
    result = IssueQueryEngine(session).search(
        IssueQuery(assigned_staff_id=principal.id, status=status, page=page, limit=limit)
    )
    return _page_response(result)


@router.patch("/issue/{issue_id}/status")
async def update_issue_status(
    issue_id: int,
    data: StatusUpdateRequest,
    principal: Principal = Depends(require_staff),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    issue = IssueService(session, settings).update_status(principal, issue_id, data.status, data.note)
    return {"success": True, "issue": issue_to_dict(issue, detail=True)}
