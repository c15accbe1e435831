"""
Admin Router
用户管理、工作人员管理、问题指派/驳回、支付记录
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from sqlmodel import Session

from services.auth import Principal
from services.config import ServiceConfig
from services.db.models import UserRole
from services.errors import ValidationError
from services.issues import IssueQuery, IssueQueryEngine, IssueService, issue_to_dict
from services.payment import PaymentService
from services.user_service import UserService
from web.dependencies import get_payment_provider, get_session, get_settings, require_roles

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = require_roles(UserRole.ADMIN)


class StaffCreateRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class StaffUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class AssignRequest(BaseModel):
    staff_id: str


class RejectRequest(BaseModel):
    reason: Optional[str] = None


# --- Users ---

@router.get("/users")
async def list_users(
    role: Optional[str] = None,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    """用户列表，可按角色筛选"""
    role_filter = None
    if role and role != "all":
        try:
            role_filter = UserRole(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role}")
    users = UserService(session).list_users(role_filter)
    return {"users": [u.summary() for u in users]}


@router.patch("/user/block/{user_id}")
async def block_user(
    user_id: str,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    user = UserService(session).set_blocked(principal, user_id, True)
    return {"success": True, "user": user.summary()}


@router.patch("/user/unblock/{user_id}")
async def unblock_user(
    user_id: str,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    user = UserService(session).set_blocked(principal, user_id, False)
    return {"success": True, "user": user.summary()}


# --- Staff ---

@router.get("/staff")
async def list_staff(
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    staff = UserService(session).list_users(UserRole.STAFF)
    return {"staff": [s.summary() for s in staff]}


@router.post("/staff")
async def create_staff(
    data: StaffCreateRequest,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    staff = UserService(session).create_staff(principal, **data.model_dump())
    return {"success": True, "staff": staff.summary()}


@router.put("/staff/{staff_id}")
async def update_staff(
    staff_id: str,
    data: StaffUpdateRequest,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    staff = UserService(session).update_staff(principal, staff_id, **data.model_dump(exclude_unset=True))
    return {"success": True, "staff": staff.summary()}


@router.delete("/staff/{staff_id}")
async def delete_staff(
    staff_id: str,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    UserService(session).delete_staff(principal, staff_id)
    return {"success": True}


# --- Issues ---

@router.get("/issues")
async def list_all_issues(
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    result = IssueQueryEngine(session).search(
        IssueQuery(category=category, status=status, search=search, page=page, limit=limit)
    )
    return {
        "issues": [issue_to_dict(i) for i in result.issues],
        "total": result.total,
        "total_pages": result.total_pages,
        "page": result.page,
    }


@router.patch("/issue/assign/{issue_id}")
async def assign_issue(
    issue_id: int,
    data: AssignRequest,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    issue = IssueService(session, settings).assign(principal, issue_id, data.staff_id)
    return {"success": True, "issue": issue_to_dict(issue, detail=True)}


@router.patch("/issue/reject/{issue_id}")
async def reject_issue(
    issue_id: int,
    data: RejectRequest,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    issue = IssueService(session, settings).reject(principal, issue_id, data.reason)
    return {"success": True, "issue": issue_to_dict(issue, detail=True)}


# --- Payments ---

@router.get("/payments")
async def list_payments(
    type: Optional[str] = None,
    principal: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
    provider=Depends(get_payment_provider),
):
    records = PaymentService(session, settings, provider).list_payments(principal, type)
    return {"payments": [r.to_dict() for r in records]}
