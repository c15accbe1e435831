"""问题 (Issues) API 路由."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel
from sqlmodel import Session

from services.auth import Principal
from services.config import ServiceConfig
from services.issues import IssueQuery, IssueQueryEngine, IssueService, issue_to_dict
from services.issues.serializers import comment_to_dict, reaction_to_dict
from web.dependencies import get_principal, get_session, get_settings
from web.uploads import discard_image, save_image

router = APIRouter(prefix="/issues", tags=["issues"])


class IssueUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None


class ReactionRequest(BaseModel):
    type: str


class CommentRequest(BaseModel):
    text: str


@router.post("")
async def create_issue(
    title: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    location: str = Form(""),
    image: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    """提交问题（multipart，可附带图片）.

    免费用户累计最多 3 个，高级会员不限且默认高优先级。
    """
    service = IssueService(session, settings)
    image_url = await save_image(image, settings.UPLOAD_DIR)
    try:
        issue = service.create(
            principal,
            title=title,
            description=description,
            category=category,
            location=location,
            image_url=image_url,
        )
    except Exception:
        discard_image(image_url, settings.UPLOAD_DIR)
        raise
    return {"success": True, "issue": issue_to_dict(issue, detail=True)}


@router.get("")
async def list_issues(
    page: int = 1,
    limit: int = 8,
    category: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    mine: bool = False,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """分页列表：高优先级在前，同优先级按时间倒序"""
    result = IssueQueryEngine(session).search(
        IssueQuery(
            owner_id=principal.id if mine else None,
            category=category,
            status=status,
            search=search,
            page=page,
            limit=limit,
        )
    )
    return {
        "issues": [issue_to_dict(i) for i in result.issues],
        "total": result.total,
        "total_pages": result.total_pages,
        "page": result.page,
    }


@router.get("/resolved/latest")
async def latest_resolved(limit: int = 6, session: Session = Depends(get_session)):
    """最近解决的问题（公开，无需登录）"""
    issues = IssueQueryEngine(session).latest_resolved(limit)
    return {"issues": [issue_to_dict(i) for i in issues]}


@router.get("/{issue_id}")
async def get_issue(
    issue_id: int,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    issue = IssueService(session, settings).get(issue_id)
    return issue_to_dict(issue, detail=True)


@router.put("/{issue_id}")
async def edit_issue(
    issue_id: int,
    data: IssueUpdateRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    """仅本人且状态为 pending 时可编辑"""
    issue = IssueService(session, settings).edit(principal, issue_id, **data.model_dump())
    return {"success": True, "issue": issue_to_dict(issue, detail=True)}


@router.delete("/{issue_id}")
async def delete_issue(
    issue_id: int,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    IssueService(session, settings).delete(principal, issue_id)
    return {"success": True}


@router.post("/{issue_id}/react")
async def react_to_issue(
    issue_id: int,
    data: ReactionRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    reaction = IssueService(session, settings).react(principal, issue_id, data.type)
    return {"success": True, "reaction": reaction_to_dict(reaction)}


@router.post("/{issue_id}/comment")
async def comment_on_issue(
    issue_id: int,
    data: CommentRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    comment = IssueService(session, settings).comment(principal, issue_id, data.text)
    return {"success": True, "comment": comment_to_dict(comment)}


@router.post("/{issue_id}/upvote")
async def upvote_issue(
    issue_id: int,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
):
    upvoted, count = IssueService(session, settings).toggle_upvote(principal, issue_id)
    return {"success": True, "upvoted": upvoted, "upvote_count": count}
