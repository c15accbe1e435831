"""Issue → JSON-ready dict."""

from datetime import datetime
from typing import Optional

from services.db.models import Issue, IssueComment, IssueReaction, IssueTimelineEntry


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def reaction_to_dict(reaction: IssueReaction) -> dict:
    return {"user_id": reaction.user_id, "type": reaction.type, "created_at": _iso(reaction.created_at)}


def comment_to_dict(comment: IssueComment) -> dict:
    return {
        "id": comment.id,
        "user_id": comment.user_id,
        "text": comment.text,
        "name": comment.name,
        "avatar_url": comment.avatar_url,
        "created_at": _iso(comment.created_at),
    }


def timeline_to_dict(entry: IssueTimelineEntry) -> dict:
    return {
        "status": entry.status.value,
        "message": entry.message,
        "updated_by": entry.updated_by,
        "created_at": _iso(entry.created_at),
    }


def issue_to_dict(issue: Issue, detail: bool = False) -> dict:
    """列表只带点赞与表态；详情额外带评论和时间线"""
    data = {
        "id": issue.id,
        "user_id": issue.user_id,
        "citizen_name": issue.citizen_name,
        "title": issue.title,
        "description": issue.description,
        "category": issue.category,
        "location": issue.location,
        "status": issue.status.value,
        "priority": issue.priority.value,
        "assigned_staff": (
            {"id": issue.assigned_staff_id, "name": issue.assigned_staff_name}
            if issue.assigned_staff_id
            else None
        ),
        "image_url": issue.image_url,
        "created_at": _iso(issue.created_at),
        "updated_at": _iso(issue.updated_at),
        "upvotes": [u.user_id for u in issue.upvotes],
        "upvote_count": len(issue.upvotes),
        "reactions": [reaction_to_dict(r) for r in issue.reactions],
    }
    if detail:
        data["comments"] = [comment_to_dict(c) for c in issue.comments]
        data["timeline"] = [timeline_to_dict(t) for t in issue.timeline]
    return data
