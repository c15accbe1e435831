"""Role and ownership checks shared by every mutating operation."""
from services.db.models import Issue, UserRole
from services.errors import Forbidden

from .identity import Principal


def require_role(principal: Principal, *roles: UserRole) -> Principal:
    """Admin satisfies every role requirement; other roles must match exactly."""
    if principal.role == UserRole.ADMIN or principal.role in roles:
        return principal
    wanted = "/".join(r.value for r in roles)
    raise Forbidden(f"This action requires the {wanted} role")


def require_owner(principal: Principal, issue: Issue) -> Principal:
    if principal.role == UserRole.ADMIN or issue.user_id == principal.id:
        return principal
    raise Forbidden("You can only modify your own issues")


def require_assigned(principal: Principal, issue: Issue) -> Principal:
    """Staff may only update issues assigned to them."""
    require_role(principal, UserRole.STAFF)
    if principal.role == UserRole.ADMIN or issue.assigned_staff_id == principal.id:
        return principal
    raise Forbidden("This issue is not assigned to you")
