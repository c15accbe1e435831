"""
Auth Module - JWT 身份解析与权限策略
"""
from .identity import IdentityResolver, Principal
from .passwords import hash_password, verify_password
from .policy import require_assigned, require_owner, require_role
from .tokens import decode_token, issue_token

__all__ = [
    "IdentityResolver",
    "Principal",
    "decode_token",
    "hash_password",
    "issue_token",
    "require_assigned",
    "require_owner",
    "require_role",
    "verify_password",
]
