import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from services.auth import Principal, hash_password, require_role, verify_password
from services.db.models import User, UserRole, utcnow
from services.errors import AccountBlocked, InvalidOperation, NotFound, Unauthenticated, UserNotFound, ValidationError

log = logging.getLogger(__name__)


def _required(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def _normalize_email(email: Optional[str]) -> str:
    email = _required(email, "email").lower()
    if "@" not in email:
        raise ValidationError("email is invalid")
    return email


class UserService:
    def __init__(self, session: Session):
        self.session = session

    # --- Registration / Login ---

    def register(
        self,
        name: str,
        email: str,
        password: str,
        avatar_url: Optional[str] = None,
        role: UserRole = UserRole.CITIZEN,
        phone: Optional[str] = None,
    ) -> User:
        """Create an account. Name, email and password are always required."""
        name = _required(name, "name")
        email = _normalize_email(email)
        password = _required(password, "password")
        if len(password) < 6:
            raise ValidationError("password must be at least 6 characters")

        if self.get_by_email(email):
            raise InvalidOperation("Email is already registered")

        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            avatar_url=avatar_url,
            role=role,
            phone=phone,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise InvalidOperation("Email is already registered")
        self.session.refresh(user)
        log.info(f"✨ Registered {role.value} {user.user_id} ({email})")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.get_by_email((email or "").strip().lower())
        if not user or not verify_password(password or "", user.password_hash):
            log.warning(f"🔐 Failed login for {email}")
            raise Unauthenticated("Invalid email or password")
        if user.is_blocked:
            raise AccountBlocked()
        return user

    def ensure_admin(self, email: str, password: str, name: str = "Administrator") -> User:
        """Seed the bootstrap admin account if it does not exist yet."""
        existing = self.get_by_email(email.strip().lower())
        if existing:
            if existing.role != UserRole.ADMIN:
                log.warning(f"Bootstrap admin email {email} belongs to a {existing.role.value} account")
            return existing
        return self.register(name=name, email=email, password=password, role=UserRole.ADMIN)

    # --- Lookup ---

    def get(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise UserNotFound()
        return user

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email)).first()

    def list_users(self, role: Optional[UserRole] = None) -> List[User]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        query = query.order_by(col(User.created_at).desc())
        return list(self.session.exec(query).all())

    # --- Admin moderation ---

    def set_blocked(self, principal: Principal, user_id: str, blocked: bool) -> User:
        require_role(principal, UserRole.ADMIN)
        user = self.get(user_id)
        if user.user_id == principal.id:
            raise InvalidOperation("Admins cannot block themselves")
        user.is_blocked = blocked
        user.updated_at = utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        log.info(f"{'🚫 Blocked' if blocked else '✅ Unblocked'} user {user_id} by {principal.id}")
        return user

    def _get_staff(self, staff_id: str) -> User:
        user = self.session.get(User, staff_id)
        if not user or user.role != UserRole.STAFF:
            raise NotFound("Staff member not found")
        return user

    def create_staff(
        self,
        principal: Principal,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        require_role(principal, UserRole.ADMIN)
        return self.register(
            name=name,
            email=email,
            password=password,
            avatar_url=avatar_url,
            role=UserRole.STAFF,
            phone=phone,
        )

    def update_staff(self, principal: Principal, staff_id: str, **changes) -> User:
        require_role(principal, UserRole.ADMIN)
        staff = self._get_staff(staff_id)
        self._apply_profile_changes(staff, **changes)
        return staff

    def delete_staff(self, principal: Principal, staff_id: str) -> None:
        require_role(principal, UserRole.ADMIN)
        staff = self._get_staff(staff_id)
        self.session.delete(staff)
        self.session.commit()
        log.info(f"🗑️ Staff {staff_id} removed by {principal.id}")

    # --- Self service ---

    def update_profile(self, principal: Principal, **changes) -> User:
        user = self.get(principal.id)
        self._apply_profile_changes(user, **changes)
        return user

    def _apply_profile_changes(
        self,
        user: User,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        phone: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> None:
        if name is not None:
            user.name = _required(name, "name")
        if email is not None:
            email = _normalize_email(email)
            other = self.get_by_email(email)
            if other and other.user_id != user.user_id:
                raise InvalidOperation("Email is already registered")
            user.email = email
        if password:
            if len(password) < 6:
                raise ValidationError("password must be at least 6 characters")
            user.password_hash = hash_password(password)
        if phone is not None:
            user.phone = phone.strip() or None
        if avatar_url is not None:
            user.avatar_url = avatar_url or None

        user.updated_at = utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
