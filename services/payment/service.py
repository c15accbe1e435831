"""支付服务层 - 把已确认的支付转换为问题加急 / 高级会员升级."""

import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from services.auth import Principal, require_role
from services.config import ServiceConfig
from services.db.models import Issue, PaymentRecord, PaymentType, SubscriptionTier, User, UserRole, utcnow
from services.errors import InvalidOperation, PaymentIncomplete, PaymentMismatch, ValidationError
from services.issues import IssueService

from .provider import CheckoutSession

log = logging.getLogger(__name__)


class PaymentService:
    """两步流程：先创建 Checkout Session（元数据记录付款人/问题/类型），
    回调时再向支付网关查询，只有确认已支付才生效，且每个 session 只生效一次。
    """

    def __init__(self, session: Session, settings: ServiceConfig, provider):
        """初始化服务.

        Args:
            session: SQLModel/SQLAlchemy Session
            settings: 服务配置（价格、币种、前端地址）
            provider: 支付网关客户端，需提供 create_session / retrieve_session
        """
        self.session = session
        self.settings = settings
        self.provider = provider
        self.issues = IssueService(session, settings)

    def _success_url(self, kind: str) -> str:
        return f"{self.settings.CLIENT_URL}/payment/success?session_id={{CHECKOUT_SESSION_ID}}&type={kind}"

    def find_record(self, session_id: str) -> Optional[PaymentRecord]:
        return self.session.exec(
            select(PaymentRecord).where(PaymentRecord.session_id == session_id)
        ).first()

    # --- checks performed before any mutation ---

    def _check_paid(self, checkout: CheckoutSession) -> None:
        if not checkout.is_paid:
            log.warning(f"💳 Session {checkout.id} not paid (status={checkout.payment_status})")
            raise PaymentIncomplete()

    def _check_purchase(self, checkout: CheckoutSession, kind: PaymentType, price: int) -> None:
        if checkout.metadata.get("type") != kind.value:
            raise PaymentMismatch(f"Payment session is not a {kind.value} payment")
        if checkout.amount_total != price or (checkout.currency or "") != self.settings.CURRENCY.lower():
            log.warning(
                f"💳 Amount mismatch for {checkout.id}: "
                f"{checkout.amount_total} {checkout.currency} != {price} {self.settings.CURRENCY}"
            )
            raise PaymentMismatch("Paid amount does not match the expected price")

    def _apply_once(self, record: PaymentRecord, mutate: Callable[[], None]) -> PaymentRecord:
        """副作用与支付记录在同一事务提交；session_id 唯一约束防止重复生效."""
        mutate()
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError:
            # 并发校验同一 session：另一个请求已经生效，本次改动全部回滚
            self.session.rollback()
            existing = self.find_record(record.session_id)
            if existing is None:
                raise
            return existing
        self.session.refresh(record)
        log.info(f"✅ Payment {record.session_id} applied ({record.type.value}, user={record.user_id})")
        return record

    # --- boost ---

    async def create_boost_session(self, principal: Principal, issue_id: int) -> CheckoutSession:
        issue = self.issues.get(issue_id)
        self.issues.ensure_can_boost(principal, issue)
        return await self.provider.create_session(
            amount=self.settings.BOOST_PRICE,
            currency=self.settings.CURRENCY,
            description=f"Boost issue #{issue.id}: {issue.title}"[:200],
            metadata={"type": PaymentType.BOOST.value, "user_id": principal.id, "issue_id": str(issue.id)},
            success_url=self._success_url("boost"),
            cancel_url=f"{self.settings.CLIENT_URL}/issues/{issue.id}",
        )

    async def verify_boost(self, principal: Principal, session_id: str) -> PaymentRecord:
        if not session_id:
            raise ValidationError("session_id is required")
        existing = self.find_record(session_id)
        if existing:
            if existing.type != PaymentType.BOOST:
                raise PaymentMismatch("Payment session is not a boost payment")
            return existing

        checkout = await self.provider.retrieve_session(session_id)
        self._check_paid(checkout)
        self._check_purchase(checkout, PaymentType.BOOST, self.settings.BOOST_PRICE)
        try:
            issue_id = int(checkout.metadata.get("issue_id", ""))
        except ValueError:
            raise PaymentMismatch("Payment session has no related issue")
        issue: Issue = self.issues.get(issue_id)
        # 创建会话后问题可能已被解决或驳回
        self.issues.ensure_open(issue)

        record = PaymentRecord(
            session_id=session_id,
            type=PaymentType.BOOST,
            user_id=checkout.metadata.get("user_id") or principal.id,
            issue_id=issue.id,
            amount=checkout.amount_total,
            currency=checkout.currency,
            status="success",
        )
        return self._apply_once(record, lambda: self.issues.mark_boosted(issue, session_id, principal))

    # --- premium ---

    async def create_premium_session(self, principal: Principal) -> CheckoutSession:
        require_role(principal, UserRole.CITIZEN)
        if principal.is_premium:
            raise InvalidOperation("You are already a premium member")
        return await self.provider.create_session(
            amount=self.settings.PREMIUM_PRICE,
            currency=self.settings.CURRENCY,
            description="IssueHub Premium",
            metadata={"type": PaymentType.PREMIUM.value, "user_id": principal.id},
            success_url=self._success_url("premium"),
            cancel_url=f"{self.settings.CLIENT_URL}/profile",
        )

    async def verify_premium(self, principal: Principal, session_id: str) -> PaymentRecord:
        if not session_id:
            raise ValidationError("session_id is required")
        existing = self.find_record(session_id)
        if existing:
            if existing.type != PaymentType.PREMIUM or existing.user_id != principal.id:
                raise PaymentMismatch()
            return existing

        checkout = await self.provider.retrieve_session(session_id)
        self._check_paid(checkout)
        self._check_purchase(checkout, PaymentType.PREMIUM, self.settings.PREMIUM_PRICE)
        if checkout.metadata.get("user_id") != principal.id:
            log.warning(f"💳 Payer mismatch for {session_id}: {checkout.metadata.get('user_id')} != {principal.id}")
            raise PaymentMismatch("Payment was made by a different account")

        user = self.session.get(User, principal.id)

        def upgrade():
            user.subscription = SubscriptionTier.PREMIUM
            user.updated_at = utcnow()
            self.session.add(user)

        record = PaymentRecord(
            session_id=session_id,
            type=PaymentType.PREMIUM,
            user_id=principal.id,
            amount=checkout.amount_total,
            currency=checkout.currency,
            status="success",
        )
        return self._apply_once(record, upgrade)

    # --- admin ---

    def list_payments(self, principal: Principal, payment_type: Optional[str] = None) -> List[PaymentRecord]:
        require_role(principal, UserRole.ADMIN)
        query = select(PaymentRecord)
        if payment_type and payment_type != "all":
            try:
                query = query.where(PaymentRecord.type == PaymentType(payment_type))
            except ValueError:
                raise ValidationError(f"Unknown payment type: {payment_type}")
        query = query.order_by(col(PaymentRecord.created_at).desc(), col(PaymentRecord.id).desc())
        return list(self.session.exec(query).all())
