"""支付记录（审计用，写入后不再修改）."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from .base import PaymentType, utcnow


class PaymentRecord(SQLModel, table=True):
    """支付成功记录.

    ``session_id`` 唯一，保证同一个支付会话只会生效一次。
    ``amount`` 以最小货币单位保存。
    """

    __tablename__ = "payment_record"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(unique=True, index=True, max_length=255)
    type: PaymentType = Field(index=True)
    user_id: str = Field(index=True, max_length=32)
    issue_id: Optional[int] = Field(default=None, index=True)
    amount: int
    currency: str = Field(max_length=8)
    status: str = Field(default="success", max_length=16)
    created_at: datetime = Field(default_factory=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type.value,
            "user_id": self.user_id,
            "issue_id": self.issue_id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }
