"""
Stripe Checkout 支付网关客户端

只使用两个接口：创建 Checkout Session、按 session id 查询支付状态。
网络异常或超时一律视为支付网关不可用，绝不假定支付成功。
"""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional

import aiohttp

from services.errors import NotFound, PaymentProviderUnavailable, ValidationError

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,255}$")


@dataclass
class CheckoutSession:
    id: str
    url: Optional[str] = None
    payment_status: str = "unpaid"  # paid, unpaid, no_payment_required
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @classmethod
    def from_api(cls, data: dict) -> "CheckoutSession":
        return cls(
            id=data["id"],
            url=data.get("url"),
            payment_status=data.get("payment_status") or "unpaid",
            amount_total=data.get("amount_total"),
            currency=(data.get("currency") or "").lower() or None,
            metadata=dict(data.get("metadata") or {}),
        )


class StripeCheckoutProvider:
    def __init__(self, secret_key: str, api_base: str = "https://api.stripe.com/v1", timeout: float = 10.0):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        if not self.secret_key:
            raise PaymentProviderUnavailable("Payment provider is not configured")

        url = f"{self.api_base}/{path.lstrip('/')}"
        try:
            await self._ensure_session()
            async with self._session.request(method, url, data=data) as resp:
                if resp.status == 404:
                    raise NotFound("Payment session not found")
                if resp.status != 200:
                    # 网关/代理错误页可能不是 JSON
                    body = await resp.text()
                    logger.error(f"❌ [Stripe] {method} {path} failed: {resp.status} {body[:200]}")
                    raise PaymentProviderUnavailable(f"Payment provider error ({resp.status})")
                payload = await resp.json(content_type=None)
                if not isinstance(payload, dict):
                    raise ValueError("unexpected response body")
                return payload
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"❌ [Stripe] {method} {path} request failed: {type(e).__name__}: {e}")
            raise PaymentProviderUnavailable()

    async def create_session(
        self,
        amount: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        data = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": currency,
            "line_items[0][price_data][unit_amount]": str(amount),
            "line_items[0][price_data][product_data][name]": description,
        }
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = str(value)

        payload = await self._request("POST", "checkout/sessions", data=data)
        session = CheckoutSession.from_api(payload)
        logger.info(f"💳 [Stripe] Checkout session created: {session.id} ({metadata.get('type')})")
        return session

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        if not session_id or not SESSION_ID_PATTERN.match(session_id):
            raise ValidationError("Invalid payment session id")
        payload = await self._request("GET", f"checkout/sessions/{session_id}")
        return CheckoutSession.from_api(payload)
