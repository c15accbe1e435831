"""
Payment Module - Stripe Checkout 加急 / 高级会员
"""
from .provider import CheckoutSession, StripeCheckoutProvider
from .service import PaymentService

__all__ = [
    "CheckoutSession",
    "PaymentService",
    "StripeCheckoutProvider",
]
