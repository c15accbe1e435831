"""
支付路由 - 问题加急 (boost) 与高级会员 (premium)
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from services.auth import Principal
from services.config import ServiceConfig
from services.payment import PaymentService
from web.dependencies import get_payment_provider, get_principal, get_session, get_settings

router = APIRouter(prefix="/payment", tags=["payment"])


class BoostSessionRequest(BaseModel):
    issue_id: int


class VerifyRequest(BaseModel):
    session_id: str


def get_payment_service(
    session: Session = Depends(get_session),
    settings: ServiceConfig = Depends(get_settings),
    provider=Depends(get_payment_provider),
) -> PaymentService:
    return PaymentService(session, settings, provider)


@router.post("/boost/create-session")
async def create_boost_session(
    data: BoostSessionRequest,
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    checkout = await service.create_boost_session(principal, data.issue_id)
    return {"url": checkout.url, "session_id": checkout.id}


@router.post("/verify")
async def verify_boost(
    data: VerifyRequest,
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    """支付成功回跳后调用；同一 session 重复调用不会重复生效"""
    record = await service.verify_boost(principal, data.session_id)
    return {"success": True, "payment": record.to_dict()}


@router.post("/premium/create-session")
async def create_premium_session(
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    checkout = await service.create_premium_session(principal)
    return {"url": checkout.url, "session_id": checkout.id}


@router.post("/premium/verify")
async def verify_premium(
    data: VerifyRequest,
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    record = await service.verify_premium(principal, data.session_id)
    return {"success": True, "payment": record.to_dict(), "subscription": "premium"}
