# File: src/alphamarket/interfaces/api/routers/payments.py
"""
Cashfree checkout.

`create-order` opens the hosted checkout; after the redirect back the
client calls `verify` (with `wait: true` the server polls until the order
settles). The webhook settles orders even when the browser never returns.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Request

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import (
    CurrentUser, get_auth_service, get_payment_service, require_user,
)
from alphamarket.interfaces.api.schemas import CreateOrderIn, PaymentOut, VerifyPaymentIn

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.post("/create-order")
async def create_order(
    payload: CreateOrderIn,
    user: CurrentUser = Depends(require_user),
    auth=Depends(get_auth_service),
    payments=Depends(get_payment_service),
) -> Dict[str, Any]:
    with session_scope() as session:
        customer = auth.get_user(session, user.sub)
        return await payments.create_order(session, customer, payload.strategy_id, payload.plan_id)


@router.post("/verify")
async def verify_payment(
    payload: VerifyPaymentIn,
    user: CurrentUser = Depends(require_user),
    payments=Depends(get_payment_service),
) -> Dict[str, Any]:
    if payload.wait:
        return await payments.await_settlement(user.sub, payload.order_id)
    with session_scope() as session:
        return await payments.verify(session, user.sub, payload.order_id)


@router.get("/history", response_model=List[PaymentOut])
def payment_history(user: CurrentUser = Depends(require_user), payments=Depends(get_payment_service)):
    with session_scope() as session:
        return [PaymentOut.model_validate(p) for p in payments.history(session, user.sub)]


@router.post("/webhook")
async def cashfree_webhook(
    request: Request,
    x_webhook_signature: Optional[str] = Header(default=None),
    x_webhook_timestamp: Optional[str] = Header(default=None),
    payments=Depends(get_payment_service),
) -> Dict[str, Any]:
    raw_body = await request.body()
    with session_scope() as session:
        return await payments.handle_webhook(session, raw_body, x_webhook_signature, x_webhook_timestamp)
