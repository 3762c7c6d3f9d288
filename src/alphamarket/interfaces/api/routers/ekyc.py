# File: src/alphamarket/interfaces/api/routers/ekyc.py
"""
eKYC for a subscription. The client walks Aadhaar OTP -> OTP verify -> PAN;
the service rejects steps taken out of order.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import CurrentUser, get_ekyc_service, require_user
from alphamarket.interfaces.api.schemas import AadhaarOtpIn, AadhaarVerifyIn, PanVerifyIn

router = APIRouter(prefix="/api/ekyc", tags=["eKYC"])


@router.get("/status")
def ekyc_status(
    subscription_id: str = Query(..., alias="subscriptionId"),
    user: CurrentUser = Depends(require_user),
    svc=Depends(get_ekyc_service),
) -> Dict[str, Any]:
    with session_scope() as session:
        return svc.status(session, user.sub, subscription_id)


@router.post("/aadhaar/otp")
async def send_aadhaar_otp(payload: AadhaarOtpIn, user: CurrentUser = Depends(require_user), svc=Depends(get_ekyc_service)):
    with session_scope() as session:
        return await svc.send_aadhaar_otp(session, user.sub, payload.subscription_id, payload.aadhaar_number)


@router.post("/aadhaar/verify")
async def verify_aadhaar_otp(payload: AadhaarVerifyIn, user: CurrentUser = Depends(require_user), svc=Depends(get_ekyc_service)):
    with session_scope() as session:
        return await svc.verify_aadhaar_otp(session, user.sub, payload.subscription_id, payload.reference_id, payload.otp)


@router.post("/pan/verify")
async def verify_pan(payload: PanVerifyIn, user: CurrentUser = Depends(require_user), svc=Depends(get_ekyc_service)):
    with session_scope() as session:
        return await svc.verify_pan(
            session, user.sub, payload.subscription_id, payload.pan, payload.name_as_pan, payload.date_of_birth,
        )
