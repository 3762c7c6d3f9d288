# File: src/alphamarket/interfaces/api/routers/risk_profiling.py
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import CurrentUser, get_risk_profile_service, require_user

router = APIRouter(prefix="/api", tags=["Risk Profiling"])


@router.get("/risk-profiling/check")
def check_risk_profiling(
    subscription_id: str = Query(..., alias="subscriptionId"),
    user: CurrentUser = Depends(require_user),
    svc=Depends(get_risk_profile_service),
) -> Dict[str, Any]:
    with session_scope() as session:
        return svc.check(session, user.sub, subscription_id)


@router.post("/risk-profiles", status_code=status.HTTP_201_CREATED)
@router.post("/risk-profiling/submit", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def submit_risk_profile(
    answers: Dict[str, Any] = Body(...),
    user: CurrentUser = Depends(require_user),
    svc=Depends(get_risk_profile_service),
) -> Dict[str, Any]:
    """The questionnaire is posted as one flat camelCase object, `subscriptionId` included."""
    subscription_id = answers.get("subscriptionId")
    if not subscription_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="subscriptionId is required")
    with session_scope() as session:
        return svc.submit(session, user.sub, subscription_id, answers)
