# File: src/alphamarket/interfaces/api/routers/advisors.py
"""Public advisor directory."""

from typing import Dict, List

from fastapi import APIRouter, Depends, status

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import CurrentUser, get_advisor_service, get_optional_user
from alphamarket.interfaces.api.schemas import (
    AdvisorDetailOut, AdvisorListItem, QuestionIn, QuestionOut, merge,
)

router = APIRouter(prefix="/api", tags=["Advisors"])


@router.get("/advisors", response_model=List[AdvisorListItem])
def list_advisors(svc=Depends(get_advisor_service)):
    with session_scope() as session:
        return [merge(AdvisorListItem, advisor, live_strategies=live) for advisor, live in svc.list_advisors(session)]


@router.get("/advisors/{advisor_id}", response_model=AdvisorDetailOut)
def get_advisor(advisor_id: str, svc=Depends(get_advisor_service)):
    with session_scope() as session:
        return AdvisorDetailOut.model_validate(svc.get_advisor(session, advisor_id))


@router.post("/advisors/{advisor_id}/questions", response_model=QuestionOut, status_code=status.HTTP_201_CREATED)
def ask_question(
    advisor_id: str,
    payload: QuestionIn,
    user: CurrentUser = Depends(get_optional_user),
    svc=Depends(get_advisor_service),
):
    with session_scope() as session:
        row = svc.ask_question(session, advisor_id, payload.model_dump(), user_id=user.id)
        return QuestionOut.model_validate(row)


@router.get("/live-call-counts", response_model=Dict[str, int])
def live_call_counts(svc=Depends(get_advisor_service)):
    with session_scope() as session:
        return svc.live_call_counts(session)
