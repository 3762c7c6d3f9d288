# File: src/alphamarket/interfaces/api/routers/advisor_dashboard.py
"""The signed-in advisor's own plans, subscribers, content, grievances and reports."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Response, status

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import (
    CurrentUser,
    get_advisor_service,
    get_content_service,
    get_payment_service,
    get_report_service,
    get_strategy_service,
    get_subscription_service,
    require_advisor,
)
from alphamarket.interfaces.api.schemas import (
    ContentIn, ContentOut, PlanIn, PlanOut, ProfileIn, QuestionOut, QuestionUpdateIn,
    ScoreIn, ScoreOut, StrategyOut, SubscriberOut, UserOut,
)

router = APIRouter(prefix="/api", tags=["Advisor Dashboard"])


@router.get("/advisor/strategies", response_model=List[StrategyOut])
def my_strategies(user: CurrentUser = Depends(require_advisor), svc=Depends(get_strategy_service)):
    with session_scope() as session:
        return [StrategyOut.model_validate(s) for s in svc.list_by_advisor(session, user.sub)]


# --- Plans ---

@router.get("/advisor/plans", response_model=List[PlanOut])
def my_plans(user: CurrentUser = Depends(require_advisor), subs=Depends(get_subscription_service)):
    with session_scope() as session:
        return [PlanOut.model_validate(p) for p in subs.list_plans(session, user.sub)]


@router.post("/plans", response_model=PlanOut, status_code=status.HTTP_201_CREATED)
def create_plan(payload: PlanIn, user: CurrentUser = Depends(require_advisor), subs=Depends(get_subscription_service)):
    with session_scope() as session:
        return PlanOut.model_validate(subs.create_plan(session, user.sub, payload.model_dump()))


@router.delete("/plans/{plan_id}")
def delete_plan(plan_id: str, user: CurrentUser = Depends(require_advisor), subs=Depends(get_subscription_service)):
    with session_scope() as session:
        subs.delete_plan(session, plan_id, user.sub, is_admin=user.is_admin)
    return {"ok": True}


# --- Subscribers ---

def _subscribers(user: CurrentUser, subs) -> List[SubscriberOut]:
    with session_scope() as session:
        return [SubscriberOut.model_validate(s) for s in subs.list_for_advisor(session, user.sub)]


@router.get("/advisor/subscribers", response_model=List[SubscriberOut])
def my_subscribers(user: CurrentUser = Depends(require_advisor), subs=Depends(get_subscription_service)):
    return _subscribers(user, subs)


@router.get("/advisor/subscriptions", response_model=List[SubscriberOut])
def my_subscriptions(user: CurrentUser = Depends(require_advisor), subs=Depends(get_subscription_service)):
    return _subscribers(user, subs)


@router.get("/advisor/payments")
def my_payments(user: CurrentUser = Depends(require_advisor), payments=Depends(get_payment_service)) -> List[Dict[str, Any]]:
    with session_scope() as session:
        return payments.advisor_payments(session, user.sub)


# --- Content ---

@router.get("/advisor/content", response_model=List[ContentOut])
def my_content(user: CurrentUser = Depends(require_advisor), svc=Depends(get_content_service)):
    with session_scope() as session:
        return [ContentOut.model_validate(c) for c in svc.list_own(session, user.sub)]


@router.post("/content", response_model=ContentOut, status_code=status.HTTP_201_CREATED)
def create_content(payload: ContentIn, user: CurrentUser = Depends(require_advisor), svc=Depends(get_content_service)):
    with session_scope() as session:
        return ContentOut.model_validate(svc.create(session, user.sub, payload.model_dump(exclude_unset=True)))


@router.delete("/content/{content_id}")
def delete_content(content_id: str, user: CurrentUser = Depends(require_advisor), svc=Depends(get_content_service)):
    with session_scope() as session:
        svc.delete(session, content_id, user.sub, is_admin=user.is_admin)
    return {"ok": True}


# --- Complaint scores ---

@router.get("/advisor/scores", response_model=List[ScoreOut])
def my_scores(user: CurrentUser = Depends(require_advisor), svc=Depends(get_content_service)):
    with session_scope() as session:
        return [ScoreOut.model_validate(s) for s in svc.list_scores(session, user.sub)]


@router.post("/advisor/scores", response_model=ScoreOut, status_code=status.HTTP_201_CREATED)
def create_score(payload: ScoreIn, user: CurrentUser = Depends(require_advisor), svc=Depends(get_content_service)):
    with session_scope() as session:
        return ScoreOut.model_validate(svc.create_score(session, user.sub, payload.model_dump(exclude_unset=True)))


# --- Questions ---

@router.get("/advisor/questions", response_model=List[QuestionOut])
def my_questions(user: CurrentUser = Depends(require_advisor), svc=Depends(get_content_service)):
    with session_scope() as session:
        return [QuestionOut.model_validate(q) for q in svc.list_questions(session, user.sub)]


@router.get("/advisor/questions/unread-count")
def unread_questions(user: CurrentUser = Depends(require_advisor), svc=Depends(get_content_service)):
    with session_scope() as session:
        return {"count": svc.unread_count(session, user.sub)}


@router.patch("/advisor/questions/{question_id}", response_model=QuestionOut)
def update_question(
    question_id: str,
    payload: QuestionUpdateIn,
    user: CurrentUser = Depends(require_advisor),
    svc=Depends(get_content_service),
):
    with session_scope() as session:
        row = svc.update_question(session, question_id, user.sub, payload.model_dump(exclude_unset=True))
        return QuestionOut.model_validate(row)


# --- Profile & reports ---

@router.patch("/advisor/profile", response_model=UserOut)
def update_profile(payload: ProfileIn, user: CurrentUser = Depends(require_advisor), svc=Depends(get_advisor_service)):
    with session_scope() as session:
        return UserOut.model_validate(svc.update_profile(session, user.sub, payload.model_dump(exclude_unset=True)))


@router.get("/advisor/reports/download")
def download_report(
    report_type: str = Query("", alias="type"),
    user: CurrentUser = Depends(require_advisor),
    reports=Depends(get_report_service),
):
    with session_scope() as session:
        filename, csv_text = reports.build(session, user.sub, report_type)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
