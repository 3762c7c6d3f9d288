# File: src/alphamarket/interfaces/api/routers/strategies.py
"""
Strategy catalogue, its calls and positions.

Reads are public (performance needs a session). Writes need an advisor
session and ownership of the strategy; admins may act on any strategy.
Publishing a call or position pushes an alert to the strategy's active
subscribers after the response has been sent.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends, status

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import (
    CurrentUser,
    get_notification_service,
    get_performance_service,
    get_strategy_service,
    get_subscription_service,
    require_advisor,
    require_user,
)
from alphamarket.interfaces.api.schemas import (
    CallIn, CallOut, CloseCallIn, ClosePositionIn, PlanOut, PositionIn, PositionOut,
    StrategyIn, StrategyOut, SubscriptionOut,
)

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Strategies"])


# --- Public reads ---

@router.get("/strategies/public", response_model=List[StrategyOut])
def list_public_strategies(svc=Depends(get_strategy_service)):
    with session_scope() as session:
        return [StrategyOut.model_validate(s) for s in svc.list_public(session)]


@router.get("/strategies/{strategy_id}", response_model=StrategyOut)
def get_strategy(strategy_id: str, svc=Depends(get_strategy_service)):
    with session_scope() as session:
        return StrategyOut.model_validate(svc.get(session, strategy_id))


@router.get("/strategies/{strategy_id}/calls", response_model=List[CallOut])
def list_calls(strategy_id: str, svc=Depends(get_strategy_service)):
    with session_scope() as session:
        svc.get(session, strategy_id)
        return [CallOut.model_validate(c) for c in svc.list_calls(session, strategy_id)]


@router.get("/strategies/{strategy_id}/positions", response_model=List[PositionOut])
def list_positions(strategy_id: str, svc=Depends(get_strategy_service)):
    with session_scope() as session:
        svc.get(session, strategy_id)
        return [PositionOut.model_validate(p) for p in svc.list_positions(session, strategy_id)]


@router.get("/strategies/{strategy_id}/plans", response_model=List[PlanOut])
def list_strategy_plans(strategy_id: str, svc=Depends(get_strategy_service), subs=Depends(get_subscription_service)):
    with session_scope() as session:
        strategy = svc.get(session, strategy_id)
        return [PlanOut.model_validate(p) for p in subs.list_plans(session, strategy.advisor_id)]


@router.get("/strategies/{strategy_id}/performance")
def strategy_performance(
    strategy_id: str,
    user: CurrentUser = Depends(require_user),
    perf=Depends(get_performance_service),
) -> Dict[str, Any]:
    with session_scope() as session:
        return perf.strategy_performance(session, strategy_id)


@router.post("/strategies/{strategy_id}/subscribe", response_model=SubscriptionOut)
def subscribe(strategy_id: str, user: CurrentUser = Depends(require_user), subs=Depends(get_subscription_service)):
    with session_scope() as session:
        return SubscriptionOut.model_validate(subs.subscribe(session, user.sub, strategy_id))


# --- Advisor writes ---

@router.post("/strategies", response_model=StrategyOut, status_code=status.HTTP_201_CREATED)
def create_strategy(payload: StrategyIn, user: CurrentUser = Depends(require_advisor), svc=Depends(get_strategy_service)):
    with session_scope() as session:
        return StrategyOut.model_validate(svc.create(session, user.sub, payload.model_dump(exclude_unset=True)))


@router.patch("/strategies/{strategy_id}", response_model=StrategyOut)
def update_strategy(
    strategy_id: str,
    payload: StrategyIn,
    user: CurrentUser = Depends(require_advisor),
    svc=Depends(get_strategy_service),
):
    with session_scope() as session:
        strategy = svc.update(session, strategy_id, user.sub, payload.model_dump(exclude_unset=True), is_admin=user.is_admin)
        return StrategyOut.model_validate(strategy)


@router.delete("/strategies/{strategy_id}")
def delete_strategy(strategy_id: str, user: CurrentUser = Depends(require_advisor), svc=Depends(get_strategy_service)):
    with session_scope() as session:
        svc.delete(session, strategy_id, user.sub, is_admin=user.is_admin)
    return {"ok": True}


@router.post("/strategies/{strategy_id}/calls", response_model=CallOut, status_code=status.HTTP_201_CREATED)
def add_call(
    strategy_id: str,
    payload: CallIn,
    background: BackgroundTasks,
    user: CurrentUser = Depends(require_advisor),
    svc=Depends(get_strategy_service),
    notifier=Depends(get_notification_service),
):
    with session_scope() as session:
        call = svc.add_call(session, strategy_id, user.sub, payload.model_dump(exclude_unset=True), is_admin=user.is_admin)
        out = CallOut.model_validate(call)
        alert = svc.call_alert(call.strategy, call) if call.is_published else None
    if alert:
        background.add_task(notifier.notify_strategy_subscribers, strategy_id, "new_call", alert)
    return out


@router.patch("/calls/{call_id}", response_model=CallOut)
def update_call(call_id: str, payload: CallIn, user: CurrentUser = Depends(require_advisor), svc=Depends(get_strategy_service)):
    with session_scope() as session:
        call = svc.update_call(session, call_id, user.sub, payload.model_dump(exclude_unset=True), is_admin=user.is_admin)
        return CallOut.model_validate(call)


@router.post("/calls/{call_id}/close", response_model=CallOut)
def close_call(call_id: str, payload: CloseCallIn, user: CurrentUser = Depends(require_advisor), svc=Depends(get_strategy_service)):
    with session_scope() as session:
        return CallOut.model_validate(svc.close_call(session, call_id, user.sub, payload.sell_price, is_admin=user.is_admin))


@router.post("/strategies/{strategy_id}/positions", response_model=PositionOut, status_code=status.HTTP_201_CREATED)
def add_position(
    strategy_id: str,
    payload: PositionIn,
    background: BackgroundTasks,
    user: CurrentUser = Depends(require_advisor),
    svc=Depends(get_strategy_service),
    notifier=Depends(get_notification_service),
):
    with session_scope() as session:
        position = svc.add_position(session, strategy_id, user.sub, payload.model_dump(exclude_unset=True), is_admin=user.is_admin)
        out = PositionOut.model_validate(position)
        alert = svc.position_alert(position.strategy, position) if position.is_published else None
    if alert:
        background.add_task(notifier.notify_strategy_subscribers, strategy_id, "new_position", alert)
    return out


@router.post("/positions/{position_id}/close", response_model=PositionOut)
def close_position(
    position_id: str,
    payload: ClosePositionIn,
    user: CurrentUser = Depends(require_advisor),
    svc=Depends(get_strategy_service),
):
    with session_scope() as session:
        position = svc.close_position(session, position_id, user.sub, payload.exit_price, is_admin=user.is_admin)
        return PositionOut.model_validate(position)
