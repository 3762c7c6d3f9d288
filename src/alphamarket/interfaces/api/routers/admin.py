# File: src/alphamarket/interfaces/api/routers/admin.py
"""Platform administration. Every route needs the ADMIN role."""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import (
    CurrentUser,
    get_admin_service,
    get_market_data_service,
    get_notification_service,
    get_strategy_service,
    require_admin,
)
from alphamarket.interfaces.api.schemas import (
    AdminUserUpdateIn, BroadcastIn, GrowwTokenIn, StrategyIn, StrategyOut, UserOut,
)

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


# --- Users ---

@router.get("/users", response_model=List[UserOut])
def list_users(svc=Depends(get_admin_service)):
    with session_scope() as session:
        return [UserOut.model_validate(u) for u in svc.list_users(session)]


@router.patch("/users/{user_id}", response_model=UserOut)
def update_user(user_id: str, payload: AdminUserUpdateIn, svc=Depends(get_admin_service)):
    with session_scope() as session:
        return UserOut.model_validate(svc.update_user(session, user_id, payload.model_dump(exclude_unset=True)))


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: CurrentUser = Depends(require_admin), svc=Depends(get_admin_service)):
    with session_scope() as session:
        svc.delete_user(session, user_id, admin.sub)
    return {"ok": True}


# --- Strategies ---

@router.get("/strategies", response_model=List[StrategyOut])
def list_strategies(svc=Depends(get_strategy_service)):
    with session_scope() as session:
        return [StrategyOut.model_validate(s) for s in svc.list_all(session)]


@router.patch("/strategies/{strategy_id}", response_model=StrategyOut)
def update_strategy(
    strategy_id: str,
    payload: StrategyIn,
    admin: CurrentUser = Depends(require_admin),
    svc=Depends(get_strategy_service),
):
    with session_scope() as session:
        strategy = svc.update(session, strategy_id, admin.sub, payload.model_dump(exclude_unset=True), is_admin=True)
        return StrategyOut.model_validate(strategy)


@router.delete("/strategies/{strategy_id}")
def delete_strategy(strategy_id: str, admin: CurrentUser = Depends(require_admin), svc=Depends(get_strategy_service)):
    with session_scope() as session:
        svc.delete(session, strategy_id, admin.sub, is_admin=True)
    log.info(f"Admin {admin.sub} deleted strategy {strategy_id}")
    return {"ok": True}


# --- Market data token ---

@router.post("/groww-token")
def set_groww_token(payload: GrowwTokenIn, market=Depends(get_market_data_service)) -> Dict[str, Any]:
    return market.set_token(payload.token)


@router.get("/groww-token-status")
def groww_token_status(market=Depends(get_market_data_service)) -> Dict[str, Any]:
    return market.token_status()


# --- Broadcasts ---

@router.post("/notifications")
async def broadcast(payload: BroadcastIn, notifier=Depends(get_notification_service)):
    sent = await notifier.broadcast(payload.scope, payload.title, payload.body, url=payload.url)
    return {"ok": True, "sent": sent}
