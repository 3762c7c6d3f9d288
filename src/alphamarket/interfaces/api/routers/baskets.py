# File: src/alphamarket/interfaces/api/routers/baskets.py
from fastapi import APIRouter, Depends, status

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import CurrentUser, get_basket_service, require_advisor
from alphamarket.interfaces.api.schemas import (
    BasketOut, NavIn, NavOut, RationaleIn, RationaleOut, RebalanceIn, RebalanceOut,
)

router = APIRouter(prefix="/api/strategies/{strategy_id}/basket", tags=["Baskets"])


@router.get("", response_model=BasketOut)
def get_basket(strategy_id: str, svc=Depends(get_basket_service)):
    with session_scope() as session:
        return BasketOut.model_validate(svc.get_basket(session, strategy_id), from_attributes=True)


@router.post("/rebalance", response_model=RebalanceOut, status_code=status.HTTP_201_CREATED)
def rebalance(
    strategy_id: str,
    payload: RebalanceIn,
    user: CurrentUser = Depends(require_advisor),
    svc=Depends(get_basket_service),
):
    with session_scope() as session:
        row = svc.rebalance(
            session,
            strategy_id,
            user.sub,
            [c.model_dump() for c in payload.constituents],
            notes=payload.notes,
            is_admin=user.is_admin,
        )
        return RebalanceOut.model_validate(row)


@router.post("/rationales", response_model=RationaleOut, status_code=status.HTTP_201_CREATED)
def add_rationale(
    strategy_id: str,
    payload: RationaleIn,
    user: CurrentUser = Depends(require_advisor),
    svc=Depends(get_basket_service),
):
    with session_scope() as session:
        row = svc.add_rationale(session, strategy_id, user.sub, payload.model_dump(exclude_unset=True), is_admin=user.is_admin)
        return RationaleOut.model_validate(row)


@router.post("/nav", response_model=NavOut, status_code=status.HTTP_201_CREATED)
def add_nav_snapshot(
    strategy_id: str,
    payload: NavIn,
    user: CurrentUser = Depends(require_advisor),
    svc=Depends(get_basket_service),
):
    with session_scope() as session:
        row = svc.add_nav_snapshot(session, strategy_id, user.sub, payload.model_dump(exclude_unset=True), is_admin=user.is_admin)
        return NavOut.model_validate(row)
