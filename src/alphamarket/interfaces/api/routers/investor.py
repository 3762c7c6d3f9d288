# File: src/alphamarket/interfaces/api/routers/investor.py
"""The investor dashboard: subscriptions, the recommendation feed and the watchlist."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import (
    CurrentUser, get_investor_service, get_subscription_service, require_user,
)
from alphamarket.interfaces.api.schemas import (
    FeedCallOut, FeedPositionOut, RecommendationsOut, StrategyOut, UserOut,
    WatchlistEntryOut, WatchlistIn, merge,
)

router = APIRouter(prefix="/api/investor", tags=["Investor"])


@router.get("/subscriptions")
def my_subscriptions(user: CurrentUser = Depends(require_user), subs=Depends(get_subscription_service)) -> List[Dict[str, Any]]:
    with session_scope() as session:
        return subs.list_for_investor(session, user.sub)


@router.get("/recommendations", response_model=RecommendationsOut)
def recommendations(user: CurrentUser = Depends(require_user), svc=Depends(get_investor_service)):
    with session_scope() as session:
        feed = svc.recommendations(session, user.sub)
        return RecommendationsOut(
            calls=[FeedCallOut.model_validate(c) for c in feed["calls"]],
            positions=[FeedPositionOut.model_validate(p) for p in feed["positions"]],
        )


# --- Watchlist ---

@router.get("/watchlist", response_model=List[WatchlistEntryOut])
def watchlist(user: CurrentUser = Depends(require_user), svc=Depends(get_investor_service)):
    with session_scope() as session:
        return [
            merge(
                WatchlistEntryOut,
                entry["item"],
                strategy=StrategyOut.model_validate(entry["strategy"]) if entry["strategy"] else None,
                advisor=UserOut.model_validate(entry["advisor"]) if entry["advisor"] else None,
                new_calls=entry["new_calls"],
            )
            for entry in svc.watchlist(session, user.sub)
        ]


@router.get("/watchlist/ids")
def watchlist_ids(user: CurrentUser = Depends(require_user), svc=Depends(get_investor_service)) -> Dict[str, List[str]]:
    with session_scope() as session:
        return svc.watchlist_ids(session, user.sub)


@router.post("/watchlist", response_model=WatchlistEntryOut, status_code=status.HTTP_201_CREATED)
def add_to_watchlist(payload: WatchlistIn, user: CurrentUser = Depends(require_user), svc=Depends(get_investor_service)):
    with session_scope() as session:
        item = svc.add_to_watchlist(session, user.sub, payload.item_type, payload.item_id)
        return WatchlistEntryOut.model_validate(item)


@router.delete("/watchlist")
def remove_from_watchlist(payload: WatchlistIn, user: CurrentUser = Depends(require_user), svc=Depends(get_investor_service)):
    with session_scope() as session:
        removed = svc.remove_from_watchlist(session, user.sub, payload.item_type, payload.item_id)
    return {"ok": True, "removed": removed}
