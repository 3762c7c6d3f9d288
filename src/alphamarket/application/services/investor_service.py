# src/alphamarket/application/services/investor_service.py
"""
Investor dashboard: recommendations from subscribed strategies and the
watchlist.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from alphamarket.domain.entities import UserRole, WatchlistItemType
from alphamarket.domain.errors import DomainError
from alphamarket.infrastructure.db.models import Subscription, WatchlistItem
from alphamarket.infrastructure.db.repository import (
    StrategyRepository, SubscriptionRepository, UserRepository, WatchlistRepository,
)
from .risk_profile_service import RiskProfileService

log = logging.getLogger(__name__)


def is_onboarded(subscription: Subscription) -> bool:
    """eKYC done, and risk profiling done when the advisor is an Investment Adviser."""
    if not subscription.ekyc_done:
        return False
    advisor = subscription.advisor
    if advisor and RiskProfileService.requires_profiling(advisor.sebi_reg_number):
        return bool(subscription.risk_profiling)
    return True


def _item_type(value: str) -> WatchlistItemType:
    try:
        return WatchlistItemType(value)
    except ValueError:
        raise DomainError("itemType must be 'strategy' or 'advisor'")


class InvestorService:

    def recommendations(self, session: Session, user_id: str) -> Dict[str, List[Any]]:
        subs = SubscriptionRepository(session).list_active_by_user(user_id)
        strategy_ids = sorted({s.strategy_id for s in subs if s.strategy_id and is_onboarded(s)})
        repo = StrategyRepository(session)
        return {
            "calls": repo.list_published_calls_for(strategy_ids),
            "positions": repo.list_published_positions_for(strategy_ids),
        }

    # --- Watchlist ---

    def watchlist(self, session: Session, user_id: str) -> List[Dict[str, Any]]:
        strategies = StrategyRepository(session)
        users = UserRepository(session)
        rows = []
        for item in WatchlistRepository(session).list_by_user(user_id):
            entry: Dict[str, Any] = {"item": item, "strategy": None, "advisor": None, "new_calls": 0}
            if item.item_type == WatchlistItemType.STRATEGY:
                strategy = strategies.get(item.item_id)
                if strategy is None:
                    continue
                entry["strategy"] = strategy
                entry["new_calls"] = strategies.count_calls_since(strategy.id, item.created_at)
            else:
                advisor = users.find_by_id(item.item_id)
                if advisor is None:
                    continue
                entry["advisor"] = advisor
            rows.append(entry)
        return rows

    def watchlist_ids(self, session: Session, user_id: str) -> Dict[str, List[str]]:
        ids: Dict[str, List[str]] = {"strategies": [], "advisors": []}
        for item in WatchlistRepository(session).list_by_user(user_id):
            key = "strategies" if item.item_type == WatchlistItemType.STRATEGY else "advisors"
            ids[key].append(item.item_id)
        return ids

    def add_to_watchlist(self, session: Session, user_id: str, item_type: str, item_id: str) -> WatchlistItem:
        kind = _item_type(item_type)
        repo = WatchlistRepository(session)
        existing = repo.find(user_id, kind, item_id)
        if existing:
            return existing
        if kind == WatchlistItemType.STRATEGY:
            exists = StrategyRepository(session).get(item_id) is not None
        else:
            advisor = UserRepository(session).find_by_id(item_id)
            exists = advisor is not None and advisor.role == UserRole.ADVISOR
        if not exists:
            raise DomainError(f"Unknown {kind.value}")
        return repo.add(WatchlistItem(user_id=user_id, item_type=kind, item_id=item_id))

    def remove_from_watchlist(self, session: Session, user_id: str, item_type: str, item_id: str) -> bool:
        repo = WatchlistRepository(session)
        item = repo.find(user_id, _item_type(item_type), item_id)
        if not item:
            return False
        repo.delete(item)
        return True
