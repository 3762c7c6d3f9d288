# src/alphamarket/application/services/basket_service.py
"""
Basket strategies: versioned rebalances of a weighted portfolio, the
advisor's rationale notes and the NAV series.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import StrategyType, to_decimal
from alphamarket.domain.errors import DomainError
from alphamarket.infrastructure.db.models import (
    BasketConstituent, BasketNavSnapshot, BasketRationale, BasketRebalance, Strategy,
)
from alphamarket.infrastructure.db.repository import BasketRepository
from .strategy_service import StrategyService

log = logging.getLogger(__name__)

WEIGHT_TOLERANCE = Decimal("0.01")


def validate_weights(constituents: List[Dict[str, Any]]) -> None:
    if not constituents:
        raise DomainError("A basket needs at least one constituent")
    total = Decimal("0")
    symbols = set()
    for c in constituents:
        symbol = (c.get("symbol") or "").strip().upper()
        if not symbol:
            raise DomainError("Every constituent needs a symbol")
        if symbol in symbols:
            raise DomainError(f"Duplicate constituent {symbol}")
        symbols.add(symbol)
        weight = to_decimal(c.get("weight_percent"))
        if weight is None or weight <= 0:
            raise DomainError(f"Weight for {symbol} must be positive")
        total += weight
    if abs(total - 100) > WEIGHT_TOLERANCE:
        raise DomainError(f"Weights must add up to 100% (got {total}%)")


class BasketService:
    def __init__(self, strategy_service: StrategyService):
        self.strategies = strategy_service

    def _owned_basket(self, session: Session, strategy_id: str, actor_id: str, is_admin: bool) -> Strategy:
        strategy = self.strategies.get_owned(session, strategy_id, actor_id, is_admin)
        if strategy.type != StrategyType.BASKET:
            raise DomainError("Only Basket strategies can hold a basket")
        return strategy

    def get_basket(self, session: Session, strategy_id: str) -> Dict[str, Any]:
        strategy = self.strategies.get(session, strategy_id)
        repo = BasketRepository(session)
        return {
            "strategy": strategy,
            "rebalance": repo.latest_rebalance(strategy.id),
            "rationales": repo.list_rationales(strategy.id),
            "nav": repo.list_nav(strategy.id),
        }

    def rebalance(
        self,
        session: Session,
        strategy_id: str,
        actor_id: str,
        constituents: List[Dict[str, Any]],
        notes: Optional[str] = None,
        is_admin: bool = False,
    ) -> BasketRebalance:
        strategy = self._owned_basket(session, strategy_id, actor_id, is_admin)
        validate_weights(constituents)
        repo = BasketRepository(session)
        previous = repo.latest_rebalance(strategy.id)

        rebalance = repo.add(BasketRebalance(
            strategy_id=strategy.id,
            version=(previous.version + 1) if previous else 1,
            effective_date=utcnow(),
            notes=notes,
        ))
        for c in constituents:
            quantity = c.get("quantity")
            repo.add(BasketConstituent(
                strategy_id=strategy.id,
                rebalance_id=rebalance.id,
                symbol=c["symbol"].strip().upper(),
                exchange=(c.get("exchange") or "NSE").upper(),
                weight_percent=to_decimal(c["weight_percent"]),
                quantity=int(quantity) if quantity is not None else None,
                price_at_rebalance=to_decimal(c.get("price_at_rebalance")),
                action=c.get("action"),
            ))
        session.refresh(rebalance)
        log.info(f"Basket {strategy.id} rebalanced to v{rebalance.version} ({len(constituents)} constituents)")
        return rebalance

    def add_rationale(self, session: Session, strategy_id: str, actor_id: str, data: Dict[str, Any], is_admin: bool = False) -> BasketRationale:
        strategy = self._owned_basket(session, strategy_id, actor_id, is_admin)
        title = (data.get("title") or "").strip()
        if not title:
            raise DomainError("Title is required")
        return BasketRepository(session).add(BasketRationale(
            strategy_id=strategy.id,
            title=title,
            body=data.get("body"),
            category=data.get("category") or "general",
            attachments=data.get("attachments") or [],
        ))

    def add_nav_snapshot(self, session: Session, strategy_id: str, actor_id: str, data: Dict[str, Any], is_admin: bool = False) -> BasketNavSnapshot:
        strategy = self._owned_basket(session, strategy_id, actor_id, is_admin)
        nav = to_decimal(data.get("nav"))
        if nav is None or nav <= 0:
            raise DomainError("NAV must be a positive number")
        as_of = data.get("as_of_date") or date.today()
        if isinstance(as_of, str):
            try:
                as_of = date.fromisoformat(as_of)
            except ValueError:
                raise DomainError("as_of_date must be YYYY-MM-DD")
        return BasketRepository(session).add(BasketNavSnapshot(
            strategy_id=strategy.id,
            as_of_date=as_of,
            nav=nav,
            total_return=to_decimal(data.get("total_return")),
            daily_return=to_decimal(data.get("daily_return")),
        ))
