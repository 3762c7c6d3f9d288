# File: src/alphamarket/application/services/performance_service.py
"""
Strategy performance report.

Aggregates closed calls and positions (those with a computed gain) overall
and over trailing windows. F&O and intraday strategies are presented by hit
rate, the rest by absolute return; both numbers are always returned.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import ClosedTrade, is_hit_rate_strategy
from alphamarket.domain.errors import NotFoundError
from alphamarket.infrastructure.db.models import Strategy
from alphamarket.infrastructure.db.performance_repository import PerformanceRepository

log = logging.getLogger(__name__)

# (label, trailing days); None means all time.
PERIODS = (
    ("1W", 7),
    ("1M", 30),
    ("3M", 90),
    ("6M", 180),
    ("1Y", 365),
    ("3Y", 1095),
    ("Max", None),
)

_CENT = Decimal("0.01")


def _r2(value: Decimal) -> float:
    return float(value.quantize(_CENT, ROUND_HALF_UP))


def build_metrics(summary: Dict[str, Any]) -> Dict[str, Any]:
    closed = int(summary.get("closed_count") or 0)
    profitable = int(summary.get("profitable_count") or 0)
    total_gain = summary.get("total_gain") or Decimal("0")
    if closed == 0:
        return {"closedCount": 0, "profitableCount": 0, "lossCount": 0,
                "hitRate": 0.0, "absoluteReturn": 0.0, "avgReturn": 0.0}
    return {
        "closedCount": closed,
        "profitableCount": profitable,
        "lossCount": closed - profitable,
        "hitRate": _r2(Decimal(profitable) / Decimal(closed) * 100),
        "absoluteReturn": _r2(total_gain),
        "avgReturn": _r2(total_gain / Decimal(closed)),
    }


def pick_extremes(trades: List[ClosedTrade]) -> Dict[str, Optional[Dict[str, Any]]]:
    best = max(trades, key=lambda t: t.gain_percent, default=None)
    worst = min(trades, key=lambda t: t.gain_percent, default=None)
    return {
        "maxProfit": best.to_dict() if best is not None and best.gain_percent > 0 else None,
        "maxDrawdown": worst.to_dict() if worst is not None and worst.gain_percent < 0 else None,
    }


class PerformanceService:
    def __init__(self, repo_class: type[PerformanceRepository] = PerformanceRepository):
        self.repo_class = repo_class

    def strategy_performance(self, session: Session, strategy_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        strategy = session.get(Strategy, strategy_id)
        if not strategy:
            raise NotFoundError("Strategy not found")

        now = now or utcnow()
        repo = self.repo_class(session)
        periods = []
        totals = None
        for label, days in PERIODS:
            since = now - timedelta(days=days) if days is not None else None
            metrics = build_metrics(repo.get_summary(strategy.id, since))
            if days is None:
                totals = metrics
            periods.append({"label": label, **{k: v for k, v in metrics.items() if k != "lossCount"}})

        report = {
            "strategyId": strategy.id,
            "strategyType": strategy.type.value,
            "isHitRateStrategy": is_hit_rate_strategy(strategy.type.value, strategy.horizon),
            "totals": totals,
            "periods": periods,
            **pick_extremes(repo.list_closed_trades(strategy.id)),
        }
        log.debug(f"Performance for strategy {strategy.id}: {totals}")
        return report
