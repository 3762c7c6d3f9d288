# File: src/alphamarket/infrastructure/db/performance_repository.py
"""
Read-side queries for strategy performance. Calls and positions are merged
into one "closed trades" set: only rows with status Closed and a computed
`gain_percent` count.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, case, union_all, literal
from sqlalchemy.orm import Session

from alphamarket.domain.entities import CallStatus, ClosedTrade, to_decimal
from .models import Call, Position

log = logging.getLogger(__name__)


class PerformanceRepository:
    def __init__(self, session: Session):
        self.session = session

    def _closed_trades_cte(self, strategy_id: str, since: Optional[datetime] = None):
        calls = select(
            literal("call").label("kind"),
            Call.id.label("id"),
            Call.stock_name.label("label"),
            Call.gain_percent.label("gain_percent"),
            Call.exit_date.label("exit_date"),
        ).where(
            Call.strategy_id == strategy_id,
            Call.status == CallStatus.CLOSED,
            Call.gain_percent.is_not(None),
        )
        positions = select(
            literal("position").label("kind"),
            Position.id.label("id"),
            Position.symbol.label("label"),
            Position.gain_percent.label("gain_percent"),
            Position.exit_date.label("exit_date"),
        ).where(
            Position.strategy_id == strategy_id,
            Position.status == CallStatus.CLOSED,
            Position.gain_percent.is_not(None),
        )
        if since is not None:
            calls = calls.where(Call.exit_date >= since)
            positions = positions.where(Position.exit_date >= since)
        return union_all(calls, positions).cte("closed_trades")

    def list_closed_trades(self, strategy_id: str) -> List[ClosedTrade]:
        cte = self._closed_trades_cte(strategy_id)
        rows = self.session.execute(select(cte)).all()
        return [
            ClosedTrade(
                kind=row.kind,
                id=row.id,
                label=row.label,
                gain_percent=to_decimal(row.gain_percent, Decimal("0")),
                exit_date=row.exit_date,
            )
            for row in rows
        ]

    def get_summary(self, strategy_id: str, since: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Aggregate counts and gain sums for closed trades whose exit date is on
        or after `since` (all closed trades when `since` is None).
        """
        cte = self._closed_trades_cte(strategy_id, since)
        stmt = select(
            func.count(cte.c.gain_percent).label("closed_count"),
            func.sum(case((cte.c.gain_percent > 0, 1), else_=0)).label("profitable_count"),
            func.sum(cte.c.gain_percent).label("total_gain"),
        ).select_from(cte)

        result = self.session.execute(stmt).first()
        if result and result.closed_count:
            summary = dict(result._mapping)
            summary["profitable_count"] = int(summary["profitable_count"] or 0)
            summary["total_gain"] = to_decimal(summary["total_gain"], Decimal("0"))
            return summary

        return {"closed_count": 0, "profitable_count": 0, "total_gain": Decimal("0")}
