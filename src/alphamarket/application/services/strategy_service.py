# src/alphamarket/application/services/strategy_service.py
"""
Strategy catalogue and the recommendations published under it.

Write operations are restricted to the owning advisor (admins may act on
any strategy). Closing a call or position computes its `gain_percent`,
which is what the performance report aggregates.
"""

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import (
    StrategyType, StrategyStatus, CallStatus, TradeAction, gain_percent, to_decimal,
)
from alphamarket.domain.errors import DomainError, NotFoundError, PermissionDeniedError
from alphamarket.infrastructure.db.models import Strategy, Call, Position
from alphamarket.infrastructure.db.repository import StrategyRepository
from .notification_service import build_payload

log = logging.getLogger(__name__)

INTRADAY_HORIZON = "Intraday"

STRATEGY_FIELDS = (
    "name", "type", "description", "status", "theme", "management_style", "horizon",
    "key_sectors", "volatility", "risk_level", "benchmark", "minimum_investment", "cagr",
    "plan_ids", "stocks_in_buy_zone",
)
CALL_FIELDS = (
    "stock_name", "action", "buy_range_start", "buy_range_end", "target_price", "profit_goal",
    "stop_loss", "rationale", "entry_price", "call_date", "is_published",
)
POSITION_FIELDS = (
    "segment", "call_put", "buy_sell", "symbol", "expiry", "strike_price", "entry_price", "lots",
    "target", "stop_loss", "rationale", "is_published", "publish_mode", "enable_leg", "use_percentage",
)
DECIMAL_FIELDS = {
    "minimum_investment", "cagr", "buy_range_start", "buy_range_end", "target_price", "profit_goal",
    "stop_loss", "entry_price", "strike_price", "target",
}
ENUM_FIELDS: Dict[str, Type[Enum]] = {
    "type": StrategyType,
    "status": StrategyStatus,
    "action": TradeAction,
    "buy_sell": TradeAction,
}


def _coerce(field: str, value: Any) -> Any:
    if value is None:
        return None
    enum_cls = ENUM_FIELDS.get(field)
    if enum_cls is not None:
        try:
            return enum_cls(value.value if isinstance(value, Enum) else value)
        except ValueError:
            allowed = ", ".join(m.value for m in enum_cls)
            raise DomainError(f"Invalid {field} '{value}'. Allowed: {allowed}")
    if field in DECIMAL_FIELDS:
        d = to_decimal(value)
        if d is None:
            raise DomainError(f"Invalid number for {field}: {value!r}")
        return d
    return value


def _apply(obj: Any, fields: tuple, data: Dict[str, Any]) -> None:
    columns = obj.__table__.columns
    for field in fields:
        if field not in data:
            continue
        value = data[field]
        if value is None and not columns[field].nullable:
            raise DomainError(f"{field} cannot be empty")
        setattr(obj, field, _coerce(field, value))


class StrategyService:

    # --- Reads ---

    def list_public(self, session: Session) -> List[Strategy]:
        return StrategyRepository(session).list_published()

    def list_all(self, session: Session) -> List[Strategy]:
        return StrategyRepository(session).list_all()

    def list_by_advisor(self, session: Session, advisor_id: str) -> List[Strategy]:
        return StrategyRepository(session).list_by_advisor(advisor_id)

    def get(self, session: Session, strategy_id: str) -> Strategy:
        strategy = StrategyRepository(session).get(strategy_id)
        if not strategy:
            raise NotFoundError("Strategy not found")
        return strategy

    def list_calls(self, session: Session, strategy_id: str) -> List[Call]:
        return StrategyRepository(session).list_calls(strategy_id)

    def list_positions(self, session: Session, strategy_id: str) -> List[Position]:
        return StrategyRepository(session).list_positions(strategy_id)

    # --- Ownership ---

    def get_owned(self, session: Session, strategy_id: str, actor_id: str, is_admin: bool = False) -> Strategy:
        strategy = self.get(session, strategy_id)
        if not is_admin and strategy.advisor_id != actor_id:
            raise PermissionDeniedError("You do not own this strategy")
        return strategy

    # --- Strategy writes ---

    def create(self, session: Session, advisor_id: str, data: Dict[str, Any]) -> Strategy:
        if not (data.get("name") or "").strip():
            raise DomainError("Strategy name is required")
        strategy = Strategy(advisor_id=advisor_id)
        _apply(strategy, STRATEGY_FIELDS, data)
        StrategyRepository(session).add(strategy)
        log.info(f"Strategy created: '{strategy.name}' (id={strategy.id}) by advisor {advisor_id}")
        return strategy

    def update(self, session: Session, strategy_id: str, actor_id: str, data: Dict[str, Any], is_admin: bool = False) -> Strategy:
        strategy = self.get_owned(session, strategy_id, actor_id, is_admin)
        _apply(strategy, STRATEGY_FIELDS, data)
        strategy.modified_at = utcnow()
        session.flush()
        return strategy

    def delete(self, session: Session, strategy_id: str, actor_id: str, is_admin: bool = False) -> None:
        strategy = self.get_owned(session, strategy_id, actor_id, is_admin)
        StrategyRepository(session).delete(strategy)
        log.info(f"Strategy deleted: {strategy_id}")

    # --- Calls ---

    def add_call(self, session: Session, strategy_id: str, actor_id: str, data: Dict[str, Any], is_admin: bool = False) -> Call:
        strategy = self.get_owned(session, strategy_id, actor_id, is_admin)
        if not (data.get("stock_name") or "").strip():
            raise DomainError("Stock name is required")
        call = Call(strategy_id=strategy.id, status=CallStatus.ACTIVE)
        _apply(call, CALL_FIELDS, data)
        if call.call_date is None:
            call.call_date = utcnow()
        StrategyRepository(session).add_call(call)
        strategy.total_recommendations = (strategy.total_recommendations or 0) + 1
        session.flush()
        log.info(f"Call added to strategy {strategy.id}: {call.stock_name} ({call.action.value})")
        return call

    def _owned_call(self, session: Session, call_id: str, actor_id: str, is_admin: bool) -> Call:
        call = StrategyRepository(session).get_call(call_id)
        if not call:
            raise NotFoundError("Call not found")
        self.get_owned(session, call.strategy_id, actor_id, is_admin)
        return call

    def update_call(self, session: Session, call_id: str, actor_id: str, data: Dict[str, Any], is_admin: bool = False) -> Call:
        call = self._owned_call(session, call_id, actor_id, is_admin)
        _apply(call, CALL_FIELDS, data)
        session.flush()
        return call

    def close_call(self, session: Session, call_id: str, actor_id: str, sell_price: Any, is_admin: bool = False) -> Call:
        call = self._owned_call(session, call_id, actor_id, is_admin)
        if call.status == CallStatus.CLOSED:
            return call
        exit_price = to_decimal(sell_price)
        if exit_price is None or exit_price < 0:
            raise DomainError("A valid sell price is required")
        call.sell_price = exit_price
        call.gain_percent = gain_percent(call.action.value, call.effective_entry, exit_price)
        call.status = CallStatus.CLOSED
        call.exit_date = utcnow()
        session.flush()
        log.info(f"Call {call.id} closed at {exit_price} ({call.gain_percent}%)")
        return call

    # --- Positions ---

    def add_position(self, session: Session, strategy_id: str, actor_id: str, data: Dict[str, Any], is_admin: bool = False) -> Position:
        strategy = self.get_owned(session, strategy_id, actor_id, is_admin)
        if not (data.get("symbol") or "").strip():
            raise DomainError("Symbol is required")
        position = Position(strategy_id=strategy.id, status=CallStatus.ACTIVE)
        _apply(position, POSITION_FIELDS, data)
        if "is_published" not in data and position.publish_mode == "publish":
            position.is_published = True
        StrategyRepository(session).add_position(position)
        log.info(f"Position added to strategy {strategy.id}: {position.label}")
        return position

    def close_position(self, session: Session, position_id: str, actor_id: str, exit_price: Any, is_admin: bool = False) -> Position:
        position = StrategyRepository(session).get_position(position_id)
        if not position:
            raise NotFoundError("Position not found")
        self.get_owned(session, position.strategy_id, actor_id, is_admin)
        if position.status == CallStatus.CLOSED:
            return position
        price = to_decimal(exit_price)
        if price is None or price < 0:
            raise DomainError("A valid exit price is required")
        position.exit_price = price
        position.gain_percent = gain_percent(position.buy_sell.value, position.entry_price, price)
        position.status = CallStatus.CLOSED
        position.exit_date = utcnow()
        session.flush()
        return position

    # --- Intraday square-off ---

    def square_off_intraday(self, session: Session, now: Optional[datetime] = None) -> Tuple[int, int]:
        """
        Close every Active call and position of Intraday strategies. Calls
        exit flat at their entry (buy range start, else 0).
        """
        now = now or utcnow()
        repo = StrategyRepository(session)
        closed_calls = closed_positions = 0
        for strategy in repo.list_by_horizon(INTRADAY_HORIZON):
            for call in repo.list_active_calls(strategy.id):
                entry = call.effective_entry
                call.sell_price = entry if entry is not None else Decimal("0")
                call.gain_percent = Decimal("0")
                call.status = CallStatus.CLOSED
                call.exit_date = now
                closed_calls += 1
                log.info(f"Auto-squared off intraday call {call.id} ({call.stock_name})")
            for position in repo.list_active_positions(strategy.id):
                position.status = CallStatus.CLOSED
                position.exit_date = now
                closed_positions += 1
                log.info(f"Auto-squared off intraday position {position.id} ({position.symbol})")
        session.flush()
        return closed_calls, closed_positions

    # --- Alerts ---

    @staticmethod
    def call_alert(strategy: Strategy, call: Call) -> Dict[str, Any]:
        parts = [f"{call.action.value} {call.stock_name}"]
        if call.buy_range_start is not None:
            rng = f"{call.buy_range_start}"
            if call.buy_range_end is not None:
                rng += f"-{call.buy_range_end}"
            parts.append(f"Range {rng}")
        if call.target_price is not None:
            parts.append(f"Target {call.target_price}")
        if call.stop_loss is not None:
            parts.append(f"SL {call.stop_loss}")
        return build_payload(
            title=f"New Call: {strategy.name}",
            body=" | ".join(parts),
            url=f"/strategies/{strategy.id}",
            tag=f"call-{call.id}",
            data={"strategyId": strategy.id, "callId": call.id},
        )

    @staticmethod
    def position_alert(strategy: Strategy, position: Position) -> Dict[str, Any]:
        body = f"{position.buy_sell.value} {position.label}"
        if position.entry_price is not None:
            body += f" @ {position.entry_price}"
        return build_payload(
            title=f"New Position: {strategy.name}",
            body=body,
            url=f"/strategies/{strategy.id}",
            tag=f"position-{position.id}",
            data={"strategyId": strategy.id, "positionId": position.id},
        )
