# src/alphamarket/infrastructure/db/models/strategy.py
"""
Strategies and the recommendations published under them.

A `Call` is a single cash/commodity trade idea; a `Position` is a derivatives
leg (optionally part of a multi-leg setup). Both close with a `gain_percent`
that feeds the performance report.
"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean,
    ForeignKey, Numeric, func
)
from sqlalchemy.orm import relationship

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import (
    StrategyType, StrategyStatus, CallStatus, TradeAction
)
from .base import Base, JSONType, new_id, enum_column


class Strategy(Base):
    __tablename__ = 'strategies'

    id = Column(String(36), primary_key=True, default=new_id)
    advisor_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(enum_column(StrategyType), nullable=False, default=StrategyType.EQUITY, server_default=StrategyType.EQUITY.value)
    description = Column(Text, nullable=True)
    status = Column(enum_column(StrategyStatus), nullable=False, default=StrategyStatus.DRAFT, server_default=StrategyStatus.DRAFT.value, index=True)
    theme = Column(JSONType, nullable=True, default=list)
    management_style = Column(String(64), nullable=True)
    horizon = Column(String(64), nullable=True)
    key_sectors = Column(JSONType, nullable=True, default=list)
    volatility = Column(String(32), nullable=True)
    risk_level = Column(String(32), nullable=True)
    benchmark = Column(String(64), nullable=True)
    minimum_investment = Column(Numeric(14, 2), nullable=True)
    cagr = Column(Numeric(8, 2), nullable=True)
    plan_ids = Column(JSONType, nullable=True, default=list)
    total_recommendations = Column(Integer, default=0, server_default='0', nullable=False)
    stocks_in_buy_zone = Column(Integer, default=0, server_default='0', nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    modified_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)

    advisor = relationship("User", back_populates="strategies")
    calls = relationship("Call", back_populates="strategy", cascade="all, delete-orphan")
    positions = relationship("Position", back_populates="strategy", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Strategy(id={self.id}, name='{self.name}', status='{self.status.value if self.status else None}')>"


class Call(Base):
    __tablename__ = 'calls'

    id = Column(String(36), primary_key=True, default=new_id)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="CASCADE"), nullable=False, index=True)
    stock_name = Column(String(64), nullable=False)
    action = Column(enum_column(TradeAction), nullable=False, default=TradeAction.BUY, server_default=TradeAction.BUY.value)
    buy_range_start = Column(Numeric(14, 2), nullable=True)
    buy_range_end = Column(Numeric(14, 2), nullable=True)
    target_price = Column(Numeric(14, 2), nullable=True)
    profit_goal = Column(Numeric(8, 2), nullable=True)
    stop_loss = Column(Numeric(14, 2), nullable=True)
    rationale = Column(Text, nullable=True)
    status = Column(enum_column(CallStatus), nullable=False, default=CallStatus.ACTIVE, server_default=CallStatus.ACTIVE.value, index=True)
    entry_price = Column(Numeric(14, 2), nullable=True)
    sell_price = Column(Numeric(14, 2), nullable=True)
    gain_percent = Column(Numeric(8, 2), nullable=True)
    call_date = Column(DateTime(timezone=True), default=utcnow, nullable=True)
    exit_date = Column(DateTime(timezone=True), nullable=True)
    is_published = Column(Boolean, default=True, server_default='true', nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    strategy = relationship("Strategy", back_populates="calls")

    @property
    def effective_entry(self):
        return self.entry_price if self.entry_price is not None else self.buy_range_start

    @property
    def strategy_name(self):
        return self.strategy.name if self.strategy else None

    @property
    def advisor_name(self):
        return self.strategy.advisor.display_name if self.strategy and self.strategy.advisor else None


class Position(Base):
    __tablename__ = 'positions'

    id = Column(String(36), primary_key=True, default=new_id)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="CASCADE"), nullable=False, index=True)
    segment = Column(String(32), nullable=False, default="Equity", server_default="Equity")
    call_put = Column(String(8), nullable=True)
    buy_sell = Column(enum_column(TradeAction), nullable=False, default=TradeAction.BUY, server_default=TradeAction.BUY.value)
    symbol = Column(String(64), nullable=False)
    expiry = Column(String(32), nullable=True)
    strike_price = Column(Numeric(14, 2), nullable=True)
    entry_price = Column(Numeric(14, 2), nullable=True)
    lots = Column(Integer, nullable=True)
    target = Column(Numeric(14, 2), nullable=True)
    stop_loss = Column(Numeric(14, 2), nullable=True)
    rationale = Column(Text, nullable=True)
    status = Column(enum_column(CallStatus), nullable=False, default=CallStatus.ACTIVE, server_default=CallStatus.ACTIVE.value, index=True)
    is_published = Column(Boolean, default=False, server_default='false', nullable=False)
    publish_mode = Column(String(16), nullable=False, default="draft", server_default="draft")
    enable_leg = Column(Boolean, default=False, server_default='false', nullable=False)
    use_percentage = Column(Boolean, default=False, server_default='false', nullable=False)
    exit_price = Column(Numeric(14, 2), nullable=True)
    exit_date = Column(DateTime(timezone=True), nullable=True)
    gain_percent = Column(Numeric(8, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    strategy = relationship("Strategy", back_populates="positions")

    @property
    def label(self) -> str:
        parts = [self.symbol, self.expiry, str(self.strike_price) if self.strike_price is not None else None, self.call_put]
        return " ".join(p for p in parts if p)

    @property
    def strategy_name(self):
        return self.strategy.name if self.strategy else None

    @property
    def advisor_name(self):
        return self.strategy.advisor.display_name if self.strategy and self.strategy.advisor else None


class Plan(Base):
    __tablename__ = 'plans'

    id = Column(String(36), primary_key=True, default=new_id)
    advisor_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    code = Column(String(32), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    duration_days = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    advisor = relationship("User", back_populates="plans")
