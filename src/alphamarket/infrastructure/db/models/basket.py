# src/alphamarket/infrastructure/db/models/basket.py
"""
Basket strategies hold a weighted portfolio instead of individual calls.
Every rebalance is a new version; constituents hang off the rebalance.
"""

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, Numeric, func
from sqlalchemy.orm import relationship

from alphamarket.domain.clock import utcnow
from .base import Base, JSONType, new_id


class BasketRebalance(Base):
    __tablename__ = 'basket_rebalances'

    id = Column(String(36), primary_key=True, default=new_id)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    effective_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    constituents = relationship("BasketConstituent", back_populates="rebalance", cascade="all, delete-orphan")


class BasketConstituent(Base):
    __tablename__ = 'basket_constituents'

    id = Column(String(36), primary_key=True, default=new_id)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="CASCADE"), nullable=False, index=True)
    rebalance_id = Column(String(36), ForeignKey('basket_rebalances.id', ondelete="CASCADE"), nullable=False, index=True)
    symbol = Column(String(64), nullable=False)
    exchange = Column(String(8), nullable=False, default="NSE", server_default="NSE")
    weight_percent = Column(Numeric(6, 2), nullable=False)
    quantity = Column(Integer, nullable=True)
    price_at_rebalance = Column(Numeric(14, 2), nullable=True)
    action = Column(String(16), nullable=True)

    rebalance = relationship("BasketRebalance", back_populates="constituents")


class BasketRationale(Base):
    __tablename__ = 'basket_rationales'

    id = Column(String(36), primary_key=True, default=new_id)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    category = Column(String(32), nullable=False, default="general", server_default="general")
    attachments = Column(JSONType, nullable=True, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class BasketNavSnapshot(Base):
    __tablename__ = 'basket_nav_snapshots'

    id = Column(String(36), primary_key=True, default=new_id)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="CASCADE"), nullable=False, index=True)
    as_of_date = Column(Date, nullable=False)
    nav = Column(Numeric(14, 4), nullable=False)
    total_return = Column(Numeric(8, 2), nullable=True)
    daily_return = Column(Numeric(8, 2), nullable=True)
