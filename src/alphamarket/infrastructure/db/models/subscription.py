# src/alphamarket/infrastructure/db/models/subscription.py
"""
Investor-side entitlement records: subscriptions, the payments that create
them, the eKYC/risk-profiling evidence attached to them, and watchlists.
"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean,
    ForeignKey, Numeric, UniqueConstraint, func
)
from sqlalchemy.orm import relationship

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import (
    SubscriptionStatus, PaymentStatus, EkycKind, EkycStatus, WatchlistItemType
)
from .base import Base, JSONType, new_id, enum_column


class Subscription(Base):
    __tablename__ = 'subscriptions'

    id = Column(String(36), primary_key=True, default=new_id)
    plan_id = Column(String(36), ForeignKey('plans.id', ondelete="SET NULL"), nullable=True, index=True)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    advisor_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    status = Column(enum_column(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, server_default=SubscriptionStatus.ACTIVE.value)
    ekyc_done = Column(Boolean, default=False, server_default='false', nullable=False)
    risk_profiling = Column(Boolean, default=False, server_default='false', nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    plan = relationship("Plan")
    strategy = relationship("Strategy")
    user = relationship("User", foreign_keys=[user_id])
    advisor = relationship("User", foreign_keys=[advisor_id])

    def __repr__(self):
        return f"<Subscription(id={self.id}, user={self.user_id}, strategy={self.strategy_id}, status='{self.status.value if self.status else None}')>"


class Payment(Base):
    __tablename__ = 'payments'

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="SET NULL"), nullable=True)
    plan_id = Column(String(36), ForeignKey('plans.id', ondelete="SET NULL"), nullable=True)
    advisor_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="INR", server_default="INR")
    status = Column(enum_column(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, server_default=PaymentStatus.PENDING.value, index=True)
    payment_session_id = Column(String(255), nullable=True)
    payment_method = Column(String(64), nullable=True)
    cf_payment_id = Column(String(64), nullable=True)
    subscription_id = Column(String(36), ForeignKey('subscriptions.id', ondelete="SET NULL"), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    strategy = relationship("Strategy")
    plan = relationship("Plan")
    subscription = relationship("Subscription")


class EkycVerification(Base):
    __tablename__ = 'ekyc_verifications'

    id = Column(String(36), primary_key=True, default=new_id)
    subscription_id = Column(String(36), ForeignKey('subscriptions.id', ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(enum_column(EkycKind), nullable=False)
    status = Column(enum_column(EkycStatus), nullable=False, default=EkycStatus.PENDING, server_default=EkycStatus.PENDING.value)
    # Aadhaar
    reference_id = Column(String(64), nullable=True)
    aadhaar_last4 = Column(String(4), nullable=True)
    name = Column(String(255), nullable=True)
    dob = Column(String(32), nullable=True)
    gender = Column(String(16), nullable=True)
    address = Column(Text, nullable=True)
    # PAN
    pan_number = Column(String(10), nullable=True)
    pan_name = Column(String(255), nullable=True)
    pan_category = Column(String(32), nullable=True)
    name_match = Column(Boolean, nullable=True)
    dob_match = Column(Boolean, nullable=True)
    aadhaar_linked = Column(Boolean, nullable=True)

    transaction_id = Column(String(64), nullable=True)
    failure_reason = Column(Text, nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    subscription = relationship("Subscription")


class RiskProfile(Base):
    __tablename__ = 'risk_profiles'

    id = Column(String(36), primary_key=True, default=new_id)
    subscription_id = Column(String(36), ForeignKey('subscriptions.id', ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    advisor_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=True)
    answers = Column(JSONType, nullable=False, default=dict)
    capacity_score = Column(Integer, nullable=False)
    tolerance_score = Column(Integer, nullable=False)
    overall_score = Column(Integer, nullable=False)
    risk_category = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class WatchlistItem(Base):
    __tablename__ = 'watchlist'
    __table_args__ = (UniqueConstraint('user_id', 'item_type', 'item_id', name='uq_watchlist_user_item'),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    item_type = Column(enum_column(WatchlistItemType), nullable=False)
    item_id = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
