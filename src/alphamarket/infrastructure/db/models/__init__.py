# --- src/alphamarket/infrastructure/db/models/__init__.py ---
"""
Imports every ORM model so that `Base.metadata` is complete for Alembic,
`create_tables()` and the test fixtures.
"""

from .base import Base
from .auth import User, PasswordResetToken
from .strategy import Strategy, Call, Position, Plan
from .subscription import Subscription, Payment, EkycVerification, RiskProfile, WatchlistItem
from .content import Content, Score, AdvisorQuestion
from .notification import Notification, PushSubscription
from .basket import BasketRebalance, BasketConstituent, BasketRationale, BasketNavSnapshot

__all__ = [
    "Base",
    "User",
    "PasswordResetToken",
    "Strategy",
    "Call",
    "Position",
    "Plan",
    "Subscription",
    "Payment",
    "EkycVerification",
    "RiskProfile",
    "WatchlistItem",
    "Content",
    "Score",
    "AdvisorQuestion",
    "Notification",
    "PushSubscription",
    "BasketRebalance",
    "BasketConstituent",
    "BasketRationale",
    "BasketNavSnapshot",
]
