# src/alphamarket/domain/entities.py
"""
Core business vocabulary: status enums shared by the ORM and the API, plus
the few pieces of logic that do not need a database (gain arithmetic, the
eKYC step machine, live-call bucketing).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, List, Optional

from .errors import DomainError

# --- ENUMERATIONS ---

class UserRole(Enum):
    ADVISOR = "advisor"
    INVESTOR = "investor"
    ADMIN = "admin"

class StrategyType(Enum):
    EQUITY = "Equity"
    BASKET = "Basket"
    FUTURE = "Future"
    COMMODITY = "Commodity"
    COMMODITY_FUTURE = "CommodityFuture"
    OPTION = "Option"

class StrategyStatus(Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"

class CallStatus(Enum):
    """Lifecycle of a call or a position."""
    ACTIVE = "Active"
    CLOSED = "Closed"

class TradeAction(Enum):
    BUY = "Buy"
    SELL = "Sell"

class SubscriptionStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

class PaymentStatus(Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    FAILED = "FAILED"

class EkycKind(Enum):
    AADHAAR = "aadhaar"
    PAN = "pan"

class EkycStatus(Enum):
    PENDING = "pending"
    OTP_SENT = "otp_sent"
    VERIFIED = "verified"
    FAILED = "failed"

class EkycStep(Enum):
    AADHAAR = "aadhaar"
    PAN = "pan"
    COMPLETE = "complete"

class WatchlistItemType(Enum):
    STRATEGY = "strategy"
    ADVISOR = "advisor"

class NotificationScope(Enum):
    STRATEGY_SUBSCRIBERS = "strategy_subscribers"
    ALL_USERS = "all_users"
    ALL_VISITORS = "all_visitors"

class RiskCategory(Enum):
    CONSERVATIVE = "Conservative"
    MODERATELY_CONSERVATIVE = "Moderately Conservative"
    MODERATE = "Moderate"
    AGGRESSIVE = "Aggressive"
    VERY_AGGRESSIVE = "Very Aggressive"

    @classmethod
    def from_score(cls, overall: int) -> "RiskCategory":
        if overall <= 20:
            return cls.CONSERVATIVE
        if overall <= 40:
            return cls.MODERATELY_CONSERVATIVE
        if overall <= 60:
            return cls.MODERATE
        if overall <= 80:
            return cls.AGGRESSIVE
        return cls.VERY_AGGRESSIVE


HIT_RATE_TYPES = {StrategyType.FUTURE.value, StrategyType.OPTION.value}
COMMODITY_TYPES = {StrategyType.COMMODITY.value, StrategyType.COMMODITY_FUTURE.value}
LIVE_CALL_BUCKETS = ("Intraday", "F&O", "Swing", "Positional", "Multi Leg", "Commodities", "Basket")

# --- HELPERS ---

def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    try:
        d = Decimal(str(value))
        return d if d.is_finite() else default
    except (InvalidOperation, TypeError, ValueError):
        return default


def gain_percent(action: str, entry: Any, exit_price: Any) -> Decimal:
    """
    Percentage move from entry to exit, signed from the recommender's side:
    a falling price is a gain for a Sell call.
    """
    entry_d = to_decimal(entry, Decimal("0"))
    exit_d = to_decimal(exit_price, Decimal("0"))
    if entry_d <= 0:
        return Decimal("0.00")
    move = (exit_d - entry_d) / entry_d * 100
    if str(action or "").strip().lower() == TradeAction.SELL.value.lower():
        move = -move
    return move.quantize(Decimal("0.01"), ROUND_HALF_UP)


def is_hit_rate_strategy(strategy_type: Optional[str], horizon: Optional[str]) -> bool:
    """F&O and intraday strategies are judged by hit rate, the rest by absolute return."""
    return strategy_type in HIT_RATE_TYPES or "intraday" in (horizon or "").lower()


def live_call_buckets(strategy_type: Optional[str], horizon: Optional[str]) -> List[str]:
    """Marketplace buckets a strategy's active calls are counted under. Buckets overlap."""
    h = (horizon or "").lower()
    buckets = []
    if "intraday" in h:
        buckets.append("Intraday")
    if strategy_type in HIT_RATE_TYPES:
        buckets.append("F&O")
    if "swing" in h:
        buckets.append("Swing")
    if "positional" in h or "long term" in h:
        buckets.append("Positional")
    if strategy_type in COMMODITY_TYPES:
        buckets.append("Commodities")
    if strategy_type == StrategyType.BASKET.value:
        buckets.append("Basket")
    return buckets

# --- ENTITIES ---

@dataclass
class ClosedTrade:
    """A closed call or position, flattened for performance aggregation."""
    kind: str  # "call" | "position"
    id: str
    label: str
    gain_percent: Decimal
    exit_date: Optional[datetime] = None

    @property
    def is_profitable(self) -> bool:
        return self.gain_percent > 0

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "id": self.id,
            "label": self.label,
            "gainPercent": float(self.gain_percent),
            "exitDate": self.exit_date.isoformat() if self.exit_date else None,
        }


@dataclass
class EkycProgress:
    """
    Linear eKYC state machine: aadhaar -> pan -> complete.
    Built from the latest verification row of each kind.
    """
    aadhaar_status: Optional[str] = None
    pan_status: Optional[str] = None

    @property
    def aadhaar_verified(self) -> bool:
        return self.aadhaar_status == EkycStatus.VERIFIED.value

    @property
    def pan_verified(self) -> bool:
        return self.pan_status == EkycStatus.VERIFIED.value

    @property
    def step(self) -> EkycStep:
        if not self.aadhaar_verified:
            return EkycStep.AADHAAR
        if not self.pan_verified:
            return EkycStep.PAN
        return EkycStep.COMPLETE

    @property
    def is_complete(self) -> bool:
        return self.step == EkycStep.COMPLETE

    def ensure_can_send_aadhaar_otp(self) -> None:
        if self.aadhaar_verified:
            raise DomainError("Aadhaar is already verified for this subscription")

    def ensure_can_verify_pan(self) -> None:
        if not self.aadhaar_verified:
            raise DomainError("Complete Aadhaar verification before PAN verification")
        if self.pan_verified:
            raise DomainError("PAN is already verified for this subscription")
