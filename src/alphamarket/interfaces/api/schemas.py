# --- START OF FILE: src/alphamarket/interfaces/api/schemas.py ---
"""
Request and response models for the HTTP API.

The browser client speaks camelCase, the services speak snake_case: every
model carries a camelCase alias and accepts either spelling on input.
Routers hand input models to services with `model_dump(exclude_unset=True)`
so partial updates only touch the fields the client sent.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

M = TypeVar("M", bound=BaseModel)

# Prices arrive as numbers or numeric strings; services coerce them.
Number = Optional[Union[float, str]]


def _to_str(v: Any) -> str | None:
    if v is None: return None
    if hasattr(v, "value"): return str(v.value)
    return str(v)

def _to_float(v: Any) -> float | None:
    if v is None: return None
    if hasattr(v, "value"): v = getattr(v, "value")
    return float(v)


class APIModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


def merge(model_cls: Type[M], obj: Any, **extra: Any) -> M:
    """Build `model_cls` from an ORM row plus computed extras."""
    data = {name: getattr(obj, name) for name in model_cls.model_fields if name not in extra and hasattr(obj, name)}
    data.update(extra)
    return model_cls.model_validate(data, from_attributes=True)


# --- Users ---

class UserOut(APIModel):
    """A user without credentials."""
    id: str
    username: str
    email: str
    phone: Optional[str] = None
    role: str
    company_name: Optional[str] = None
    overview: Optional[str] = None
    themes: Optional[List[str]] = None
    logo_url: Optional[str] = None
    sebi_cert_url: Optional[str] = None
    sebi_reg_number: Optional[str] = None
    is_registered: bool = False
    is_approved: bool = False
    agreement_consent: bool = False
    agreement_consent_date: Optional[datetime] = None
    active_since: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("role", mode="before")
    def _v_role(cls, v): return _to_str(v) or ""


class AdvisorListItem(UserOut):
    live_strategies: int = 0


class RegisterIn(APIModel):
    username: str
    email: EmailStr
    password: str
    phone: Optional[str] = None
    role: Optional[str] = None
    company_name: Optional[str] = None
    sebi_reg_number: Optional[str] = None
    sebi_cert_url: Optional[str] = None


class LoginIn(APIModel):
    username: str
    password: str


class AuthOut(APIModel):
    user: UserOut
    token: str


class ForgotPasswordIn(APIModel):
    email: str


class ResetPasswordIn(APIModel):
    token: str
    password: str


class ProfileIn(APIModel):
    company_name: Optional[str] = None
    overview: Optional[str] = None
    themes: Optional[List[str]] = None
    logo_url: Optional[str] = None
    sebi_cert_url: Optional[str] = None
    sebi_reg_number: Optional[str] = None
    phone: Optional[str] = None
    agreement_consent: Optional[bool] = None


class AdminUserUpdateIn(ProfileIn):
    is_approved: Optional[bool] = None
    is_registered: Optional[bool] = None


# --- Strategies, calls, positions ---

class StrategyBase(APIModel):
    id: str
    advisor_id: str
    name: str
    type: str
    description: Optional[str] = None
    status: str
    theme: Optional[List[str]] = None
    management_style: Optional[str] = None
    horizon: Optional[str] = None
    key_sectors: Optional[List[str]] = None
    volatility: Optional[str] = None
    risk_level: Optional[str] = None
    benchmark: Optional[str] = None
    minimum_investment: Optional[float] = None
    cagr: Optional[float] = None
    plan_ids: Optional[List[str]] = None
    total_recommendations: int = 0
    stocks_in_buy_zone: int = 0
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @field_validator("type", "status", mode="before")
    def _v_enum(cls, v): return _to_str(v) or ""
    @field_validator("minimum_investment", "cagr", mode="before")
    def _v_num(cls, v): return _to_float(v)


class StrategyOut(StrategyBase):
    advisor: Optional[UserOut] = None


class StrategyIn(APIModel):
    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    theme: Optional[List[str]] = None
    management_style: Optional[str] = None
    horizon: Optional[str] = None
    key_sectors: Optional[List[str]] = None
    volatility: Optional[str] = None
    risk_level: Optional[str] = None
    benchmark: Optional[str] = None
    minimum_investment: Number = None
    cagr: Number = None
    plan_ids: Optional[List[str]] = None
    stocks_in_buy_zone: Optional[int] = None


class CallOut(APIModel):
    id: str
    strategy_id: str
    stock_name: str
    action: str
    buy_range_start: Optional[float] = None
    buy_range_end: Optional[float] = None
    target_price: Optional[float] = None
    profit_goal: Optional[float] = None
    stop_loss: Optional[float] = None
    rationale: Optional[str] = None
    status: str
    entry_price: Optional[float] = None
    sell_price: Optional[float] = None
    gain_percent: Optional[float] = None
    call_date: Optional[datetime] = None
    exit_date: Optional[datetime] = None
    is_published: bool = True
    created_at: Optional[datetime] = None

    @field_validator("action", "status", mode="before")
    def _v_enum(cls, v): return _to_str(v) or ""
    @field_validator(
        "buy_range_start", "buy_range_end", "target_price", "profit_goal", "stop_loss",
        "entry_price", "sell_price", "gain_percent", mode="before",
    )
    def _v_num(cls, v): return _to_float(v)


class FeedCallOut(CallOut):
    strategy_name: Optional[str] = None
    advisor_name: Optional[str] = None


class CallIn(APIModel):
    stock_name: Optional[str] = None
    action: Optional[str] = None
    buy_range_start: Number = None
    buy_range_end: Number = None
    target_price: Number = None
    profit_goal: Number = None
    stop_loss: Number = None
    rationale: Optional[str] = None
    entry_price: Number = None
    call_date: Optional[datetime] = None
    is_published: Optional[bool] = None


class CloseCallIn(APIModel):
    sell_price: Union[float, str]


class PositionOut(APIModel):
    id: str
    strategy_id: str
    segment: str
    call_put: Optional[str] = None
    buy_sell: str
    symbol: str
    expiry: Optional[str] = None
    strike_price: Optional[float] = None
    entry_price: Optional[float] = None
    lots: Optional[int] = None
    target: Optional[float] = None
    stop_loss: Optional[float] = None
    rationale: Optional[str] = None
    status: str
    is_published: bool = False
    publish_mode: str = "draft"
    enable_leg: bool = False
    use_percentage: bool = False
    exit_price: Optional[float] = None
    exit_date: Optional[datetime] = None
    gain_percent: Optional[float] = None
    created_at: Optional[datetime] = None

    @field_validator("buy_sell", "status", mode="before")
    def _v_enum(cls, v): return _to_str(v) or ""
    @field_validator("strike_price", "entry_price", "target", "stop_loss", "exit_price", "gain_percent", mode="before")
    def _v_num(cls, v): return _to_float(v)


class FeedPositionOut(PositionOut):
    strategy_name: Optional[str] = None
    advisor_name: Optional[str] = None


class PositionIn(APIModel):
    segment: Optional[str] = None
    call_put: Optional[str] = None
    buy_sell: Optional[str] = None
    symbol: Optional[str] = None
    expiry: Optional[str] = None
    strike_price: Number = None
    entry_price: Number = None
    lots: Optional[int] = None
    target: Number = None
    stop_loss: Number = None
    rationale: Optional[str] = None
    is_published: Optional[bool] = None
    publish_mode: Optional[str] = None
    enable_leg: Optional[bool] = None
    use_percentage: Optional[bool] = None


class ClosePositionIn(APIModel):
    exit_price: Union[float, str]


class RecommendationsOut(APIModel):
    calls: List[FeedCallOut]
    positions: List[FeedPositionOut]


# --- Plans, subscriptions, payments ---

class PlanOut(APIModel):
    id: str
    advisor_id: str
    name: str
    code: Optional[str] = None
    amount: float
    duration_days: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator("amount", mode="before")
    def _v_amount(cls, v): return _to_float(v)


class PlanIn(APIModel):
    name: str
    code: Optional[str] = None
    amount: Union[float, str]
    duration_days: Optional[int] = None


class SubscriptionOut(APIModel):
    id: str
    plan_id: Optional[str] = None
    strategy_id: Optional[str] = None
    user_id: str
    advisor_id: str
    status: str
    ekyc_done: bool = False
    risk_profiling: bool = False
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    def _v_status(cls, v): return _to_str(v) or ""


class SubscriberOut(SubscriptionOut):
    """Advisor's view of a subscription: who subscribed, to what."""
    user: Optional[UserOut] = None
    plan: Optional[PlanOut] = None
    strategy: Optional[StrategyBase] = None


class PaymentOut(APIModel):
    id: str
    order_id: str
    strategy_id: Optional[str] = None
    plan_id: Optional[str] = None
    subscription_id: Optional[str] = None
    amount: float
    currency: str
    status: str
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    def _v_status(cls, v): return _to_str(v) or ""
    @field_validator("amount", mode="before")
    def _v_amount(cls, v): return _to_float(v)


class CreateOrderIn(APIModel):
    strategy_id: str
    plan_id: str


class VerifyPaymentIn(APIModel):
    order_id: str
    wait: bool = False


# --- eKYC ---

class AadhaarOtpIn(APIModel):
    subscription_id: str
    aadhaar_number: str


class AadhaarVerifyIn(APIModel):
    subscription_id: str
    reference_id: str
    otp: str


class PanVerifyIn(APIModel):
    subscription_id: str
    pan: str
    name_as_pan: str
    date_of_birth: str


# --- Content, scores, questions ---

class ContentOut(APIModel):
    id: str
    advisor_id: str
    title: str
    type: str
    body: Optional[str] = None
    attachments: Optional[List[str]] = None
    created_at: Optional[datetime] = None


class ContentDetailOut(ContentOut):
    advisor: Optional[UserOut] = None


class ContentIn(APIModel):
    title: str
    type: Optional[str] = None
    body: Optional[str] = None
    attachments: Optional[List[str]] = None


class ScoreOut(APIModel):
    id: str
    advisor_id: str
    beginning_of_month: int
    received_during: int
    resolved_during: int
    pending_at_end: int
    pendency_reasons: Optional[str] = None
    month: Optional[str] = None
    created_at: Optional[datetime] = None


class ScoreIn(APIModel):
    beginning_of_month: Optional[int] = None
    received_during: Optional[int] = None
    resolved_during: Optional[int] = None
    pending_at_end: Optional[int] = None
    pendency_reasons: Optional[str] = None
    month: Optional[str] = None


class QuestionOut(APIModel):
    id: str
    advisor_id: str
    user_id: Optional[str] = None
    name: str
    email: str
    phone: Optional[str] = None
    question: str
    answer: Optional[str] = None
    is_read: bool = False
    answered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class QuestionIn(APIModel):
    name: str
    email: str
    phone: Optional[str] = None
    question: str


class QuestionUpdateIn(APIModel):
    answer: Optional[str] = None
    is_read: Optional[bool] = None


class AdvisorDetailOut(UserOut):
    strategies: List[StrategyBase] = []
    contents: List[ContentOut] = []
    scores: List[ScoreOut] = []


# --- Watchlist ---

class WatchlistIn(APIModel):
    item_type: str
    item_id: str


class WatchlistEntryOut(APIModel):
    id: str
    item_type: str
    item_id: str
    created_at: Optional[datetime] = None
    strategy: Optional[StrategyOut] = None
    advisor: Optional[UserOut] = None
    new_calls: int = 0

    @field_validator("item_type", mode="before")
    def _v_type(cls, v): return _to_str(v) or ""


# --- Notifications ---

class PushKeys(APIModel):
    p256dh: str
    auth: str


class PushSubscribeIn(APIModel):
    endpoint: str
    keys: PushKeys


class PushUnsubscribeIn(APIModel):
    endpoint: str


class BroadcastIn(APIModel):
    scope: str
    title: str
    body: str
    url: Optional[str] = None


class NotificationOut(APIModel):
    id: str
    type: str
    title: str
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    target_scope: str
    strategy_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("target_scope", mode="before")
    def _v_scope(cls, v): return _to_str(v) or ""


# --- Market data ---

class SymbolRef(APIModel):
    symbol: str
    strategy_type: Optional[str] = None


class BulkPricesIn(APIModel):
    symbols: List[Union[SymbolRef, str]] = Field(default_factory=list)


class GrowwTokenIn(APIModel):
    token: str


# --- Baskets ---

class ConstituentIn(APIModel):
    symbol: str
    exchange: Optional[str] = None
    weight_percent: Union[float, str]
    quantity: Optional[int] = None
    price_at_rebalance: Number = None
    action: Optional[str] = None


class RebalanceIn(APIModel):
    constituents: List[ConstituentIn]
    notes: Optional[str] = None


class ConstituentOut(APIModel):
    id: str
    symbol: str
    exchange: str
    weight_percent: float
    quantity: Optional[int] = None
    price_at_rebalance: Optional[float] = None
    action: Optional[str] = None

    @field_validator("weight_percent", "price_at_rebalance", mode="before")
    def _v_num(cls, v): return _to_float(v)


class RebalanceOut(APIModel):
    id: str
    strategy_id: str
    version: int
    effective_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    constituents: List[ConstituentOut] = []


class RationaleIn(APIModel):
    title: str
    body: Optional[str] = None
    category: Optional[str] = None
    attachments: Optional[List[str]] = None


class RationaleOut(APIModel):
    id: str
    strategy_id: str
    title: str
    body: Optional[str] = None
    category: str
    attachments: Optional[List[str]] = None
    created_at: Optional[datetime] = None


class NavIn(APIModel):
    as_of_date: Optional[date] = None
    nav: Union[float, str]
    total_return: Number = None
    daily_return: Number = None


class NavOut(APIModel):
    id: str
    strategy_id: str
    as_of_date: date
    nav: float
    total_return: Optional[float] = None
    daily_return: Optional[float] = None

    @field_validator("nav", "total_return", "daily_return", mode="before")
    def _v_num(cls, v): return _to_float(v)


class BasketOut(APIModel):
    strategy: StrategyBase
    rebalance: Optional[RebalanceOut] = None
    rationales: List[RationaleOut] = []
    nav: List[NavOut] = []
# --- END OF FILE ---
