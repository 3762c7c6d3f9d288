# File: src/alphamarket/infrastructure/db/repository.py
"""
Session-bound repositories. Each one wraps the queries for a single
aggregate; services create them per unit of work: `UserRepository(session)`.
Repositories flush but never commit.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, func, or_, delete
from sqlalchemy.orm import Session, selectinload

from alphamarket.domain.entities import (
    UserRole, StrategyStatus, CallStatus, SubscriptionStatus, PaymentStatus,
    EkycKind, EkycStatus, WatchlistItemType, NotificationScope,
)
from .models import (
    User, PasswordResetToken, Strategy, Call, Position, Plan,
    Subscription, Payment, EkycVerification, RiskProfile, WatchlistItem,
    Content, Score, AdvisorQuestion, Notification, PushSubscription,
    BasketRebalance, BasketRationale, BasketNavSnapshot,
)

logger = logging.getLogger(__name__)


# ==========================================================
# USER REPOSITORY
# ==========================================================
class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def find_by_username(self, username: str) -> Optional[User]:
        return self.session.query(User).filter(User.username == username).first()

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    def add(self, user: User) -> User:
        self.session.add(user)
        self.session.flush()
        logger.info("Created user id=%s role=%s", user.id, user.role.value)
        return user

    def list_all(self) -> List[User]:
        return list(self.session.scalars(select(User).order_by(User.created_at.desc())))

    def list_advisors(self, approved_only: bool = True) -> List[User]:
        stmt = select(User).where(User.role == UserRole.ADVISOR)
        if approved_only:
            stmt = stmt.where(User.is_approved.is_(True))
        return list(self.session.scalars(stmt.order_by(User.created_at.desc())))

    def count_advisors(self) -> int:
        return self.session.scalar(select(func.count(User.id)).where(User.role == UserRole.ADVISOR)) or 0

    def delete(self, user: User) -> None:
        self.session.delete(user)
        self.session.flush()

    # --- Password reset ---
    def add_reset_token(self, user: User, token: str, expires_at: datetime) -> PasswordResetToken:
        row = PasswordResetToken(user_id=user.id, token=token, expires_at=expires_at)
        self.session.add(row)
        self.session.flush()
        return row

    def find_reset_token(self, token: str) -> Optional[PasswordResetToken]:
        return self.session.scalar(select(PasswordResetToken).where(PasswordResetToken.token == token))


# ==========================================================
# STRATEGY REPOSITORY (strategies, calls, positions)
# ==========================================================
class StrategyRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, strategy_id: str) -> Optional[Strategy]:
        return self.session.get(Strategy, strategy_id)

    def list_published(self) -> List[Strategy]:
        stmt = (
            select(Strategy)
            .options(selectinload(Strategy.advisor))
            .where(Strategy.status == StrategyStatus.PUBLISHED)
            .order_by(Strategy.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def list_all(self) -> List[Strategy]:
        stmt = select(Strategy).options(selectinload(Strategy.advisor)).order_by(Strategy.created_at.desc())
        return list(self.session.scalars(stmt))

    def list_by_advisor(self, advisor_id: str) -> List[Strategy]:
        stmt = select(Strategy).where(Strategy.advisor_id == advisor_id).order_by(Strategy.created_at.desc())
        return list(self.session.scalars(stmt))

    def count_published_by_advisor(self) -> dict:
        stmt = (
            select(Strategy.advisor_id, func.count(Strategy.id))
            .where(Strategy.status == StrategyStatus.PUBLISHED)
            .group_by(Strategy.advisor_id)
        )
        return {advisor_id: count for advisor_id, count in self.session.execute(stmt)}

    def list_by_horizon(self, horizon: str) -> List[Strategy]:
        return list(self.session.scalars(select(Strategy).where(Strategy.horizon == horizon)))

    def add(self, strategy: Strategy) -> Strategy:
        self.session.add(strategy)
        self.session.flush()
        return strategy

    def delete(self, strategy: Strategy) -> None:
        self.session.delete(strategy)
        self.session.flush()

    # --- Calls ---
    def get_call(self, call_id: str) -> Optional[Call]:
        return self.session.get(Call, call_id)

    def list_calls(self, strategy_id: str) -> List[Call]:
        stmt = select(Call).where(Call.strategy_id == strategy_id).order_by(Call.created_at.desc())
        return list(self.session.scalars(stmt))

    def list_active_calls(self, strategy_id: str) -> List[Call]:
        stmt = select(Call).where(Call.strategy_id == strategy_id, Call.status == CallStatus.ACTIVE)
        return list(self.session.scalars(stmt))

    def count_active_calls_by_strategy(self, strategy_ids: Sequence[str]) -> dict:
        if not strategy_ids:
            return {}
        stmt = (
            select(Call.strategy_id, func.count(Call.id))
            .where(Call.strategy_id.in_(strategy_ids), Call.status == CallStatus.ACTIVE)
            .group_by(Call.strategy_id)
        )
        return {sid: count for sid, count in self.session.execute(stmt)}

    def count_calls_since(self, strategy_id: str, since: datetime) -> int:
        stmt = select(func.count(Call.id)).where(Call.strategy_id == strategy_id, Call.created_at >= since)
        return self.session.scalar(stmt) or 0

    def list_published_calls_for(self, strategy_ids: Sequence[str]) -> List[Call]:
        if not strategy_ids:
            return []
        stmt = (
            select(Call)
            .where(Call.strategy_id.in_(strategy_ids), Call.is_published.is_(True))
            .order_by(Call.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def add_call(self, call: Call) -> Call:
        self.session.add(call)
        self.session.flush()
        return call

    # --- Positions ---
    def get_position(self, position_id: str) -> Optional[Position]:
        return self.session.get(Position, position_id)

    def list_positions(self, strategy_id: str) -> List[Position]:
        stmt = select(Position).where(Position.strategy_id == strategy_id).order_by(Position.created_at.desc())
        return list(self.session.scalars(stmt))

    def list_active_positions(self, strategy_id: str) -> List[Position]:
        stmt = select(Position).where(Position.strategy_id == strategy_id, Position.status == CallStatus.ACTIVE)
        return list(self.session.scalars(stmt))

    def count_active_multi_leg_positions(self, strategy_ids: Sequence[str]) -> int:
        if not strategy_ids:
            return 0
        stmt = select(func.count(Position.id)).where(
            Position.strategy_id.in_(strategy_ids),
            Position.status == CallStatus.ACTIVE,
            Position.enable_leg.is_(True),
        )
        return self.session.scalar(stmt) or 0

    def list_published_positions_for(self, strategy_ids: Sequence[str]) -> List[Position]:
        if not strategy_ids:
            return []
        stmt = (
            select(Position)
            .where(Position.strategy_id.in_(strategy_ids), Position.is_published.is_(True))
            .order_by(Position.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def add_position(self, position: Position) -> Position:
        self.session.add(position)
        self.session.flush()
        return position


# ==========================================================
# PLAN REPOSITORY
# ==========================================================
class PlanRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, plan_id: str) -> Optional[Plan]:
        return self.session.get(Plan, plan_id)

    def list_by_advisor(self, advisor_id: str) -> List[Plan]:
        stmt = select(Plan).where(Plan.advisor_id == advisor_id).order_by(Plan.created_at.desc())
        return list(self.session.scalars(stmt))

    def add(self, plan: Plan) -> Plan:
        self.session.add(plan)
        self.session.flush()
        return plan

    def delete(self, plan: Plan) -> None:
        self.session.delete(plan)
        self.session.flush()


# ==========================================================
# SUBSCRIPTION REPOSITORY
# ==========================================================
class SubscriptionRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, subscription_id: str) -> Optional[Subscription]:
        return self.session.get(Subscription, subscription_id)

    def add(self, subscription: Subscription) -> Subscription:
        self.session.add(subscription)
        self.session.flush()
        return subscription

    def find_active(self, user_id: str, strategy_id: str) -> Optional[Subscription]:
        stmt = select(Subscription).where(
            Subscription.user_id == user_id,
            Subscription.strategy_id == strategy_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        )
        return self.session.scalars(stmt).first()

    def list_by_user(self, user_id: str) -> List[Subscription]:
        stmt = (
            select(Subscription)
            .options(selectinload(Subscription.strategy), selectinload(Subscription.plan), selectinload(Subscription.advisor))
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def list_active_by_user(self, user_id: str) -> List[Subscription]:
        stmt = select(Subscription).where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        )
        return list(self.session.scalars(stmt))

    def list_by_advisor(self, advisor_id: str) -> List[Subscription]:
        stmt = (
            select(Subscription)
            .options(selectinload(Subscription.user), selectinload(Subscription.plan), selectinload(Subscription.strategy))
            .where(Subscription.advisor_id == advisor_id)
            .order_by(Subscription.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def active_subscriber_ids(self, strategy_id: str) -> List[str]:
        stmt = select(Subscription.user_id).where(
            Subscription.strategy_id == strategy_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        ).distinct()
        return list(self.session.scalars(stmt))

    def list_expired_active(self, now: datetime) -> List[Subscription]:
        stmt = select(Subscription).where(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.expires_at.is_not(None),
            Subscription.expires_at < now,
        )
        return list(self.session.scalars(stmt))

    def delete_for_user(self, user_id: str) -> None:
        self.session.execute(delete(Subscription).where(
            or_(Subscription.user_id == user_id, Subscription.advisor_id == user_id)
        ))


# ==========================================================
# PAYMENT REPOSITORY
# ==========================================================
class PaymentRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, payment: Payment) -> Payment:
        self.session.add(payment)
        self.session.flush()
        return payment

    def find_by_order_id(self, order_id: str) -> Optional[Payment]:
        return self.session.scalar(select(Payment).where(Payment.order_id == order_id))

    def list_by_user(self, user_id: str) -> List[Payment]:
        stmt = select(Payment).where(Payment.user_id == user_id).order_by(Payment.created_at.desc())
        return list(self.session.scalars(stmt))

    def list_by_advisor(self, advisor_id: str) -> List[Payment]:
        stmt = (
            select(Payment)
            .options(selectinload(Payment.user), selectinload(Payment.strategy), selectinload(Payment.plan))
            .where(Payment.advisor_id == advisor_id)
            .order_by(Payment.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def list_unsettled_before(self, cutoff: datetime, limit: int = 50) -> List[Payment]:
        stmt = (
            select(Payment)
            .where(
                Payment.status.in_([PaymentStatus.PENDING, PaymentStatus.ACTIVE]),
                Payment.created_at < cutoff,
            )
            .order_by(Payment.created_at)
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def delete_for_user(self, user_id: str) -> None:
        self.session.execute(delete(Payment).where(
            or_(Payment.user_id == user_id, Payment.advisor_id == user_id)
        ))


# ==========================================================
# EKYC / RISK REPOSITORY
# ==========================================================
class EkycRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, row: EkycVerification) -> EkycVerification:
        self.session.add(row)
        self.session.flush()
        return row

    def latest(self, subscription_id: str, kind: EkycKind) -> Optional[EkycVerification]:
        stmt = (
            select(EkycVerification)
            .where(EkycVerification.subscription_id == subscription_id, EkycVerification.kind == kind)
            .order_by(EkycVerification.created_at.desc())
        )
        return self.session.scalars(stmt).first()

    def find_verified(self, subscription_id: str, kind: EkycKind) -> Optional[EkycVerification]:
        stmt = select(EkycVerification).where(
            EkycVerification.subscription_id == subscription_id,
            EkycVerification.kind == kind,
            EkycVerification.status == EkycStatus.VERIFIED,
        )
        return self.session.scalars(stmt).first()

    def find_by_reference(self, subscription_id: str, reference_id: str) -> Optional[EkycVerification]:
        stmt = select(EkycVerification).where(
            EkycVerification.subscription_id == subscription_id,
            EkycVerification.kind == EkycKind.AADHAAR,
            EkycVerification.reference_id == str(reference_id),
        )
        return self.session.scalars(stmt).first()

    def add_risk_profile(self, profile: RiskProfile) -> RiskProfile:
        self.session.add(profile)
        self.session.flush()
        return profile

# ==========================================================
# CONTENT REPOSITORY (content, scores, questions)
# ==========================================================
class ContentRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, content_id: str) -> Optional[Content]:
        return self.session.get(Content, content_id)

    def list_by_type(self, content_type: str) -> List[Content]:
        stmt = (
            select(Content)
            .options(selectinload(Content.advisor))
            .where(Content.type == content_type)
            .order_by(Content.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def list_by_advisor(self, advisor_id: str) -> List[Content]:
        stmt = select(Content).where(Content.advisor_id == advisor_id).order_by(Content.created_at.desc())
        return list(self.session.scalars(stmt))

    def add(self, row):
        self.session.add(row)
        self.session.flush()
        return row

    def delete(self, row) -> None:
        self.session.delete(row)
        self.session.flush()

    def list_scores(self, advisor_id: str) -> List[Score]:
        stmt = select(Score).where(Score.advisor_id == advisor_id).order_by(Score.created_at.desc())
        return list(self.session.scalars(stmt))

    def get_question(self, question_id: str) -> Optional[AdvisorQuestion]:
        return self.session.get(AdvisorQuestion, question_id)

    def list_questions(self, advisor_id: str) -> List[AdvisorQuestion]:
        stmt = select(AdvisorQuestion).where(AdvisorQuestion.advisor_id == advisor_id).order_by(AdvisorQuestion.created_at.desc())
        return list(self.session.scalars(stmt))

    def count_unread_questions(self, advisor_id: str) -> int:
        stmt = select(func.count(AdvisorQuestion.id)).where(
            AdvisorQuestion.advisor_id == advisor_id,
            AdvisorQuestion.is_read.is_(False),
        )
        return self.session.scalar(stmt) or 0


# ==========================================================
# WATCHLIST REPOSITORY
# ==========================================================
class WatchlistRepository:
    def __init__(self, session: Session):
        self.session = session

    def list_by_user(self, user_id: str) -> List[WatchlistItem]:
        stmt = select(WatchlistItem).where(WatchlistItem.user_id == user_id).order_by(WatchlistItem.created_at.desc())
        return list(self.session.scalars(stmt))

    def find(self, user_id: str, item_type: WatchlistItemType, item_id: str) -> Optional[WatchlistItem]:
        stmt = select(WatchlistItem).where(
            WatchlistItem.user_id == user_id,
            WatchlistItem.item_type == item_type,
            WatchlistItem.item_id == item_id,
        )
        return self.session.scalars(stmt).first()

    def add(self, item: WatchlistItem) -> WatchlistItem:
        self.session.add(item)
        self.session.flush()
        return item

    def delete(self, item: WatchlistItem) -> None:
        self.session.delete(item)
        self.session.flush()


# ==========================================================
# NOTIFICATION REPOSITORY
# ==========================================================
class NotificationRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, notification: Notification) -> Notification:
        self.session.add(notification)
        self.session.flush()
        return notification

    def recent_for(self, strategy_ids: Sequence[str], signed_in: bool, limit: int = 20) -> List[Notification]:
        scopes = [Notification.target_scope == NotificationScope.ALL_VISITORS]
        if signed_in:
            scopes.append(Notification.target_scope == NotificationScope.ALL_USERS)
        if strategy_ids:
            scopes.append(
                (Notification.target_scope == NotificationScope.STRATEGY_SUBSCRIBERS)
                & Notification.strategy_id.in_(list(strategy_ids))
            )
        stmt = select(Notification).where(or_(*scopes)).order_by(Notification.created_at.desc()).limit(limit)
        return list(self.session.scalars(stmt))

    def find_push_subscription(self, endpoint: str) -> Optional[PushSubscription]:
        return self.session.scalar(select(PushSubscription).where(PushSubscription.endpoint == endpoint))

    def add_push_subscription(self, sub: PushSubscription) -> PushSubscription:
        self.session.add(sub)
        self.session.flush()
        return sub

    def delete_push_subscription(self, endpoint: str) -> int:
        result = self.session.execute(delete(PushSubscription).where(PushSubscription.endpoint == endpoint))
        return result.rowcount or 0

    def push_subscriptions_for_users(self, user_ids: Sequence[str]) -> List[PushSubscription]:
        if not user_ids:
            return []
        stmt = select(PushSubscription).where(PushSubscription.user_id.in_(list(user_ids)))
        return list(self.session.scalars(stmt))

    def all_push_subscriptions(self, signed_in_only: bool = False) -> List[PushSubscription]:
        stmt = select(PushSubscription)
        if signed_in_only:
            stmt = stmt.where(PushSubscription.user_id.is_not(None))
        return list(self.session.scalars(stmt))


# ==========================================================
# BASKET REPOSITORY
# ==========================================================
class BasketRepository:
    def __init__(self, session: Session):
        self.session = session

    def latest_rebalance(self, strategy_id: str) -> Optional[BasketRebalance]:
        stmt = (
            select(BasketRebalance)
            .options(selectinload(BasketRebalance.constituents))
            .where(BasketRebalance.strategy_id == strategy_id)
            .order_by(BasketRebalance.version.desc())
        )
        return self.session.scalars(stmt).first()

    def list_rationales(self, strategy_id: str) -> List[BasketRationale]:
        stmt = select(BasketRationale).where(BasketRationale.strategy_id == strategy_id).order_by(BasketRationale.created_at.desc())
        return list(self.session.scalars(stmt))

    def list_nav(self, strategy_id: str) -> List[BasketNavSnapshot]:
        stmt = select(BasketNavSnapshot).where(BasketNavSnapshot.strategy_id == strategy_id).order_by(BasketNavSnapshot.as_of_date)
        return list(self.session.scalars(stmt))

    def add(self, row):
        self.session.add(row)
        self.session.flush()
        return row
