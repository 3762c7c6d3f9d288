# src/alphamarket/application/services/subscription_service.py
"""
Advisor pricing plans and investor subscriptions.

A subscription is the entitlement record that eKYC, risk profiling and
payments hang off. It is created either directly (`subscribe`) or by a
settled payment.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow, as_utc
from alphamarket.domain.entities import SubscriptionStatus, to_decimal
from alphamarket.domain.errors import DomainError, NotFoundError, PermissionDeniedError
from alphamarket.infrastructure.db.models import Plan, Strategy, Subscription
from alphamarket.infrastructure.db.repository import (
    PlanRepository, StrategyRepository, SubscriptionRepository,
)

log = logging.getLogger(__name__)


class SubscriptionService:

    # --- Plans ---

    def list_plans(self, session: Session, advisor_id: str) -> List[Plan]:
        return PlanRepository(session).list_by_advisor(advisor_id)

    def create_plan(self, session: Session, advisor_id: str, data: Dict[str, Any]) -> Plan:
        name = (data.get("name") or "").strip()
        if not name:
            raise DomainError("Plan name is required")
        amount = to_decimal(data.get("amount"))
        if amount is None or amount < 0:
            raise DomainError("Plan amount must be zero or more")
        duration = data.get("duration_days")
        if duration is not None and int(duration) <= 0:
            raise DomainError("Plan duration must be a positive number of days")
        plan = PlanRepository(session).add(Plan(
            advisor_id=advisor_id,
            name=name,
            code=data.get("code"),
            amount=amount,
            duration_days=int(duration) if duration is not None else None,
        ))
        log.info(f"Plan '{plan.name}' created for advisor {advisor_id}")
        return plan

    def delete_plan(self, session: Session, plan_id: str, actor_id: str, is_admin: bool = False) -> None:
        repo = PlanRepository(session)
        plan = repo.get(plan_id)
        if not plan:
            raise NotFoundError("Plan not found")
        if not is_admin and plan.advisor_id != actor_id:
            raise PermissionDeniedError("You do not own this plan")
        repo.delete(plan)

    # --- Subscriptions ---

    @staticmethod
    def _expiry_for(plan: Optional[Plan], start: datetime) -> Optional[datetime]:
        if plan is None or not plan.duration_days:
            return None
        return start + timedelta(days=plan.duration_days)

    def create_for_plan(self, session: Session, user_id: str, strategy: Strategy, plan: Optional[Plan]) -> Subscription:
        """Returns the existing active subscription to `strategy` if there is one."""
        repo = SubscriptionRepository(session)
        existing = repo.find_active(user_id, strategy.id)
        if existing:
            return existing

        now = utcnow()
        subscription = repo.add(Subscription(
            plan_id=plan.id if plan else None,
            strategy_id=strategy.id,
            user_id=user_id,
            advisor_id=strategy.advisor_id,
            status=SubscriptionStatus.ACTIVE,
            ekyc_done=False,
            risk_profiling=False,
            expires_at=self._expiry_for(plan, now),
            created_at=now,
        ))
        log.info(f"Subscription {subscription.id} created: user={user_id} strategy={strategy.id}")
        return subscription

    def subscribe(self, session: Session, user_id: str, strategy_id: str) -> Subscription:
        strategy = StrategyRepository(session).get(strategy_id)
        if not strategy:
            raise NotFoundError("Strategy not found")
        plans = PlanRepository(session).list_by_advisor(strategy.advisor_id)
        if not plans:
            raise DomainError("No plans available")
        return self.create_for_plan(session, user_id, strategy, plans[0])

    def get_owned(self, session: Session, subscription_id: str, user_id: str) -> Subscription:
        subscription = SubscriptionRepository(session).get(subscription_id)
        # Someone else's subscription is reported as missing, not forbidden.
        if not subscription or subscription.user_id != user_id:
            raise NotFoundError("Subscription not found")
        return subscription

    def list_for_advisor(self, session: Session, advisor_id: str) -> List[Subscription]:
        return SubscriptionRepository(session).list_by_advisor(advisor_id)

    def list_for_investor(self, session: Session, user_id: str) -> List[Dict[str, Any]]:
        rows = []
        for sub in SubscriptionRepository(session).list_by_user(user_id):
            strategy, plan, advisor = sub.strategy, sub.plan, sub.advisor
            rows.append({
                "id": sub.id,
                "strategyId": sub.strategy_id,
                "planId": sub.plan_id,
                "advisorId": sub.advisor_id,
                "status": sub.status.value,
                "ekycDone": sub.ekyc_done,
                "riskProfiling": sub.risk_profiling,
                "expiresAt": sub.expires_at.isoformat() if sub.expires_at else None,
                "createdAt": sub.created_at.isoformat() if sub.created_at else None,
                "strategyName": strategy.name if strategy else None,
                "strategyType": strategy.type.value if strategy else None,
                "strategyCagr": float(strategy.cagr) if strategy and strategy.cagr is not None else None,
                "strategyHorizon": strategy.horizon if strategy else None,
                "strategyRisk": strategy.risk_level if strategy else None,
                "strategyStatus": strategy.status.value if strategy else None,
                "strategyDescription": strategy.description if strategy else None,
                "advisorName": advisor.display_name if advisor else None,
                "advisorSebi": advisor.sebi_reg_number if advisor else None,
                "planName": plan.name if plan else None,
                "planDuration": plan.duration_days if plan else None,
                "planPrice": float(plan.amount) if plan else None,
            })
        return rows

    def expire_due(self, session: Session, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        expired = 0
        for sub in SubscriptionRepository(session).list_expired_active(now):
            if as_utc(sub.expires_at) < now:
                sub.status = SubscriptionStatus.EXPIRED
                expired += 1
        if expired:
            session.flush()
            log.info(f"Expired {expired} subscriptions")
        return expired
