# src/alphamarket/application/services/advisor_service.py
"""Public advisor directory, investor questions and the advisor's own profile."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import UserRole, LIVE_CALL_BUCKETS, live_call_buckets
from alphamarket.domain.errors import DomainError, NotFoundError
from alphamarket.infrastructure.db.models import AdvisorQuestion, User
from alphamarket.infrastructure.db.repository import ContentRepository, StrategyRepository, UserRepository

log = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "company_name", "overview", "themes", "logo_url", "sebi_cert_url",
    "sebi_reg_number", "phone", "agreement_consent",
)


class AdvisorService:

    def list_advisors(self, session: Session) -> List[Tuple[User, int]]:
        """Approved advisors, each with its number of Published strategies."""
        live = StrategyRepository(session).count_published_by_advisor()
        return [(a, live.get(a.id, 0)) for a in UserRepository(session).list_advisors(approved_only=True)]

    def get_advisor(self, session: Session, advisor_id: str) -> User:
        advisor = UserRepository(session).find_by_id(advisor_id)
        if not advisor or advisor.role != UserRole.ADVISOR:
            raise NotFoundError("Advisor not found")
        return advisor

    def ask_question(self, session: Session, advisor_id: str, data: Dict[str, Any], user_id: Optional[str] = None) -> AdvisorQuestion:
        advisor = self.get_advisor(session, advisor_id)
        name = (data.get("name") or "").strip()
        email = (data.get("email") or "").strip()
        question = (data.get("question") or "").strip()
        if not (name and email and question):
            raise DomainError("Name, email and question are required")
        row = ContentRepository(session).add(AdvisorQuestion(
            advisor_id=advisor.id,
            user_id=user_id,
            name=name,
            email=email,
            phone=(data.get("phone") or None),
            question=question,
        ))
        log.info(f"Question {row.id} received for advisor {advisor.id}")
        return row

    def live_call_counts(self, session: Session) -> Dict[str, int]:
        repo = StrategyRepository(session)
        strategies = repo.list_published()
        active = repo.count_active_calls_by_strategy([s.id for s in strategies])
        counts = {bucket: 0 for bucket in LIVE_CALL_BUCKETS}
        for s in strategies:
            n = active.get(s.id, 0)
            for bucket in live_call_buckets(s.type.value, s.horizon):
                counts[bucket] += n
        counts["Multi Leg"] = repo.count_active_multi_leg_positions([s.id for s in strategies])
        return counts

    def update_profile(self, session: Session, user_id: str, data: Dict[str, Any]) -> User:
        user = UserRepository(session).find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        for field in PROFILE_FIELDS:
            if field in data:
                setattr(user, field, data[field])
        if data.get("agreement_consent") and not user.agreement_consent_date:
            user.agreement_consent_date = utcnow()
        session.flush()
        return user
