# src/alphamarket/application/services/risk_profile_service.py
"""
Investor risk profiling for subscriptions to SEBI Investment Advisers.

The questionnaire is scored on two axes: risk *capacity* (what the investor
can afford to lose) and risk *tolerance* (what they are willing to lose).
Each axis is the sum of its answer ranks as a percentage of the maximum.
Informational answers (residency, occupation, source of funds...) are stored
with the profile but not scored.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.entities import RiskCategory
from alphamarket.domain.errors import DomainError
from alphamarket.infrastructure.db.models import RiskProfile
from alphamarket.infrastructure.db.repository import EkycRepository
from .subscription_service import SubscriptionService

log = logging.getLogger(__name__)

INVESTMENT_ADVISER_PREFIX = "INA"
REQUIRED_CONSENTS = ("declarationConfirm", "consentRiskProfile", "consentMarketRisk")

# --- Scoring tables: answer value -> rank ---

CAPACITY_FACTORS: Dict[str, Dict[str, int]] = {
    "annualIncome": {"below_3l": 0, "3l_10l": 1, "10l_25l": 2, "above_25l": 3},
    "investibleSurplus": {"below_1l": 0, "1l_5l": 1, "5l_25l": 2, "above_25l": 3},
    "totalFinancialAssets": {"below_5l": 0, "5l_25l": 1, "25l_1cr": 2, "above_1cr": 3},
    "totalLiabilities": {"above_25l": 0, "5l_25l": 1, "below_5l": 2, "none": 3},
    "emergencyFund": {"below_3m": 0, "3m_6m": 1, "6m_12m": 2, "above_12m": 3},
    "affordableLoss": {"below_5": 0, "5_15": 1, "15_30": 2, "above_30": 3},
    "timeHorizon": {"below_1y": 0, "1y_3y": 1, "3y_7y": 2, "7y_15y": 3, "above_15y": 4},
}

TOLERANCE_FACTORS: Dict[str, Dict[str, int]] = {
    "marketKnowledge": {"none": 0, "basic": 1, "moderate": 2, "advanced": 3},
    "yearsOfExperience": {"0": 0, "below_2y": 1, "2y_5y": 2, "above_5y": 3},
    "pastBehavior": {"sold": 0, "held": 2, "bought_more": 3},
    "portfolioFallReaction": {"sell_most": 0, "sell_some": 1, "do_nothing": 2, "buy_more": 3},
    "expectedReturn": {"below_6": 0, "6_10": 1, "10_15": 2, "15_25": 3, "above_25": 4},
    "riskStatement": {"no_loss": 0, "small_fluctuations": 1, "significant_fluctuations": 2, "high_risk": 3},
}

EXPERIENCE_RANKS = {"bank_fd": 0, "equity_mf": 1, "direct_equity": 2, "derivatives": 3, "structured": 3}
DEPENDENTS_MAX = 3
VOLATILITY_MAX = 4


def _dependents_rank(value: Any) -> int:
    try:
        n = int(value or 0)
    except (TypeError, ValueError):
        n = 0
    if n <= 0:
        return 3
    if n <= 2:
        return 2
    if n <= 4:
        return 1
    return 0


def _volatility_rank(value: Any) -> int:
    """The comfort slider runs 1..5."""
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = 3
    return min(max(n, 1), 5) - 1


def _experience_rank(products: Iterable[str]) -> int:
    if isinstance(products, str):
        products = [products]
    return max((EXPERIENCE_RANKS.get(p, 0) for p in products or []), default=0)


def _score(answers: Mapping[str, Any], factors: Dict[str, Dict[str, int]]) -> tuple:
    total, maximum = 0, 0
    for field, ranks in factors.items():
        total += ranks.get(str(answers.get(field, "")), 0)
        maximum += max(ranks.values())
    return total, maximum


def capacity_score(answers: Mapping[str, Any]) -> int:
    total, maximum = _score(answers, CAPACITY_FACTORS)
    total += _dependents_rank(answers.get("dependents"))
    maximum += DEPENDENTS_MAX
    return round(total / maximum * 100)


def tolerance_score(answers: Mapping[str, Any]) -> int:
    total, maximum = _score(answers, TOLERANCE_FACTORS)
    total += _volatility_rank(answers.get("volatilityComfort"))
    total += _experience_rank(answers.get("investmentExperience") or [])
    maximum += VOLATILITY_MAX + max(EXPERIENCE_RANKS.values())
    return round(total / maximum * 100)


class RiskProfileService:
    def __init__(self, subscription_service: SubscriptionService):
        self.subscriptions = subscription_service

    @staticmethod
    def requires_profiling(sebi_reg_number: Optional[str]) -> bool:
        return (sebi_reg_number or "").strip().upper().startswith(INVESTMENT_ADVISER_PREFIX)

    def check(self, session: Session, user_id: str, subscription_id: str) -> Dict[str, Any]:
        subscription = self.subscriptions.get_owned(session, subscription_id, user_id)
        advisor = subscription.advisor
        return {
            "requiresRiskProfiling": self.requires_profiling(advisor.sebi_reg_number if advisor else None),
            "completed": bool(subscription.risk_profiling),
        }

    def submit(self, session: Session, user_id: str, subscription_id: str, answers: Dict[str, Any]) -> Dict[str, Any]:
        subscription = self.subscriptions.get_owned(session, subscription_id, user_id)
        if not all(answers.get(k) is True for k in REQUIRED_CONSENTS):
            raise DomainError("Please accept all required declarations")

        capacity = capacity_score(answers)
        tolerance = tolerance_score(answers)
        overall = round((capacity + tolerance) / 2)
        category = RiskCategory.from_score(overall)

        stored = {k: v for k, v in answers.items() if k != "subscriptionId"}
        profile = EkycRepository(session).add_risk_profile(RiskProfile(
            subscription_id=subscription.id,
            user_id=user_id,
            advisor_id=subscription.advisor_id,
            answers=stored,
            capacity_score=capacity,
            tolerance_score=tolerance,
            overall_score=overall,
            risk_category=category.value,
        ))
        subscription.risk_profiling = True
        session.flush()
        log.info(f"Risk profile {profile.id} stored for subscription {subscription.id}: {category.value} ({overall})")
        return {
            "id": profile.id,
            "riskCategory": category.value,
            "capacityScore": capacity,
            "toleranceScore": tolerance,
            "overallScore": overall,
        }
