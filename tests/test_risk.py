import pytest

from alphamarket.application.services.risk_profile_service import (
    RiskProfileService,
    capacity_score,
    tolerance_score,
)
from alphamarket.infrastructure.db.models import RiskProfile, Subscription
from alphamarket.infrastructure.db.uow import session_scope

CONSENTS = {"declarationConfirm": True, "consentRiskProfile": True, "consentMarketRisk": True}

BOLDEST = {
    "annualIncome": "above_25l",
    "investibleSurplus": "above_25l",
    "totalFinancialAssets": "above_1cr",
    "totalLiabilities": "none",
    "emergencyFund": "above_12m",
    "affordableLoss": "above_30",
    "timeHorizon": "above_15y",
    "dependents": 0,
    "marketKnowledge": "advanced",
    "yearsOfExperience": "above_5y",
    "pastBehavior": "bought_more",
    "portfolioFallReaction": "buy_more",
    "expectedReturn": "above_25",
    "riskStatement": "high_risk",
    "volatilityComfort": 5,
    "investmentExperience": ["derivatives"],
}

MIDDLE = {
    "annualIncome": "3l_10l",
    "investibleSurplus": "1l_5l",
    "totalFinancialAssets": "5l_25l",
    "totalLiabilities": "5l_25l",
    "emergencyFund": "3m_6m",
    "affordableLoss": "5_15",
    "timeHorizon": "3y_7y",
    "dependents": "2",
    "marketKnowledge": "moderate",
    "yearsOfExperience": "2y_5y",
    "pastBehavior": "held",
    "portfolioFallReaction": "do_nothing",
    "expectedReturn": "10_15",
    "riskStatement": "significant_fluctuations",
    "volatilityComfort": 3,
    "investmentExperience": ["equity_mf"],
    "occupation": "salaried",
}


def test_boldest_answers_score_full_marks():
    assert capacity_score(BOLDEST) == 100
    assert tolerance_score(BOLDEST) == 100


def test_middle_answers():
    assert capacity_score(MIDDLE) == 40
    assert tolerance_score(MIDDLE) == 58


def test_unknown_answers_score_nothing():
    cautious = {**MIDDLE, "annualIncome": "lottery", "dependents": 6, "volatilityComfort": 1, "investmentExperience": "bank_fd"}
    assert capacity_score(cautious) < capacity_score(MIDDLE)
    assert tolerance_score(cautious) < tolerance_score(MIDDLE)


@pytest.mark.parametrize("reg,expected", [
    ("INA000012345", True),
    ("ina000012345", True),
    (" INA1", True),
    ("INH000001234", False),
    ("", False),
    (None, False),
])
def test_only_investment_advisers_require_profiling(reg, expected):
    assert RiskProfileService.requires_profiling(reg) is expected


# --- API ---

@pytest.fixture
def ia_subscription(client, make_account, investor) -> dict:
    ia = make_account("ia_advisor", role="advisor", companyName="Prudent Advisory", sebiRegNumber="INA000098765")
    strategy = client.post("/api/strategies", json={"name": "Core Allocation", "status": "Published"}, headers=ia.headers).json()
    client.post("/api/plans", json={"name": "Annual", "amount": 4999, "durationDays": 365}, headers=ia.headers)
    return client.post(f"/api/strategies/{strategy['id']}/subscribe", headers=investor.headers).json()


def test_check_reports_whether_profiling_is_needed(client, investor, ia_subscription, strategy):
    r = client.get("/api/risk-profiling/check", params={"subscriptionId": ia_subscription["id"]}, headers=investor.headers)
    assert r.json() == {"requiresRiskProfiling": True, "completed": False}

    research = client.post(f"/api/strategies/{strategy['id']}/subscribe", headers=investor.headers).json()
    r = client.get("/api/risk-profiling/check", params={"subscriptionId": research["id"]}, headers=investor.headers)
    assert r.json() == {"requiresRiskProfiling": False, "completed": False}


def test_submit_scores_and_completes_the_subscription(client, investor, ia_subscription):
    body = {"subscriptionId": ia_subscription["id"], **MIDDLE, **CONSENTS}
    r = client.post("/api/risk-profiles", json=body, headers=investor.headers)
    assert r.status_code == 201
    result = r.json()
    assert result["capacityScore"] == 40
    assert result["toleranceScore"] == 58
    assert result["overallScore"] == 49
    assert result["riskCategory"] == "Moderate"

    r = client.get("/api/risk-profiling/check", params={"subscriptionId": ia_subscription["id"]}, headers=investor.headers)
    assert r.json()["completed"] is True

    with session_scope() as session:
        profile = session.get(RiskProfile, result["id"])
        assert profile.answers["occupation"] == "salaried"
        assert "subscriptionId" not in profile.answers
        assert session.get(Subscription, ia_subscription["id"]).risk_profiling is True


def test_submit_requires_every_consent(client, investor, ia_subscription):
    body = {"subscriptionId": ia_subscription["id"], **BOLDEST, **CONSENTS, "consentMarketRisk": "yes"}
    r = client.post("/api/risk-profiles", json=body, headers=investor.headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Please accept all required declarations"


def test_submit_needs_a_subscription(client, investor, make_account, ia_subscription):
    r = client.post("/api/risk-profiles", json={**BOLDEST, **CONSENTS}, headers=investor.headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "subscriptionId is required"

    stranger = make_account("stranger")
    body = {"subscriptionId": ia_subscription["id"], **BOLDEST, **CONSENTS}
    assert client.post("/api/risk-profiles", json=body, headers=stranger.headers).status_code == 404


def test_boldest_profile_is_very_aggressive(client, investor, ia_subscription):
    body = {"subscriptionId": ia_subscription["id"], **BOLDEST, **CONSENTS}
    result = client.post("/api/risk-profiles", json=body, headers=investor.headers).json()
    assert result["overallScore"] == 100
    assert result["riskCategory"] == "Very Aggressive"
