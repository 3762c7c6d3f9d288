import pytest

from alphamarket.application.services.basket_service import validate_weights
from alphamarket.domain.errors import DomainError


@pytest.fixture
def basket(client, advisor) -> dict:
    r = client.post("/api/strategies", json={"name": "Dividend Basket", "type": "Basket", "status": "Published"}, headers=advisor.headers)
    assert r.status_code == 201
    return r.json()


def _rebalance(client, strategy_id, headers, constituents, notes=None):
    return client.post(
        f"/api/strategies/{strategy_id}/basket/rebalance",
        json={"constituents": constituents, "notes": notes},
        headers=headers,
    )


def test_weights_within_a_paisa_of_100_are_accepted():
    validate_weights([
        {"symbol": "ITC", "weight_percent": 33.33},
        {"symbol": "COALINDIA", "weight_percent": "33.33"},
        {"symbol": "POWERGRID", "weight_percent": 33.335},
    ])


@pytest.mark.parametrize("constituents,message", [
    ([], "A basket needs at least one constituent"),
    ([{"symbol": " ", "weight_percent": 100}], "Every constituent needs a symbol"),
    ([{"symbol": "itc", "weight_percent": 50}, {"symbol": "ITC", "weight_percent": 50}], "Duplicate constituent ITC"),
    ([{"symbol": "ITC", "weight_percent": 0}, {"symbol": "TCS", "weight_percent": 100}], "Weight for ITC must be positive"),
    ([{"symbol": "ITC", "weight_percent": "abc"}], "Weight for ITC must be positive"),
    ([{"symbol": "ITC", "weight_percent": 50}, {"symbol": "TCS", "weight_percent": 40}], r"Weights must add up to 100% \(got 90"),
])
def test_invalid_weights(constituents, message):
    with pytest.raises(DomainError, match=message):
        validate_weights(constituents)


def test_rebalances_are_versioned(client, advisor, basket):
    first = _rebalance(client, basket["id"], advisor.headers, [
        {"symbol": "itc", "weightPercent": 60, "quantity": 10},
        {"symbol": "NTPC", "weightPercent": 40},
    ], notes="Initial allocation")
    assert first.status_code == 201
    assert first.json()["version"] == 1
    assert {c["symbol"]: c["weightPercent"] for c in first.json()["constituents"]} == {"ITC": 60.0, "NTPC": 40.0}
    assert first.json()["constituents"][0]["exchange"] == "NSE"

    second = _rebalance(client, basket["id"], advisor.headers, [{"symbol": "ITC", "weightPercent": 100}])
    assert second.json()["version"] == 2

    view = client.get(f"/api/strategies/{basket['id']}/basket").json()
    assert view["strategy"]["name"] == "Dividend Basket"
    assert view["rebalance"]["version"] == 2
    assert [c["symbol"] for c in view["rebalance"]["constituents"]] == ["ITC"]


def test_bad_weights_are_a_400(client, advisor, basket):
    r = _rebalance(client, basket["id"], advisor.headers, [{"symbol": "ITC", "weightPercent": 70}])
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Weights must add up to 100%")


def test_only_basket_strategies_hold_a_basket(client, advisor, strategy):
    r = _rebalance(client, strategy["id"], advisor.headers, [{"symbol": "ITC", "weightPercent": 100}])
    assert r.status_code == 400
    assert r.json()["detail"] == "Only Basket strategies can hold a basket"


def test_only_the_owner_rebalances(client, basket, make_account, investor):
    other = make_account("advisor2", role="advisor")
    assert _rebalance(client, basket["id"], other.headers, [{"symbol": "ITC", "weightPercent": 100}]).status_code == 403
    assert _rebalance(client, basket["id"], investor.headers, [{"symbol": "ITC", "weightPercent": 100}]).status_code == 403


def test_rationales_and_nav(client, advisor, basket):
    r = client.post(
        f"/api/strategies/{basket['id']}/basket/rationales",
        json={"title": "Why PSU dividends", "body": "Yield support"},
        headers=advisor.headers,
    )
    assert r.status_code == 201
    assert r.json()["category"] == "general"

    r = client.post(f"/api/strategies/{basket['id']}/basket/nav", json={"asOfDate": "2026-09-30", "nav": 104.2}, headers=advisor.headers)
    assert r.status_code == 201
    assert r.json()["asOfDate"] == "2026-09-30"

    r = client.post(f"/api/strategies/{basket['id']}/basket/nav", json={"nav": 0}, headers=advisor.headers)
    assert r.status_code == 400

    view = client.get(f"/api/strategies/{basket['id']}/basket").json()
    assert view["rebalance"] is None
    assert [x["title"] for x in view["rationales"]] == ["Why PSU dividends"]
    assert view["nav"][0]["nav"] == 104.2
