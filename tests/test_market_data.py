import httpx
import pytest

from alphamarket.application.services.market_data_service import MarketDataService
from alphamarket.domain.errors import DomainError
from alphamarket.infrastructure.market.groww_client import GrowwClient, parse_ohlc, resolve_exchange_and_segment

QUOTE_PAYLOAD = {
    "status": "SUCCESS",
    "payload": {
        "last_price": 3512.5,
        "day_change": 12.5,
        "day_change_perc": 0.36,
        "ohlc": "{open: 3490.0,high: 3520.0,low: 3480.5,close: 3500.0}",
        "last_trade_time": 1760000000000,
    },
}


def _groww(handler) -> GrowwClient:
    client = GrowwClient(transport=httpx.MockTransport(handler))
    client.set_manual_token("tok")
    return client


@pytest.mark.parametrize("symbol,strategy_type,expected", [
    ("TCS", None, ("NSE", "CASH", "TCS")),
    ("gold", None, ("MCX", "COMMODITY", "GOLD")),
    ("MENTHAOIL", "CommodityFuture", ("MCX", "COMMODITY", "MENTHAOIL")),
    ("NIFTY", "Option", ("NSE", "CASH", "NIFTY")),
    ("SENSEX", None, ("BSE", "CASH", "SENSEX")),
    ("NIFTY25JUN22500CE", "Option", ("NSE", "FNO", "NIFTY25JUN22500CE")),
    (" reliance ", "Equity", ("NSE", "CASH", "RELIANCE")),
])
def test_resolve_exchange_and_segment(symbol, strategy_type, expected):
    assert resolve_exchange_and_segment(symbol, strategy_type) == expected


def test_parse_ohlc_handles_unquoted_keys():
    assert parse_ohlc("{open: 101.5,high: 104.0,low: 100.2,close: 102}") == {
        "open": 101.5, "high": 104.0, "low": 100.2, "close": 102.0,
    }
    assert parse_ohlc({"open": "5", "close": None}) == {"open": 5.0, "high": 0.0, "low": 0.0, "close": 0.0}
    assert parse_ohlc(None) == {"open": 0.0, "high": 0.0, "low": 0.0, "close": 0.0}


def test_manual_token_status():
    client = GrowwClient()
    status = client.token_status()
    assert status["hasToken"] is False
    assert status["apiKeyConfigured"] is False

    with pytest.raises(ValueError):
        client.set_manual_token("   ")

    result = client.set_manual_token("tok")
    assert result["success"] is True
    assert result["expiresIn"].endswith("h")
    status = client.token_status()
    assert status["hasToken"] is True
    assert status["source"] == "manual"
    assert status["isExpired"] is False
    assert status["expiresAt"] == result["expiresAt"]


@pytest.mark.asyncio
async def test_live_quote_is_parsed_and_cached():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=QUOTE_PAYLOAD)

    client = _groww(handler)
    quote = await client.get_live_quote("TCS")
    assert quote == {
        "symbol": "TCS", "exchange": "NSE", "ltp": 3512.5, "change": 12.5, "changePercent": 0.36,
        "high": 3520.0, "low": 3480.5, "open": 3490.0, "close": 3500.0, "timestamp": 1760000000000,
    }
    assert requests[0].url.path == "/v1/live-data/quote"
    assert dict(requests[0].url.params) == {"exchange": "NSE", "segment": "CASH", "trading_symbol": "TCS"}
    assert requests[0].headers["Authorization"] == "Bearer tok"

    assert await client.get_live_quote("TCS") == quote
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_forbidden_quote_drops_the_token():
    client = _groww(lambda request: httpx.Response(403, json={"message": "forbidden"}))
    assert await client.get_live_quote("TCS") is None
    assert client.token_status()["hasToken"] is False


@pytest.mark.asyncio
async def test_quote_without_credentials_is_none():
    assert await GrowwClient().get_live_quote("TCS") is None


@pytest.mark.asyncio
async def test_bulk_ltp_merges_ltp_and_ohlc():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["exchange_symbols"] == "NSE_TCS,NSE_INFY"
        assert request.url.params["segment"] == "CASH"
        if request.url.path.endswith("/ltp"):
            return httpx.Response(200, json={"status": "SUCCESS", "payload": {"NSE_TCS": 3500.0}})
        return httpx.Response(200, json={
            "status": "SUCCESS",
            "payload": {"NSE_TCS": "{open: 3400,high: 3550,low: 3390,close: 3450}"},
        })

    client = _groww(handler)
    prices = await client.get_bulk_ltp([{"symbol": "TCS"}, {"symbol": "INFY"}])

    assert list(prices) == ["TCS"]
    tcs = prices["TCS"]
    assert tcs["ltp"] == 3500.0
    assert tcs["change"] == 50.0
    assert tcs["changePercent"] == 1.45
    assert tcs["high"] == 3550.0
    # The quote cache now answers for TCS.
    assert client.quote_cache.get("TCS_") == tcs


@pytest.mark.asyncio
async def test_option_chain_is_sorted_by_strike():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/option-chain/exchange/NSE/underlying/NIFTY"
        return httpx.Response(200, json={"status": "SUCCESS", "payload": {"strikes": {
            "22600": {"CE": {"ltp": 80, "open_interest": 1200, "greeks": {"iv": 13.2}}},
            "22500": {"CE": {"ltp": 140}, "PE": {"ltp": 95, "trading_symbol": "NIFTY25JUN22500PE"}},
        }}})

    chain = await _groww(handler).get_option_chain("NSE", "NIFTY", "2026-06-25")
    assert [s["strikePrice"] for s in chain] == [22500.0, 22600.0]
    assert chain[0]["pe"]["tradingSymbol"] == "NIFTY25JUN22500PE"
    assert chain[1]["pe"] is None
    assert chain[1]["ce"]["oi"] == 1200
    assert chain[1]["ce"]["iv"] == 13.2


# --- Service ---

@pytest.mark.asyncio
async def test_service_validates_option_arguments(groww):
    service = MarketDataService(groww)
    with pytest.raises(DomainError, match="exchange must be NSE or BSE"):
        await service.option_expiries("MCX", "GOLD")
    with pytest.raises(DomainError, match="underlying is required"):
        await service.option_expiries("NSE", " ")
    with pytest.raises(DomainError, match="expiry is required"):
        await service.option_chain("nse", "nifty", "")

    result = await service.option_chain("nse", "nifty", "2026-06-25")
    assert result == {"exchange": "NSE", "underlying": "NIFTY", "expiry": "2026-06-25", "strikes": []}
    groww.get_option_chain.assert_awaited_once_with("NSE", "NIFTY", "2026-06-25")


@pytest.mark.asyncio
async def test_service_dedupes_symbols(groww):
    service = MarketDataService(groww)
    assert await service.live_prices("  ") == {}
    groww.get_live_prices.assert_not_awaited()

    await service.live_prices("tcs, INFY,TCS", strategy_type="Equity")
    groww.get_live_prices.assert_awaited_once_with([
        {"symbol": "TCS", "strategyType": "Equity"},
        {"symbol": "INFY", "strategyType": "Equity"},
    ])


# --- API ---

def test_live_price_routes(client, groww):
    groww.get_live_prices.return_value = {"TCS": {"ltp": 3500}}
    assert client.get("/api/live-prices", params={"symbols": "TCS"}).json() == {"TCS": {"ltp": 3500}}

    r = client.post("/api/live-prices/bulk", json={"symbols": ["tcs", {"symbol": "NIFTY", "strategyType": "Option"}]})
    assert r.status_code == 200
    groww.get_bulk_ltp.assert_awaited_once_with([
        {"symbol": "TCS", "strategyType": None},
        {"symbol": "NIFTY", "strategyType": "Option"},
    ])

    r = client.get("/api/option-chain/expiries", params={"underlying": "GOLD", "exchange": "MCX"})
    assert r.status_code == 400


def test_groww_token_routes_are_admin_only(client, admin, investor, groww):
    groww.set_manual_token.return_value = {"success": True, "expiresIn": "12.0h", "expiresAt": "2026-10-18T00:29:00+00:00"}
    assert client.post("/api/admin/groww-token", json={"token": "tok"}, headers=investor.headers).status_code == 403

    r = client.post("/api/admin/groww-token", json={"token": "tok"}, headers=admin.headers)
    assert r.status_code == 200
    assert r.json()["success"] is True
    groww.set_manual_token.assert_called_once_with("tok")

    groww.set_manual_token.side_effect = ValueError("Token is required")
    r = client.post("/api/admin/groww-token", json={"token": ""}, headers=admin.headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Token is required"

    assert client.get("/api/admin/groww-token-status", headers=admin.headers).json() == {"hasToken": False, "source": "none"}
