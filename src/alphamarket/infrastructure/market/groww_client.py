#--- START OF FILE: src/alphamarket/infrastructure/market/groww_client.py ---
"""
Groww Trade API client: live quotes, bulk LTP, option chains.

Token handling
- An admin may paste a daily access token (`set_manual_token`).
- Otherwise the API key + secret are exchanged for one
  (`checksum = sha256(secret + unix_ts)`).
- Either way the token lapses at the next 06:00 IST; we drop it 60s early.
- A 403 from any data endpoint discards the token.

Data calls never raise to the caller: failures are logged and an empty
result is returned, because live prices are decoration on top of the
stored recommendations.
"""

import asyncio
import csv
import hashlib
import io
import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from alphamarket.domain.clock import next_ist_6am, utcnow
from alphamarket.domain.errors import GatewayError
from alphamarket.infrastructure.cache import InMemoryCache

log = logging.getLogger(__name__)

GROWW_API_BASE = "https://api.groww.in/v1"
INSTRUMENTS_URL = "https://growwapi-assets.groww.in/instruments/instrument.csv"

QUOTE_TTL_SECONDS = 5
INSTRUMENTS_TTL_SECONDS = 6 * 60 * 60
BULK_BATCH_SIZE = 50
QUOTE_CONCURRENCY = 5

COMMODITY_SYMBOLS = {
    "CRUDEOIL", "GOLD", "GOLDM", "SILVER", "SILVERM",
    "NATURALGAS", "COPPER", "ZINC", "ALUMINIUM", "LEAD", "NICKEL", "COTTONCANDY",
}
INDEX_SYMBOLS = {"NIFTY", "BANKNIFTY", "FINNIFTY", "MIDCPNIFTY", "SENSEX", "BANKEX"}
BSE_INDICES = {"SENSEX", "BANKEX"}

_OHLC_PAIR_RE = re.compile(r"(open|high|low|close)\W*\s*:\s*(-?[0-9]+(?:\.[0-9]+)?)", re.IGNORECASE)


# --- Helpers ---

def resolve_exchange_and_segment(symbol: str, strategy_type: Optional[str] = None) -> Tuple[str, str, str]:
    """Map a stored symbol (plus the strategy type it came from) to Groww's (exchange, segment, trading_symbol)."""
    upper = (symbol or "").strip().upper()
    if upper in COMMODITY_SYMBOLS or strategy_type in ("Commodity", "CommodityFuture"):
        return "MCX", "COMMODITY", upper
    if upper in INDEX_SYMBOLS:
        return ("BSE" if upper in BSE_INDICES else "NSE"), "CASH", upper
    if strategy_type in ("Future", "Option"):
        return "NSE", "FNO", upper
    return "NSE", "CASH", upper


def parse_ohlc(raw: Any) -> Dict[str, float]:
    """
    Groww returns OHLC as a pseudo-JSON string with unquoted keys,
    e.g. "{open: 101.5,high: 104.0,low: 100.2,close: 102.0}".
    """
    out = {"open": 0.0, "high": 0.0, "low": 0.0, "close": 0.0}
    if isinstance(raw, dict):
        for key in out:
            try:
                out[key] = float(raw.get(key) or 0)
            except (TypeError, ValueError):
                pass
        return out
    for key, value in _OHLC_PAIR_RE.findall(str(raw or "")):
        out[key.lower()] = float(value)
    return out


def _cache_key(symbol: str, strategy_type: Optional[str]) -> str:
    return f"{symbol}_{strategy_type or ''}"


class GrowwClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self._transport = transport
        self._timeout = timeout
        self._token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None
        self._token_set_at: Optional[datetime] = None
        self._token_source = "none"
        self.quote_cache = InMemoryCache(ttl_seconds=QUOTE_TTL_SECONDS)
        self._instruments = InMemoryCache(ttl_seconds=INSTRUMENTS_TTL_SECONDS)
        self._token_lock = asyncio.Lock()

    # --- Token management ---

    def set_manual_token(self, token: str) -> Dict[str, Any]:
        token = (token or "").strip()
        if not token:
            raise ValueError("Token is required")
        now = utcnow()
        self._token = token
        self._token_expiry = next_ist_6am(now) - timedelta(seconds=60)
        self._token_set_at = now
        self._token_source = "manual"
        self.quote_cache.clear()
        hours = round((self._token_expiry - now).total_seconds() / 3600, 1)
        log.info(f"Groww access token set manually, expires in {hours}h")
        return {"success": True, "expiresIn": f"{hours}h", "expiresAt": self._token_expiry.isoformat()}

    def token_status(self) -> Dict[str, Any]:
        now = utcnow()
        has_token = bool(self._token and self._token_expiry and now < self._token_expiry)
        return {
            "hasToken": has_token,
            "source": self._token_source,
            "setAt": self._token_set_at.isoformat() if self._token_set_at else None,
            "expiresAt": self._token_expiry.isoformat() if self._token_expiry else None,
            "isExpired": bool(self._token_expiry and now >= self._token_expiry),
            "apiKeyConfigured": bool(self.api_key and self.api_secret),
        }

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expiry = None

    @staticmethod
    def checksum(secret: str, timestamp: str) -> str:
        return hashlib.sha256(f"{secret}{timestamp}".encode("utf-8")).hexdigest()

    async def get_access_token(self) -> str:
        if self._token and self._token_expiry and utcnow() < self._token_expiry:
            return self._token
        async with self._token_lock:
            if self._token and self._token_expiry and utcnow() < self._token_expiry:
                return self._token
            if not (self.api_key and self.api_secret):
                raise GatewayError("Groww API key/secret not configured. Set an access token from the admin portal.")

            timestamp = str(int(time.time()))
            body = {"key_type": "approval", "checksum": self.checksum(self.api_secret, timestamp), "timestamp": timestamp}
            log.info("Requesting Groww access token via API key+secret...")
            async with self._client() as client:
                try:
                    response = await client.post(
                        f"{GROWW_API_BASE}/token/api/access",
                        json=body,
                        headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                    )
                except httpx.HTTPError as e:
                    raise GatewayError("Groww is unreachable") from e
            if response.status_code >= 400:
                log.error(f"Groww token exchange failed: {response.status_code}")
                raise GatewayError(f"Groww token exchange failed: {response.status_code}", response.status_code)
            token = (response.json() or {}).get("token")
            if not token:
                raise GatewayError("Groww token exchange returned no token")

            now = utcnow()
            self._token = token
            self._token_expiry = next_ist_6am(now) - timedelta(seconds=60)
            self._token_set_at = now
            self._token_source = "api_key_secret"
            return token

    # --- HTTP plumbing ---

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    @staticmethod
    def _headers(token: str) -> Dict[str, str]:
        return {"Accept": "application/json", "Authorization": f"Bearer {token}", "X-API-VERSION": "1.0"}

    async def _get_json(self, client: httpx.AsyncClient, url: str, params: Dict[str, Any], token: str) -> Optional[Dict[str, Any]]:
        response = await client.get(url, params=params, headers=self._headers(token))
        if response.status_code >= 400:
            log.error(f"Groww GET {url} -> {response.status_code}")
            if response.status_code == 403:
                self.invalidate_token()
            return None
        return response.json()

    # --- Quotes ---

    async def get_live_quote(self, symbol: str, strategy_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        key = _cache_key(symbol, strategy_type)
        cached = self.quote_cache.get(key)
        if cached is not None:
            return cached

        exchange, segment, trading_symbol = resolve_exchange_and_segment(symbol, strategy_type)
        try:
            token = await self.get_access_token()
            async with self._client() as client:
                data = await self._get_json(
                    client,
                    f"{GROWW_API_BASE}/live-data/quote",
                    {"exchange": exchange, "segment": segment, "trading_symbol": trading_symbol},
                    token,
                )
        except (GatewayError, httpx.HTTPError, ValueError) as e:
            log.error(f"Error fetching Groww quote for {symbol}: {e}")
            return None

        if not data or data.get("status") != "SUCCESS" or not data.get("payload"):
            return None

        payload = data["payload"]
        ohlc = parse_ohlc(payload.get("ohlc"))
        quote = {
            "symbol": trading_symbol,
            "exchange": exchange,
            "ltp": payload.get("last_price") or 0,
            "change": payload.get("day_change") or 0,
            "changePercent": payload.get("day_change_perc") or 0,
            "high": payload.get("high_trade_range") or ohlc["high"],
            "low": payload.get("low_trade_range") or ohlc["low"],
            "open": ohlc["open"],
            "close": ohlc["close"],
            "timestamp": payload.get("last_trade_time") or int(time.time() * 1000),
        }
        self.quote_cache.set(key, quote)
        return quote

    async def get_live_prices(self, items: List[Dict[str, Optional[str]]]) -> Dict[str, Dict[str, Any]]:
        """Full quotes, a few symbols at a time."""
        results: Dict[str, Dict[str, Any]] = {}
        for i in range(0, len(items), QUOTE_CONCURRENCY):
            batch = items[i:i + QUOTE_CONCURRENCY]
            quotes = await asyncio.gather(
                *(self.get_live_quote(it["symbol"], it.get("strategyType")) for it in batch)
            )
            for it, quote in zip(batch, quotes):
                if quote:
                    results[it["symbol"]] = quote
        return results

    async def get_bulk_ltp(self, items: List[Dict[str, Optional[str]]]) -> Dict[str, Dict[str, Any]]:
        """
        LTP + OHLC for many symbols using Groww's multi-symbol endpoints,
        grouped per segment and batched 50 at a time.
        """
        results: Dict[str, Dict[str, Any]] = {}
        grouped: Dict[str, List[Dict[str, Any]]] = {}

        for it in items:
            symbol, strategy_type = it["symbol"], it.get("strategyType")
            cached = self.quote_cache.get(_cache_key(symbol, strategy_type))
            if cached is not None:
                results[symbol] = cached
                continue
            exchange, segment, trading_symbol = resolve_exchange_and_segment(symbol, strategy_type)
            grouped.setdefault(segment, []).append({
                "symbol": symbol, "strategyType": strategy_type,
                "exchange": exchange, "tradingSymbol": trading_symbol,
            })

        if not grouped:
            return results

        try:
            token = await self.get_access_token()
        except GatewayError as e:
            log.error(f"Groww bulk LTP skipped: {e}")
            return results

        async with self._client() as client:
            for segment, seg_items in grouped.items():
                for i in range(0, len(seg_items), BULK_BATCH_SIZE):
                    batch = seg_items[i:i + BULK_BATCH_SIZE]
                    exchange_symbols = ",".join(f"{b['exchange']}_{b['tradingSymbol']}" for b in batch)
                    params = {"segment": segment, "exchange_symbols": exchange_symbols}
                    try:
                        ltp_data, ohlc_data = await asyncio.gather(
                            self._get_json(client, f"{GROWW_API_BASE}/live-data/ltp", params, token),
                            self._get_json(client, f"{GROWW_API_BASE}/live-data/ohlc", params, token),
                        )
                    except (httpx.HTTPError, ValueError) as e:
                        log.error(f"Groww bulk LTP batch failed for segment {segment}: {e}")
                        continue
                    if not ltp_data or not isinstance(ltp_data.get("payload"), dict):
                        continue

                    ohlc_map = {}
                    if ohlc_data and isinstance(ohlc_data.get("payload"), dict):
                        ohlc_map = {k: parse_ohlc(v) for k, v in ohlc_data["payload"].items()}

                    for b in batch:
                        lookup = f"{b['exchange']}_{b['tradingSymbol']}"
                        ltp = ltp_data["payload"].get(lookup)
                        if ltp is None:
                            continue
                        ohlc = ohlc_map.get(lookup, {"open": 0.0, "high": 0.0, "low": 0.0, "close": 0.0})
                        close = ohlc["close"]
                        change = ltp - close if close > 0 else 0
                        quote = {
                            "symbol": b["tradingSymbol"],
                            "exchange": b["exchange"],
                            "ltp": ltp,
                            "change": round(change, 2),
                            "changePercent": round(change / close * 100, 2) if close > 0 else 0,
                            "high": ohlc["high"],
                            "low": ohlc["low"],
                            "open": ohlc["open"],
                            "close": close,
                            "timestamp": int(time.time() * 1000),
                        }
                        self.quote_cache.set(_cache_key(b["symbol"], b["strategyType"]), quote)
                        results[b["symbol"]] = quote
        return results

    # --- Derivatives ---

    async def _load_instruments(self) -> List[Dict[str, str]]:
        cached = self._instruments.get("fno")
        if cached is not None:
            return cached
        try:
            async with self._client() as client:
                response = await client.get(INSTRUMENTS_URL, timeout=60.0)
        except httpx.HTTPError as e:
            log.error(f"Error fetching Groww instruments CSV: {e}")
            return []
        if response.status_code >= 400:
            log.error(f"Groww instruments CSV error: {response.status_code}")
            return []

        reader = csv.DictReader(io.StringIO(response.text))
        instruments = [
            {k.strip(): (v or "").strip() for k, v in row.items() if k}
            for row in reader
            if (row.get("segment") or "").strip() == "FNO"
            and (row.get("expiry_date") or "").strip()
            and (row.get("underlying_symbol") or "").strip()
        ]
        self._instruments.set("fno", instruments)
        log.info(f"Groww instruments CSV loaded: {len(instruments)} FNO instruments")
        return instruments

    async def get_option_expiries(self, exchange: str, underlying: str) -> List[str]:
        instruments = await self._load_instruments()
        today = utcnow().date().isoformat()
        expiries = {
            inst["expiry_date"]
            for inst in instruments
            if inst.get("exchange") == exchange
            and inst.get("underlying_symbol") == underlying
            and inst.get("expiry_date", "") >= today
        }
        return sorted(expiries)

    async def get_option_chain(self, exchange: str, underlying: str, expiry_date: str) -> List[Dict[str, Any]]:
        try:
            token = await self.get_access_token()
            async with self._client() as client:
                data = await self._get_json(
                    client,
                    f"{GROWW_API_BASE}/option-chain/exchange/{exchange}/underlying/{underlying}",
                    {"expiry_date": expiry_date},
                    token,
                )
        except (GatewayError, httpx.HTTPError, ValueError) as e:
            log.error(f"Error fetching Groww option chain for {underlying}: {e}")
            return []
        if not data or not data.get("payload"):
            return []

        strikes: List[Dict[str, Any]] = []
        raw_strikes = data["payload"].get("strikes") if isinstance(data["payload"], dict) else None
        if isinstance(raw_strikes, dict):
            for strike_str, legs in raw_strikes.items():
                try:
                    strike = float(strike_str)
                except ValueError:
                    continue
                strikes.append({
                    "strikePrice": strike,
                    "ce": _option_leg(legs.get("CE")),
                    "pe": _option_leg(legs.get("PE")),
                })
        return sorted(strikes, key=lambda s: s["strikePrice"])


def _option_leg(leg: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not leg:
        return None
    return {
        "ltp": leg.get("ltp") or 0,
        "change": leg.get("day_change") or 0,
        "oi": leg.get("open_interest") or 0,
        "volume": leg.get("volume") or 0,
        "iv": (leg.get("greeks") or {}).get("iv"),
        "bidPrice": leg.get("bid_price"),
        "askPrice": leg.get("offer_price"),
        "tradingSymbol": leg.get("trading_symbol"),
    }
#--- END OF FILE ---
