# src/alphamarket/application/services/market_data_service.py
"""
Live prices and option data for the strategy pages.

Quotes come from Groww. When the token is missing or Groww is down the
endpoints answer with empty results rather than errors, so the pages still
render with stored prices.
"""

import logging
from typing import Any, Dict, List, Optional

from alphamarket.domain.errors import DomainError
from alphamarket.infrastructure.market.groww_client import GrowwClient

log = logging.getLogger(__name__)

OPTION_EXCHANGES = {"NSE", "BSE"}
MAX_SYMBOLS_PER_REQUEST = 200


def _split_symbols(raw: Optional[str]) -> List[str]:
    seen, out = set(), []
    for s in (raw or "").split(","):
        s = s.strip().upper()
        if s and s not in seen:
            seen.add(s)
            out.append(s)
    return out


class MarketDataService:
    def __init__(self, groww: GrowwClient):
        self.groww = groww

    async def live_prices(self, symbols: Optional[str], strategy_type: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
        names = _split_symbols(symbols)
        if not names:
            return {}
        return await self.groww.get_live_prices([{"symbol": s, "strategyType": strategy_type} for s in names])

    async def bulk_prices(self, items: List[Dict[str, Optional[str]]]) -> Dict[str, Dict[str, Any]]:
        cleaned = []
        for it in items[:MAX_SYMBOLS_PER_REQUEST]:
            symbol = (it.get("symbol") or "").strip().upper()
            if symbol:
                cleaned.append({"symbol": symbol, "strategyType": it.get("strategyType")})
        if len(items) > MAX_SYMBOLS_PER_REQUEST:
            log.warning(f"Bulk price request truncated from {len(items)} to {MAX_SYMBOLS_PER_REQUEST} symbols")
        if not cleaned:
            return {}
        return await self.groww.get_bulk_ltp(cleaned)

    @staticmethod
    def _option_args(exchange: str, underlying: str) -> tuple:
        exchange = (exchange or "NSE").strip().upper()
        underlying = (underlying or "").strip().upper()
        if exchange not in OPTION_EXCHANGES:
            raise DomainError("exchange must be NSE or BSE")
        if not underlying:
            raise DomainError("underlying is required")
        return exchange, underlying

    async def option_expiries(self, exchange: str, underlying: str) -> List[str]:
        exchange, underlying = self._option_args(exchange, underlying)
        return await self.groww.get_option_expiries(exchange, underlying)

    async def option_chain(self, exchange: str, underlying: str, expiry: str) -> Dict[str, Any]:
        exchange, underlying = self._option_args(exchange, underlying)
        if not expiry:
            raise DomainError("expiry is required")
        strikes = await self.groww.get_option_chain(exchange, underlying, expiry)
        return {"exchange": exchange, "underlying": underlying, "expiry": expiry, "strikes": strikes}

    # --- Token (admin) ---

    def set_token(self, token: str) -> Dict[str, Any]:
        try:
            return self.groww.set_manual_token(token)
        except ValueError as e:
            raise DomainError(str(e))

    def token_status(self) -> Dict[str, Any]:
        return self.groww.token_status()
