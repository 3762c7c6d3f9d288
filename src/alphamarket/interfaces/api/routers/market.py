# File: src/alphamarket/interfaces/api/routers/market.py
"""Live quotes and option data. Upstream trouble yields empty payloads, not errors."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from alphamarket.interfaces.api.deps import get_market_data_service
from alphamarket.interfaces.api.schemas import BulkPricesIn, SymbolRef

router = APIRouter(prefix="/api", tags=["Market Data"])


@router.get("/live-prices")
async def live_prices(
    symbols: Optional[str] = Query(None),
    strategy_type: Optional[str] = Query(None, alias="strategyType"),
    market=Depends(get_market_data_service),
) -> Dict[str, Dict[str, Any]]:
    return await market.live_prices(symbols, strategy_type)


@router.post("/live-prices/bulk")
async def bulk_live_prices(payload: BulkPricesIn, market=Depends(get_market_data_service)) -> Dict[str, Dict[str, Any]]:
    items = []
    for entry in payload.symbols:
        if isinstance(entry, SymbolRef):
            items.append({"symbol": entry.symbol, "strategyType": entry.strategy_type})
        else:
            items.append({"symbol": entry, "strategyType": None})
    return await market.bulk_prices(items)


@router.get("/option-chain/expiries")
async def option_expiries(
    underlying: str = Query(...),
    exchange: str = Query("NSE"),
    market=Depends(get_market_data_service),
) -> List[str]:
    return await market.option_expiries(exchange, underlying)


@router.get("/option-chain")
async def option_chain(
    underlying: str = Query(...),
    expiry: str = Query(...),
    exchange: str = Query("NSE"),
    market=Depends(get_market_data_service),
) -> Dict[str, Any]:
    return await market.option_chain(exchange, underlying, expiry)
