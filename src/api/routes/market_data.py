"""Market data ingestion routes."""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from src.api.dependencies.services import ServiceRegistry, get_service_registry
from src.config import settings
from src.engine.indicators import enrich_bars
from src.models.market_models import MarketDataBar

router = APIRouter(prefix="/market-data", tags=["market-data"])

class BarIn(BaseModel):
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(..., ge=0)
    rsi: Optional[float] = None
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None
    ema20: Optional[float] = None
    ema50: Optional[float] = None
    ema200: Optional[float] = None
    bollinger_upper: Optional[float] = None
    bollinger_middle: Optional[float] = None
    bollinger_lower: Optional[float] = None
    atr: Optional[float] = None
    obv: Optional[float] = None

    def to_bar(self, symbol: str) -> MarketDataBar:
        return MarketDataBar(symbol=symbol, **self.model_dump())

@router.post("/{symbol}")
async def ingest_bars(
    symbol: str,
    bars: List[BarIn],
    enrich: bool = False,
    registry: ServiceRegistry = Depends(get_service_registry),
):
    if not bars:
        raise HTTPException(status_code=400, detail="No bars supplied")
    model = registry.get("technical")
    incoming = [b.to_bar(symbol) for b in bars]
    if enrich:
        # indicators need the stored prefix; bars that already carry values keep them
        history = {b.timestamp: b for b in model.history(symbol)}
        for bar in incoming:
            history[bar.timestamp] = bar
        computed = enrich_bars(list(history.values()), incremental_macd=settings.INDICATORS_INCREMENTAL_MACD)
        fresh = {b.timestamp for b in incoming if not b.has_indicators()}
        incoming = [b for b in computed if b.timestamp in fresh] + [b for b in incoming if b.has_indicators()]
    model.add_market_data(symbol, incoming)
    history = model.history(symbol)
    return {
        "symbol": symbol,
        "received": len(bars),
        "history_size": len(history),
        "latest": history[-1].timestamp.isoformat() if history else None,
    }

__all__ = ["router"]
