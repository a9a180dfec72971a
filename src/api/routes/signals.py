"""Combined and technical signal routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from src.api.dependencies.services import ServiceRegistry, get_service_registry

logger = logging.getLogger("signals_api")

router = APIRouter(prefix="/signals", tags=["signals"])

@router.get("")
async def combined_signals(
    symbols: Optional[str] = Query(None, description="Comma separated, e.g. AAPL,MSFT"),
    registry: ServiceRegistry = Depends(get_service_registry),
):
    wanted = [s.strip() for s in (symbols or "").split(",") if s.strip()]
    if not wanted:
        raise HTTPException(status_code=400, detail="Query parameter 'symbols' is required")
    technical = registry.get("technical")
    combined = registry.get("combined")

    latest = {}
    for symbol in wanted:
        history = technical.history(symbol)
        if history:
            latest[symbol] = history[-1]
    signals = combined.generate_signals(wanted, latest)
    return {
        "signals": {symbol: signal.to_dict() if signal else None for symbol, signal in signals.items()},
        "generated": sum(1 for s in signals.values() if s is not None),
    }

@router.get("/technical/{symbol}")
async def technical_signal(symbol: str, registry: ServiceRegistry = Depends(get_service_registry)):
    prediction = registry.get("technical").generate_signal(symbol)
    if prediction is None:
        raise HTTPException(status_code=404, detail=f"Insufficient market data for {symbol}")
    return prediction

__all__ = ["router"]
