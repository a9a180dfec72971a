"""Backtest routes.

Every run gets a fresh combined model and engine, so requests never share state with the live
signal services or with each other.
"""
import logging
from typing import Dict, List
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from src.api.routes.market_data import BarIn
from src.config import settings
from src.engine.indicators import enrich_bars
from src.models.backtest_models import BacktestConfig
from src.models.news_models import NewsItem, SocialMediaPost
from src.services.signal_services import build_signal_services
from src.utils.errors import TradingCoreError

logger = logging.getLogger("backtest_api")

router = APIRouter(prefix="/backtest", tags=["backtest"])

class BacktestRequest(BaseModel):
    config: BacktestConfig = Field(default_factory=BacktestConfig.from_settings)
    bars: Dict[str, List[BarIn]]
    news: List[NewsItem] = Field(default_factory=list)
    social: List[SocialMediaPost] = Field(default_factory=list)
    technical_only: bool = Field(False, description="Skip the sentiment requirement")
    enrich: bool = Field(True, description="Compute indicators for the supplied bars")

@router.post("/run")
def run_backtest(request: BacktestRequest):
    if not request.bars:
        raise HTTPException(status_code=400, detail="No bars supplied")
    services = build_signal_services()
    if request.technical_only:
        services.combined.update_config(use_sentiment_filter=False)

    historical = {}
    for symbol, rows in request.bars.items():
        bars = [row.to_bar(symbol) for row in rows]
        historical[symbol] = (
            enrich_bars(bars, incremental_macd=settings.INDICATORS_INCREMENTAL_MACD) if request.enrich else bars
        )

    services.combined.setup_backtesting(request.config, rng=services.execution_rng())
    try:
        result = services.combined.run_backtest(historical, news=request.news, social=request.social)
    except TradingCoreError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return result.to_dict()

__all__ = ["router"]
