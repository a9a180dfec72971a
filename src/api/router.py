"""Unified API router aggregator.

Adds all individual feature routers here to keep `app.py` clean.
"""
from fastapi import APIRouter

from src.api.routes.backtest import router as backtest_router
from src.api.routes.market_data import router as market_data_router
from src.api.routes.sentiment import router as sentiment_router
from src.api.routes.signals import router as signals_router
from src.api.routes.system import router as system_router

api_router = APIRouter()
api_router.include_router(system_router)
api_router.include_router(market_data_router)
api_router.include_router(signals_router)
api_router.include_router(sentiment_router)
api_router.include_router(backtest_router)

__all__ = ["api_router"]
