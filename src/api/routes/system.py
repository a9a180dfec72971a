"""System & metadata routes (root, health, config, metrics)."""
from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from src.config import settings
from src.api.dependencies.services import ServiceRegistry, get_service_registry
from src.utils.time_utils import now_utc

router = APIRouter()

@router.get("/")
async def root(registry: ServiceRegistry = Depends(get_service_registry)):
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "description": "Technical + sentiment trading signals and bar-replay backtesting",
        "services": registry.names(),
        "endpoints": {
            "health": "/health",
            "config": "/config",
            "metrics": "/metrics",
            "docs": "/docs",
            "market_data": "/market-data/{symbol}",
            "signals": "/signals",
            "sentiment": "/sentiment/",
            "backtest": "/backtest/run",
        },
    }

@router.get("/health")
async def health():
    return {"status": "healthy", "timestamp": now_utc().isoformat()}

@router.get("/config")
async def get_config(registry: ServiceRegistry = Depends(get_service_registry)):
    return {
        "app_port": settings.APP_PORT,
        "random_seed": settings.RANDOM_SEED,
        "services": registry.all_status(),
    }

@router.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

__all__ = ["router"]
