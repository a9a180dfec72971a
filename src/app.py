import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from src.config import settings

from src.api.router import api_router
from src.api.dependencies.services import ServiceRegistry
from src.services.signal_services import build_signal_services
from src.utils.errors import TradingCoreError
from src.utils.logging_config import configure_logging

logger = logging.getLogger("app")


def _bootstrap_services(seed=None) -> ServiceRegistry:
    registry = ServiceRegistry()
    services = build_signal_services(seed=seed)
    registry.register("technical", services.technical)
    registry.register("sentiment", services.sentiment)
    registry.register("combined", services.combined)
    return registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME} (services: {app.state.registry.names()})")
    yield
    logger.info(f"{settings.APP_NAME} shut down")


async def _precondition_failed(request: Request, exc: TradingCoreError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def create_app(seed=None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Technical + sentiment trading signals and bar-replay backtesting",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.registry = _bootstrap_services(seed)
    app.add_exception_handler(TradingCoreError, _precondition_failed)
    app.include_router(api_router)
    return app


app = create_app()
