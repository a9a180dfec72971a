from .system import router as system_router  # noqa: F401
from .market_data import router as market_data_router  # noqa: F401
from .signals import router as signals_router  # noqa: F401
from .sentiment import router as sentiment_router  # noqa: F401
from .backtest import router as backtest_router  # noqa: F401

__all__ = ["system_router", "market_data_router", "signals_router", "sentiment_router", "backtest_router"]
