"""Hard-error taxonomy.

Insufficient data is never an exception here: signal producers return None for "no opinion".
These errors are raised for caller mistakes that a retry with more data would not fix.
"""


class TradingCoreError(Exception):
    """Base class for precondition failures raised by the signal and backtest core."""


class BacktestStateError(TradingCoreError):
    """Backtest engine used out of order (run before load, load while running, re-run)."""


class BacktestNotConfiguredError(TradingCoreError):
    """run_backtest called on a combined model before setup_backtesting."""


class MissingSignalSourceError(TradingCoreError):
    """A signal source required by the combiner configuration was not supplied."""

    def __init__(self, source: str):
        super().__init__(f"{source} signal is required by the combiner configuration but was not supplied")
        self.source = source


__all__ = [
    "TradingCoreError",
    "BacktestStateError",
    "BacktestNotConfiguredError",
    "MissingSignalSourceError",
]
