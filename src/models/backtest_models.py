"""Backtest configuration, position/trade records and the aggregate result."""
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from src.config import Settings, settings as default_settings
from src.utils.orders_enum import Direction, ExitReason, SlippageModel
from src.utils.time_utils import now_utc, to_utc


def _default_start() -> datetime:
    return now_utc() - timedelta(days=365)


class BacktestConfig(BaseModel):
    initial_capital: float = Field(100000.0, gt=0)
    symbols: List[str] = Field(default_factory=list)
    start_date: datetime = Field(default_factory=_default_start)
    end_date: datetime = Field(default_factory=now_utc)
    trading_frequency: int = Field(60, gt=0, description="Replay step in minutes")
    slippage_model: SlippageModel = SlippageModel.FIXED
    slippage_amount: float = Field(0.05, ge=0, description="Percent of price")
    commission: float = Field(0.1, ge=0, description="Percent of notional, charged on entry and exit")
    use_stop_loss: bool = True
    use_take_profit: bool = True
    stop_loss_percent: float = Field(2.0, ge=0, lt=100)
    take_profit_percent: float = Field(4.0, ge=0)
    risk_per_trade_percent: float = Field(1.0, gt=0, le=100)
    max_open_positions: int = Field(5, ge=0)
    max_drawdown_percent: Optional[float] = Field(None, gt=0, le=100)
    model_confidence_threshold: float = Field(0.7, ge=0, le=1)
    max_steps: Optional[int] = Field(None, gt=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @model_validator(mode="after")
    def _ordered_range(self) -> "BacktestConfig":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self

    @classmethod
    def from_settings(cls, s: Settings = default_settings, **overrides: Any) -> "BacktestConfig":
        values: Dict[str, Any] = {
            "initial_capital": s.BACKTEST_INITIAL_CAPITAL,
            "commission": s.BACKTEST_COMMISSION_PERCENT,
            "slippage_amount": s.BACKTEST_SLIPPAGE_PERCENT,
            "max_steps": s.BACKTEST_MAX_STEPS,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class BacktestPosition:
    symbol: str
    entry_price: float
    quantity: int
    entry_time: datetime
    stop_loss: float
    take_profit: float
    entry_commission: float = 0.0
    direction: Direction = Direction.LONG


@dataclass(frozen=True)
class BacktestTrade:
    symbol: str
    entry_time: datetime
    entry_price: float
    exit_time: datetime
    exit_price: float
    quantity: int
    direction: Direction
    pnl: float
    pnl_percent: float
    holding_period_hours: float
    exit_reason: ExitReason


@dataclass(frozen=True)
class EquityPoint:
    date: datetime
    equity: float


@dataclass
class SymbolPerformance:
    trades: int
    win_rate: float  # percent
    pnl: float


@dataclass
class BacktestResult:
    start_date: datetime
    end_date: datetime
    initial_capital: float
    final_capital: float
    total_return: float
    total_return_percent: float
    annualized_return: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float  # percent
    average_win: float
    average_loss: float
    largest_win: float
    largest_loss: float
    profit_factor: float  # math.inf when there are wins and no losses
    sharpe_ratio: float
    max_drawdown: float
    max_drawdown_percent: float
    average_holding_period_hours: float
    trades: List[BacktestTrade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    monthly_returns: Dict[str, float] = field(default_factory=dict)
    symbol_performance: Dict[str, SymbolPerformance] = field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        return {
            "initial_capital": self.initial_capital,
            "final_capital": round(self.final_capital, 2),
            "total_return_percent": round(self.total_return_percent, 2),
            "annualized_return": round(self.annualized_return, 2),
            "trades": self.total_trades,
            "win_rate": round(self.win_rate, 2),
            "profit_factor": self.profit_factor,
            "sharpe_ratio": round(self.sharpe_ratio, 3),
            "max_drawdown_percent": round(self.max_drawdown_percent, 2),
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form: datetimes as ISO strings, enums as values, an unbounded profit factor as None."""
        out = asdict(self)
        out["start_date"] = self.start_date.isoformat()
        out["end_date"] = self.end_date.isoformat()
        out["profit_factor"] = None if math.isinf(self.profit_factor) else self.profit_factor
        for trade in out["trades"]:
            trade["entry_time"] = trade["entry_time"].isoformat()
            trade["exit_time"] = trade["exit_time"].isoformat()
            trade["direction"] = trade["direction"].value
            trade["exit_reason"] = trade["exit_reason"].value
        for point in out["equity_curve"]:
            point["date"] = point["date"].isoformat()
        return out
