"""Backtest result statistics.

Degenerate inputs resolve to explicit values instead of NaN: an empty or flat equity curve
gives a Sharpe ratio of 0, a zero-length date range gives an annualized return of 0, and the
profit factor is math.inf with wins and no losses, 0 with neither.
"""
import math
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from src.models.backtest_models import (
    BacktestConfig,
    BacktestResult,
    BacktestTrade,
    EquityPoint,
    SymbolPerformance,
)
from src.utils.time_utils import month_key, year_fraction

TRADING_DAYS = 252


def sharpe_ratio(equity: Sequence[float]) -> float:
    """Mean over population std of per-step returns, scaled by sqrt(252)."""
    values = np.asarray(equity, dtype=float)
    if len(values) < 2:
        return 0.0
    returns = np.diff(values) / values[:-1]
    std = returns.std()
    if std == 0 or not np.isfinite(std):
        return 0.0
    return float(returns.mean() / std * math.sqrt(TRADING_DAYS))


def max_drawdown(equity: Sequence[float]) -> Tuple[float, float]:
    """(amount, percent) of the deepest decline below the running high-water mark."""
    values = np.asarray(equity, dtype=float)
    if len(values) == 0:
        return 0.0, 0.0
    peaks = np.maximum.accumulate(values)
    drawdowns = peaks - values
    with np.errstate(divide="ignore", invalid="ignore"):
        percents = np.where(peaks > 0, drawdowns / peaks * 100, 0.0)
    worst = int(np.argmax(percents))
    if percents[worst] <= 0:
        return 0.0, 0.0
    return float(drawdowns[worst]), float(percents[worst])


def monthly_returns(curve: Sequence[EquityPoint]) -> Dict[str, float]:
    """Percent change between the first and last equity point of each calendar month ('YYYY-MM')."""
    if not curve:
        return {}
    frame = pd.DataFrame({
        "month": [month_key(p.date) for p in curve],
        "equity": [p.equity for p in curve],
    })
    grouped = frame.groupby("month", sort=True)["equity"].agg(["first", "last"])
    return {month: float((row["last"] / row["first"] - 1) * 100) for month, row in grouped.iterrows()}


def profit_factor(gross_win: float, gross_loss: float) -> float:
    if gross_loss != 0:
        return gross_win / gross_loss
    return math.inf if gross_win > 0 else 0.0


def annualized_return(total_return_percent: float, years: float) -> float:
    if years <= 0:
        return 0.0
    base = 1 + total_return_percent / 100
    if base <= 0:
        return -100.0
    return (base ** (1 / years) - 1) * 100


def symbol_breakdown(symbols: Iterable[str], trades: Sequence[BacktestTrade]) -> Dict[str, SymbolPerformance]:
    out: Dict[str, SymbolPerformance] = {}
    for symbol in symbols:
        mine = [t for t in trades if t.symbol == symbol]
        wins = [t for t in mine if t.pnl > 0]
        out[symbol] = SymbolPerformance(
            trades=len(mine),
            win_rate=len(wins) / len(mine) * 100 if mine else 0.0,
            pnl=sum(t.pnl for t in mine),
        )
    return out


def compute_result(
    config: BacktestConfig,
    trades: List[BacktestTrade],
    equity_curve: List[EquityPoint],
    final_capital: float,
    symbols: Iterable[str],
) -> BacktestResult:
    initial = config.initial_capital
    wins = [t for t in trades if t.pnl > 0]
    losses = [t for t in trades if t.pnl <= 0]
    gross_win = sum(t.pnl for t in wins)
    gross_loss = abs(sum(t.pnl for t in losses))

    total_return = final_capital - initial
    total_return_percent = total_return / initial * 100
    dd, dd_pct = max_drawdown([p.equity for p in equity_curve])

    return BacktestResult(
        start_date=config.start_date,
        end_date=config.end_date,
        initial_capital=initial,
        final_capital=final_capital,
        total_return=total_return,
        total_return_percent=total_return_percent,
        annualized_return=annualized_return(total_return_percent, year_fraction(config.start_date, config.end_date)),
        total_trades=len(trades),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / len(trades) * 100 if trades else 0.0,
        average_win=gross_win / len(wins) if wins else 0.0,
        average_loss=gross_loss / len(losses) if losses else 0.0,
        largest_win=max((t.pnl for t in wins), default=0.0),
        largest_loss=min((t.pnl for t in losses), default=0.0),
        profit_factor=profit_factor(gross_win, gross_loss),
        sharpe_ratio=sharpe_ratio([p.equity for p in equity_curve]),
        max_drawdown=dd,
        max_drawdown_percent=dd_pct,
        average_holding_period_hours=sum(t.holding_period_hours for t in trades) / len(trades) if trades else 0.0,
        trades=list(trades),
        equity_curve=list(equity_curve),
        monthly_returns=monthly_returns(equity_curve),
        symbol_performance=symbol_breakdown(symbols, trades),
    )
