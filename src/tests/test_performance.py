import math
from datetime import datetime, timedelta

import pytest

from src.execution.performance import (
    annualized_return,
    compute_result,
    max_drawdown,
    monthly_returns,
    profit_factor,
    sharpe_ratio,
    symbol_breakdown,
)
from src.models.backtest_models import BacktestConfig, BacktestTrade, EquityPoint
from src.utils.orders_enum import Direction, ExitReason
from src.utils.time_utils import to_utc

START = to_utc(datetime(2024, 1, 30))


def _trade(symbol, pnl, hours=2.0):
    return BacktestTrade(
        symbol=symbol, entry_time=START, entry_price=100.0, exit_time=START + timedelta(hours=hours),
        exit_price=100.0 + pnl / 10, quantity=10, direction=Direction.LONG, pnl=pnl,
        pnl_percent=pnl / 10, holding_period_hours=hours, exit_reason=ExitReason.SELL_SIGNAL,
    )


def test_sharpe_degenerate_cases():
    assert sharpe_ratio([]) == 0.0
    assert sharpe_ratio([100.0]) == 0.0
    assert sharpe_ratio([100.0, 100.0, 100.0]) == 0.0


def test_sharpe_uses_population_std():
    equity = [100.0, 110.0, 99.0, 108.9]
    returns = [0.1, -0.1, 0.1]
    mean = sum(returns) / 3
    std = math.sqrt(sum((r - mean) ** 2 for r in returns) / 3)
    assert sharpe_ratio(equity) == pytest.approx(mean / std * math.sqrt(252))


def test_max_drawdown_tracks_running_peak():
    amount, percent = max_drawdown([100.0, 120.0, 90.0, 130.0, 117.0])
    assert amount == pytest.approx(30.0)
    assert percent == pytest.approx(25.0)
    assert max_drawdown([100.0, 101.0, 102.0]) == (0.0, 0.0)


def test_profit_factor_edges():
    assert profit_factor(200.0, 100.0) == 2.0
    assert profit_factor(50.0, 0.0) == math.inf
    assert profit_factor(0.0, 0.0) == 0.0


def test_annualized_return():
    assert annualized_return(10.0, 1.0) == pytest.approx(10.0)
    assert annualized_return(21.0, 2.0) == pytest.approx(10.0)
    assert annualized_return(5.0, 0.0) == 0.0
    assert annualized_return(-100.0, 1.0) == -100.0


def test_monthly_returns_keyed_by_month():
    curve = [
        EquityPoint(START, 100.0),
        EquityPoint(START + timedelta(days=1), 110.0),
        EquityPoint(START + timedelta(days=3), 110.0),
        EquityPoint(START + timedelta(days=5), 99.0),
    ]
    months = monthly_returns(curve)
    assert list(months) == ["2024-01", "2024-02"]
    assert months["2024-01"] == pytest.approx(10.0)
    assert months["2024-02"] == pytest.approx(-10.0)


def test_symbol_breakdown_includes_untraded_symbols():
    trades = [_trade("AAPL", 50.0), _trade("AAPL", -10.0)]
    breakdown = symbol_breakdown(["AAPL", "MSFT"], trades)
    assert breakdown["AAPL"].trades == 2
    assert breakdown["AAPL"].win_rate == 50.0
    assert breakdown["AAPL"].pnl == pytest.approx(40.0)
    assert breakdown["MSFT"].trades == 0


def test_compute_result_aggregates():
    config = BacktestConfig(initial_capital=1000.0, start_date=START, end_date=START + timedelta(days=365))
    trades = [_trade("AAPL", 60.0, 2), _trade("AAPL", -20.0, 4), _trade("MSFT", 40.0, 6)]
    curve = [EquityPoint(START, 1000.0), EquityPoint(START + timedelta(days=1), 1080.0)]
    result = compute_result(config, trades, curve, 1080.0, ["AAPL", "MSFT"])
    assert result.total_return == pytest.approx(80.0)
    assert result.total_return_percent == pytest.approx(8.0)
    assert result.annualized_return == pytest.approx(8.0)
    assert result.winning_trades == 2 and result.losing_trades == 1
    assert result.win_rate == pytest.approx(200 / 3)
    assert result.average_win == pytest.approx(50.0)
    assert result.average_loss == pytest.approx(20.0)
    assert result.largest_win == 60.0
    assert result.largest_loss == -20.0
    assert result.profit_factor == pytest.approx(5.0)
    assert result.average_holding_period_hours == pytest.approx(4.0)
    body = result.to_dict()
    assert body["trades"][0]["exit_reason"] == "Sell signal"
    assert body["start_date"] == START.isoformat()
    assert body["symbol_performance"]["MSFT"]["pnl"] == 40.0
