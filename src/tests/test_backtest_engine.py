"""Bar-replay engine scenarios on small deterministic bar sequences."""
import random
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from src.execution.backtest_engine import BacktestEngine, BacktestState
from src.models.backtest_models import BacktestConfig
from src.models.market_models import MarketDataBar
from src.utils.errors import BacktestStateError
from src.utils.orders_enum import Action, ExitReason, SlippageModel
from src.utils.time_utils import to_utc

T0 = to_utc(datetime(2024, 1, 1, 10))


def _bars(symbol="AAPL", n=6, price=100.0, lows=None, highs=None):
    lows = lows or {}
    highs = highs or {}
    return [
        MarketDataBar(symbol, T0 + timedelta(hours=i), price, highs.get(i, price + 1), lows.get(i, price - 1), price, 1000.0)
        for i in range(n)
    ]


def _walk(symbol, n=48, seed=5):
    rng = random.Random(seed)
    price = 100.0
    out = []
    for i in range(n):
        price *= 1 + (rng.random() - 0.5) / 25
        out.append(MarketDataBar(symbol, T0 + timedelta(hours=i), price, price * 1.01, price * 0.99, price, 1000.0))
    return out


def _config(hours=5, **overrides):
    values = dict(
        initial_capital=100000.0,
        start_date=T0,
        end_date=T0 + timedelta(hours=hours),
        trading_frequency=60,
        slippage_model=SlippageModel.NONE,
        commission=0.0,
    )
    values.update(overrides)
    return BacktestConfig(**values)


def _signal(action, confidence=0.9):
    return SimpleNamespace(action=action, confidence=confidence)


def buy_first_bar(bar):
    return _signal(Action.BUY) if bar.timestamp == _bars()[0].timestamp else _signal(Action.HOLD)


def alternating(bar):
    # deterministic: BUY on even hours, SELL on every third hour
    if bar.timestamp.hour % 3 == 0:
        return _signal(Action.SELL)
    if bar.timestamp.hour % 2 == 0:
        return _signal(Action.BUY, 0.8)
    return None


def test_hold_only_keeps_capital():
    engine = BacktestEngine(_config())
    engine.load_historical_data("AAPL", _bars())
    result = engine.run_backtest(lambda bar: _signal(Action.HOLD))
    assert result.total_trades == 0
    assert result.final_capital == 100000.0
    assert result.total_return == 0
    assert result.profit_factor == 0.0
    assert result.sharpe_ratio == 0.0
    assert len(result.equity_curve) == 7  # initial point + 6 steps


def test_stop_loss_exit():
    engine = BacktestEngine(_config())
    engine.load_historical_data("AAPL", _bars(lows={1: 97.0}))
    result = engine.run_backtest(buy_first_bar)
    assert result.total_trades == 1
    trade = result.trades[0]
    assert trade.quantity == 500
    assert trade.exit_reason == ExitReason.STOP_LOSS
    assert trade.exit_price == pytest.approx(98.0)
    assert trade.pnl == pytest.approx(-1000.0)
    assert trade.holding_period_hours == pytest.approx(1.0)
    assert result.final_capital == pytest.approx(99000.0)


def test_stop_checked_before_take_profit():
    engine = BacktestEngine(_config())
    engine.load_historical_data("AAPL", _bars(lows={2: 97.0}, highs={2: 105.0}))
    result = engine.run_backtest(buy_first_bar)
    assert result.trades[0].exit_reason == ExitReason.STOP_LOSS


def test_take_profit_exit():
    engine = BacktestEngine(_config())
    engine.load_historical_data("AAPL", _bars(highs={3: 105.0}))
    result = engine.run_backtest(buy_first_bar)
    trade = result.trades[0]
    assert trade.exit_reason == ExitReason.TAKE_PROFIT
    assert trade.exit_price == pytest.approx(104.0)
    assert result.profit_factor == float("inf")
    assert result.to_dict()["profit_factor"] is None


def test_open_positions_closed_at_end():
    engine = BacktestEngine(_config())
    engine.load_historical_data("AAPL", _bars())
    result = engine.run_backtest(buy_first_bar)
    assert [t.exit_reason for t in result.trades] == [ExitReason.END_OF_BACKTEST]
    assert engine.open_positions == []


def test_one_position_per_symbol():
    engine = BacktestEngine(_config())
    engine.load_historical_data("AAPL", _bars())
    result = engine.run_backtest(lambda bar: _signal(Action.BUY))
    assert result.total_trades == 1


def test_max_open_positions_shared_across_symbols():
    engine = BacktestEngine(_config(max_open_positions=1))
    engine.load_historical_data("AAPL", _bars("AAPL"))
    engine.load_historical_data("MSFT", _bars("MSFT"))
    result = engine.run_backtest(lambda bar: _signal(Action.BUY))
    assert [t.symbol for t in result.trades] == ["AAPL"]


def test_sell_signal_closes_position():
    engine = BacktestEngine(_config())
    engine.load_historical_data("AAPL", _bars())
    result = engine.run_backtest(
        lambda bar: _signal(Action.BUY) if bar.timestamp == T0 else _signal(Action.SELL)
    )
    assert result.trades[0].exit_reason == ExitReason.SELL_SIGNAL
    assert result.trades[0].exit_time == T0 + timedelta(hours=1)


def test_low_confidence_signals_ignored():
    engine = BacktestEngine(_config(model_confidence_threshold=0.95))
    engine.load_historical_data("AAPL", _bars())
    assert engine.run_backtest(lambda bar: _signal(Action.BUY, 0.9)).total_trades == 0


def test_commission_and_fixed_slippage():
    engine = BacktestEngine(_config(slippage_model=SlippageModel.FIXED, slippage_amount=1.0, commission=0.1))
    engine.load_historical_data("AAPL", _bars())
    result = engine.run_backtest(buy_first_bar)
    trade = result.trades[0]
    assert trade.entry_price == pytest.approx(101.0)
    assert trade.exit_price == pytest.approx(99.0)
    entry_commission = trade.entry_price * trade.quantity * 0.001
    exit_commission = trade.exit_price * trade.quantity * 0.001
    expected = (99.0 - 101.0) * trade.quantity - entry_commission - exit_commission
    assert trade.pnl == pytest.approx(expected)
    assert result.final_capital == pytest.approx(100000.0 + expected)


def test_deterministic_reruns():
    def run():
        engine = BacktestEngine(_config(hours=47))
        engine.load_historical_data("AAPL", _walk("AAPL"))
        engine.load_historical_data("MSFT", _walk("MSFT", seed=8))
        return engine.run_backtest(alternating)

    a, b = run(), run()
    assert a.trades == b.trades
    assert a.equity_curve == b.equity_curve
    assert a.total_trades > 0


def test_equity_invariant_and_pnl_reconciliation():
    class CheckedEngine(BacktestEngine):
        checks = 0

        def update_current_equity(self):
            equity = super().update_current_equity()
            marked = sum(
                (self.bar_at(p.symbol).close if self.bar_at(p.symbol) else p.entry_price) * p.quantity
                for p in self.open_positions
            )
            assert equity == pytest.approx(self.cash + marked)
            CheckedEngine.checks += 1
            return equity

    engine = CheckedEngine(_config(hours=47, commission=0.1, slippage_model=SlippageModel.FIXED))
    engine.load_historical_data("AAPL", _walk("AAPL"))
    engine.load_historical_data("MSFT", _walk("MSFT", seed=8))
    result = engine.run_backtest(alternating)
    assert CheckedEngine.checks > 48
    assert result.final_capital == pytest.approx(result.initial_capital + sum(t.pnl for t in result.trades))
    assert result.max_drawdown_percent >= 0
    assert sum(p.trades for p in result.symbol_performance.values()) == result.total_trades


def test_signal_failure_is_isolated():
    def flaky(bar):
        if bar.symbol == "BAD":
            raise RuntimeError("model exploded")
        return _signal(Action.BUY) if bar.timestamp == T0 else None

    engine = BacktestEngine(_config())
    engine.load_historical_data("BAD", _bars("BAD"))
    engine.load_historical_data("AAPL", _bars("AAPL"))
    result = engine.run_backtest(flaky)
    assert [t.symbol for t in result.trades] == ["AAPL"]


def test_state_machine():
    engine = BacktestEngine(_config())
    assert engine.state == BacktestState.CREATED
    with pytest.raises(BacktestStateError):
        engine.run_backtest(lambda bar: None)
    assert engine.load_historical_data("AAPL", _bars(n=0)) == 0
    assert engine.state == BacktestState.CREATED
    engine.load_historical_data("AAPL", _bars())
    assert engine.state == BacktestState.LOADED
    engine.run_backtest(lambda bar: None)
    assert engine.state == BacktestState.FINISHED
    with pytest.raises(BacktestStateError):
        engine.run_backtest(lambda bar: None)
    with pytest.raises(BacktestStateError):
        engine.load_historical_data("AAPL", _bars())


def test_bars_outside_window_are_dropped():
    engine = BacktestEngine(_config(hours=2))
    assert engine.load_historical_data("AAPL", _bars(n=6)) == 3


def test_max_steps_safety_valve():
    engine = BacktestEngine(_config(max_steps=2))
    engine.load_historical_data("AAPL", _bars())
    result = engine.run_backtest(lambda bar: None)
    assert engine.steps == 2
    assert len(result.equity_curve) == 3


def test_drawdown_limit_blocks_entries():
    engine = BacktestEngine(_config(max_drawdown_percent=0.5))
    engine.load_historical_data("AAPL", _bars(lows={1: 97.0}))
    result = engine.run_backtest(lambda bar: _signal(Action.BUY))
    # first trade loses 1% of capital; afterwards entries stay blocked
    assert result.total_trades == 1


def test_variable_slippage_is_bounded_and_seeded():
    def run(seed):
        engine = BacktestEngine(
            _config(slippage_model=SlippageModel.VARIABLE, slippage_amount=1.0),
            rng=random.Random(seed),
        )
        engine.load_historical_data("AAPL", _bars())
        return engine.run_backtest(buy_first_bar)

    result = run(11)
    trade = result.trades[0]
    assert trade.exit_reason == ExitReason.END_OF_BACKTEST
    assert 100.0 <= trade.entry_price < 101.0
    assert 99.0 < trade.exit_price <= 100.0
    again = run(11)
    assert again.trades == result.trades
    assert again.equity_curve == result.equity_curve
