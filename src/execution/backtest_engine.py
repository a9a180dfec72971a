"""Bar-replay backtest engine.

One engine owns one run: load bars per symbol, then `run_backtest(signal_fn)` steps a clock from
`start_date` to `end_date` (inclusive) in `trading_frequency`-minute increments. Each step first
checks open positions against their stop-loss / take-profit (stop first), then asks `signal_fn`
for an opinion on the latest bar of every symbol, in load order. Cash and the open-position limit
are shared, so an entry for one symbol can block another in the same step.

Only long positions are simulated and a symbol holds at most one open position.
"""
import bisect
import logging
import random
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from src.execution.performance import compute_result
from src.execution.simulator import ExecutionCostModel
from src.models.backtest_models import (
    BacktestConfig,
    BacktestPosition,
    BacktestResult,
    BacktestTrade,
    EquityPoint,
)
from src.models.market_models import MarketDataBar
from src.services.metrics import (
    backtest_duration,
    backtest_runs_counter,
    backtest_trades_counter,
    signal_failures_counter,
)
from src.services.risk_manager import RiskManager
from src.utils.errors import BacktestStateError
from src.utils.orders_enum import Action, Direction, ExitReason
from src.utils.time_utils import hours_between

logger = logging.getLogger("backtest_engine")

# Returns any object with `action` and `confidence` (TradingSignal, ModelPrediction) or None.
SignalFn = Callable[[MarketDataBar], Optional[object]]


class BacktestState(str, Enum):
    CREATED = "created"
    LOADED = "loaded"
    RUNNING = "running"
    FINISHED = "finished"


class BacktestEngine:
    def __init__(self, config: Optional[BacktestConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or BacktestConfig.from_settings()
        self.costs = ExecutionCostModel(
            slippage_model=self.config.slippage_model,
            slippage_amount=self.config.slippage_amount,
            commission=self.config.commission,
            rng=rng,
        )
        self.risk = RiskManager(
            risk_per_trade_percent=self.config.risk_per_trade_percent,
            stop_loss_percent=self.config.stop_loss_percent,
            take_profit_percent=self.config.take_profit_percent,
            max_drawdown_percent=self.config.max_drawdown_percent,
        )
        self.state = BacktestState.CREATED
        self.historical_data: Dict[str, List[MarketDataBar]] = {}
        self._timestamps: Dict[str, List[datetime]] = {}

        initial = self.config.initial_capital
        self.cash = initial
        self.current_equity = initial
        self.high_water_mark = initial
        self.current_time = self.config.start_date
        self.open_positions: List[BacktestPosition] = []
        self.closed_trades: List[BacktestTrade] = []
        self.equity_curve: List[EquityPoint] = [EquityPoint(self.config.start_date, initial)]
        self.steps = 0

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------
    def load_historical_data(self, symbol: str, bars: Iterable[MarketDataBar]) -> int:
        """Keep the bars inside [start_date, end_date], sorted; returns how many were kept."""
        if self.state in (BacktestState.RUNNING, BacktestState.FINISHED):
            raise BacktestStateError(f"cannot load data while the backtest is {self.state.value}")
        start, end = self.config.start_date, self.config.end_date
        by_ts = {b.timestamp: b for b in bars if start <= b.timestamp <= end}
        if not by_ts:
            logger.warning(f"No data for {symbol} in backtest period {start.isoformat()} - {end.isoformat()}")
            return 0
        window = [by_ts[ts] for ts in sorted(by_ts)]
        self.historical_data[symbol] = window
        self._timestamps[symbol] = [b.timestamp for b in window]
        self.state = BacktestState.LOADED
        logger.info(f"Loaded {len(window)} bars for {symbol}")
        return len(window)

    def bar_at(self, symbol: str, when: Optional[datetime] = None) -> Optional[MarketDataBar]:
        """Latest bar at or before `when` (default: the engine clock)."""
        stamps = self._timestamps.get(symbol)
        if not stamps:
            return None
        idx = bisect.bisect_right(stamps, when or self.current_time)
        return self.historical_data[symbol][idx - 1] if idx > 0 else None

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    def run_backtest(self, signal_fn: SignalFn) -> BacktestResult:
        if self.state == BacktestState.FINISHED:
            raise BacktestStateError("backtest already finished; build a new engine for another run")
        if self.state != BacktestState.LOADED or not self.historical_data:
            raise BacktestStateError("No historical data loaded. Call load_historical_data() first.")

        self.state = BacktestState.RUNNING
        started = time.perf_counter()
        step = timedelta(minutes=self.config.trading_frequency)
        logger.info(
            f"Starting backtest {self.config.start_date.isoformat()} -> {self.config.end_date.isoformat()} "
            f"symbols={list(self.historical_data)} step={self.config.trading_frequency}m"
        )
        try:
            while self.current_time <= self.config.end_date:
                if self.config.max_steps is not None and self.steps >= self.config.max_steps:
                    logger.warning(f"Backtest stopped after max_steps={self.config.max_steps} at {self.current_time.isoformat()}")
                    break
                self._process_time_step(signal_fn)
                self.current_time += step
                self.steps += 1
                self._record_equity()

            self._close_all_positions(ExitReason.END_OF_BACKTEST)
        except Exception:
            self.state = BacktestState.FINISHED
            backtest_runs_counter.labels(status="error").inc()
            raise

        self.state = BacktestState.FINISHED
        result = compute_result(
            self.config,
            self.closed_trades,
            self.equity_curve,
            self.current_equity,
            self.historical_data.keys(),
        )
        backtest_duration.observe(time.perf_counter() - started)
        backtest_runs_counter.labels(status="completed").inc()
        logger.info(f"Backtest finished: {result.summary()}")
        return result

    def _process_time_step(self, signal_fn: SignalFn) -> None:
        self._update_open_positions()

        current = {symbol: self.bar_at(symbol) for symbol in self.historical_data}
        for symbol, bar in current.items():
            if bar is None:
                continue
            try:
                signal = signal_fn(bar)
            except Exception:
                logger.exception(f"Signal function failed for {symbol} at {self.current_time.isoformat()}")
                signal_failures_counter.labels(source="backtest").inc()
                continue
            if signal is None or signal.confidence < self.config.model_confidence_threshold:
                continue
            if signal.action == Action.BUY:
                if self._can_open_position(symbol):
                    self._execute_entry(symbol, bar)
            elif signal.action == Action.SELL:
                position = self._position_for(symbol)
                if position is not None:
                    self._close_position(position, ExitReason.SELL_SIGNAL)

    def _position_for(self, symbol: str) -> Optional[BacktestPosition]:
        for position in self.open_positions:
            if position.symbol == symbol:
                return position
        return None

    def _can_open_position(self, symbol: str) -> bool:
        if len(self.open_positions) >= self.config.max_open_positions:
            return False
        if self._position_for(symbol) is not None:
            return False
        if self.risk.check_drawdown_stop(self.current_equity, self.high_water_mark):
            logger.debug(f"Entry for {symbol} blocked: drawdown limit {self.config.max_drawdown_percent}% exceeded")
            return False
        return True

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------
    def _execute_entry(self, symbol: str, bar: MarketDataBar) -> None:
        entry_price = self.costs.fill_price(bar.close, is_entry=True)
        quantity = self.risk.calc_size(self.current_equity, entry_price, self.cash, self.costs.commission_pct)
        if quantity <= 0:
            logger.debug(f"Skipping entry for {symbol}: size 0 at {entry_price:.4f} (cash {self.cash:.2f})")
            return
        cost = quantity * entry_price
        commission = self.costs.commission(cost)
        self.cash -= cost + commission
        position = BacktestPosition(
            symbol=symbol,
            entry_price=entry_price,
            quantity=quantity,
            entry_time=self.current_time,
            stop_loss=self.risk.stop_price(entry_price),
            take_profit=self.risk.target_price(entry_price),
            entry_commission=commission,
        )
        self.open_positions.append(position)
        self.update_current_equity()
        logger.info(f"[{self.current_time.isoformat()}] Opened position: {symbol}, {quantity} @ {entry_price:.4f}")

    def _update_open_positions(self) -> None:
        for position in list(self.open_positions):
            bar = self.bar_at(position.symbol)
            if bar is None:
                continue
            if self.config.use_stop_loss and bar.low <= position.stop_loss:
                self._close_position(position, ExitReason.STOP_LOSS, position.stop_loss)
                continue
            if self.config.use_take_profit and bar.high >= position.take_profit:
                self._close_position(position, ExitReason.TAKE_PROFIT, position.take_profit)

    def _close_position(self, position: BacktestPosition, reason: ExitReason, override_price: Optional[float] = None) -> None:
        if position not in self.open_positions:
            return
        if override_price is not None:
            raw_price = override_price
        else:
            bar = self.bar_at(position.symbol)
            raw_price = bar.close if bar is not None else position.entry_price
        exit_price = self.costs.fill_price(raw_price, is_entry=False)

        exit_value = exit_price * position.quantity
        commission = self.costs.commission(exit_value)
        pnl = (exit_price - position.entry_price) * position.quantity - commission - position.entry_commission
        self.cash += exit_value - commission
        self.open_positions.remove(position)
        self.update_current_equity()

        trade = BacktestTrade(
            symbol=position.symbol,
            entry_time=position.entry_time,
            entry_price=position.entry_price,
            exit_time=self.current_time,
            exit_price=exit_price,
            quantity=position.quantity,
            direction=Direction.LONG,
            pnl=pnl,
            pnl_percent=(exit_price / position.entry_price - 1) * 100,
            holding_period_hours=hours_between(position.entry_time, self.current_time),
            exit_reason=reason,
        )
        self.closed_trades.append(trade)
        backtest_trades_counter.labels(exit_reason=reason.value).inc()
        logger.info(
            f"[{self.current_time.isoformat()}] Closed position: {position.symbol}, "
            f"P&L: {pnl:.2f} ({trade.pnl_percent:.2f}%), Reason: {reason.value}"
        )

    def _close_all_positions(self, reason: ExitReason) -> None:
        while self.open_positions:
            self._close_position(self.open_positions[0], reason)

    # ------------------------------------------------------------------
    # Equity
    # ------------------------------------------------------------------
    def update_current_equity(self) -> float:
        """Mark open positions to the latest close (entry price without a bar); cash + positions."""
        positions_value = 0.0
        for position in self.open_positions:
            bar = self.bar_at(position.symbol)
            price = bar.close if bar is not None else position.entry_price
            positions_value += price * position.quantity
        self.current_equity = self.cash + positions_value
        if self.current_equity > self.high_water_mark:
            self.high_water_mark = self.current_equity
        return self.current_equity

    def _record_equity(self) -> None:
        self.update_current_equity()
        self.equity_curve.append(EquityPoint(self.current_time, self.current_equity))
