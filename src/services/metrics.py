from prometheus_client import Counter, Histogram

signals_counter = Counter(
    "signal_desk_signals_generated_total",
    "Signals generated",
    ["source", "action"],
)
signal_failures_counter = Counter(
    "signal_desk_signal_failures_total",
    "Per-symbol signal generation failures isolated from a batch",
    ["source"],
)
backtest_runs_counter = Counter(
    "signal_desk_backtest_runs_total",
    "Backtest runs by outcome",
    ["status"],
)
backtest_trades_counter = Counter(
    "signal_desk_backtest_trades_total",
    "Simulated trades closed by exit reason",
    ["exit_reason"],
)
backtest_duration = Histogram(
    "signal_desk_backtest_duration_seconds",
    "Wall-clock duration of a backtest run",
)
