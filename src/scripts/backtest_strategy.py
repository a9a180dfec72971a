"""Backtest the combined technical + sentiment model over historical or synthetic bars.

Overview:
  1. Load bars per symbol from CSV files (SYMBOL=path.csv) or generate synthetic hourly bars (--sample).
  2. Optionally resample to a coarser timeframe and compute indicators.
  3. Replay them through the combined model with the bar-replay backtest engine. Synthetic runs
     also get synthetic news and posts spread over the backtest window.
  4. Print a summary; optional trade / equity curve CSV export.

Run:
  python -m src.scripts.backtest_strategy AAPL=data/aapl.csv MSFT=data/msft.csv --technical-only
  python -m src.scripts.backtest_strategy --sample AAPL,MSFT --days 60 --seed 7 --trades trades.csv --equity equity.csv

Notes:
  * The ensemble needs 200 bars of history before its first opinion; the backtest window
    starts after that warm-up unless --start is given.
  * Without --technical-only a symbol only trades once enough news/posts are visible.
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from typing import Dict, List, Optional

from src.config import settings
from src.engine.indicators import enrich_bars
from src.models.backtest_models import BacktestConfig
from src.models.market_models import MarketDataBar
from src.scripts.common_utils import (
    EQUITY_FIELDS,
    TRADE_FIELDS,
    equity_rows,
    generate_sample_bars,
    generate_sample_news,
    generate_sample_social,
    load_bars_csv,
    resample_bars,
    trade_rows,
    write_csv,
)
from src.services.signal_services import build_signal_services, make_rng
from src.utils.logging_config import configure_logging
from src.utils.time_utils import to_utc

logger = logging.getLogger("backtest")

WARMUP_BARS = 200

# ------------------------
# Inputs
# ------------------------
def parse_csv_inputs(pairs: List[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for pair in pairs:
        symbol, sep, path = pair.partition("=")
        if not sep or not symbol or not path:
            raise ValueError(f"Expected SYMBOL=path.csv, got '{pair}'")
        out[symbol.strip().upper()] = path.strip()
    return out

def load_inputs(args) -> Dict[str, List[MarketDataBar]]:
    historical: Dict[str, List[MarketDataBar]] = {}
    if args.sample:
        rng = make_rng(args.seed, 10)
        for symbol in [s.strip().upper() for s in args.sample.split(",") if s.strip()]:
            historical[symbol] = generate_sample_bars(symbol, days=args.days, rng=rng, enrich=False)
    for symbol, path in parse_csv_inputs(args.inputs).items():
        historical[symbol] = load_bars_csv(path, symbol)
        logger.info(f"Loaded {len(historical[symbol])} bars for {symbol} from {path}")

    for symbol, bars in historical.items():
        if args.timeframe:
            bars = resample_bars(bars, args.timeframe)
        if not bars or (bars[-1].has_indicators() and not args.timeframe):
            historical[symbol] = bars
            continue
        historical[symbol] = enrich_bars(bars, incremental_macd=settings.INDICATORS_INCREMENTAL_MACD)
    return historical

def backtest_window(historical: Dict[str, List[MarketDataBar]], start: Optional[str], end: Optional[str]):
    """Default window: from the first bar after warm-up to the last bar across symbols."""
    if start:
        first = to_utc(datetime.fromisoformat(start))
    else:
        candidates = [bars[min(WARMUP_BARS, len(bars) - 1)].timestamp for bars in historical.values() if bars]
        first = min(candidates)
    last = to_utc(datetime.fromisoformat(end)) if end else max(bars[-1].timestamp for bars in historical.values() if bars)
    return first, last

# ------------------------
# CLI
# ------------------------
def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Backtest the combined technical + sentiment model")
    p.add_argument("inputs", nargs="*", help="SYMBOL=path.csv pairs")
    p.add_argument("--sample", help="Comma-separated symbols to generate synthetic data for")
    p.add_argument("--days", type=int, default=30, help="Days of synthetic hourly bars (default 30)")
    p.add_argument("--seed", type=int, default=settings.RANDOM_SEED, help="RNG seed for repeatable runs")
    p.add_argument("--timeframe", type=int, help="Resample bars to this many minutes")
    p.add_argument("--start", help="Backtest start (ISO date/time)")
    p.add_argument("--end", help="Backtest end (ISO date/time)")
    p.add_argument("--frequency", type=int, default=60, help="Replay step in minutes (default 60)")
    p.add_argument("--capital", type=float, default=settings.BACKTEST_INITIAL_CAPITAL)
    p.add_argument("--threshold", type=float, default=0.7, help="Minimum signal confidence to act on")
    p.add_argument("--technical-only", action="store_true", help="Do not require a sentiment signal")
    p.add_argument("--trades", help="Optional trades CSV output path")
    p.add_argument("--equity", help="Optional equity curve CSV output path")
    p.add_argument("--log-level", default=None)
    return p.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_level)
    if not args.inputs and not args.sample:
        logger.error("Nothing to backtest: pass SYMBOL=path.csv inputs or --sample SYMBOLS")
        return 2

    historical = load_inputs(args)
    if not any(historical.values()):
        logger.error("No bars loaded")
        return 2
    start, end = backtest_window(historical, args.start, args.end)

    services = build_signal_services(seed=args.seed)
    if args.technical_only:
        services.combined.update_config(use_sentiment_filter=False)

    news, social = [], []
    if args.sample and not args.technical_only:
        rng = make_rng(args.seed, 11)
        days = max(1, (end - start).days)
        symbols = list(historical.keys())
        news = generate_sample_news(symbols, days=days, rng=rng, start=start)
        social = generate_sample_social(symbols, days=days, rng=rng, start=start)

    config = BacktestConfig.from_settings(
        settings,
        initial_capital=args.capital,
        symbols=list(historical.keys()),
        start_date=start,
        end_date=end,
        trading_frequency=args.frequency,
        model_confidence_threshold=args.threshold,
    )
    # warm-up bars precede the window; the technical model sees them directly
    for symbol, bars in historical.items():
        warmup = [b for b in bars if b.timestamp < start]
        if warmup:
            services.technical.add_market_data(symbol, warmup)

    services.combined.setup_backtesting(config, rng=services.execution_rng())
    result = services.combined.run_backtest(historical, news=news, social=social)

    print("\nRESULTS:")
    for key, value in result.summary().items():
        print(f"  {key}: {value}")
    print("\nPER SYMBOL:")
    for symbol, perf in result.symbol_performance.items():
        print(f"  {symbol}: trades={perf.trades} win_rate={perf.win_rate:.2f}% pnl={perf.pnl:.2f}")

    if args.trades:
        write_csv(args.trades, TRADE_FIELDS, trade_rows(result))
        logger.info(f"Trades CSV written to {args.trades}")
    if args.equity:
        write_csv(args.equity, EQUITY_FIELDS, equity_rows(result))
        logger.info(f"Equity curve CSV written to {args.equity}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
