"""Shared utility functions for script-level backtests and demos.

Provides:
  load_bars_csv(path, symbol) -> List[MarketDataBar]
  resample_bars(bars, target_minutes) -> List[MarketDataBar]
  generate_sample_bars(symbol, days, rng, start) -> List[MarketDataBar]
  generate_sample_news(symbols, days, rng, start) -> List[NewsItem]
  generate_sample_social(symbols, days, rng, start) -> List[SocialMediaPost]
  trade_rows(result) / equity_rows(result) -> List[Dict]
  write_csv(path, fieldnames, rows)

Synthetic data is a random walk with a slight upward drift (hourly bars) plus templated
positive / negative / neutral news and posts; pass a seeded random.Random for repeatable output.
"""
from __future__ import annotations

import csv
import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import pandas as pd

from src.engine.indicators import enrich_bars
from src.models.backtest_models import BacktestResult
from src.models.market_models import INDICATOR_FIELDS, MarketDataBar
from src.models.news_models import Engagement, NewsItem, Platform, SocialMediaPost
from src.utils.time_utils import now_utc, to_utc

BASE_PRICES: Dict[str, float] = {'AAPL': 180.0, 'MSFT': 300.0, 'GOOGL': 130.0, 'AMZN': 140.0}
DEFAULT_BASE_PRICE = 100.0

NEWS_SOURCES = ['Bloomberg', 'Reuters', 'CNBC', 'Financial Times', 'MarketWatch', 'Wall Street Journal']

# ---------------------------------------------------------------------------
# CSV loading
# ---------------------------------------------------------------------------

def load_bars_csv(path: str, symbol: str) -> List[MarketDataBar]:
    """Read OHLCV rows (timestamp/ts, open, high, low, close, volume, optional indicator columns).

    Timestamps without an offset are taken as UTC. Rows are returned sorted ascending.
    """
    df = pd.read_csv(path)
    if 'timestamp' not in df.columns and 'ts' in df.columns:
        df = df.rename(columns={'ts': 'timestamp'})
    missing = {'timestamp', 'open', 'high', 'low', 'close', 'volume'} - set(df.columns)
    if missing:
        raise ValueError(f"{path}: missing columns {sorted(missing)}")
    df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True)
    df = df.sort_values('timestamp')
    indicator_cols = [c for c in INDICATOR_FIELDS if c in df.columns]

    bars: List[MarketDataBar] = []
    for row in df.itertuples(index=False):
        extra = {}
        for col in indicator_cols:
            value = getattr(row, col)
            if not pd.isna(value):
                extra[col] = float(value)
        bars.append(MarketDataBar(
            symbol=symbol,
            timestamp=row.timestamp.to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
            **extra,
        ))
    return bars

# ---------------------------------------------------------------------------
# Timeframe aggregation (e.g. 1h -> 4h) using pandas resample semantics.
# ---------------------------------------------------------------------------

def resample_bars(bars: Sequence[MarketDataBar], target_minutes: int) -> List[MarketDataBar]:
    """Aggregate bars into `target_minutes` buckets; indicators are dropped (re-enrich afterwards)."""
    if not bars:
        return []
    symbol = bars[0].symbol
    df = pd.DataFrame([
        {'timestamp': b.timestamp, 'open': b.open, 'high': b.high, 'low': b.low, 'close': b.close, 'volume': b.volume}
        for b in bars
    ]).set_index('timestamp').sort_index()
    agg = (
        df.resample(f"{target_minutes}min")
        .agg({'open': 'first', 'high': 'max', 'low': 'min', 'close': 'last', 'volume': 'sum'})
        .dropna(subset=['open', 'close'])
    )
    return [
        MarketDataBar(
            symbol=symbol,
            timestamp=ts.to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for ts, row in agg.iterrows()
    ]

# ---------------------------------------------------------------------------
# Synthetic data
# ---------------------------------------------------------------------------

def generate_sample_bars(
    symbol: str,
    days: int = 30,
    rng: Optional[random.Random] = None,
    start: Optional[datetime] = None,
    enrich: bool = True,
) -> List[MarketDataBar]:
    """Hourly random-walk bars, `days * 24` of them, ending before `start + days`."""
    rng = rng or random.Random()
    start = to_utc(start) if start else now_utc().replace(minute=0, second=0, microsecond=0) - timedelta(days=days)
    price = BASE_PRICES.get(symbol, DEFAULT_BASE_PRICE)
    bars: List[MarketDataBar] = []
    for i in range(days * 24):
        price *= 1 + (rng.random() - 0.48) * 2 / 100
        high = price * (1 + rng.random() * 0.01)
        low = price * (1 - rng.random() * 0.01)
        bars.append(MarketDataBar(
            symbol=symbol,
            timestamp=start + timedelta(hours=i),
            open=low + rng.random() * (high - low),
            high=high,
            low=low,
            close=price,
            volume=100000 + rng.random() * 900000,
        ))
    return enrich_bars(bars) if enrich else bars


def _news_text(symbol: str, mood: float):
    if mood > 0.7:
        return (
            f"{symbol} Reports Strong Quarterly Results, Exceeding Expectations",
            f"{symbol} has announced quarterly earnings that exceeded analyst expectations, with revenue "
            f"growing by 15% year-over-year. The company also raised its forward guidance.",
            0.7,
        )
    if mood < 0.3:
        return (
            f"{symbol} Faces Challenges Amid Industry Headwinds",
            f"{symbol} reported disappointing quarterly results and a revenue decline as competition "
            f"increases. The stock is down in pre-market trading.",
            -0.7,
        )
    return (
        f"{symbol} Announces New Strategic Initiative",
        f"{symbol} has unveiled a new strategic initiative focused on expanding its market presence. "
        f"The company expects moderate growth in the medium term.",
        0.1,
    )


def generate_sample_news(
    symbols: Sequence[str],
    days: int = 1,
    rng: Optional[random.Random] = None,
    start: Optional[datetime] = None,
) -> List[NewsItem]:
    """5-24 articles per symbol, spread uniformly over `days` from `start` (default: `days` ago)."""
    rng = rng or random.Random()
    start = to_utc(start) if start else now_utc() - timedelta(days=days)
    items: List[NewsItem] = []
    for symbol in symbols:
        for i in range(5 + rng.randrange(20)):
            title, content, sentiment = _news_text(symbol, rng.random())
            items.append(NewsItem(
                id=f"news-{symbol}-{i}",
                title=title,
                content=content,
                source=rng.choice(NEWS_SOURCES),
                url=f"https://news.example.com/{symbol.lower()}/{i}",
                published_at=start + timedelta(hours=rng.random() * days * 24),
                symbols=[symbol],
                sentiment=sentiment,
                relevance=round(0.5 + rng.random() * 0.5, 2),
            ))
    return items


def _post_text(symbol: str, mood: float) -> str:
    if mood > 0.7:
        return f"${symbol} looking strong today! Great buying opportunity for long-term investors. #bullish"
    if mood < 0.3:
        return f"${symbol} is overvalued at current levels. The recent earnings don't justify this price. #bearish"
    return f"Watching ${symbol} closely today. Waiting for a clear signal before making a move."


def generate_sample_social(
    symbols: Sequence[str],
    days: int = 1,
    rng: Optional[random.Random] = None,
    start: Optional[datetime] = None,
) -> List[SocialMediaPost]:
    """20-99 posts per symbol across all platforms."""
    rng = rng or random.Random()
    start = to_utc(start) if start else now_utc() - timedelta(days=days)
    platforms = list(Platform)
    posts: List[SocialMediaPost] = []
    for symbol in symbols:
        for i in range(20 + rng.randrange(80)):
            posts.append(SocialMediaPost(
                id=f"post-{symbol}-{i}",
                platform=rng.choice(platforms),
                content=_post_text(symbol, rng.random()),
                author=f"user{rng.randrange(10000)}",
                published_at=start + timedelta(hours=rng.random() * days * 24),
                symbols=[symbol],
                engagement=Engagement(likes=rng.randrange(50), shares=rng.randrange(5), comments=rng.randrange(10)),
            ))
    return posts

# ---------------------------------------------------------------------------
# Result export
# ---------------------------------------------------------------------------

TRADE_FIELDS = [
    'symbol', 'entry_time', 'entry_price', 'exit_time', 'exit_price', 'quantity',
    'direction', 'pnl', 'pnl_percent', 'holding_period_hours', 'exit_reason',
]
EQUITY_FIELDS = ['date', 'equity']


def trade_rows(result: BacktestResult) -> List[Dict]:
    return result.to_dict()['trades']


def equity_rows(result: BacktestResult) -> List[Dict]:
    return result.to_dict()['equity_curve']


def write_csv(path: str, fieldnames: Sequence[str], rows: Sequence[Dict]):
    """Write iterable of dict rows to CSV if non-empty."""
    if not rows:
        return
    with open(path, 'w', newline='') as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        for r in rows:
            w.writerow(r)

__all__ = [
    'load_bars_csv',
    'resample_bars',
    'generate_sample_bars',
    'generate_sample_news',
    'generate_sample_social',
    'trade_rows',
    'equity_rows',
    'write_csv',
    'TRADE_FIELDS',
    'EQUITY_FIELDS',
]
