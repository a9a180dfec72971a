"""Indicator enrichment for bar sequences.

`enrich_bars` attaches the standard indicator set (RSI 14, MACD 12/26/9, EMA 20/50/200,
Bollinger 20/2, ATR 14, OBV) to every bar of one symbol. Each bar's values are exactly
what the point functions return for the prefix ending at that bar.
"""
import logging
from typing import List, Sequence

from src.engine.ema import calculate_macd, ema_series, macd_series
from src.engine.rsi import rsi_series
from src.engine.volatility import atr_series, bollinger_series
from src.engine.volume import obv_series
from src.models.market_models import MarketDataBar

logger = logging.getLogger("indicators")


def extract_prices(bars: Sequence[MarketDataBar]) -> List[float]:
    return [b.close for b in bars]


def extract_highs(bars: Sequence[MarketDataBar]) -> List[float]:
    return [b.high for b in bars]


def extract_lows(bars: Sequence[MarketDataBar]) -> List[float]:
    return [b.low for b in bars]


def extract_volumes(bars: Sequence[MarketDataBar]) -> List[float]:
    return [b.volume for b in bars]


def enrich_bars(bars: Sequence[MarketDataBar], incremental_macd: bool = True) -> List[MarketDataBar]:
    """Return new bars (sorted by timestamp) carrying computed indicators.

    With incremental_macd=False the MACD values are rebuilt per prefix from scratch;
    results are identical, only slower.
    """
    ordered = sorted(bars, key=lambda b: b.timestamp)
    if not ordered:
        return []
    closes = extract_prices(ordered)
    highs = extract_highs(ordered)
    lows = extract_lows(ordered)
    volumes = extract_volumes(ordered)

    rsi = rsi_series(closes, 14)
    ema20 = ema_series(closes, 20)
    ema50 = ema_series(closes, 50)
    ema200 = ema_series(closes, 200)
    bands = bollinger_series(closes, 20, 2)
    atr = atr_series(highs, lows, closes, 14)
    obv = obv_series(closes, volumes)
    if incremental_macd:
        macd = macd_series(closes, 12, 26, 9)
    else:
        macd = [calculate_macd(closes[:i + 1], 12, 26, 9, incremental=False) for i in range(len(closes))]

    enriched = []
    for i, bar in enumerate(ordered):
        enriched.append(bar.with_indicators(
            rsi=rsi[i],
            macd=macd[i].macd_line,
            macd_signal=macd[i].signal_line,
            macd_histogram=macd[i].histogram,
            ema20=ema20[i],
            ema50=ema50[i],
            ema200=ema200[i],
            bollinger_upper=bands[i].upper,
            bollinger_middle=bands[i].middle,
            bollinger_lower=bands[i].lower,
            atr=atr[i],
            obv=obv[i],
        ))
    logger.debug("Enriched %d bars for %s", len(enriched), ordered[-1].symbol)
    return enriched


__all__ = [
    "extract_prices",
    "extract_highs",
    "extract_lows",
    "extract_volumes",
    "enrich_bars",
]
