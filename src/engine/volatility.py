"""Volatility indicators: Bollinger Bands (population std) and Wilder ATR."""
import math
from dataclasses import dataclass
from typing import List, Sequence


@dataclass
class BollingerBands:
    upper: float
    middle: float
    lower: float

    @property
    def width(self) -> float:
        return self.upper - self.lower


def calculate_bollinger_bands(prices: Sequence[float], period: int = 20, std_dev_multiplier: float = 2.0) -> BollingerBands:
    """Bands around the trailing `period` SMA.

    With fewer than `period` prices the bands sit 5% either side of the last price.
    """
    if len(prices) < period:
        last_price = prices[-1] if prices else 0.0
        return BollingerBands(upper=last_price * 1.05, middle=last_price, lower=last_price * 0.95)
    window = prices[-period:]
    sma = sum(window) / period
    variance = sum((p - sma) ** 2 for p in window) / period
    std_dev = math.sqrt(variance)
    return BollingerBands(
        upper=sma + std_dev * std_dev_multiplier,
        middle=sma,
        lower=sma - std_dev * std_dev_multiplier,
    )


def bollinger_series(prices: Sequence[float], period: int = 20, std_dev_multiplier: float = 2.0) -> List[BollingerBands]:
    return [calculate_bollinger_bands(prices[max(0, i + 1 - period):i + 1], period, std_dev_multiplier) for i in range(len(prices))]


def _true_ranges(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> List[float]:
    ranges = []
    for i in range(1, len(highs)):
        prev_close = closes[i - 1]
        ranges.append(max(highs[i] - lows[i], abs(highs[i] - prev_close), abs(lows[i] - prev_close)))
    return ranges


def _degenerate_atr(highs: Sequence[float], lows: Sequence[float]) -> float:
    if not highs or not lows:
        return 0.0
    return (highs[-1] - lows[-1]) or 0.0


def calculate_atr(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> float:
    """Average True Range; the last bar's high - low when fewer than period + 1 bars exist."""
    if min(len(highs), len(lows), len(closes)) < period + 1:
        return _degenerate_atr(highs, lows)
    ranges = _true_ranges(highs, lows, closes)
    atr = sum(ranges[:period]) / period
    for tr in ranges[period:]:
        atr = (atr * (period - 1) + tr) / period
    return atr


def atr_series(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> List[float]:
    """ATR for every prefix: out[i] == calculate_atr(highs[:i+1], lows[:i+1], closes[:i+1], period)."""
    ranges = _true_ranges(highs, lows, closes)
    out: List[float] = []
    atr = 0.0
    for i in range(len(highs)):
        if i < period:
            out.append(_degenerate_atr(highs[:i + 1], lows[:i + 1]))
            continue
        if i == period:
            atr = sum(ranges[:period]) / period
        else:
            atr = (atr * (period - 1) + ranges[i - 1]) / period
        out.append(atr)
    return out
