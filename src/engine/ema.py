"""EMA and MACD.

EMA seeds with the simple average of the first `period` prices, then applies k = 2 / (period + 1).
MACD's signal line is the EMA of the trailing MACD-line points, where each point is the
fast/slow EMA difference of the price prefix ending there.
"""
from dataclasses import dataclass
from typing import List, Sequence


def calculate_ema(prices: Sequence[float], period: int) -> float:
    """EMA of the full sequence; the last price (or 0 for no prices) when len < period."""
    if len(prices) < period:
        return prices[-1] if prices else 0.0
    k = 2 / (period + 1)
    ema = sum(prices[:period]) / period
    for price in prices[period:]:
        ema = price * k + ema * (1 - k)
    return ema


def ema_series(prices: Sequence[float], period: int) -> List[float]:
    """EMA for every prefix: out[i] == calculate_ema(prices[:i + 1], period)."""
    out: List[float] = []
    k = 2 / (period + 1)
    ema = 0.0
    for i, price in enumerate(prices):
        if i < period - 1:
            out.append(price)
            continue
        if i == period - 1:
            ema = sum(prices[:period]) / period
        else:
            ema = price * k + ema * (1 - k)
        out.append(ema)
    return out


@dataclass
class MACDResult:
    macd_line: float
    signal_line: float
    histogram: float


def _macd_line_points(prices: Sequence[float], fast_period: int, slow_period: int, incremental: bool) -> List[float]:
    if incremental:
        fast = ema_series(prices, fast_period)
        slow = ema_series(prices, slow_period)
        return [f - s for f, s in zip(fast, slow)]
    # Full recomputation per prefix, O(n^2); kept for reference runs.
    return [
        calculate_ema(prices[:i + 1], fast_period) - calculate_ema(prices[:i + 1], slow_period)
        for i in range(len(prices))
    ]


def calculate_macd(
    prices: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
    incremental: bool = True,
) -> MACDResult:
    """MACD line, signal line and histogram; all zero when history is shorter than max(fast, slow) + signal.

    `incremental` only changes the cost of building the MACD-line points, never the result.
    """
    if len(prices) < max(fast_period, slow_period) + signal_period:
        return MACDResult(0.0, 0.0, 0.0)
    macd_line = calculate_ema(prices, fast_period) - calculate_ema(prices, slow_period)
    points = _macd_line_points(prices, fast_period, slow_period, incremental)
    signal_line = calculate_ema(points[-signal_period:], signal_period)
    return MACDResult(macd_line, signal_line, macd_line - signal_line)


def macd_series(
    prices: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> List[MACDResult]:
    """MACD for every prefix in a single pass: out[i] == calculate_macd(prices[:i + 1], ...)."""
    fast = ema_series(prices, fast_period)
    slow = ema_series(prices, slow_period)
    points = [f - s for f, s in zip(fast, slow)]
    min_len = max(fast_period, slow_period) + signal_period
    out: List[MACDResult] = []
    for i in range(len(prices)):
        if i + 1 < min_len:
            out.append(MACDResult(0.0, 0.0, 0.0))
            continue
        signal_line = calculate_ema(points[i + 1 - signal_period:i + 1], signal_period)
        out.append(MACDResult(points[i], signal_line, points[i] - signal_line))
    return out
