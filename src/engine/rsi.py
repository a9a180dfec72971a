"""RSI calculation utilities.

Wilder-style RSI: the first `period` close-to-close changes seed the average gain/loss,
every later change is folded in with Wilder smoothing. A zero change counts as a (zero) gain.
Short history falls back to the neutral value 50 so downstream voters stay quiet.
"""
from typing import List, Sequence

NEUTRAL_RSI = 50.0


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # Flat series: no gains and no losses is neutral, not overbought
        return NEUTRAL_RSI if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1 + rs))


def _wilder_step(avg_gain: float, avg_loss: float, diff: float, period: int):
    gain = diff if diff >= 0 else 0.0
    loss = -diff if diff < 0 else 0.0
    avg_gain = (avg_gain * (period - 1) + gain) / period
    avg_loss = (avg_loss * (period - 1) + loss) / period
    return avg_gain, avg_loss


def _seed_averages(prices: Sequence[float], period: int):
    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        diff = prices[i] - prices[i - 1]
        if diff >= 0:
            gains += diff
        else:
            losses -= diff
    return gains / period, losses / period


def calculate_rsi(prices: Sequence[float], period: int = 14) -> float:
    """RSI of the full price sequence.

    Returns 50 if fewer than period + 1 prices are available.
    """
    if len(prices) < period + 1:
        return NEUTRAL_RSI
    avg_gain, avg_loss = _seed_averages(prices, period)
    for i in range(period + 1, len(prices)):
        avg_gain, avg_loss = _wilder_step(avg_gain, avg_loss, prices[i] - prices[i - 1], period)
    return _rsi_from_averages(avg_gain, avg_loss)


def rsi_series(prices: Sequence[float], period: int = 14) -> List[float]:
    """RSI for every prefix of `prices` in one pass.

    out[i] == calculate_rsi(prices[:i + 1], period).
    """
    out: List[float] = []
    avg_gain = avg_loss = 0.0
    for i in range(len(prices)):
        if i < period:
            out.append(NEUTRAL_RSI)
            continue
        if i == period:
            avg_gain, avg_loss = _seed_averages(prices, period)
        else:
            avg_gain, avg_loss = _wilder_step(avg_gain, avg_loss, prices[i] - prices[i - 1], period)
        out.append(_rsi_from_averages(avg_gain, avg_loss))
    return out
