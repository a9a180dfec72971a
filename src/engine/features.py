"""Feature extraction for the technical ensemble.

The vector is derived from the latest bar plus the bars 1, 5 and 20 steps back; when
history is too short each lookback falls back to the next-closer bar.
"""
from typing import Sequence

from src.models.market_models import FeatureVector, MarketDataBar


def _ratio_change(current: float, previous: float) -> float:
    return current / previous - 1 if previous > 0 else 0.0


def bollinger_position(bar: MarketDataBar) -> float:
    """Where the close sits inside the bands, clamped to [0, 1]; 0.5 without usable bands."""
    if not bar.bollinger_upper or not bar.bollinger_lower:
        return 0.5
    width = bar.bollinger_upper - bar.bollinger_lower
    if width <= 0:
        return 0.5
    position = (bar.close - bar.bollinger_lower) / width
    return min(1.0, max(0.0, position))


def extract_features(history: Sequence[MarketDataBar]) -> FeatureVector:
    if not history:
        raise ValueError("cannot extract features from an empty history")
    current = history[-1]
    prev1 = history[-2] if len(history) >= 2 else current
    prev5 = history[-6] if len(history) >= 6 else prev1
    prev20 = history[-21] if len(history) >= 21 else prev5

    ema50 = current.ema50 or current.close
    ema200 = current.ema200 or current.close
    ts = current.timestamp

    return {
        "rsi": current.rsi or 50.0,
        "macd": current.macd_histogram or 0.0,
        "ema50": ema50,
        "ema200": ema200,
        "ema_ratio": ema50 / ema200 if ema200 > 0 else 1.0,
        "bollinger_position": bollinger_position(current),
        "volume_change_1d": _ratio_change(current.volume, prev1.volume),
        "volume_change_5d": _ratio_change(current.volume, prev5.volume),
        "price_change_1d": _ratio_change(current.close, prev1.close),
        "price_change_5d": _ratio_change(current.close, prev5.close),
        "price_change_20d": _ratio_change(current.close, prev20.close),
        "volatility": current.atr / current.close if current.atr and current.close > 0 else 0.01,
        "obv_momentum": (current.obv - prev5.obv) / abs(prev5.obv) if current.obv and prev5.obv else 0.0,
        "hour_of_day": ts.hour / 24,
        "day_of_week": (ts.isoweekday() % 7) / 7,  # Sunday = 0
    }
