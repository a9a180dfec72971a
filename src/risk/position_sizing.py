from dataclasses import dataclass
from typing import Optional

from src.utils.orders_enum import Action

TARGET_ATR_MULTIPLE = 3.0
STOP_ATR_MULTIPLE = 1.5
DEFAULT_VOLATILITY = 0.02  # ATR fallback as a fraction of price


@dataclass
class RiskLevels:
    price_target: float
    stop_loss: float
    expected_return: float
    risk_reward_ratio: float


def atr_risk_levels(action: Action, price: float, atr: Optional[float]) -> Optional[RiskLevels]:
    """Target at 3 ATR in the trade's direction, stop at 1.5 ATR against it.

    Returns None for HOLD (or a non-positive price). A missing ATR is taken as 2% of price.
    """
    if action == Action.HOLD or price <= 0:
        return None
    atr = atr or price * DEFAULT_VOLATILITY
    if action == Action.BUY:
        target = price + atr * TARGET_ATR_MULTIPLE
        stop = price - atr * STOP_ATR_MULTIPLE
        expected = (target - price) / price
        risk = (price - stop) / price
    else:
        target = price - atr * TARGET_ATR_MULTIPLE
        stop = price + atr * STOP_ATR_MULTIPLE
        expected = (price - target) / price
        risk = (stop - price) / price
    return RiskLevels(
        price_target=target,
        stop_loss=stop,
        expected_return=expected,
        risk_reward_ratio=expected / risk if risk > 0 else 0.0,
    )
