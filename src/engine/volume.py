"""On-Balance Volume."""
from typing import List, Sequence


def calculate_obv(prices: Sequence[float], volumes: Sequence[float]) -> float:
    """Signed cumulative volume from close-to-close direction; unchanged closes add nothing.

    With fewer than two samples the last volume (or 0) is returned.
    """
    if len(prices) < 2 or len(volumes) < 2:
        return volumes[-1] if volumes else 0.0
    obv = 0.0
    for i in range(1, len(prices)):
        if prices[i] > prices[i - 1]:
            obv += volumes[i]
        elif prices[i] < prices[i - 1]:
            obv -= volumes[i]
    return obv


def obv_series(prices: Sequence[float], volumes: Sequence[float]) -> List[float]:
    out: List[float] = []
    obv = 0.0
    for i in range(len(prices)):
        if i == 0:
            out.append(volumes[0] if volumes else 0.0)
            continue
        if prices[i] > prices[i - 1]:
            obv += volumes[i]
        elif prices[i] < prices[i - 1]:
            obv -= volumes[i]
        out.append(obv)
    return out
