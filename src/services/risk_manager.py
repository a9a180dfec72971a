import math
from typing import Optional


class RiskManager:
    """Risk-based sizing and fixed-percentage stop/target levels for long entries."""

    def __init__(
        self,
        risk_per_trade_percent: float = 1.0,
        stop_loss_percent: float = 2.0,
        take_profit_percent: float = 4.0,
        max_drawdown_percent: Optional[float] = None,
    ):
        self.risk_per_trade_percent = risk_per_trade_percent
        self.stop_loss_percent = stop_loss_percent
        self.take_profit_percent = take_profit_percent
        self.max_drawdown_percent = max_drawdown_percent

    def stop_price(self, entry_price: float) -> float:
        return entry_price * (1 - self.stop_loss_percent / 100)

    def target_price(self, entry_price: float) -> float:
        return entry_price * (1 + self.take_profit_percent / 100)

    def calc_size(self, equity: float, entry_price: float, cash: float, commission_pct: float = 0.0) -> int:
        """Shares such that hitting the stop loses `risk_per_trade_percent` of equity.

        A zero per-share risk falls back to 1% of the risk budget in shares. The result is
        capped to what `cash` can pay for including entry commission.
        """
        if entry_price <= 0:
            return 0
        risk_amount = equity * self.risk_per_trade_percent / 100
        per_share_risk = entry_price - self.stop_price(entry_price)
        if per_share_risk > 0:
            qty = math.floor(risk_amount / per_share_risk)
        else:
            qty = math.floor(risk_amount / entry_price * 0.01)
        affordable = math.floor(cash / (entry_price * (1 + commission_pct / 100))) if cash > 0 else 0
        return max(0, min(qty, affordable))

    def check_drawdown_stop(self, equity: float, peak_equity: float) -> bool:
        """True when drawdown from the peak exceeds the configured limit (never when unset)."""
        if self.max_drawdown_percent is None or peak_equity <= 0:
            return False
        return (peak_equity - equity) / peak_equity * 100 > self.max_drawdown_percent
