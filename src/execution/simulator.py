import random
from typing import Optional

from src.utils.orders_enum import SlippageModel


class ExecutionCostModel:
    """Simulated fills: slippage against the trader and percentage commission.

    `slippage_amount` and `commission` are percentages (0.05 means 0.05%).
    """

    def __init__(
        self,
        slippage_model: SlippageModel = SlippageModel.FIXED,
        slippage_amount: float = 0.05,
        commission: float = 0.1,
        rng: Optional[random.Random] = None,
    ):
        self.slippage_model = SlippageModel(slippage_model)
        self.slippage_amount = slippage_amount
        self.commission_pct = commission
        self.rng = rng or random.Random()

    def fill_price(self, price: float, is_entry: bool) -> float:
        """Entries (buys) fill higher, exits (sells) fill lower."""
        if self.slippage_model == SlippageModel.NONE:
            return price
        slip = price * self.slippage_amount / 100
        if self.slippage_model == SlippageModel.VARIABLE:
            slip *= self.rng.random()
        return price + slip if is_entry else price - slip

    def commission(self, notional: float) -> float:
        return notional * self.commission_pct / 100
