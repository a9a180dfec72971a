from enum import Enum


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Direction(str, Enum):
    LONG = "LONG"  # the backtest engine only opens long positions
    SHORT = "SHORT"


class ExitReason(str, Enum):
    STOP_LOSS = "Stop loss"
    TAKE_PROFIT = "Take profit"
    SELL_SIGNAL = "Sell signal"
    END_OF_BACKTEST = "End of backtest"


class SlippageModel(str, Enum):
    FIXED = "fixed"  # +/- a percentage of price
    VARIABLE = "variable"  # the fixed amount scaled by a random factor in [0, 1)
    NONE = "none"
