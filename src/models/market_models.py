"""Market-data and technical-signal data structures."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from src.config import Settings, settings as default_settings
from src.utils.orders_enum import Action
from src.utils.time_utils import to_utc

# Indicator name -> numeric value, built by src.engine.features.extract_features
FeatureVector = Dict[str, float]

INDICATOR_FIELDS = (
    "rsi", "macd", "macd_signal", "macd_histogram",
    "ema20", "ema50", "ema200",
    "bollinger_upper", "bollinger_middle", "bollinger_lower",
    "atr", "obv",
)


@dataclass(frozen=True)
class MarketDataBar:
    symbol: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    rsi: Optional[float] = None
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None
    ema20: Optional[float] = None
    ema50: Optional[float] = None
    ema200: Optional[float] = None
    bollinger_upper: Optional[float] = None
    bollinger_middle: Optional[float] = None
    bollinger_lower: Optional[float] = None
    atr: Optional[float] = None
    obv: Optional[float] = None

    def __post_init__(self):
        if self.volume < 0:
            raise ValueError(f"volume must be >= 0 for {self.symbol} @ {self.timestamp}")
        object.__setattr__(self, "timestamp", to_utc(self.timestamp))

    def with_indicators(self, **indicators) -> "MarketDataBar":
        return replace(self, **indicators)

    def has_indicators(self) -> bool:
        return any(getattr(self, name) is not None for name in INDICATOR_FIELDS)


@dataclass
class VoterOutput:
    action: Action
    confidence: float


@dataclass
class VoterBreakdown:
    prediction: Action
    confidence: float
    weight: float


@dataclass
class ModelPrediction:
    """Technical signal produced by the ensemble for the latest bar of a symbol."""
    symbol: str
    timestamp: datetime
    action: Action
    confidence: float
    price: float
    price_target: Optional[float] = None
    stop_loss: Optional[float] = None
    expected_return: Optional[float] = None
    risk_reward_ratio: Optional[float] = None
    voters: Dict[str, VoterBreakdown] = field(default_factory=dict)
    features: FeatureVector = field(default_factory=dict)


DEFAULT_MODEL_WEIGHTS: Dict[str, float] = {
    "random_forest": 0.3,
    "gradient_boosting": 0.25,
    "neural_network": 0.2,
    "svm": 0.15,
    "logistic_regression": 0.1,
}


class EnsembleConfig(BaseModel):
    model_config = {"protected_namespaces": ()}

    model_weights: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_MODEL_WEIGHTS))
    confidence_threshold: float = Field(0.65, ge=0, le=1)
    history_cap: int = Field(1000, gt=0)
    min_bars: int = Field(200, gt=0)

    @field_validator("model_weights")
    @classmethod
    def _non_negative_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        negative = [name for name, w in v.items() if w < 0]
        if negative:
            raise ValueError(f"model weights must be >= 0: {negative}")
        return v

    @classmethod
    def from_settings(cls, s: Settings = default_settings) -> "EnsembleConfig":
        return cls(
            confidence_threshold=s.ENSEMBLE_CONFIDENCE_THRESHOLD,
            history_cap=s.ENSEMBLE_HISTORY_CAP,
            min_bars=s.ENSEMBLE_MIN_BARS,
        )
