"""Final (combined) trading signal and combiner configuration."""
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from pydantic import BaseModel, Field

from src.config import Settings, settings as default_settings
from src.utils.orders_enum import Action


@dataclass
class TradingSignal:
    """Contract handed to order routing and to the backtest engine."""
    symbol: str
    action: Action
    price: float
    confidence: float
    timestamp: str  # ISO-8601
    indicators: Dict[str, float] = field(default_factory=dict)
    reasoning: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        out = asdict(self)
        out["action"] = self.action.value
        return out


class CombinedModelConfig(BaseModel):
    technical_weight: float = Field(0.7, ge=0)
    sentiment_weight: float = Field(0.3, ge=0)
    min_combined_confidence: float = Field(0.65, ge=0, le=1)
    use_technical_filter: bool = True
    use_sentiment_filter: bool = True
    enable_contrarian: bool = False
    contrary_threshold: float = Field(0.85, ge=0, le=1)

    @classmethod
    def from_settings(cls, s: Settings = default_settings) -> "CombinedModelConfig":
        return cls(
            technical_weight=s.COMBINED_TECHNICAL_WEIGHT,
            sentiment_weight=s.COMBINED_SENTIMENT_WEIGHT,
            min_combined_confidence=s.COMBINED_MIN_CONFIDENCE,
            use_technical_filter=s.COMBINED_USE_TECHNICAL_FILTER,
            use_sentiment_filter=s.COMBINED_USE_SENTIMENT_FILTER,
            enable_contrarian=s.COMBINED_ENABLE_CONTRARIAN,
            contrary_threshold=s.COMBINED_CONTRARY_THRESHOLD,
        )
