"""Construction of the signal pipeline (ensemble, sentiment analyzer, combined model).

Used by the API at startup and for every backtest request, and by the CLI. A configured seed
gives each component its own deterministic random stream.
"""
import logging
import random
from dataclasses import dataclass
from typing import Optional

from src.config import Settings, settings as default_settings
from src.engine.ensemble_model import EnsembleTechnicalModel
from src.engine.signal_combiner import CombinedTradingModel
from src.models.market_models import EnsembleConfig
from src.models.news_models import SentimentConfig
from src.models.signal_models import CombinedModelConfig
from src.news.sentiment_analyzer import SentimentAnalyzer

logger = logging.getLogger("signal_services")

# offsets so the three streams differ under one seed
_TECHNICAL_STREAM = 0
_SENTIMENT_STREAM = 1
_EXECUTION_STREAM = 2


def make_rng(seed: Optional[int], stream: int = 0) -> random.Random:
    return random.Random(None if seed is None else seed * 1000 + stream)


@dataclass
class SignalServices:
    technical: EnsembleTechnicalModel
    sentiment: SentimentAnalyzer
    combined: CombinedTradingModel
    seed: Optional[int] = None

    def execution_rng(self) -> random.Random:
        """RNG for a backtest engine's variable slippage."""
        return make_rng(self.seed, _EXECUTION_STREAM)


def build_signal_services(
    s: Settings = default_settings,
    seed: Optional[int] = None,
    combined_config: Optional[CombinedModelConfig] = None,
) -> SignalServices:
    seed = s.RANDOM_SEED if seed is None else seed
    technical = EnsembleTechnicalModel(EnsembleConfig.from_settings(s), rng=make_rng(seed, _TECHNICAL_STREAM))
    sentiment = SentimentAnalyzer(SentimentConfig.from_settings(s), rng=make_rng(seed, _SENTIMENT_STREAM))
    combined = CombinedTradingModel(technical, sentiment, combined_config or CombinedModelConfig.from_settings(s))
    logger.info(f"Signal services built (seed={seed})")
    return SignalServices(technical=technical, sentiment=sentiment, combined=combined, seed=seed)


__all__ = ["SignalServices", "build_signal_services", "make_rng"]
