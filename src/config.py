from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = Field("Signal Desk")
    APP_PORT: int = Field(8000)
    LOG_LEVEL: str = Field("INFO")

    # Seeds every RNG built by the app (voter jitter, simulated sentiment, variable slippage).
    # Leave unset for non-reproducible runs.
    RANDOM_SEED: Optional[int] = Field(None)

    # Ensemble technical model
    ENSEMBLE_CONFIDENCE_THRESHOLD: float = Field(0.65)
    ENSEMBLE_HISTORY_CAP: int = Field(1000)
    ENSEMBLE_MIN_BARS: int = Field(200)

    # Indicator enrichment: single-pass MACD signal line instead of per-point recomputation
    INDICATORS_INCREMENTAL_MACD: bool = Field(True)

    # Sentiment analyzer (weights per channel, windows in minutes / hours)
    SENTIMENT_NEWS_WEIGHT: float = Field(0.6)
    SENTIMENT_TWITTER_WEIGHT: float = Field(0.15)
    SENTIMENT_REDDIT_WEIGHT: float = Field(0.15)
    SENTIMENT_STOCKTWITS_WEIGHT: float = Field(0.1)
    SENTIMENT_ANALYSIS_FREQUENCY_MIN: int = Field(60)
    SENTIMENT_LOOKBACK_HOURS: int = Field(24)
    SENTIMENT_MIN_NEWS_ITEMS: int = Field(5)
    SENTIMENT_MIN_SOCIAL_POSTS: int = Field(10)
    SENTIMENT_ALGORITHM: str = Field("advanced")  # advanced | basic

    # Combined (technical + sentiment) model
    COMBINED_TECHNICAL_WEIGHT: float = Field(0.7)
    COMBINED_SENTIMENT_WEIGHT: float = Field(0.3)
    COMBINED_MIN_CONFIDENCE: float = Field(0.65)
    COMBINED_USE_TECHNICAL_FILTER: bool = Field(True)
    COMBINED_USE_SENTIMENT_FILTER: bool = Field(True)
    COMBINED_ENABLE_CONTRARIAN: bool = Field(False)
    COMBINED_CONTRARY_THRESHOLD: float = Field(0.85)

    # Backtest defaults
    BACKTEST_INITIAL_CAPITAL: float = Field(100000.0)
    BACKTEST_COMMISSION_PERCENT: float = Field(0.1)
    BACKTEST_SLIPPAGE_PERCENT: float = Field(0.05)
    BACKTEST_MAX_STEPS: Optional[int] = Field(None)  # safety valve for the replay loop

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
