"""
Combined trading model: reconciles the technical ensemble and the sentiment analyzer into one
TradingSignal, and replays history through that pipeline with the backtest engine.

Decision order inside `SignalCombiner.combine`:
  1. required sources present (else MissingSignalSourceError)
  2. conflict (BUY vs SELL): larger confidence x weight wins, confidence x 0.8
  3. one side HOLD: adopt the other side, confidence x 0.9
  4. both HOLD: max confidence
  5. agreement: weighted average of the confidences
  6. optional contrarian fear/greed flip
  7. gate: below min_combined_confidence forces HOLD
Every step appends to `reasoning`.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from src.engine.ensemble_model import EnsembleTechnicalModel
from src.execution.backtest_engine import BacktestEngine
from src.models.backtest_models import BacktestConfig, BacktestResult
from src.models.market_models import MarketDataBar, ModelPrediction
from src.models.news_models import (
    NewsItem,
    SentimentAnalysisResult,
    SentimentSignal,
    SocialMediaPost,
)
from src.models.signal_models import CombinedModelConfig, TradingSignal
from src.news.sentiment_analyzer import SentimentAnalyzer
from src.services.metrics import signal_failures_counter, signals_counter
from src.utils.config_updates import apply_config_updates
from src.utils.errors import BacktestNotConfiguredError, MissingSignalSourceError
from src.utils.orders_enum import Action

logger = logging.getLogger("signal_combiner")


@dataclass
class _Opinion:
    action: Action
    confidence: float
    reason: str


def technical_reason(prediction: ModelPrediction) -> str:
    models = ", ".join(
        f"{name} ({vote.prediction.value}, {vote.confidence:.2f})" for name, vote in prediction.voters.items()
    )
    return f"Technical: {prediction.action.value} with {prediction.confidence:.2f} confidence from models: {models}"


def bar_indicators(bar: MarketDataBar) -> Dict[str, float]:
    return {
        "rsi": bar.rsi if bar.rsi is not None else 50.0,
        "macd": bar.macd if bar.macd is not None else 0.0,
        "ema50": bar.ema50 if bar.ema50 is not None else bar.close,
        "ema200": bar.ema200 if bar.ema200 is not None else bar.close,
        "price_change_24h": (bar.close - bar.open) / bar.open * 100 if bar.open else 0.0,
    }


class SignalCombiner:
    """Pure reconciliation of the two signal sources; holds no state besides its config."""

    def __init__(self, config: Optional[CombinedModelConfig] = None):
        self.config = config or CombinedModelConfig.from_settings()

    def combine(
        self,
        symbol: str,
        bar: MarketDataBar,
        technical: Optional[ModelPrediction],
        sentiment_signal: Optional[SentimentSignal],
        sentiment_result: Optional[SentimentAnalysisResult] = None,
    ) -> Optional[TradingSignal]:
        """Final signal for `bar`, or None when neither source has an opinion.

        Raises MissingSignalSourceError when a source required by the filters is absent. The
        sentiment requirement is met by `sentiment_signal`; `sentiment_result` only feeds the
        contrarian check and the fear/greed indicators.
        """
        cfg = self.config
        if cfg.use_technical_filter and technical is None:
            raise MissingSignalSourceError("technical")
        if cfg.use_sentiment_filter and sentiment_signal is None:
            raise MissingSignalSourceError("sentiment")
        if technical is None and sentiment_signal is None:
            return None

        tech = (
            _Opinion(technical.action, technical.confidence, technical_reason(technical))
            if technical is not None
            else _Opinion(Action.HOLD, 0.5, "No technical signal")
        )
        sent = (
            _Opinion(sentiment_signal.action, sentiment_signal.confidence, sentiment_signal.reason)
            if sentiment_signal is not None
            else _Opinion(Action.HOLD, 0.5, "No sentiment signal")
        )
        reasoning: List[str] = [tech.reason, sent.reason]

        if tech.action != sent.action and Action.HOLD not in (tech.action, sent.action):
            if tech.confidence * cfg.technical_weight > sent.confidence * cfg.sentiment_weight:
                action, confidence = tech.action, tech.confidence * 0.8
                reasoning.append(
                    f"Conflict resolved in favor of technical analysis ({tech.confidence:.2f} > {sent.confidence:.2f})"
                )
            else:
                action, confidence = sent.action, sent.confidence * 0.8
                reasoning.append(
                    f"Conflict resolved in favor of sentiment analysis ({sent.confidence:.2f} > {tech.confidence:.2f})"
                )
        elif tech.action == Action.HOLD and sent.action != Action.HOLD:
            action, confidence = sent.action, sent.confidence * 0.9
            reasoning.append("Technical is neutral, using sentiment signal")
        elif sent.action == Action.HOLD and tech.action != Action.HOLD:
            action, confidence = tech.action, tech.confidence * 0.9
            reasoning.append("Sentiment is neutral, using technical signal")
        elif tech.action == Action.HOLD:
            action, confidence = Action.HOLD, max(tech.confidence, sent.confidence)
            reasoning.append("Both signals are neutral")
        else:
            total = cfg.technical_weight + cfg.sentiment_weight
            weighted = tech.confidence * cfg.technical_weight + sent.confidence * cfg.sentiment_weight
            action, confidence = tech.action, weighted / total if total > 0 else 0.0
            reasoning.append(f"Signals agree on {action.value}, combined confidence: {confidence:.2f}")

        if cfg.enable_contrarian and sentiment_result is not None:
            mood = sentiment_result.sentiment
            if action == Action.SELL and mood.fear_index > cfg.contrary_threshold:
                action, confidence = Action.BUY, min(confidence * 0.8, 0.7)
                reasoning.append(f"Contrarian signal: high fear ({mood.fear_index:.2f}) suggests buying opportunity")
            elif action == Action.BUY and mood.greed_index > cfg.contrary_threshold:
                action, confidence = Action.SELL, min(confidence * 0.8, 0.7)
                reasoning.append(f"Contrarian signal: high greed ({mood.greed_index:.2f}) suggests selling opportunity")

        if confidence < cfg.min_combined_confidence:
            action = Action.HOLD
            reasoning.append(
                f"Final confidence ({confidence:.2f}) below threshold ({cfg.min_combined_confidence}), defaulting to HOLD"
            )

        indicators = bar_indicators(bar)
        if sentiment_result is not None:
            mood = sentiment_result.sentiment
            indicators.update(
                sentiment_score=mood.score,
                sentiment_magnitude=mood.magnitude,
                fear_index=mood.fear_index,
                greed_index=mood.greed_index,
            )

        signals_counter.labels(source="combined", action=action.value).inc()
        return TradingSignal(
            symbol=symbol,
            action=action,
            price=bar.close,
            confidence=confidence,
            timestamp=bar.timestamp.isoformat(),
            indicators=indicators,
            reasoning=reasoning,
        )


class CombinedTradingModel:
    def __init__(
        self,
        technical_model: EnsembleTechnicalModel,
        sentiment_analyzer: SentimentAnalyzer,
        config: Optional[CombinedModelConfig] = None,
    ):
        self.technical_model = technical_model
        self.sentiment_analyzer = sentiment_analyzer
        self.combiner = SignalCombiner(config)
        self.backtest_engine: Optional[BacktestEngine] = None

    @property
    def config(self) -> CombinedModelConfig:
        return self.combiner.config

    # ------------------------------------------------------------------
    # Live signals
    # ------------------------------------------------------------------
    def generate_signal(
        self, symbol: str, bar: MarketDataBar, as_of: Optional[datetime] = None
    ) -> Optional[TradingSignal]:
        """Combined signal for `bar`; None when a required source has no opinion yet.

        `as_of` limits the technical model to bars at or before that time (replay).
        """
        technical = self.technical_model.generate_signal(symbol, as_of=as_of)
        sentiment_result = self.sentiment_analyzer.get_sentiment(symbol)
        sentiment_signal = (
            self.sentiment_analyzer.get_trading_signal(sentiment_result) if sentiment_result is not None else None
        )
        try:
            return self.combiner.combine(symbol, bar, technical, sentiment_signal, sentiment_result)
        except MissingSignalSourceError as e:
            logger.warning(f"No combined signal for {symbol}: {e}")
            return None

    def generate_signals(self, symbols: Iterable[str], bars: Dict[str, MarketDataBar]) -> Dict[str, Optional[TradingSignal]]:
        results: Dict[str, Optional[TradingSignal]] = {}
        for symbol in symbols:
            bar = bars.get(symbol)
            if bar is None:
                logger.warning(f"No current bar for {symbol}, skipping")
                results[symbol] = None
                continue
            try:
                results[symbol] = self.generate_signal(symbol, bar)
            except Exception:
                logger.exception(f"Combined signal generation failed for {symbol}")
                signal_failures_counter.labels(source="combined").inc()
                results[symbol] = None
        return results

    # ------------------------------------------------------------------
    # Backtesting
    # ------------------------------------------------------------------
    def setup_backtesting(self, config: Optional[BacktestConfig] = None, rng: Optional[random.Random] = None) -> BacktestEngine:
        self.backtest_engine = BacktestEngine(config, rng=rng)
        return self.backtest_engine

    def run_backtest(
        self,
        historical: Dict[str, List[MarketDataBar]],
        news: Iterable[NewsItem] = (),
        social: Iterable[SocialMediaPost] = (),
    ) -> BacktestResult:
        """Replay `historical` through this model.

        While the run lasts the sentiment analyzer reads the engine clock, so news and posts only
        become visible once the replay reaches their publication time. Each bar is appended to the
        technical model's history and scored as of its own timestamp, so bars the model already
        holds from later runs or live feeds stay out of view. Cached sentiment is dropped when
        the clock is swapped in and again when it is restored.
        """
        engine = self.backtest_engine
        if engine is None:
            raise BacktestNotConfiguredError("Backtest engine not initialized. Call setup_backtesting() first.")

        for symbol, bars in historical.items():
            engine.load_historical_data(symbol, bars)

        def signal_fn(bar: MarketDataBar) -> Optional[TradingSignal]:
            self.technical_model.add_market_data(bar.symbol, [bar])
            return self.generate_signal(bar.symbol, bar, as_of=bar.timestamp)

        analyzer = self.sentiment_analyzer
        live_clock = analyzer.clock
        analyzer.clock = lambda: engine.current_time
        analyzer.clear_cache()
        try:
            analyzer.add_news_data(news)
            analyzer.add_social_data(social)
            return engine.run_backtest(signal_fn)
        finally:
            analyzer.clock = live_clock
            analyzer.clear_cache()

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------
    def update_config(self, **kwargs):
        """Update combiner configuration (re-validated)."""
        self.combiner.config = apply_config_updates(self.combiner.config, kwargs, logger, "combined model")

    def get_config(self) -> CombinedModelConfig:
        return self.combiner.config.model_copy(deep=True)
