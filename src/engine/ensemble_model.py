"""Ensemble technical model.

Keeps a rolling bar history per symbol, extracts one feature vector from the latest bar and
asks every voter for an opinion. Votes are weighted, normalised, and only turn into BUY/SELL
when the winning vote clears `confidence_threshold`. Non-HOLD signals carry ATR-based
target/stop levels.
"""
import bisect
import logging
import random
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from src.engine.features import extract_features
from src.engine.voters import Voter, default_voters
from src.models.market_models import (
    EnsembleConfig,
    FeatureVector,
    MarketDataBar,
    ModelPrediction,
    VoterBreakdown,
)
from src.risk.position_sizing import atr_risk_levels
from src.services.metrics import signal_failures_counter, signals_counter
from src.utils.config_updates import apply_config_updates
from src.utils.orders_enum import Action
from src.utils.symbol_locks import SymbolLocks

logger = logging.getLogger("ensemble_model")

DEFAULT_VOTER_WEIGHT = 0.1


class EnsembleTechnicalModel:
    def __init__(
        self,
        config: Optional[EnsembleConfig] = None,
        voters: Optional[List[Voter]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or EnsembleConfig.from_settings()
        self.voters: List[Voter] = voters if voters is not None else default_voters(rng)
        self._history: Dict[str, List[MarketDataBar]] = {}
        self._features: Dict[str, FeatureVector] = {}
        self._locks = SymbolLocks()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def add_market_data(self, symbol: str, bars: Iterable[MarketDataBar]) -> None:
        """Merge bars into the symbol's history.

        A bar with an already-known timestamp replaces the stored one. History is kept sorted
        and capped at `history_cap` most recent bars; the cached features are dropped.
        """
        incoming = list(bars)
        foreign = [b.symbol for b in incoming if b.symbol != symbol]
        if foreign:
            raise ValueError(f"bars for {sorted(set(foreign))} passed to add_market_data({symbol!r})")
        with self._locks.lock_for(symbol):
            merged = {b.timestamp: b for b in self._history.get(symbol, [])}
            for bar in incoming:
                merged[bar.timestamp] = bar
            ordered = sorted(merged.values(), key=lambda b: b.timestamp)
            self._history[symbol] = ordered[-self.config.history_cap:]
            self._features.pop(symbol, None)
        logger.debug(f"{symbol}: +{len(incoming)} bars, history={len(self._history[symbol])}")

    def history(self, symbol: str) -> List[MarketDataBar]:
        with self._locks.lock_for(symbol):
            return list(self._history.get(symbol, []))

    def symbols(self) -> List[str]:
        return list(self._history.keys())

    def features(self, symbol: str) -> Optional[FeatureVector]:
        """Cached feature vector of the latest bar, or None without history."""
        with self._locks.lock_for(symbol):
            return self._features_locked(symbol)

    def _features_locked(self, symbol: str) -> Optional[FeatureVector]:
        cached = self._features.get(symbol)
        if cached is not None:
            return cached
        history = self._history.get(symbol)
        if not history:
            return None
        features = extract_features(history)
        self._features[symbol] = features
        return features

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------
    def generate_signal(self, symbol: str, as_of: Optional[datetime] = None) -> Optional[ModelPrediction]:
        """Technical signal for the latest bar; None with fewer than `min_bars` bars.

        With `as_of`, only bars stamped at or before it count, so a replay never scores a bar
        newer than its clock. Voter weights come from `model_weights`; a voter missing there
        weighs DEFAULT_VOTER_WEIGHT, while an explicit 0 is honoured and mutes that voter.
        """
        with self._locks.lock_for(symbol):
            history = self._history.get(symbol, [])
            if as_of is not None and history and history[-1].timestamp > as_of:
                history = history[:bisect.bisect_right([b.timestamp for b in history], as_of)]
                sliced = True
            else:
                sliced = False
            if len(history) < self.config.min_bars:
                logger.debug(f"Insufficient data for {symbol}: {len(history)} bars, need {self.config.min_bars}")
                return None
            latest = history[-1]
            features = extract_features(history) if sliced else self._features_locked(symbol)

        breakdown: Dict[str, VoterBreakdown] = {}
        for voter in self.voters:
            # Each voter sees its own copy; the cached vector stays untouched.
            out = voter.score(dict(features))
            weight = self.config.model_weights.get(voter.name, DEFAULT_VOTER_WEIGHT)
            breakdown[voter.name] = VoterBreakdown(prediction=out.action, confidence=out.confidence, weight=weight)

        action, confidence = self._combine_votes(breakdown)
        levels = atr_risk_levels(action, latest.close, latest.atr)
        signals_counter.labels(source="technical", action=action.value).inc()
        return ModelPrediction(
            symbol=symbol,
            timestamp=latest.timestamp,
            action=action,
            confidence=confidence,
            price=latest.close,
            price_target=levels.price_target if levels else None,
            stop_loss=levels.stop_loss if levels else None,
            expected_return=levels.expected_return if levels else None,
            risk_reward_ratio=levels.risk_reward_ratio if levels else None,
            voters=breakdown,
            features=dict(features),
        )

    def generate_signals(self, symbols: Iterable[str]) -> Dict[str, Optional[ModelPrediction]]:
        """Signals for several symbols; a failing symbol maps to None and the rest proceed."""
        results: Dict[str, Optional[ModelPrediction]] = {}
        for symbol in symbols:
            try:
                results[symbol] = self.generate_signal(symbol)
            except Exception:
                logger.exception(f"Technical signal generation failed for {symbol}")
                signal_failures_counter.labels(source="technical").inc()
                results[symbol] = None
        return results

    def _combine_votes(self, breakdown: Dict[str, VoterBreakdown]) -> Tuple[Action, float]:
        buy = sell = hold = 0.0
        total_weight = 0.0
        for vote in breakdown.values():
            weighted = vote.confidence * vote.weight
            total_weight += vote.weight
            if vote.prediction == Action.BUY:
                buy += weighted
            elif vote.prediction == Action.SELL:
                sell += weighted
            else:
                hold += weighted
        if total_weight > 0:
            buy /= total_weight
            sell /= total_weight
            hold /= total_weight

        threshold = self.config.confidence_threshold
        if buy > sell and buy > hold and buy > threshold:
            return Action.BUY, buy
        if sell > buy and sell > hold and sell > threshold:
            return Action.SELL, sell
        return Action.HOLD, max(hold, 1 - max(buy, sell))

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------
    def update_config(self, **kwargs):
        """Update model configuration (re-validated)."""
        self.config = apply_config_updates(self.config, kwargs, logger, "ensemble")
        cap = self.config.history_cap
        for symbol in self.symbols():
            with self._locks.lock_for(symbol):
                if len(self._history[symbol]) > cap:
                    self._history[symbol] = self._history[symbol][-cap:]
                    self._features.pop(symbol, None)

    def get_config(self) -> EnsembleConfig:
        return self.config.model_copy(deep=True)
