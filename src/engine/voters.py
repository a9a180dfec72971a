"""Ensemble voters.

A voter turns one FeatureVector into a BUY/SELL/HOLD opinion with a confidence. The bundled
voters are rule-scoring heuristics named after the model families they stand in for; each adds
a small family-specific nudge and random jitter. Any object implementing `Voter` can replace them.
"""
import random
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from src.models.market_models import FeatureVector, VoterOutput
from src.utils.orders_enum import Action

SIGNAL_THRESHOLD = 1.5
JITTER = 0.5


class Voter(ABC):
    name: str = "voter"

    @abstractmethod
    def score(self, features: FeatureVector) -> VoterOutput:
        ...


class RuleBasedVoter(Voter):
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def adjust(self, bullish: float, bearish: float, features: FeatureVector) -> Tuple[float, float]:
        return bullish, bearish

    @staticmethod
    def base_counts(features: FeatureVector) -> Tuple[float, float]:
        bullish = 0.0
        bearish = 0.0
        rsi = features["rsi"]
        if rsi < 30:
            bullish += 1
        if rsi > 70:
            bearish += 1

        macd = features["macd"]
        if macd > 0:
            bullish += 1
        if macd < 0:
            bearish += 1

        ema_ratio = features["ema_ratio"]
        if ema_ratio > 1.02:
            bullish += 1
        if ema_ratio < 0.98:
            bearish += 1

        position = features["bollinger_position"]
        if position < 0.3:
            bullish += 1
        if position > 0.7:
            bearish += 1

        # volume-confirmed move
        if features["volume_change_1d"] > 0.1:
            if features["price_change_1d"] > 0:
                bullish += 1
            elif features["price_change_1d"] < 0:
                bearish += 1
        return bullish, bearish

    def score(self, features: FeatureVector) -> VoterOutput:
        bullish, bearish = self.base_counts(features)
        bullish, bearish = self.adjust(bullish, bearish, features)
        bullish += self.rng.random() * JITTER
        bearish += self.rng.random() * JITTER
        return decide(bullish, bearish)


def decide(bullish: float, bearish: float) -> VoterOutput:
    total = bullish + bearish
    if bullish > bearish and bullish > SIGNAL_THRESHOLD:
        return VoterOutput(Action.BUY, min(0.95, 0.5 + (bullish - bearish) / (2 * total)))
    if bearish > bullish and bearish > SIGNAL_THRESHOLD:
        return VoterOutput(Action.SELL, min(0.95, 0.5 + (bearish - bullish) / (2 * total)))
    return VoterOutput(Action.HOLD, max(0.4, 1 - abs(bullish - bearish) / max(1.0, total)))


class RandomForestVoter(RuleBasedVoter):
    name = "random_forest"

    def adjust(self, bullish, bearish, features):
        if features["volume_change_5d"] > 0.2:
            bullish += 0.5
        return bullish, bearish


class GradientBoostingVoter(RuleBasedVoter):
    name = "gradient_boosting"

    def adjust(self, bullish, bearish, features):
        if features["price_change_5d"] > 0.05:
            bullish += 0.5
        if features["price_change_5d"] < -0.05:
            bearish += 0.5
        return bullish, bearish


class NeuralNetworkVoter(RuleBasedVoter):
    name = "neural_network"

    def adjust(self, bullish, bearish, features):
        if features["price_change_1d"] * features["volume_change_1d"] > 0:
            bullish += 0.5
        return bullish, bearish


class SvmVoter(RuleBasedVoter):
    name = "svm"

    def adjust(self, bullish, bearish, features):
        if features["volatility"] < 0.01:
            bullish += 0.5
        return bullish, bearish


class LogisticRegressionVoter(RuleBasedVoter):
    name = "logistic_regression"

    def adjust(self, bullish, bearish, features):
        return bullish * 0.9, bearish * 0.9


def default_voters(rng: Optional[random.Random] = None) -> List[Voter]:
    """The five stock voters sharing one RNG."""
    rng = rng or random.Random()
    return [
        RandomForestVoter(rng),
        GradientBoostingVoter(rng),
        NeuralNetworkVoter(rng),
        SvmVoter(rng),
        LogisticRegressionVoter(rng),
    ]
