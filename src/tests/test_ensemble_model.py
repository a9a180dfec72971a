import random
import threading
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from src.engine.ensemble_model import EnsembleTechnicalModel
from src.engine.voters import Voter, decide, default_voters
from src.models.market_models import EnsembleConfig, MarketDataBar, VoterOutput
from src.utils.orders_enum import Action


def _bullish_bars(n, symbol="AAPL", rsi=25.0):
    base = datetime(2024, 1, 1)
    return [
        MarketDataBar(
            symbol, base + timedelta(hours=i), 100.0, 101.0, 99.0, 100.0, 1000.0,
            rsi=rsi, macd_histogram=0.5, ema50=110.0, ema200=100.0, atr=2.0,
        )
        for i in range(n)
    ]


def _model(seed=1, **config):
    return EnsembleTechnicalModel(EnsembleConfig(**config), rng=random.Random(seed))


def test_fewer_than_min_bars_gives_no_signal():
    model = _model()
    model.add_market_data("AAPL", _bullish_bars(199))
    assert model.generate_signal("AAPL") is None
    assert model.generate_signal("MSFT") is None


def test_bullish_indicators_give_buy_with_atr_levels():
    model = _model()
    model.add_market_data("AAPL", _bullish_bars(250))
    signal = model.generate_signal("AAPL")
    assert signal is not None
    assert signal.action == Action.BUY
    assert signal.confidence >= 0.65
    assert signal.price_target == pytest.approx(106.0)
    assert signal.stop_loss == pytest.approx(97.0)
    assert signal.risk_reward_ratio == pytest.approx(2.0)
    assert set(signal.voters) == {"random_forest", "gradient_boosting", "neural_network", "svm", "logistic_regression"}
    assert signal.voters["random_forest"].weight == 0.3
    assert signal.timestamp == model.history("AAPL")[-1].timestamp


def test_same_seed_same_signal():
    a, b = _model(seed=9), _model(seed=9)
    for m in (a, b):
        m.add_market_data("AAPL", _bullish_bars(220))
    assert a.generate_signal("AAPL").confidence == b.generate_signal("AAPL").confidence


def test_history_dedupes_sorts_and_caps():
    model = _model(history_cap=210)
    bars = _bullish_bars(250)
    model.add_market_data("AAPL", list(reversed(bars)))
    model.add_market_data("AAPL", bars[-5:])
    history = model.history("AAPL")
    assert len(history) == 210
    assert [b.timestamp for b in history] == [b.timestamp for b in bars[-210:]]


def test_foreign_symbol_bars_rejected():
    model = _model()
    with pytest.raises(ValueError):
        model.add_market_data("AAPL", _bullish_bars(3, symbol="MSFT"))


def test_missing_weight_defaults_to_point_one():
    class Always(Voter):
        name = "custom"

        def score(self, features):
            return VoterOutput(Action.BUY, 0.9)

    model = EnsembleTechnicalModel(EnsembleConfig(min_bars=1), voters=[Always()])
    model.add_market_data("AAPL", _bullish_bars(1))
    signal = model.generate_signal("AAPL")
    assert signal.voters["custom"].weight == 0.1
    assert signal.action == Action.BUY
    assert signal.confidence == pytest.approx(0.9)


def test_explicit_zero_weight_mutes_voter():
    class Buyer(Voter):
        name = "buyer"

        def score(self, features):
            return VoterOutput(Action.BUY, 0.9)

    class Seller(Voter):
        name = "seller"

        def score(self, features):
            return VoterOutput(Action.SELL, 0.8)

    config = EnsembleConfig(min_bars=1, model_weights={"buyer": 0.0, "seller": 1.0})
    model = EnsembleTechnicalModel(config, voters=[Buyer(), Seller()])
    model.add_market_data("AAPL", _bullish_bars(1))
    signal = model.generate_signal("AAPL")
    assert signal.voters["buyer"].weight == 0.0
    assert signal.action == Action.SELL
    assert signal.confidence == pytest.approx(0.8)


def test_hold_when_votes_split():
    votes = {
        "a": VoterOutput(Action.BUY, 0.9),
        "b": VoterOutput(Action.SELL, 0.9),
    }

    class Fixed(Voter):
        def __init__(self, name):
            self.name = name

        def score(self, features):
            return votes[self.name]

    model = EnsembleTechnicalModel(EnsembleConfig(min_bars=1, model_weights={"a": 1, "b": 1}), voters=[Fixed("a"), Fixed("b")])
    model.add_market_data("AAPL", _bullish_bars(1))
    signal = model.generate_signal("AAPL")
    assert signal.action == Action.HOLD
    assert signal.confidence == pytest.approx(0.55)
    assert signal.price_target is None


def test_batch_isolates_failing_symbol():
    class Fragile(Voter):
        name = "random_forest"

        def score(self, features):
            if features["rsi"] == 99.0:
                raise RuntimeError("boom")
            return VoterOutput(Action.HOLD, 0.5)

    model = EnsembleTechnicalModel(EnsembleConfig(min_bars=5), voters=[Fragile()])
    model.add_market_data("GOOD", _bullish_bars(5, symbol="GOOD"))
    model.add_market_data("BAD", _bullish_bars(5, symbol="BAD", rsi=99.0))
    results = model.generate_signals(["GOOD", "BAD", "NONE"])
    assert results["GOOD"] is not None
    assert results["BAD"] is None
    assert results["NONE"] is None


def test_update_config_validates_and_trims():
    model = _model()
    model.add_market_data("AAPL", _bullish_bars(300))
    model.update_config(history_cap=250, not_a_field=1)
    assert len(model.history("AAPL")) == 250
    assert model.get_config().history_cap == 250
    with pytest.raises(ValidationError):
        model.update_config(confidence_threshold=2)
    assert model.get_config().confidence_threshold == 0.65


def test_decide_threshold():
    assert decide(1.4, 0.0).action == Action.HOLD
    assert decide(3.0, 1.0).action == Action.BUY
    assert decide(3.0, 1.0).confidence == pytest.approx(0.75)
    assert decide(0.2, 2.2).action == Action.SELL
    assert len(default_voters(random.Random(0))) == 5


def test_as_of_scores_only_bars_up_to_that_time():
    model = _model(min_bars=10)
    bars = _bullish_bars(30)
    model.add_market_data("AAPL", bars)
    earlier = model.generate_signal("AAPL", as_of=bars[19].timestamp)
    assert earlier.timestamp == bars[19].timestamp
    assert model.generate_signal("AAPL", as_of=bars[5].timestamp) is None
    # the cached vector still belongs to the newest bar
    assert model.generate_signal("AAPL").timestamp == bars[-1].timestamp


def test_concurrent_writers_and_readers_keep_history_consistent():
    model = _model(min_bars=10)
    bars = _bullish_bars(120)
    errors = []

    def writer(offset):
        try:
            for i in range(0, 120, 4):
                model.add_market_data("AAPL", bars[max(0, i + offset - 2):i + offset + 2])
        except Exception as e:
            errors.append(e)

    def reader():
        try:
            for _ in range(60):
                model.generate_signal("AAPL")
                model.history("AAPL")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(k,)) for k in range(3)]
    threads += [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    stamps = [b.timestamp for b in model.history("AAPL")]
    assert stamps == sorted(set(stamps))
    assert len(stamps) == 120
