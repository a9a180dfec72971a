import random
from datetime import datetime, timedelta

from fastapi.testclient import TestClient
from src.app import create_app
from src.config import settings
from src.scripts.common_utils import generate_sample_bars
from src.utils.time_utils import now_utc, to_utc

client = TestClient(create_app(seed=1))

START = to_utc(datetime(2024, 1, 1))


def _payload(bars):
    return [
        {"timestamp": b.timestamp.isoformat(), "open": b.open, "high": b.high, "low": b.low, "close": b.close, "volume": b.volume}
        for b in bars
    ]


def test_root_ok():
    r = client.get("/")
    assert r.status_code == 200
    body = r.json()
    assert body.get("name") == settings.APP_NAME
    assert body["services"] == ["technical", "sentiment", "combined"]


def test_health_and_config():
    assert client.get("/health").json()["status"] == "healthy"
    body = client.get("/config").json()
    assert body["services"]["combined"]["state"] == "ready"
    assert body["services"]["combined"]["config"]["technical_weight"] == 0.7


def test_metrics_exposed():
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "signal_desk_" in r.text


def test_market_data_ingest_and_technical_signal():
    bars = generate_sample_bars("AAPL", days=10, rng=random.Random(5), start=START, enrich=False)
    r = client.post("/market-data/AAPL", params={"enrich": True}, json=_payload(bars))
    assert r.status_code == 200
    body = r.json()
    assert body["received"] == 240
    assert body["history_size"] == 240

    r = client.get("/signals/technical/AAPL")
    assert r.status_code == 200
    assert r.json()["action"] in ("BUY", "SELL", "HOLD")

    # sentiment is required by default, so no combined signal yet
    r = client.get("/signals", params={"symbols": "AAPL,MSFT"})
    assert r.status_code == 200
    assert r.json() == {"signals": {"AAPL": None, "MSFT": None}, "generated": 0}


def test_market_data_rejects_empty_and_negative_volume():
    assert client.post("/market-data/AAPL", json=[]).status_code == 400
    bad = [{"timestamp": START.isoformat(), "open": 1, "high": 1, "low": 1, "close": 1, "volume": -1}]
    assert client.post("/market-data/AAPL", json=bad).status_code == 422


def test_signals_require_symbols():
    assert client.get("/signals").status_code == 400


def test_technical_signal_missing_history():
    assert client.get("/signals/technical/NOPE").status_code == 404


def test_sentiment_ingest_and_lookup():
    now = now_utc()
    news = [
        {"id": f"api-{i}", "title": "TSLA earnings beat expectations", "source": "Reuters",
         "published_at": (now - timedelta(minutes=10 + i)).isoformat(), "symbols": ["TSLA"]}
        for i in range(6)
    ]
    r = client.post("/sentiment/news", json=news)
    assert r.json() == {"received": 6, "accepted": 6}
    r = client.get("/sentiment/TSLA")
    assert r.status_code == 200
    body = r.json()
    assert body["result"]["symbol"] == "TSLA"
    assert body["signal"]["action"] in ("BUY", "SELL", "HOLD")

    r = client.get("/sentiment/ZZZZ")
    assert r.status_code == 404
    assert r.json()["detail"]["buffered"] == {"news": 0, "social": 0}


def test_backtest_run_technical_only():
    bars = generate_sample_bars("MSFT", days=12, rng=random.Random(9), start=START, enrich=False)
    request = {
        "config": {
            "initial_capital": 50000,
            "start_date": bars[200].timestamp.isoformat(),
            "end_date": bars[-1].timestamp.isoformat(),
        },
        "bars": {"MSFT": _payload(bars)},
        "technical_only": True,
    }
    r = client.post("/backtest/run", json=request)
    assert r.status_code == 200
    body = r.json()
    assert body["initial_capital"] == 50000
    assert body["equity_curve"][0]["equity"] == 50000
    assert "MSFT" in body["symbol_performance"]


def test_backtest_without_bars_in_window_is_a_conflict():
    bars = generate_sample_bars("MSFT", days=1, rng=random.Random(9), start=START, enrich=False)
    request = {
        "config": {"start_date": "2023-01-01T00:00:00Z", "end_date": "2023-01-02T00:00:00Z"},
        "bars": {"MSFT": _payload(bars)},
        "technical_only": True,
    }
    assert client.post("/backtest/run", json=request).status_code == 409
    assert client.post("/backtest/run", json={"bars": {}}).status_code == 400
