"""Script utilities: CSV round trips, resampling and synthetic data generation."""
import csv
import random
from datetime import datetime, timedelta

import pytest

from src.scripts import common_utils as cu
from src.scripts.backtest_strategy import main as backtest_main, parse_csv_inputs
from src.utils.time_utils import to_utc

START = to_utc(datetime(2024, 2, 1))


def test_util_exports_present():
    for name in ('load_bars_csv', 'resample_bars', 'generate_sample_bars', 'generate_sample_news',
                 'generate_sample_social', 'write_csv'):
        assert hasattr(cu, name)


def test_sample_bars_are_seeded_and_enriched():
    a = cu.generate_sample_bars('AAPL', days=10, rng=random.Random(1), start=START)
    b = cu.generate_sample_bars('AAPL', days=10, rng=random.Random(1), start=START)
    assert a == b
    assert len(a) == 240
    assert a[0].timestamp == START
    assert all(bar.low <= bar.open <= bar.high for bar in a)
    assert a[-1].ema200 is not None and a[-1].rsi is not None


def test_sample_news_and_posts_reference_symbols():
    rng = random.Random(2)
    news = cu.generate_sample_news(['AAPL', 'MSFT'], days=2, rng=rng, start=START)
    posts = cu.generate_sample_social(['AAPL'], days=2, rng=rng, start=START)
    assert {n.symbols[0] for n in news} == {'AAPL', 'MSFT'}
    assert all(START <= n.published_at <= START + timedelta(days=2) for n in news)
    assert 20 <= len(posts) < 100
    assert all(p.author.startswith('user') for p in posts)


def test_csv_load_sorts_and_keeps_indicators(tmp_path):
    path = tmp_path / 'bars.csv'
    rows = [
        {'timestamp': '2024-02-01T11:00:00Z', 'open': 2, 'high': 3, 'low': 1, 'close': 2.5, 'volume': 10, 'rsi': 40},
        {'timestamp': '2024-02-01T10:00:00Z', 'open': 1, 'high': 2, 'low': 0.5, 'close': 1.5, 'volume': 12, 'rsi': ''},
    ]
    cu.write_csv(str(path), list(rows[0].keys()), rows)
    bars = cu.load_bars_csv(str(path), 'TEST')
    assert [b.close for b in bars] == [1.5, 2.5]
    assert bars[0].rsi is None
    assert bars[1].rsi == 40.0
    assert bars[0].timestamp == to_utc(datetime(2024, 2, 1, 10))


def test_csv_missing_columns_rejected(tmp_path):
    path = tmp_path / 'bad.csv'
    cu.write_csv(str(path), ['timestamp', 'close'], [{'timestamp': '2024-02-01', 'close': 1}])
    with pytest.raises(ValueError):
        cu.load_bars_csv(str(path), 'TEST')


def test_resample_bars_to_four_hours():
    bars = cu.generate_sample_bars('MSFT', days=1, rng=random.Random(3), start=START, enrich=False)
    coarse = cu.resample_bars(bars, 240)
    assert len(coarse) == 6
    first = bars[:4]
    assert coarse[0].open == first[0].open
    assert coarse[0].close == first[-1].close
    assert coarse[0].high == max(b.high for b in first)
    assert coarse[0].volume == pytest.approx(sum(b.volume for b in first))


def test_write_csv_skips_empty(tmp_path):
    path = tmp_path / 'empty.csv'
    cu.write_csv(str(path), ['a'], [])
    assert not path.exists()


def test_parse_csv_inputs():
    assert parse_csv_inputs(['aapl=data/a.csv']) == {'AAPL': 'data/a.csv'}
    with pytest.raises(ValueError):
        parse_csv_inputs(['AAPL'])


def test_backtest_cli_on_sample_data(tmp_path):
    trades = tmp_path / 'trades.csv'
    equity = tmp_path / 'equity.csv'
    code = backtest_main([
        '--sample', 'AAPL', '--days', '12', '--seed', '7', '--technical-only',
        '--trades', str(trades), '--equity', str(equity), '--log-level', 'WARNING',
    ])
    assert code == 0
    with open(equity, newline='') as f:
        points = list(csv.DictReader(f))
    assert points and set(points[0]) == {'date', 'equity'}


def test_backtest_cli_requires_input():
    assert backtest_main(['--log-level', 'WARNING']) == 2
