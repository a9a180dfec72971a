"""
Sentiment aggregation over buffered news and social posts.

Items are fanned out to every symbol they mention and kept for `lookback_period` hours.
`get_sentiment` scores news and social channels separately, blends them with the configured
channel weights and caches the result per symbol for `analysis_frequency` minutes.

Two scorers are available:
  advanced  simulated stochastic mix of bullish/bearish/neutral proportions (default)
  basic     keyword matching against a small finance lexicon
Both keep the same shape: proportions sum to 1, score = bullishness - bearishness, magnitude grows
with bullish + bearish share, fear/greed follow bearishness/bullishness with random jitter.
"""

import logging
import math
import random
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from src.models.news_models import (
    EntitySentiment,
    EntityType,
    KeywordStat,
    NewsItem,
    SentimentAnalysisResult,
    SentimentConfig,
    SentimentScore,
    SentimentSignal,
    SocialMediaPost,
    neutral_sentiment,
)
from src.news.lexicon import FINANCE_KEYWORDS, lexicon_score, sector_for, tokenize
from src.services.metrics import signal_failures_counter, signals_counter
from src.utils.config_updates import apply_config_updates
from src.utils.orders_enum import Action
from src.utils.symbol_locks import SymbolLocks
from src.utils.time_utils import now_utc

logger = logging.getLogger("sentiment_analyzer")

Item = Union[NewsItem, SocialMediaPost]

MAX_KEYWORDS = 15
MAX_RECENT_ITEMS = 10
SIGNAL_SCORE_THRESHOLD = 0.3
CONTRARIAN_LEVEL = 0.8

# (bullish base, bullish span, bearish base, bearish span, magnitude multiplier, fear/greed weight)
_NEWS_PROFILE = (0.4, 0.3, 0.2, 0.2, 2.0, 0.7)
_SOCIAL_PROFILE = (0.3, 0.4, 0.2, 0.3, 2.5, 0.8)


def _newest_first(items: Sequence[Item]) -> List:
    return sorted(items, key=lambda i: i.published_at, reverse=True)


def weighted_average(items: Iterable[Tuple[float, float]]) -> float:
    """Average of (value, weight) pairs; 0.0 when the weights sum to zero."""
    pairs = list(items)
    total_weight = sum(w for _, w in pairs)
    if total_weight == 0:
        return 0.0
    return sum(v * w for v, w in pairs) / total_weight


class SentimentAnalyzer:
    def __init__(
        self,
        config: Optional[SentimentConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.config = config or SentimentConfig.from_settings()
        self.rng = rng or random.Random()
        self.clock = clock
        self._news: Dict[str, List[NewsItem]] = {}
        self._social: Dict[str, List[SocialMediaPost]] = {}
        self._cache: Dict[str, SentimentAnalysisResult] = {}
        self._analysed_at: Dict[str, datetime] = {}
        # bumped on every ingest touching the symbol
        self._data_version: Dict[str, int] = {}
        # (data version, visible news, visible posts) a cached result was computed from
        self._cache_basis: Dict[str, Tuple[int, int, int]] = {}
        self._locks = SymbolLocks()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def add_news_data(self, news: Iterable[NewsItem]) -> int:
        """Buffer news items under every symbol they reference; returns items accepted."""
        accepted = 0
        for item in news:
            if self._filtered(item):
                continue
            for symbol in item.symbols:
                with self._locks.lock_for(symbol):
                    self._news.setdefault(symbol, []).append(item)
                    self._bump(symbol)
            accepted += 1
        self._prune()
        return accepted

    def add_social_data(self, posts: Iterable[SocialMediaPost]) -> int:
        accepted = 0
        for post in posts:
            if self._filtered(post):
                continue
            if self.config.remove_bots and post.author.lower().endswith("bot"):
                logger.debug(f"Dropping bot post {post.id} by {post.author}")
                continue
            for symbol in post.symbols:
                with self._locks.lock_for(symbol):
                    self._social.setdefault(symbol, []).append(post)
                    self._bump(symbol)
            accepted += 1
        self._prune()
        return accepted

    def _bump(self, symbol: str) -> None:
        self._data_version[symbol] = self._data_version.get(symbol, 0) + 1

    def _filtered(self, item: Item) -> bool:
        if not self.config.keyword_filter_list:
            return False
        tokens = set(tokenize(item.text))
        return any(word.lower() in tokens for word in self.config.keyword_filter_list)

    def _cutoff(self) -> datetime:
        return self.clock() - timedelta(hours=self.config.lookback_period)

    def _prune(self) -> None:
        cutoff = self._cutoff()
        for buffers in (self._news, self._social):
            for symbol in list(buffers.keys()):
                with self._locks.lock_for(symbol):
                    buffers[symbol] = [i for i in buffers[symbol] if i.published_at >= cutoff]

    def buffered_counts(self, symbol: str) -> Dict[str, int]:
        with self._locks.lock_for(symbol):
            return {"news": len(self._news.get(symbol, [])), "social": len(self._social.get(symbol, []))}

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    def get_sentiment(self, symbol: str) -> Optional[SentimentAnalysisResult]:
        """Sentiment for a symbol, or None when neither channel has its minimum item count.

        A cached result is reused while it is younger than `analysis_frequency` minutes, and also
        after that when the items visible in the lookback window are unchanged. Items published
        after the clock's "now" are not visible, which lets a replay clock walk through history.
        """
        with self._locks.lock_for(symbol):
            now = self.clock()
            cached = self._cache.get(symbol)
            if cached is not None and now < self._analysed_at[symbol]:
                # clock moved back (replay): a result from a later "now" may hold unseen items
                self._drop_cached(symbol)
                cached = None
            if cached is not None and now - self._analysed_at[symbol] < timedelta(minutes=self.config.analysis_frequency):
                return cached

            cutoff = now - timedelta(hours=self.config.lookback_period)
            news = [n for n in self._news.get(symbol, []) if cutoff <= n.published_at <= now]
            social = [p for p in self._social.get(symbol, []) if cutoff <= p.published_at <= now]
            basis = (self._data_version.get(symbol, 0), len(news), len(social))
            if cached is not None and self._cache_basis.get(symbol) == basis:
                return cached
            if len(news) < self.config.min_news_items and len(social) < self.config.min_social_posts:
                logger.debug(f"Insufficient data for sentiment analysis of {symbol}: news={len(news)} social={len(social)}")
                return None

            result = self._analyze(symbol, now, news, social)
            self._cache[symbol] = result
            self._analysed_at[symbol] = now
            self._cache_basis[symbol] = basis
            return result

    def get_sentiments(self, symbols: Iterable[str]) -> Dict[str, Optional[SentimentAnalysisResult]]:
        results: Dict[str, Optional[SentimentAnalysisResult]] = {}
        for symbol in symbols:
            try:
                results[symbol] = self.get_sentiment(symbol)
            except Exception:
                logger.exception(f"Sentiment analysis failed for {symbol}")
                signal_failures_counter.labels(source="sentiment").inc()
                results[symbol] = None
        return results

    def _analyze(
        self,
        symbol: str,
        now: datetime,
        news: List[NewsItem],
        social: List[SocialMediaPost],
    ) -> SentimentAnalysisResult:
        everything: List[Item] = [*news, *social]
        entities = self._extract_entities(symbol, everything)
        news_sentiment = self._channel_sentiment(news, _NEWS_PROFILE)
        social_sentiment = self._channel_sentiment(social, _SOCIAL_PROFILE)
        overall = self._blend(news_sentiment, social_sentiment)

        sources = Counter(item.source for item in news)
        return SentimentAnalysisResult(
            symbol=symbol,
            timestamp=now,
            sentiment=overall,
            entities=entities,
            keywords=self._extract_keywords(everything),
            sources=dict(sources),
            news_items=_newest_first(news)[:MAX_RECENT_ITEMS],
            social_posts=_newest_first(social)[:MAX_RECENT_ITEMS],
        )

    def _blend(self, news: SentimentScore, social: SentimentScore) -> SentimentScore:
        news_w = self.config.news_weight
        social_w = self.config.social_weight

        def mix(field: str) -> float:
            return weighted_average([(getattr(news, field), news_w), (getattr(social, field), social_w)])

        return SentimentScore(
            score=mix("score"),
            magnitude=mix("magnitude"),
            bullishness=mix("bullishness"),
            bearishness=mix("bearishness"),
            neutrality=mix("neutrality"),
            fear_index=mix("fear_index"),
            greed_index=mix("greed_index"),
        )

    def _channel_sentiment(self, items: Sequence[Item], profile) -> SentimentScore:
        if not items:
            return neutral_sentiment()
        bull_base, bull_span, bear_base, bear_span, magnitude_mult, fg_weight = profile
        n = len(items)
        if self.config.sentiment_algorithm == "basic":
            bullish_count, bearish_count = self._lexicon_counts(items)
        else:
            bullish_count = math.floor(n * (bull_base + self.rng.random() * bull_span))
            bearish_count = math.floor(n * (bear_base + self.rng.random() * bear_span))
        bearish_count = min(bearish_count, n - bullish_count)

        bullishness = bullish_count / n
        bearishness = bearish_count / n
        neutrality = (n - bullish_count - bearish_count) / n
        jitter = 1 - fg_weight
        return SentimentScore(
            score=bullishness - bearishness,
            magnitude=(bullishness + bearishness) * magnitude_mult,
            bullishness=bullishness,
            bearishness=bearishness,
            neutrality=neutrality,
            fear_index=bearishness * fg_weight + self.rng.random() * jitter,
            greed_index=bullishness * fg_weight + self.rng.random() * jitter,
        )

    @staticmethod
    def _lexicon_counts(items: Sequence[Item]) -> Tuple[int, int]:
        bullish = bearish = 0
        for item in items:
            # feed-supplied sentiment wins over the lexicon
            score = item.sentiment if item.sentiment is not None else lexicon_score(item.text)
            if score > 0.1:
                bullish += 1
            elif score < -0.1:
                bearish += 1
        return bullish, bearish

    def _biased_sentiment(self, bias: float, intensity: float) -> SentimentScore:
        score = min(max(bias + (self.rng.random() * 0.6 - 0.3), -1.0), 1.0)
        magnitude = intensity + self.rng.random() * 0.5
        if score > 0:
            bullishness, bearishness = 0.5 + score * 0.5, 0.5 - score * 0.3
        else:
            bullishness, bearishness = 0.5 - abs(score) * 0.3, 0.5 + abs(score) * 0.5
        # keep proportions on the simplex
        neutrality = max(0.0, 1 - bullishness - bearishness)
        total = bullishness + bearishness + neutrality
        return SentimentScore(
            score=score,
            magnitude=magnitude,
            bullishness=bullishness / total,
            bearishness=bearishness / total,
            neutrality=neutrality / total,
            fear_index=0.5 + abs(score) * 0.5 if score < 0 else 0.5 - score * 0.3,
            greed_index=0.5 + score * 0.5 if score > 0 else 0.5 - abs(score) * 0.3,
        )

    def _extract_entities(self, symbol: str, items: Sequence[Item]) -> List[EntitySentiment]:
        n = len(items)
        return [
            EntitySentiment(symbol, EntityType.COMPANY, self._biased_sentiment(0.2, 0.6), n, 1.0),
            EntitySentiment(f"{symbol} CEO", EntityType.PERSON, self._biased_sentiment(-0.2, 0.4), math.floor(n * 0.3), 0.7),
            EntitySentiment(f"{symbol} Products", EntityType.PRODUCT, self._biased_sentiment(0.0, 0.5), math.floor(n * 0.5), 0.8),
            EntitySentiment(sector_for(symbol), EntityType.SECTOR, self._biased_sentiment(-0.1, 0.4), math.floor(n * 0.4), 0.6),
        ]

    @staticmethod
    def _extract_keywords(items: Sequence[Item]) -> List[KeywordStat]:
        """Finance vocabulary ranked by mentions across items, at most 15 entries.

        Keyword sentiment is the mean lexicon score of the items mentioning it.
        """
        counts: Counter = Counter()
        polarity: Dict[str, List[float]] = {}
        for item in items:
            tokens = tokenize(item.text)
            token_counts = Counter(tokens)
            item_score = item.sentiment if item.sentiment is not None else lexicon_score(item.text)
            for word in FINANCE_KEYWORDS:
                hits = token_counts.get(word, 0)
                if hits:
                    counts[word] += hits
                    polarity.setdefault(word, []).append(item_score)
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:MAX_KEYWORDS]
        return [
            KeywordStat(word=word, count=count, sentiment=sum(polarity[word]) / len(polarity[word]))
            for word, count in ranked
        ]

    # ------------------------------------------------------------------
    # Signal
    # ------------------------------------------------------------------
    def get_trading_signal(self, result: SentimentAnalysisResult) -> SentimentSignal:
        """BUY/SELL/HOLD from the blended score, scaled by magnitude, with a contrarian flip at extremes."""
        s = result.sentiment
        if s.score > SIGNAL_SCORE_THRESHOLD:
            action = Action.BUY
            confidence = min(0.5 + s.score * 0.5, 0.95)
            reason = f"Strong positive sentiment ({s.score:.2f})"
        elif s.score < -SIGNAL_SCORE_THRESHOLD:
            action = Action.SELL
            confidence = min(0.5 + abs(s.score) * 0.5, 0.95)
            reason = f"Strong negative sentiment ({s.score:.2f})"
        else:
            action = Action.HOLD
            confidence = 0.5 - abs(s.score) * 0.5
            reason = f"Neutral sentiment ({s.score:.2f})"

        confidence = min(confidence * (0.7 + s.magnitude * 0.3), 0.95)

        # one flip at most, decided by the pre-override action
        if action == Action.SELL and s.fear_index > CONTRARIAN_LEVEL:
            action = Action.BUY
            confidence = min(confidence * 0.8, 0.7)
            reason = f"Contrarian signal: extreme fear detected ({s.fear_index:.2f})"
        elif action == Action.BUY and s.greed_index > CONTRARIAN_LEVEL:
            action = Action.SELL
            confidence = min(confidence * 0.8, 0.7)
            reason = f"Contrarian signal: extreme greed detected ({s.greed_index:.2f})"

        signals_counter.labels(source="sentiment", action=action.value).inc()
        return SentimentSignal(action=action, confidence=confidence, reason=reason)

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------
    def update_config(self, **kwargs):
        """Update analyzer configuration; cached results are dropped."""
        self.config = apply_config_updates(self.config, kwargs, logger, "sentiment")
        self.clear_cache()

    def clear_cache(self) -> None:
        """Forget every cached result, e.g. when the clock is swapped for a replay."""
        for symbol in list(self._cache.keys()):
            with self._locks.lock_for(symbol):
                self._drop_cached(symbol)

    def _drop_cached(self, symbol: str) -> None:
        self._cache.pop(symbol, None)
        self._analysed_at.pop(symbol, None)
        self._cache_basis.pop(symbol, None)

    def get_config(self) -> SentimentConfig:
        return self.config.model_copy(deep=True)
