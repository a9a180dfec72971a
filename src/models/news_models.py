"""
News / social ingestion models and sentiment result structures.

Inputs (NewsItem, SocialMediaPost) are pydantic models so feeds are validated at the
API boundary; analysis outputs are plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from src.config import Settings, settings as default_settings
from src.utils.orders_enum import Action
from src.utils.time_utils import to_utc


class Platform(str, Enum):
    TWITTER = "twitter"
    REDDIT = "reddit"
    STOCKTWITS = "stocktwits"
    OTHER = "other"


class EntityType(str, Enum):
    COMPANY = "COMPANY"
    PERSON = "PERSON"
    PRODUCT = "PRODUCT"
    SECTOR = "SECTOR"


class NewsItem(BaseModel):
    """News article referencing one or more symbols."""
    id: str
    title: str
    content: str = ""
    source: str = Field(..., description="Publisher, e.g. Reuters")
    url: Optional[str] = None
    published_at: datetime
    symbols: List[str] = Field(default_factory=list)
    sentiment: Optional[float] = Field(None, ge=-1, le=1)
    relevance: Optional[float] = Field(None, ge=0, le=1)

    @field_validator("published_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @property
    def text(self) -> str:
        return f"{self.title} {self.content}"


class Engagement(BaseModel):
    likes: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)

    @property
    def total(self) -> int:
        return self.likes + self.shares + self.comments


class SocialMediaPost(BaseModel):
    id: str
    platform: Platform = Platform.OTHER
    content: str
    author: str = ""
    published_at: datetime
    symbols: List[str] = Field(default_factory=list)
    engagement: Engagement = Field(default_factory=Engagement)
    sentiment: Optional[float] = Field(None, ge=-1, le=1)

    @field_validator("published_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @property
    def text(self) -> str:
        return self.content


@dataclass
class SentimentScore:
    score: float  # bullishness - bearishness, in [-1, 1]
    magnitude: float
    bullishness: float
    bearishness: float
    neutrality: float
    fear_index: float
    greed_index: float


def neutral_sentiment() -> SentimentScore:
    return SentimentScore(
        score=0.0,
        magnitude=0.0,
        bullishness=0.33,
        bearishness=0.33,
        neutrality=0.34,
        fear_index=0.2,
        greed_index=0.2,
    )


@dataclass
class EntitySentiment:
    name: str
    type: EntityType
    sentiment: SentimentScore
    mentions: int
    salience: float


@dataclass
class KeywordStat:
    word: str
    count: int
    sentiment: float


@dataclass
class SentimentAnalysisResult:
    symbol: str
    timestamp: datetime
    sentiment: SentimentScore
    entities: List[EntitySentiment] = field(default_factory=list)
    keywords: List[KeywordStat] = field(default_factory=list)
    sources: Dict[str, int] = field(default_factory=dict)
    news_items: List[NewsItem] = field(default_factory=list)
    social_posts: List[SocialMediaPost] = field(default_factory=list)


@dataclass
class SentimentSignal:
    action: Action
    confidence: float
    reason: str


class SentimentConfig(BaseModel):
    news_weight: float = Field(0.6, ge=0)
    twitter_weight: float = Field(0.15, ge=0)
    reddit_weight: float = Field(0.15, ge=0)
    stocktwits_weight: float = Field(0.1, ge=0)
    analysis_frequency: int = Field(60, gt=0, description="Cache TTL in minutes")
    lookback_period: int = Field(24, gt=0, description="Buffer window in hours")
    min_news_items: int = Field(5, ge=0)
    min_social_posts: int = Field(10, ge=0)
    sentiment_algorithm: Literal["advanced", "basic"] = "advanced"
    keyword_filter_list: List[str] = Field(default_factory=list)
    remove_bots: bool = True

    @property
    def social_weight(self) -> float:
        return self.twitter_weight + self.reddit_weight + self.stocktwits_weight

    @classmethod
    def from_settings(cls, s: Settings = default_settings) -> "SentimentConfig":
        return cls(
            news_weight=s.SENTIMENT_NEWS_WEIGHT,
            twitter_weight=s.SENTIMENT_TWITTER_WEIGHT,
            reddit_weight=s.SENTIMENT_REDDIT_WEIGHT,
            stocktwits_weight=s.SENTIMENT_STOCKTWITS_WEIGHT,
            analysis_frequency=s.SENTIMENT_ANALYSIS_FREQUENCY_MIN,
            lookback_period=s.SENTIMENT_LOOKBACK_HOURS,
            min_news_items=s.SENTIMENT_MIN_NEWS_ITEMS,
            min_social_posts=s.SENTIMENT_MIN_SOCIAL_POSTS,
            sentiment_algorithm=s.SENTIMENT_ALGORITHM,
        )
