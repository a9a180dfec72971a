"""Word lists used by the keyword-based sentiment scorer and keyword extraction."""
import re
from typing import Dict, List

POSITIVE_WORDS = frozenset([
    'bullish', 'rally', 'surge', 'gain', 'gains', 'profit', 'rise', 'up', 'growth', 'beat',
    'exceed', 'upgrade', 'record', 'strong', 'outperform',
])
NEGATIVE_WORDS = frozenset([
    'bearish', 'fall', 'drop', 'loss', 'decline', 'down', 'crash', 'plunge', 'miss', 'below',
    'downgrade', 'weak', 'lawsuit', 'underperform', 'recall',
])

FINANCE_KEYWORDS: List[str] = [
    "earnings", "growth", "revenue", "profit", "loss", "increase", "decrease",
    "upgrade", "downgrade", "target", "price", "buy", "sell", "hold", "rating",
    "forecast", "guidance", "outlook", "analyst", "quarterly", "report", "dividend",
    "product", "launch", "partnership", "acquisition", "merger", "ceo", "executive",
    "competitor", "market", "share", "technology", "innovation", "regulation", "lawsuit",
]

SECTOR_MAP: Dict[str, str] = {
    'AAPL': 'Technology',
    'MSFT': 'Technology',
    'GOOGL': 'Technology',
    'AMZN': 'Consumer Cyclical',
    'META': 'Technology',
    'TSLA': 'Automotive',
    'JPM': 'Financial Services',
    'BAC': 'Financial Services',
    'WMT': 'Consumer Defensive',
    'PFE': 'Healthcare',
}

_TOKEN = re.compile(r"[a-z]+")


def tokenize(text: str) -> List[str]:
    return _TOKEN.findall(text.lower())


def lexicon_score(text: str) -> float:
    """(positive - negative) / (positive + negative) over word tokens; 0.0 without matches."""
    tokens = tokenize(text)
    positive = sum(1 for t in tokens if t in POSITIVE_WORDS)
    negative = sum(1 for t in tokens if t in NEGATIVE_WORDS)
    if positive + negative == 0:
        return 0.0
    return (positive - negative) / (positive + negative)


def sector_for(symbol: str) -> str:
    return SECTOR_MAP.get(symbol.upper(), 'Unknown Sector')
