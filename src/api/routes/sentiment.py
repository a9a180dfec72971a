"""News / social ingestion and sentiment routes."""
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from src.api.dependencies.services import ServiceRegistry, get_service_registry
from src.models.news_models import NewsItem, SocialMediaPost

router = APIRouter(prefix="/sentiment", tags=["sentiment"])

@router.post("/news")
async def ingest_news(items: List[NewsItem], registry: ServiceRegistry = Depends(get_service_registry)):
    accepted = registry.get("sentiment").add_news_data(items)
    return {"received": len(items), "accepted": accepted}

@router.post("/social")
async def ingest_social(posts: List[SocialMediaPost], registry: ServiceRegistry = Depends(get_service_registry)):
    accepted = registry.get("sentiment").add_social_data(posts)
    return {"received": len(posts), "accepted": accepted}

@router.get("/{symbol}")
async def symbol_sentiment(symbol: str, registry: ServiceRegistry = Depends(get_service_registry)):
    analyzer = registry.get("sentiment")
    result = analyzer.get_sentiment(symbol)
    if result is None:
        raise HTTPException(
            status_code=404,
            detail={"message": f"Insufficient news/social data for {symbol}", "buffered": analyzer.buffered_counts(symbol)},
        )
    return {"result": result, "signal": analyzer.get_trading_signal(result)}

__all__ = ["router"]
