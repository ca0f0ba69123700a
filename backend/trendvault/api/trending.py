"""Trending and stats API routes"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from trendvault.core.config import settings
from trendvault.core.context import ServiceContext, get_context
from trendvault.db.session import get_db
from trendvault.schemas.video import StatsResponse
from trendvault.services.trending_service import TrendingAggregator, TrendingPeriod, get_video_stats

logger = logging.getLogger(__name__)

router = APIRouter(tags=["trending"])


@router.get("/trending")
async def get_trending(
    period: Optional[str] = Query(TrendingPeriod.DAY.value),
    limit: int = Query(settings.TRENDING_DEFAULT_LIMIT, ge=1, le=settings.TRENDING_MAX_LIMIT),
    context: ServiceContext = Depends(get_context)
):
    """Most downloaded restricted videos in the last 24h / 7d / 30d"""
    trending_period = TrendingPeriod.parse(period)
    aggregator = TrendingAggregator(context.db, context.cache, ttl=context.settings.TRENDING_CACHE_TTL)
    snapshot = await aggregator.get_trending(trending_period, limit)
    return {"success": True, **snapshot.model_dump(mode="json", by_alias=True)}


@router.get("/stats", response_model=StatsResponse)
def get_stats(db: Session = Depends(get_db)):
    """Totals across the stored collection"""
    return {"success": True, **get_video_stats(db)}
