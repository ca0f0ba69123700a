"""Trending service - ranked restricted videos per time window, plus aggregate stats"""
import asyncio
import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from trendvault.core.exceptions import InvalidUrlError
from trendvault.core.logging import trending_logger
from trendvault.core.metrics import trending_cache_counter
from trendvault.db.redis import TRENDING_CACHE_TTL, get_cached_json, set_cached_json, trending_cache_key
from trendvault.models.download_history import DownloadHistory
from trendvault.models.stored_video import CONTENT_RATING_ADULT, StoredVideo
from trendvault.schemas.video import TrendingSnapshot



class TrendingPeriod(str, enum.Enum):
    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"

    @property
    def window(self) -> timedelta:
        return PERIOD_WINDOWS[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> "TrendingPeriod":
        """Boundary validation for the ?period= query parameter"""
        try:
            return cls(cls.DAY.value if value is None else value)
        except ValueError:
            raise InvalidUrlError(
                f"Invalid period '{value}'. Use one of: {', '.join(p.value for p in cls)}"
            )


PERIOD_WINDOWS = {
    TrendingPeriod.DAY: timedelta(days=1),
    TrendingPeriod.WEEK: timedelta(days=7),
    TrendingPeriod.MONTH: timedelta(days=30),
}


class TrendingAggregator:
    """Top restricted videos by download count, cached per (period, limit)"""

    def __init__(self, db: Session, cache, ttl: int = TRENDING_CACHE_TTL):
        self.db = db
        self.cache = cache
        self.ttl = ttl

    def compute(self, period: TrendingPeriod, limit: int, now: Optional[datetime] = None) -> TrendingSnapshot:
        now = now or datetime.now(timezone.utc)
        cutoff = now - period.window

        rows = (
            self.db.query(StoredVideo)
            .filter(
                StoredVideo.content_rating == CONTENT_RATING_ADULT,
                StoredVideo.last_downloaded_at >= cutoff,
            )
            .order_by(StoredVideo.download_count.desc(), StoredVideo.last_downloaded_at.desc())
            .limit(limit)
            .all()
        )
        return TrendingSnapshot(period=period.value, videos=[row.to_dict() for row in rows], generated_at=now)

    async def get_trending(self, period: TrendingPeriod, limit: int) -> TrendingSnapshot:
        period = TrendingPeriod(period)
        key = trending_cache_key(period.value, limit)

        cached = await get_cached_json(self.cache, key)
        if cached is not None:
            trending_cache_counter.labels(result="hit").inc()
            return TrendingSnapshot.model_validate(cached)

        trending_cache_counter.labels(result="miss").inc()
        snapshot = await asyncio.to_thread(self.compute, period, limit)
        await set_cached_json(self.cache, key, snapshot.model_dump(mode="json", by_alias=True), self.ttl)
        trending_logger.info(f"Rebuilt trending {period.value} (limit {limit}): {len(snapshot.videos)} videos")
        return snapshot


def get_video_stats(db: Session, top_uploaders: int = 10) -> Dict[str, Any]:
    """Aggregate counts across all stored videos"""
    since = datetime.now(timezone.utc) - timedelta(days=1)

    total_videos = db.query(func.count(StoredVideo.id)).scalar() or 0
    total_downloads = db.query(func.coalesce(func.sum(StoredVideo.download_count), 0)).scalar() or 0
    downloads_last_24h = (
        db.query(func.count(DownloadHistory.id))
        .filter(DownloadHistory.downloaded_at >= since)
        .scalar()
    ) or 0

    total_col = func.sum(StoredVideo.download_count).label("total_downloads")
    uploader_rows = (
        db.query(StoredVideo.uploader, total_col)
        .filter(StoredVideo.uploader.isnot(None), StoredVideo.uploader != "")
        .group_by(StoredVideo.uploader)
        .order_by(total_col.desc())
        .limit(top_uploaders)
        .all()
    )

    return {
        "totalVideos": int(total_videos),
        "totalDownloads": int(total_downloads),
        "downloadsLast24h": int(downloads_last_24h),
        "topUploaders": [
            {"uploader": uploader, "totalDownloads": int(total or 0)}
            for uploader, total in uploader_rows
        ],
    }


def list_stored_videos(db: Session, limit: int = 10, offset: int = 0,
                       content_rating: str = "all") -> Dict[str, Any]:
    """Newest-first page of stored videos with the total row count"""
    query = db.query(StoredVideo)
    if content_rating != "all":
        query = query.filter(StoredVideo.content_rating == content_rating)

    total = query.count()
    videos = query.order_by(StoredVideo.created_at.desc(), StoredVideo.id.desc()).offset(offset).limit(limit).all()
    return {
        "videos": [video.to_dict() for video in videos],
        "total": total,
        "limit": limit,
        "offset": offset,
    }
