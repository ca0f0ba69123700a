"""Trending aggregation, cache and stats tests"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from trendvault.core.exceptions import InvalidUrlError
from trendvault.db.redis import trending_cache_key
from trendvault.models import DownloadHistory
from trendvault.services.trending_service import (
    TrendingAggregator, TrendingPeriod, get_video_stats, list_stored_videos
)


def ids(snapshot):
    return [video["id"] for video in snapshot.videos]


class TestTrendingPeriod:
    """Test ?period= parsing"""

    @pytest.mark.parametrize("value,expected", [
        ("24h", timedelta(days=1)),
        ("7d", timedelta(days=7)),
        ("30d", timedelta(days=30)),
        (None, timedelta(days=1)),
    ])
    def test_known_periods(self, value, expected):
        assert TrendingPeriod.parse(value).window == expected

    def test_unknown_period_rejected(self):
        with pytest.raises(InvalidUrlError) as exc_info:
            TrendingPeriod.parse("1y")
        assert exc_info.value.status_code == 400

    def test_empty_period_rejected(self):
        with pytest.raises(InvalidUrlError):
            TrendingPeriod.parse("")


@pytest.mark.critical
class TestCompute:
    """Test ranking rules of a fresh trending computation"""

    def test_only_restricted_videos_rank(self, db_session, video_factory, fake_cache):
        adult = video_factory(download_count=3)
        video_factory(download_count=50, content_rating="general")

        snapshot = TrendingAggregator(db_session, fake_cache).compute(TrendingPeriod.DAY, 10)
        assert ids(snapshot) == [adult.id]

    def test_window_filters_on_last_download(self, db_session, video_factory, fake_cache):
        now = datetime.now(timezone.utc)
        fresh = video_factory(download_count=1, last_downloaded_at=now - timedelta(hours=2))
        two_days = video_factory(download_count=2, last_downloaded_at=now - timedelta(days=2))
        old = video_factory(download_count=3, last_downloaded_at=now - timedelta(days=40))

        aggregator = TrendingAggregator(db_session, fake_cache)
        assert ids(aggregator.compute(TrendingPeriod.DAY, 10, now=now)) == [fresh.id]
        assert ids(aggregator.compute(TrendingPeriod.WEEK, 10, now=now)) == [two_days.id, fresh.id]
        assert old.id not in ids(aggregator.compute(TrendingPeriod.MONTH, 10, now=now))

    def test_ordered_by_count_then_most_recent(self, db_session, video_factory, fake_cache):
        now = datetime.now(timezone.utc)
        older_tie = video_factory(download_count=5, last_downloaded_at=now - timedelta(hours=5))
        newer_tie = video_factory(download_count=5, last_downloaded_at=now - timedelta(hours=1))
        top = video_factory(download_count=9, last_downloaded_at=now - timedelta(hours=10))

        snapshot = TrendingAggregator(db_session, fake_cache).compute(TrendingPeriod.DAY, 10, now=now)
        assert ids(snapshot) == [top.id, newer_tie.id, older_tie.id]

    def test_limit_applied(self, db_session, video_factory, fake_cache):
        for count in range(1, 6):
            video_factory(download_count=count)

        snapshot = TrendingAggregator(db_session, fake_cache).compute(TrendingPeriod.DAY, 3)
        assert [video["download_count"] for video in snapshot.videos] == [5, 4, 3]

    def test_snapshot_shape(self, db_session, video_factory, fake_cache):
        video_factory(title="Cat", uploader="bob")
        snapshot = TrendingAggregator(db_session, fake_cache).compute(TrendingPeriod.WEEK, 10)

        assert snapshot.period == "7d"
        entry = snapshot.videos[0]
        assert entry["title"] == "Cat"
        assert entry["uploader"] == "bob"
        assert entry["public_url"].startswith("https://videos.test/videos/")


@pytest.mark.high
class TestTrendingCache:
    """Test the 10 minute snapshot cache"""

    @pytest.mark.asyncio
    async def test_second_read_served_from_cache(self, db_session, video_factory, fake_cache):
        first_video = video_factory(download_count=2)
        aggregator = TrendingAggregator(db_session, fake_cache, ttl=600)

        first = await aggregator.get_trending(TrendingPeriod.DAY, 20)
        video_factory(download_count=100)
        second = await aggregator.get_trending(TrendingPeriod.DAY, 20)

        assert ids(first) == [first_video.id]
        assert second.videos == first.videos
        assert second.generated_at == first.generated_at

    @pytest.mark.asyncio
    async def test_snapshot_cached_with_ttl(self, db_session, video_factory, fake_cache):
        video_factory()
        await TrendingAggregator(db_session, fake_cache, ttl=600).get_trending(TrendingPeriod.WEEK, 5)

        ttl = await fake_cache.ttl(trending_cache_key("7d", 5))
        assert 0 < ttl <= 600

    @pytest.mark.asyncio
    async def test_cache_keyed_by_period_and_limit(self, db_session, video_factory, fake_cache):
        video_factory()
        aggregator = TrendingAggregator(db_session, fake_cache)
        await aggregator.get_trending(TrendingPeriod.DAY, 5)
        await aggregator.get_trending(TrendingPeriod.DAY, 10)
        await aggregator.get_trending(TrendingPeriod.MONTH, 5)

        keys = sorted(await fake_cache.keys("trending:*"))
        assert keys == ["trending:24h:10", "trending:24h:5", "trending:30d:5"]

    @pytest.mark.asyncio
    async def test_cache_outage_falls_back_to_database(self, db_session, video_factory):
        video = video_factory()
        broken_cache = Mock()
        broken_cache.get = AsyncMock(side_effect=ConnectionError("redis down"))
        broken_cache.setex = AsyncMock(side_effect=ConnectionError("redis down"))

        snapshot = await TrendingAggregator(db_session, broken_cache).get_trending(TrendingPeriod.DAY, 20)
        assert ids(snapshot) == [video.id]


@pytest.mark.medium
class TestStats:
    """Test aggregate stats"""

    def test_empty_collection(self, db_session):
        stats = get_video_stats(db_session)
        assert stats == {"totalVideos": 0, "totalDownloads": 0, "downloadsLast24h": 0, "topUploaders": []}

    def test_totals_and_top_uploaders(self, db_session, video_factory):
        now = datetime.now(timezone.utc)
        a = video_factory(uploader="alice", download_count=4)
        video_factory(uploader="alice", download_count=1)
        video_factory(uploader="bob", download_count=7)
        video_factory(uploader="", download_count=2)

        db_session.add_all([
            DownloadHistory(video_id=a.id, downloaded_at=now - timedelta(hours=1)),
            DownloadHistory(video_id=a.id, downloaded_at=now - timedelta(hours=3)),
            DownloadHistory(video_id=a.id, downloaded_at=now - timedelta(days=3)),
        ])
        db_session.commit()

        stats = get_video_stats(db_session)
        assert stats["totalVideos"] == 4
        assert stats["totalDownloads"] == 14
        assert stats["downloadsLast24h"] == 2
        assert stats["topUploaders"] == [
            {"uploader": "bob", "totalDownloads": 7},
            {"uploader": "alice", "totalDownloads": 5},
        ]


@pytest.mark.medium
class TestListStoredVideos:
    """Test the paged listing"""

    def test_newest_first_with_total(self, db_session, video_factory):
        now = datetime.now(timezone.utc)
        oldest = video_factory(created_at=now - timedelta(days=2))
        middle = video_factory(created_at=now - timedelta(days=1))
        newest = video_factory(created_at=now)

        page = list_stored_videos(db_session, limit=2, offset=0)
        assert page["total"] == 3
        assert [v["id"] for v in page["videos"]] == [newest.id, middle.id]

        page = list_stored_videos(db_session, limit=2, offset=2)
        assert [v["id"] for v in page["videos"]] == [oldest.id]

    def test_rating_filter(self, db_session, video_factory):
        video_factory(content_rating="adult")
        general = video_factory(content_rating="general")

        page = list_stored_videos(db_session, content_rating="general")
        assert page["total"] == 1
        assert page["videos"][0]["id"] == general.id
