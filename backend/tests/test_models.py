"""Database integrity tests"""
import pytest
from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError

from trendvault.models import DownloadHistory, StoredVideo


@pytest.mark.critical
class TestStoredVideoConstraints:
    """Test uniqueness rules on stored videos"""

    def test_external_id_unique(self, db_session, video_factory):
        video_factory(external_id="42")

        with pytest.raises(IntegrityError):
            video_factory(external_id="42")
        db_session.rollback()

    def test_many_rows_without_external_id(self, db_session, video_factory):
        video_factory(external_id=None)
        video_factory(external_id=None)
        assert db_session.query(StoredVideo).filter(StoredVideo.external_id.is_(None)).count() == 2

    def test_fingerprint_not_unique(self, db_session, video_factory):
        a = video_factory(title="Cat", uploader="bob")
        b = video_factory(title="Cat", uploader="bob")
        assert a.content_fingerprint == b.content_fingerprint
        assert a.id != b.id

    def test_defaults(self, db_session):
        video = StoredVideo(
            content_fingerprint="f" * 32,
            storage_key="videos/x/1.mp4",
            public_url="https://videos.test/videos/x/1.mp4",
        )
        db_session.add(video)
        db_session.commit()
        db_session.refresh(video)

        assert video.download_count == 1
        assert video.content_rating == "adult"
        assert video.first_downloaded_at is not None
        assert video.last_downloaded_at is not None


@pytest.mark.medium
class TestModelRelationships:
    """Test model relationships"""

    def test_video_history_relationship(self, db_session, video_factory):
        video = video_factory()
        entry = DownloadHistory(video_id=video.id, downloaded_at=datetime.now(timezone.utc), user_ip="127.0.0.1")
        db_session.add(entry)
        db_session.commit()

        assert len(video.history) == 1
        assert video.history[0].id == entry.id
        assert entry.video.id == video.id

    def test_to_dict(self, video_factory):
        video = video_factory(title="Cat", uploader="bob", download_count=4)
        data = video.to_dict()

        assert data["title"] == "Cat"
        assert data["uploader"] == "bob"
        assert data["download_count"] == 4
        assert data["public_url"] == video.public_url
        assert isinstance(data["last_downloaded_at"], str)
