"""Shared pytest fixtures for test suite"""
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Generator, List, Optional, Union
from unittest.mock import Mock

# Settings are read at import time; point them at test doubles first
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("EXTRACTOR_API_URL", "https://extractor.test/twitter/video-fetch")
os.environ.setdefault("R2_PUBLIC_URL", "https://videos.test")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import fakeredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from trendvault.core.config import settings
from trendvault.core.context import ServiceContext, get_context
from trendvault.db.session import get_db
from trendvault.main import app
from trendvault.models import Base, StoredVideo
from trendvault.services.identity import content_fingerprint
from trendvault.services.storage.r2_service import R2Service


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PUBLIC_URL = "https://videos.test"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 256


class FakeUpstream:
    """Stands in for the extractor API and the CDN serving the video bytes"""

    def __init__(self):
        self.extractor_payloads: Dict[str, Union[dict, httpx.Response]] = {}
        self.videos: Dict[str, Union[bytes, int]] = {}
        self.requests: List[httpx.Request] = []

    def add_video(self, url: str, title: Optional[str] = "Cat", uploader: Optional[str] = "bob",
                  duration: Optional[str] = "10", data: bytes = VIDEO_BYTES,
                  download_url: Optional[str] = None, **extra) -> dict:
        """Register an extractor result for `url` and the bytes behind its download URL"""
        download_url = download_url or f"https://video.twimg.test/{len(self.videos) + 1}/clip.mp4"
        payload = {
            "success": True,
            "title": title,
            "uploader": uploader,
            "duration_formatted": duration,
            "view_count": 1000,
            "like_count": 50,
            "thumbnail": "https://pbs.twimg.test/thumb.jpg",
            "download_url": download_url,
            "filename": "twitter_video.mp4",
            "file_size": len(data),
            "available_qualities": [{"quality": "best", "url": download_url}],
        }
        payload.update(extra)
        self.extractor_payloads[url] = payload
        self.videos[download_url] = data
        return payload

    def download_requests(self, download_url: str) -> int:
        return sum(1 for r in self.requests if str(r.url) == download_url)

    def extractor_requests(self) -> List[dict]:
        return [json.loads(r.content) for r in self.requests if str(r.url) == settings.EXTRACTOR_API_URL]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == settings.EXTRACTOR_API_URL:
            body = json.loads(request.content)
            payload = self.extractor_payloads.get(body["url"])
            if payload is None:
                return httpx.Response(200, json={"success": False, "message": "Video not found"})
            if isinstance(payload, httpx.Response):
                return payload
            return httpx.Response(200, json=payload)

        video = self.videos.get(str(request.url))
        if video is None:
            return httpx.Response(404)
        if isinstance(video, int):
            return httpx.Response(video)
        return httpx.Response(200, content=video, headers={"Content-Type": "video/mp4"})


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def fake_cache():
    """Async Redis double for the trending cache"""
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture(scope="function")
def mock_s3():
    """boto3 S3 client mock where every put succeeds"""
    s3 = Mock()
    s3.put_object = Mock(return_value={"ETag": '"etag"'})
    return s3


@pytest.fixture(scope="function")
def blob_store(mock_s3) -> R2Service:
    return R2Service(s3_client=mock_s3, bucket="test-videos", public_url=PUBLIC_URL)


@pytest.fixture(scope="function")
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture(scope="function")
def http_client(upstream: FakeUpstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))


@pytest.fixture(scope="function")
def context(db_session, fake_cache, blob_store, http_client) -> ServiceContext:
    return ServiceContext(
        settings=settings,
        db=db_session,
        cache=fake_cache,
        blob_store=blob_store,
        http_client=http_client,
    )


@pytest.fixture(scope="function")
def client(db_session: Session, context: ServiceContext) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the test database, cache, blob store and upstream"""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_context] = lambda: context

    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def video_factory(db_session: Session):
    """Insert StoredVideo rows with sensible defaults"""
    counter = {"n": 0}

    def create(**overrides) -> StoredVideo:
        counter["n"] += 1
        n = counter["n"]
        now = datetime.now(timezone.utc)
        title = overrides.pop("title", f"Video {n}")
        uploader = overrides.pop("uploader", "uploader")
        values = dict(
            external_id=str(1000 + n),
            source_url=f"https://x.com/u/status/{1000 + n}",
            canonical_url=f"https://x.com/u/status/{1000 + n}",
            title=title,
            uploader=uploader,
            duration_seconds=10,
            content_fingerprint=content_fingerprint(title, uploader, "10"),
            binary_hash="0" * 32,
            storage_key=f"videos/{1000 + n}/1700000000000.mp4",
            public_url=f"{PUBLIC_URL}/videos/{1000 + n}/1700000000000.mp4",
            file_size_bytes=1024,
            content_rating="adult",
            download_count=1,
            first_downloaded_at=now,
            last_downloaded_at=now,
            created_at=now,
            updated_at=now,
        )
        values.update(overrides)
        video = StoredVideo(**values)
        db_session.add(video)
        db_session.commit()
        db_session.refresh(video)
        return video

    return create
