"""Video store writer - first-seen restricted videos go to R2 plus a metadata row"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trendvault.core.config import Settings
from trendvault.core.exceptions import (
    AlreadyStoredError, StorageWriteError, TrendVaultError, UpstreamFetchError
)
from trendvault.core.logging import storage_logger
from trendvault.core.metrics import storage_failures_counter, videos_stored_counter
from trendvault.models.download_history import DownloadHistory
from trendvault.models.stored_video import CONTENT_RATING_ADULT, StoredVideo
from trendvault.schemas.video import CallerInfo, VideoRecord
from trendvault.services.duplicate_resolver import record_identity
from trendvault.services.identity import binary_hash, parse_duration_seconds
from trendvault.services.storage.r2_service import LONG_LIVED_CACHE_CONTROL, R2Service

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "mp4"
VIDEO_CONTENT_TYPES = {
    "mp4": "video/mp4",
    "m4v": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
}


def infer_extension(filename: Optional[str]) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].strip().lower()
        if ext.isalnum():
            return ext
    return DEFAULT_EXTENSION


def build_storage_key(namespace: str, written_at: datetime, filename: Optional[str]) -> str:
    """videos/{post id or fingerprint}/{epoch millis}.{ext}"""
    timestamp_ms = int(written_at.timestamp() * 1000)
    return f"videos/{namespace}/{timestamp_ms}.{infer_extension(filename)}"


class VideoStoreWriter:
    """Downloads, uploads and records a video that has never been seen before"""

    def __init__(self, db: Session, blob_store: Optional[R2Service], http_client: httpx.AsyncClient,
                 settings: Settings):
        self.db = db
        self.blob_store = blob_store
        self.http_client = http_client
        self.settings = settings

    async def download(self, url: str) -> bytes:
        """Fetch the video bytes in full, enforcing MAX_VIDEO_SIZE

        Raises:
            UpstreamFetchError: On non-2xx status, timeout, transport error or oversize body
        """
        max_size = self.settings.MAX_VIDEO_SIZE
        try:
            async with self.http_client.stream(
                "GET", url, timeout=self.settings.VIDEO_DOWNLOAD_TIMEOUT, follow_redirects=True
            ) as response:
                if response.status_code < 200 or response.status_code >= 300:
                    raise UpstreamFetchError(f"Failed to download video: {response.status_code}")

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > max_size:
                        raise UpstreamFetchError(
                            f"Video exceeds maximum size of {max_size / (1024 * 1024):.0f} MB"
                        )
                    chunks.append(chunk)
                return b"".join(chunks)
        except httpx.TimeoutException as e:
            raise UpstreamFetchError("Timed out downloading video", retryable=True) from e
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"Failed to download video: {e}", retryable=True) from e

    async def store(self, record: VideoRecord, caller: Optional[CallerInfo] = None) -> StoredVideo:
        """Persist a new video: bytes to R2, then the metadata row and first history entry

        Returns the stored row. If only the metadata insert fails the blob is kept
        and an unsaved StoredVideo (id None) carrying the durable URL is returned.

        Raises:
            UpstreamFetchError: If the video bytes cannot be downloaded
            StorageWriteError: If the blob store is unavailable or anything else in
                the write sequence fails
            AlreadyStoredError: If a concurrent request stored the same post first
        """
        try:
            return await self._store(record, caller or CallerInfo())
        except TrendVaultError:
            raise
        except Exception as e:
            storage_failures_counter.labels(stage="unexpected").inc()
            storage_logger.error(f"Unexpected failure storing {record.download_url}: {e}", exc_info=True)
            raise StorageWriteError(f"Failed to store video: {e}") from e

    async def _store(self, record: VideoRecord, caller: CallerInfo) -> StoredVideo:
        if self.blob_store is None:
            storage_failures_counter.labels(stage="config").inc()
            raise StorageWriteError("Blob storage is not configured")

        external_id, fingerprint = record_identity(record)

        data = await self.download(record.download_url)
        file_hash = binary_hash(data)
        now = datetime.now(timezone.utc)
        storage_key = build_storage_key(external_id or fingerprint, now, record.filename)
        source_url = record.original_url or record.download_url

        try:
            await asyncio.to_thread(
                self.blob_store.put_object,
                storage_key,
                data,
                content_type=VIDEO_CONTENT_TYPES.get(infer_extension(record.filename), "video/mp4"),
                cache_control=LONG_LIVED_CACHE_CONTROL,
                metadata={
                    "original-url": source_url,
                    "title": record.title or "",
                    "uploader": record.uploader or "",
                    "external-id": external_id or "",
                    "uploaded-at": now.isoformat(),
                },
            )
            public_url = self.blob_store.get_public_url(storage_key)
        except Exception as e:
            storage_failures_counter.labels(stage="blob").inc()
            raise StorageWriteError(f"Failed to store video: {e}") from e

        storage_logger.info(f"Stored {len(data)} bytes for {external_id or fingerprint} at {storage_key}")

        video = StoredVideo(
            external_id=external_id,
            source_url=source_url,
            canonical_url=source_url,
            title=record.title or "",
            uploader=record.uploader or "",
            duration_seconds=parse_duration_seconds(record.duration_formatted),
            view_count=record.view_count,
            like_count=record.like_count,
            thumbnail_url=record.thumbnail_url,
            content_fingerprint=fingerprint,
            binary_hash=file_hash,
            storage_key=storage_key,
            public_url=public_url,
            file_size_bytes=len(data),
            content_rating=CONTENT_RATING_ADULT,
            download_count=1,
            first_downloaded_at=now,
            last_downloaded_at=now,
            created_at=now,
            updated_at=now,
        )
        return await asyncio.to_thread(self._insert_metadata, video, caller)

    def _insert_metadata(self, video: StoredVideo, caller: CallerInfo) -> StoredVideo:
        """Metadata row plus first history entry in one commit (runs in a worker thread)"""
        try:
            self.db.add(video)
            self.db.flush()
            self.db.add(DownloadHistory(
                video_id=video.id,
                downloaded_at=video.first_downloaded_at,
                user_ip=caller.ip,
                user_agent=caller.user_agent,
            ))
            self.db.commit()
            self.db.refresh(video)
        except IntegrityError as e:
            self.db.rollback()
            existing = None
            if video.external_id:
                existing = (
                    self.db.query(StoredVideo)
                    .filter(StoredVideo.external_id == video.external_id)
                    .first()
                )
            if existing is not None:
                storage_logger.warning(
                    f"Post {video.external_id} was stored concurrently as video {existing.id}; "
                    f"blob {video.storage_key} is orphaned"
                )
                raise AlreadyStoredError(existing) from e
            self._log_metadata_failure(video.storage_key, e)
            video.id = None
            return video
        except SQLAlchemyError as e:
            self.db.rollback()
            self._log_metadata_failure(video.storage_key, e)
            video.id = None
            return video

        videos_stored_counter.inc()
        logger.info(f"Recorded new video {video.id} ({video.storage_key})")
        return video

    def _log_metadata_failure(self, storage_key: str, error: Exception) -> None:
        # Blob is already durable; keep serving it even without a metadata row
        storage_failures_counter.labels(stage="metadata").inc()
        storage_logger.warning(
            f"Metadata insert failed for {storage_key}, blob kept without a database row: {error}",
            exc_info=True
        )
