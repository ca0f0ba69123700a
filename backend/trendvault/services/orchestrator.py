"""Request orchestrator for POST /video/fetch

RECEIVED -> EXTRACTED -> DONE for ordinary videos. Restricted ("adult") videos
continue to RESOLVING and then either MATCHED (count the hit, serve the stored
copy) or UNMATCHED -> STORING (persist once, serve the new copy). A failed
store or an unavailable database never fails the request: the extractor's own
URL is returned instead.
"""
import asyncio
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from trendvault.core.context import ServiceContext
from trendvault.core.exceptions import (
    AlreadyStoredError, InvalidUrlError, StorageWriteError, UpstreamFetchError
)
from trendvault.core.logging import trending_logger
from trendvault.core.metrics import duplicate_matches_counter, fetch_requests_counter
from trendvault.models.stored_video import StoredVideo
from trendvault.schemas.video import CallerInfo, FetchRequest, VideoRecord
from trendvault.services.duplicate_resolver import DuplicateResolver, MatchKind
from trendvault.services.extractor_client import ExtractorClient
from trendvault.services.identity import is_supported_url
from trendvault.services.usage_recorder import UsageRecorder
from trendvault.services.video_store import VideoStoreWriter

MSG_NOT_STORED = "Video download ready (not stored in trending collection)"
MSG_NEW = "Video added to trending collection!"
MSG_STORAGE_FAILED = "Storage failed, using original download URL"
MSG_METADATA_FAILED = "Video stored, but it could not be added to the trending collection"


def _duplicate_message(count: int) -> str:
    return f"Video already in trending collection! Downloaded {count} times."


class RequestOrchestrator:
    def __init__(self, context: ServiceContext, extractor: Optional[ExtractorClient] = None):
        self.context = context
        self.extractor = extractor or ExtractorClient(context.http_client, context.settings)
        self.resolver = DuplicateResolver(context.db)
        self.recorder = UsageRecorder(context.db)
        self.writer = VideoStoreWriter(
            context.db, context.blob_store, context.http_client, context.settings
        )

    async def fetch(self, request: FetchRequest, caller: Optional[CallerInfo] = None) -> Dict[str, Any]:
        """Run one fetch request end to end and build the response body

        Raises:
            InvalidUrlError: If the URL is missing or not a supported post URL
            ExtractionError: If the extractor fails; nothing has been persisted
        """
        caller = caller or CallerInfo()

        # RECEIVED
        url = (request.url or "").strip()
        if not url:
            fetch_requests_counter.labels(outcome="invalid").inc()
            raise InvalidUrlError("URL is required")
        if not is_supported_url(url):
            fetch_requests_counter.labels(outcome="invalid").inc()
            raise InvalidUrlError()

        # EXTRACTED
        try:
            payload = await self.extractor.fetch(url, request.is_adult_content, request.is_non_adult_content)
            record = payload.to_record(url)
        except Exception:
            fetch_requests_counter.labels(outcome="extraction_failed").inc()
            raise

        response = payload.model_dump()
        response["success"] = True

        if not request.is_adult_content:
            fetch_requests_counter.labels(outcome="not_stored").inc()
            response["trending"] = {
                "isDuplicate": False,
                "matchKind": None,
                "downloadCount": None,
                "message": MSG_NOT_STORED,
            }
            return response

        # Database calls run in worker threads off the event loop
        try:
            # RESOLVING
            match = await asyncio.to_thread(self.resolver.resolve, record)
            if match.found:
                return await self._matched(response, match.match_kind, match.existing, caller)

            # UNMATCHED -> STORING
            return await self._store(response, record, caller)
        except SQLAlchemyError as e:
            await asyncio.to_thread(self.context.db.rollback)
            trending_logger.warning(f"Database unavailable for {url}, serving extractor URL: {e}", exc_info=True)
            fetch_requests_counter.labels(outcome="database_failed").inc()
            return self._degraded(response, "Trending database unavailable")

    def _count_hit(self, existing: StoredVideo, caller: CallerInfo):
        # Read the URL before the commit in record_hit expires the row
        public_url = existing.public_url
        return public_url, self.recorder.record_hit(existing.id, caller)

    async def _matched(self, response: Dict[str, Any], match_kind: MatchKind, existing: StoredVideo,
                       caller: CallerInfo) -> Dict[str, Any]:
        public_url, count = await asyncio.to_thread(self._count_hit, existing, caller)
        duplicate_matches_counter.labels(match_kind=match_kind.value).inc()
        fetch_requests_counter.labels(outcome="duplicate").inc()

        response["download_url"] = public_url
        response["filename"] = f"trending_video_{count}.mp4"
        response["trending"] = {
            "isDuplicate": True,
            "matchKind": match_kind.value,
            "downloadCount": count,
            "message": _duplicate_message(count),
        }
        return response

    async def _store(self, response: Dict[str, Any], record: VideoRecord, caller: CallerInfo) -> Dict[str, Any]:
        try:
            video = await self.writer.store(record, caller)
        except AlreadyStoredError as e:
            # Lost the insert race; the winner's row is the identifier match
            return await self._matched(response, MatchKind.IDENTIFIER, e.existing, caller)
        except (StorageWriteError, UpstreamFetchError) as e:
            trending_logger.warning(f"Storing {record.original_url} failed, serving extractor URL: {e.message}")
            fetch_requests_counter.labels(outcome="storage_failed").inc()
            return self._degraded(response, e.message)

        fetch_requests_counter.labels(outcome="stored").inc()
        response["download_url"] = video.public_url
        response["filename"] = "new_trending_video.mp4"
        response["trending"] = {
            "isDuplicate": False,
            "matchKind": None,
            "downloadCount": 1,
            "message": MSG_NEW if video.id is not None else MSG_METADATA_FAILED,
        }
        if video.id is None:
            response["trending"]["error"] = "Video metadata could not be saved"
        return response

    @staticmethod
    def _degraded(response: Dict[str, Any], error: str) -> Dict[str, Any]:
        """Keep the extractor's download URL and note why it wasn't replaced"""
        response["trending"] = {
            "isDuplicate": False,
            "matchKind": None,
            "downloadCount": None,
            "message": MSG_STORAGE_FAILED,
            "error": error,
        }
        return response
