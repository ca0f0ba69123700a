"""Duplicate resolver - decides whether a restricted video is already stored"""
import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from trendvault.core.logging import trending_logger
from trendvault.models.stored_video import StoredVideo
from trendvault.schemas.video import VideoRecord
from trendvault.services.identity import content_fingerprint, extract_external_id



class MatchKind(str, enum.Enum):
    IDENTIFIER = "EXACT_TWEET_MATCH"
    FINGERPRINT = "CONTENT_HASH_MATCH"


@dataclass
class DuplicateMatch:
    found: bool
    match_kind: Optional[MatchKind] = None
    existing: Optional[StoredVideo] = None


def record_identity(record: VideoRecord):
    """(external_id, fingerprint) for a record; the post URL wins over the download URL"""
    external_id = extract_external_id(record.original_url or record.download_url)
    fingerprint = content_fingerprint(record.title, record.uploader, record.duration_formatted)
    return external_id, fingerprint


class DuplicateResolver:
    """Looks up stored videos by post ID first, then by content fingerprint"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_external_id(self, external_id: str) -> Optional[StoredVideo]:
        return self.db.query(StoredVideo).filter(StoredVideo.external_id == external_id).first()

    def find_by_fingerprint(self, fingerprint: str) -> Optional[StoredVideo]:
        # Oldest row wins when several videos share a fingerprint
        return (
            self.db.query(StoredVideo)
            .filter(StoredVideo.content_fingerprint == fingerprint)
            .order_by(StoredVideo.id.asc())
            .first()
        )

    def resolve(self, record: VideoRecord) -> DuplicateMatch:
        external_id, fingerprint = record_identity(record)

        if external_id:
            existing = self.find_by_external_id(external_id)
            if existing:
                trending_logger.info(f"Post {external_id} already stored as video {existing.id}")
                return DuplicateMatch(True, MatchKind.IDENTIFIER, existing)

        existing = self.find_by_fingerprint(fingerprint)
        if existing:
            trending_logger.info(f"Fingerprint {fingerprint} matches stored video {existing.id}")
            return DuplicateMatch(True, MatchKind.FINGERPRINT, existing)

        return DuplicateMatch(found=False)
