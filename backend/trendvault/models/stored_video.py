"""Stored video model - one row per video persisted to durable storage"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Index, BigInteger
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from trendvault.models.base import Base

CONTENT_RATING_ADULT = "adult"


def _utcnow():
    return datetime.now(timezone.utc)


class StoredVideo(Base):
    """A video written to R2 exactly once, with its usage counters"""
    __tablename__ = "video_downloads"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(64), nullable=True, unique=True)  # Post ID parsed from the source URL
    source_url = Column(String(1024))
    canonical_url = Column(String(1024))
    title = Column(Text, default="")
    uploader = Column(String(255), default="")
    duration_seconds = Column(Integer, default=0)
    view_count = Column(BigInteger, default=0)
    like_count = Column(BigInteger, default=0)
    thumbnail_url = Column(String(1024), default="")
    content_fingerprint = Column(String(32), nullable=False, index=True)  # md5 of title/uploader/duration, not unique
    binary_hash = Column(String(32))  # md5 of the downloaded bytes, informational only
    storage_key = Column(String(512), nullable=False)  # R2 object key
    public_url = Column(String(1024), nullable=False)
    file_size_bytes = Column(BigInteger, default=0)
    content_rating = Column(String(20), default=CONTENT_RATING_ADULT, nullable=False)
    download_count = Column(Integer, default=1, nullable=False)
    first_downloaded_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    last_downloaded_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    history = relationship("DownloadHistory", back_populates="video")

    __table_args__ = (
        Index('ix_video_downloads_rating_last_downloaded', 'content_rating', 'last_downloaded_at'),
    )

    def to_dict(self):
        """Projection used by the trending and listing endpoints"""
        return {
            "id": self.id,
            "external_id": self.external_id,
            "title": self.title,
            "uploader": self.uploader,
            "thumbnail_url": self.thumbnail_url,
            "public_url": self.public_url,
            "download_count": self.download_count,
            "view_count": self.view_count,
            "like_count": self.like_count,
            "duration_seconds": self.duration_seconds,
            "file_size_bytes": self.file_size_bytes,
            "content_rating": self.content_rating,
            "first_downloaded_at": self.first_downloaded_at.isoformat() if self.first_downloaded_at else None,
            "last_downloaded_at": self.last_downloaded_at.isoformat() if self.last_downloaded_at else None,
        }
