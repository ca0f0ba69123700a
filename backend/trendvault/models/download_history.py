"""Download history model - append-only log of resolved requests"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from trendvault.models.base import Base


class DownloadHistory(Base):
    """One row per restricted request that resolved to a stored video"""
    __tablename__ = "download_history"

    id = Column(Integer, primary_key=True, index=True)
    video_id = Column(Integer, ForeignKey("video_downloads.id", ondelete="CASCADE"), nullable=False, index=True)
    downloaded_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    user_ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)

    video = relationship("StoredVideo", back_populates="history")
