"""Pydantic schemas for video fetch, trending and stats"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trendvault.core.exceptions import ExtractionError


class FetchRequest(BaseModel):
    """Body of POST /video/fetch"""
    url: Optional[str] = None
    is_adult_content: bool = False
    is_non_adult_content: bool = False


class CallerInfo(BaseModel):
    """Who asked for the video, recorded in download history"""
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class VideoRecord(BaseModel):
    """Strongly typed view of one extractor result"""
    title: Optional[str] = None
    uploader: Optional[str] = None
    duration_formatted: Optional[str] = None
    view_count: int = 0
    like_count: int = 0
    thumbnail_url: str = ""
    download_url: str
    original_url: Optional[str] = None
    filename: Optional[str] = None


class ExtractorResponse(BaseModel):
    """Raw extractor payload; unknown fields are kept so they can be echoed back"""
    model_config = ConfigDict(extra="allow")

    success: bool = False
    message: Optional[str] = None
    title: Optional[str] = None
    uploader: Optional[str] = None
    duration_formatted: Optional[str] = None
    view_count: Optional[int] = None
    like_count: Optional[int] = None
    thumbnail: Optional[str] = None
    download_url: Optional[str] = None
    filename: Optional[str] = None
    file_size: Optional[int] = None
    available_qualities: List[Any] = Field(default_factory=list)

    @field_validator("duration_formatted", mode="before")
    @classmethod
    def coerce_duration(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("view_count", "like_count", "file_size", mode="before")
    @classmethod
    def coerce_count(cls, v):
        if v is None or v == "":
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    def to_record(self, original_url: Optional[str]) -> VideoRecord:
        """Build the VideoRecord the dedup pipeline works with

        Raises:
            ExtractionError: If the extractor succeeded without a download URL
        """
        if not self.download_url:
            raise ExtractionError("Extractor response did not include a download URL", status_code=502)
        return VideoRecord(
            title=self.title,
            uploader=self.uploader,
            duration_formatted=self.duration_formatted,
            view_count=self.view_count or 0,
            like_count=self.like_count or 0,
            thumbnail_url=self.thumbnail or "",
            download_url=self.download_url,
            original_url=original_url,
            filename=self.filename,
        )


class TrendingSnapshot(BaseModel):
    """Ranked restricted videos for one window, as cached"""
    model_config = ConfigDict(populate_by_name=True)

    period: str
    videos: List[Dict[str, Any]] = Field(default_factory=list)
    generated_at: datetime = Field(alias="generatedAt")


class UploaderStat(BaseModel):
    uploader: str
    totalDownloads: int


class StatsResponse(BaseModel):
    success: bool = True
    totalVideos: int
    totalDownloads: int
    downloadsLast24h: int
    topUploaders: List[UploaderStat]
