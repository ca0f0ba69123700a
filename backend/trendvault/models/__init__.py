"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from trendvault.models.base import Base
from trendvault.models.stored_video import StoredVideo, CONTENT_RATING_ADULT
from trendvault.models.download_history import DownloadHistory

__all__ = ["Base", "StoredVideo", "DownloadHistory", "CONTENT_RATING_ADULT"]
