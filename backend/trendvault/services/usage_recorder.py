"""Usage recorder - counts repeat downloads of stored videos"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from trendvault.core.logging import trending_logger
from trendvault.models.download_history import DownloadHistory
from trendvault.models.stored_video import StoredVideo
from trendvault.schemas.video import CallerInfo



class UsageRecorder:
    def __init__(self, db: Session):
        self.db = db

    def record_hit(self, video_id: int, caller: Optional[CallerInfo] = None) -> int:
        """Increment the download counter and append a history entry

        The counter is bumped server-side (download_count + 1) and the new value
        comes back from the same UPDATE, so concurrent hits each see their own
        post-increment count.

        Returns:
            The updated download count, or 0 if the video no longer exists
        """
        caller = caller or CallerInfo()
        now = datetime.now(timezone.utc)

        new_count = self.db.execute(
            update(StoredVideo)
            .where(StoredVideo.id == video_id)
            .values(
                download_count=StoredVideo.download_count + 1,
                last_downloaded_at=now,
                updated_at=now,
            )
            .returning(StoredVideo.download_count)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if new_count is None:
            self.db.rollback()
            trending_logger.warning(f"Download hit for missing video {video_id}")
            return 0

        self.db.add(DownloadHistory(
            video_id=video_id,
            downloaded_at=now,
            user_ip=caller.ip,
            user_agent=caller.user_agent,
        ))
        self.db.commit()

        trending_logger.info(f"Video {video_id} downloaded {new_count} times")
        return new_count
