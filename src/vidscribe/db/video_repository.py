"""Repository for interacting with the `videos` table."""

from __future__ import annotations

from typing import Optional

from vidscribe.db import ConnectionFactory
from vidscribe.db.repositories import BaseRepository, RecordNotFoundError
from vidscribe.models.video import Video


class VideoRepository(BaseRepository[Video]):
    """Data access object encapsulating video persistence logic."""

    table_name = "videos"
    model_type = Video
    insert_fields = (
        "id",
        "filename",
        "duration_seconds",
        "storage_key",
        "user_id",
    )

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        super().__init__(connection_factory)

    def get_owned(self, video_id: str, user_id: str) -> Optional[Video]:
        """Return a video only if it belongs to ``user_id``."""

        try:
            video = self.get_by_id(video_id)
        except RecordNotFoundError:
            return None
        return video if video.user_id == user_id else None


__all__ = ["VideoRepository"]
