"""Repository for interacting with the `artifacts` table."""

from __future__ import annotations

from vidscribe.db import ConnectionFactory
from vidscribe.db.repositories import BaseRepository
from vidscribe.models.artifact import Artifact


class ArtifactRepository(BaseRepository[Artifact]):
    """Data access object encapsulating artifact persistence logic."""

    table_name = "artifacts"
    model_type = Artifact
    insert_fields = (
        "id",
        "video_id",
        "kind",
        "storage_key",
        "created_at",
    )
    column_aliases = {"kind": "type"}

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        super().__init__(connection_factory)

    def list_for_video(self, video_id: str) -> list[Artifact]:
        """Return every artifact recorded for a video, oldest first."""

        return self.fetch_all("video_id = %(video_id)s", {"video_id": video_id}, order_by="created_at ASC")


__all__ = ["ArtifactRepository"]
