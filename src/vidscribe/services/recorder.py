"""Persistence of video and artifact metadata."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Tuple

from psycopg2 import Error as PsycopgError
from pydantic import ValidationError
from rich.console import Console

from vidscribe.db.artifact_repository import ArtifactRepository
from vidscribe.db.connection import DatabaseConfigurationError, get_connection
from vidscribe.db.repositories import RepositoryError
from vidscribe.db.user_repository import UserRepository
from vidscribe.db.video_repository import VideoRepository
from vidscribe.models.artifact import Artifact, ArtifactKind
from vidscribe.models.user import User
from vidscribe.models.video import Video

_DATABASE_ERRORS = (PsycopgError, RepositoryError, DatabaseConfigurationError)


class PersistenceError(RuntimeError):
    """Base exception raised when metadata cannot be persisted."""


class UnauthenticatedError(PersistenceError):
    """Raised when a write is attempted without an authenticated owner."""


class VideoNotFoundError(PersistenceError):
    """Raised when a video does not exist or belongs to another owner."""


class MetadataRecorder:
    """Read and write video and artifact rows on behalf of an authenticated user."""

    def __init__(
        self,
        *,
        video_repository: Optional[VideoRepository] = None,
        artifact_repository: Optional[ArtifactRepository] = None,
        user_repository: Optional[UserRepository] = None,
        console: Optional[Console] = None,
    ) -> None:
        self._video_repo = video_repository or VideoRepository(get_connection)
        self._artifact_repo = artifact_repository or ArtifactRepository(get_connection)
        self._user_repo = user_repository or UserRepository(get_connection)
        self._console = console or Console()

    async def record_video(
        self,
        filename: str,
        storage_key: str,
        duration_seconds: int,
        owner_id: Optional[str],
    ) -> str:
        """Insert a video row and return its generated identifier.

        Raises
        ------
        UnauthenticatedError
            If ``owner_id`` is empty.
        PersistenceError
            If required fields are missing or the insert fails.
        """

        self._require_owner(owner_id)
        if not filename or not storage_key:
            raise PersistenceError("Missing required fields")

        try:
            video = Video(
                filename=filename,
                storage_key=storage_key,
                duration_seconds=max(0, int(duration_seconds or 0)),
                user_id=str(owner_id),
            )
        except ValidationError as exc:
            raise PersistenceError(f"Invalid video record: {exc}") from exc

        try:
            stored = await asyncio.to_thread(self._video_repo.insert, video)
        except _DATABASE_ERRORS as exc:
            raise PersistenceError(f"Failed to save video: {exc}") from exc

        self._console.log(f"[green]Recorder:[/green] video saved (video_id={stored.id}, key={storage_key})")
        return stored.id

    async def record_artifacts(
        self,
        video_id: str,
        keys_by_kind: Mapping[ArtifactKind, Optional[str]],
        owner_id: Optional[str],
    ) -> int:
        """Insert one artifact row per present kind and return how many were written.

        Kinds that are absent or map to an empty key are ignored. All rows are written in
        one transaction.
        """

        self._require_owner(owner_id)
        if not video_id:
            raise PersistenceError("Video ID is required")

        created_at = datetime.now(timezone.utc)
        artifacts: List[Artifact] = [
            Artifact(video_id=video_id, kind=ArtifactKind(kind), storage_key=key, created_at=created_at)
            for kind, key in keys_by_kind.items()
            if key
        ]
        if not artifacts:
            return 0

        try:
            stored = await asyncio.to_thread(self._artifact_repo.insert_many, artifacts)
        except _DATABASE_ERRORS as exc:
            raise PersistenceError(f"Failed to save artifacts: {exc}") from exc

        self._console.log(
            f"[green]Recorder:[/green] {len(stored)} artifact(s) saved "
            f"(video_id={video_id}, kinds={[artifact.kind.value for artifact in stored]})"
        )
        return len(stored)

    async def register_owner(self, owner_id: Optional[str]) -> bool:
        """Make sure ``owner_id`` exists in ``users``; return whether it was newly added.

        Videos reference their owner by foreign key, so an owner must be registered
        before its first video can be recorded.
        """

        self._require_owner(owner_id)
        try:
            created = await asyncio.to_thread(self._user_repo.ensure, User(id=str(owner_id)))
        except _DATABASE_ERRORS as exc:
            raise PersistenceError(f"Failed to register owner: {exc}") from exc

        state = "registered" if created else "already registered"
        self._console.log(f"[green]Recorder:[/green] owner {state} (owner_id={owner_id})")
        return created

    async def list_artifacts(self, video_id: str, owner_id: Optional[str]) -> Tuple[Video, List[Artifact]]:
        """Return a video and its artifact rows, oldest first.

        Raises
        ------
        UnauthenticatedError
            If ``owner_id`` is empty.
        VideoNotFoundError
            If the video does not exist or is owned by someone else.
        PersistenceError
            If the lookup fails.
        """

        self._require_owner(owner_id)
        if not video_id:
            raise PersistenceError("Video ID is required")

        try:
            video = await asyncio.to_thread(self._video_repo.get_owned, video_id, str(owner_id))
            if video is None:
                raise VideoNotFoundError(f"Video {video_id} not found")
            artifacts = await asyncio.to_thread(self._artifact_repo.list_for_video, video.id)
        except _DATABASE_ERRORS as exc:
            raise PersistenceError(f"Failed to load artifacts: {exc}") from exc

        self._console.log(f"[blue]Recorder:[/blue] {len(artifacts)} artifact(s) found (video_id={video_id})")
        return video, artifacts

    @staticmethod
    def _require_owner(owner_id: Optional[str]) -> None:
        if not owner_id:
            raise UnauthenticatedError("Unauthorized")


__all__ = ["MetadataRecorder", "PersistenceError", "UnauthenticatedError", "VideoNotFoundError"]
