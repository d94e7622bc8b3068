"""Tests for the Postgres repositories using a scripted connection."""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest

from vidscribe.db.artifact_repository import ArtifactRepository
from vidscribe.db.repositories import RecordNotFoundError, RepositoryError
from vidscribe.db.user_repository import UserRepository
from vidscribe.db.video_repository import VideoRepository
from vidscribe.models.artifact import Artifact, ArtifactKind
from vidscribe.models.user import User
from vidscribe.models.video import Video


class ScriptedCursor:
    def __init__(self, connection: "ScriptedConnection") -> None:
        self._connection = connection
        self._last: Optional[Dict[str, Any]] = None

    def __enter__(self) -> "ScriptedCursor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def execute(self, query: str, params: Mapping[str, Any]) -> None:
        self._connection.executed.append((query, dict(params)))
        if query.startswith("INSERT"):
            self._last = {**dict(params), "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc)}
        else:
            self._last = self._connection.rows.pop(0) if self._connection.rows else None

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._last

    def fetchall(self) -> List[Dict[str, Any]]:
        rows, self._connection.rows = self._connection.rows, []
        return rows


class ScriptedConnection:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None) -> None:
        self.rows = rows or []
        self.executed: List[Tuple[str, Dict[str, Any]]] = []
        self.opened = 0

    def cursor(self, cursor_factory: Any = None) -> ScriptedCursor:
        return ScriptedCursor(self)

    @contextmanager
    def factory(self):
        self.opened += 1
        yield self


def test_video_insert_returns_stored_row() -> None:
    connection = ScriptedConnection()
    repository = VideoRepository(connection.factory)

    stored = repository.insert(
        Video(filename="demo.mp4", storage_key="videos/1-demo.mp4", duration_seconds=42, user_id="user-1")
    )

    query, params = connection.executed[0]
    assert query.startswith("INSERT INTO videos (")
    assert query.endswith("RETURNING *")
    assert params["storage_key"] == "videos/1-demo.mp4"
    assert "created_at" not in params
    assert stored.created_at is not None
    assert stored.duration_seconds == 42


def test_artifact_kind_is_stored_in_the_type_column() -> None:
    connection = ScriptedConnection()
    repository = ArtifactRepository(connection.factory)
    artifacts = [
        Artifact(video_id="vid-1", kind=ArtifactKind.TRANSCRIPT, storage_key="generated/1-demo.transcript.txt"),
        Artifact(video_id="vid-1", kind=ArtifactKind.SRT, storage_key="generated/1-demo.captions.srt"),
    ]

    stored = repository.insert_many(artifacts)

    assert connection.opened == 1
    assert len(connection.executed) == 2
    assert connection.executed[0][1]["type"] == "transcript"
    assert "kind" not in connection.executed[0][1]
    assert [artifact.kind for artifact in stored] == [ArtifactKind.TRANSCRIPT, ArtifactKind.SRT]


def test_insert_many_with_nothing_to_insert_does_not_connect() -> None:
    connection = ScriptedConnection()

    assert ArtifactRepository(connection.factory).insert_many([]) == []
    assert connection.opened == 0


def test_list_for_video_maps_columns_back_to_fields() -> None:
    connection = ScriptedConnection(
        rows=[
            {
                "id": "a-1",
                "video_id": "vid-1",
                "type": "words",
                "storage_key": "generated/1-demo.words.json",
                "created_at": None,
            }
        ]
    )

    artifacts = ArtifactRepository(connection.factory).list_for_video("vid-1")

    assert artifacts[0].kind is ArtifactKind.WORDS
    query, params = connection.executed[0]
    assert "ORDER BY created_at ASC" in query
    assert params == {"video_id": "vid-1"}


def test_get_owned_hides_other_users_videos() -> None:
    row = {
        "id": "vid-1",
        "filename": "demo.mp4",
        "duration_seconds": 0,
        "storage_key": "videos/1-demo.mp4",
        "user_id": "user-1",
        "created_at": None,
    }
    repository = VideoRepository(ScriptedConnection(rows=[dict(row)]).factory)
    assert repository.get_owned("vid-1", "user-2") is None

    repository = VideoRepository(ScriptedConnection(rows=[dict(row)]).factory)
    assert repository.get_owned("vid-1", "user-1").id == "vid-1"

    repository = VideoRepository(ScriptedConnection().factory)
    assert repository.get_owned("vid-1", "user-1") is None


def test_missing_row_raises_record_not_found() -> None:
    repository = VideoRepository(ScriptedConnection().factory)

    with pytest.raises(RecordNotFoundError):
        repository.get_by_id("vid-404")
    assert issubclass(RecordNotFoundError, RepositoryError)


def test_ensure_user_reports_whether_a_row_was_created() -> None:
    connection = ScriptedConnection(rows=[{"id": "user-1"}])
    repository = UserRepository(connection.factory)

    assert repository.ensure(User(id="user-1")) is True
    query, params = connection.executed[0]
    assert query.startswith("INSERT INTO users (id)")
    assert "ON CONFLICT (id) DO NOTHING" in query
    assert params == {"id": "user-1"}

    # The conflicting insert returns no row.
    assert repository.ensure(User(id="user-1")) is False
