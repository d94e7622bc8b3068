"""Shared fixtures and in-memory doubles for the vidscribe test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

import httpx
import pytest
from rich.console import Console

from vidscribe.config.settings import Settings
from vidscribe.db.repositories import RepositoryError
from vidscribe.models.artifact import Artifact
from vidscribe.models.transcription import TranscriptionResult
from vidscribe.models.user import User
from vidscribe.models.video import Video
from vidscribe.services.artifacts import ArtifactExtractor
from vidscribe.services.gateway import PresignedDownload, PresignedUpload, StorageGatewayError, derive_storage_key
from vidscribe.services.pipeline import PipelineOrchestrator
from vidscribe.services.recorder import MetadataRecorder
from vidscribe.services.transport import HttpTransport

STORAGE_BASE_URL = "https://storage.test"

SRT_CONTENT = "1\n00:00:00,000 --> 00:00:01,200\nHello world\n"


class InMemoryStorage:
    """Object store reachable through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, Optional[str]] = {}
        self.put_status: Dict[str, int] = {}
        self.default_put_status = 200
        self.network_failures: Set[str] = set()
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = request.url.path.lstrip("/")
        if key in self.network_failures:
            raise httpx.ConnectError("connection refused", request=request)

        if request.method == "PUT":
            status = self.put_status.get(key, self.default_put_status)
            if status >= 300:
                return httpx.Response(status, text="denied")
            self.objects[key] = request.content
            self.content_types[key] = request.headers.get("content-type")
            return httpx.Response(200)

        if request.method == "GET":
            if key not in self.objects:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, content=self.objects[key])

        return httpx.Response(405)


def _matches(key: str, suffixes: Set[str]) -> bool:
    return any(key.endswith(suffix) for suffix in suffixes)


class FakeGateway:
    """Gateway double that signs nothing and records every request."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []
        self.fail_upload_keys: Set[str] = set()
        self.fail_download_keys: Set[str] = set()

    async def request_upload_url(self, name: str, content_type: str) -> PresignedUpload:
        key = derive_storage_key(name)
        self.calls.append(("upload", key))
        if _matches(key, self.fail_upload_keys):
            raise StorageGatewayError(f"Failed to generate presigned URL for {key}")
        return PresignedUpload(
            url=f"{STORAGE_BASE_URL}/{key}?X-Amz-Signature=put",
            key=key,
            upload_url=f"{STORAGE_BASE_URL}/{key}",
        )

    async def request_download_url(self, key: str) -> PresignedDownload:
        self.calls.append(("download", key))
        if _matches(key, self.fail_download_keys):
            raise StorageGatewayError(f"Failed to generate presigned URL for {key}")
        return PresignedDownload(url=f"{STORAGE_BASE_URL}/{key}?X-Amz-Signature=get", key=key)


class FakeTranscriber:
    def __init__(self, result: Optional[TranscriptionResult] = None, error: Optional[Exception] = None) -> None:
        self.result = result
        self.error = error
        self.calls: List[Tuple[str, str]] = []

    async def transcribe(self, download_url: str, file_name: str) -> TranscriptionResult:
        self.calls.append((download_url, file_name))
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


class FakeVideoRepository:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.rows: List[Video] = []

    def insert(self, video: Video) -> Video:
        if self.fail:
            raise RepositoryError("database unavailable")
        stored = video.model_copy(update={"created_at": datetime.now(timezone.utc)})
        self.rows.append(stored)
        return stored

    def get_owned(self, video_id: str, user_id: str) -> Optional[Video]:
        if self.fail:
            raise RepositoryError("database unavailable")
        return next((row for row in self.rows if row.id == video_id and row.user_id == user_id), None)


class FakeArtifactRepository:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.rows: List[Artifact] = []

    def insert_many(self, artifacts: Sequence[Artifact]) -> List[Artifact]:
        if self.fail:
            raise RepositoryError("database unavailable")
        self.rows.extend(artifacts)
        return list(artifacts)

    def list_for_video(self, video_id: str) -> List[Artifact]:
        if self.fail:
            raise RepositoryError("database unavailable")
        return [row for row in self.rows if row.video_id == video_id]


class FakeUserRepository:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.ids: List[str] = []

    def ensure(self, user: User) -> bool:
        if self.fail:
            raise RepositoryError("database unavailable")
        if user.id in self.ids:
            return False
        self.ids.append(user.id)
        return True


def vendor_payload(*, text: str = "Hello world", with_srt: bool = True) -> dict:
    """Speech-to-text response shaped like the vendor's JSON."""

    formats = []
    if with_srt:
        formats.append(
            {
                "requested_format": "srt",
                "file_extension": "srt",
                "content_type": "text/srt",
                "is_base64_encoded": False,
                "content": SRT_CONTENT,
            }
        )
    return {
        "language_code": "eng",
        "language_probability": 0.98,
        "text": text,
        "words": [
            {"text": "Hello", "start": 0.0, "end": 0.5, "type": "word", "speaker_id": "speaker_0", "logprob": -0.1},
            {"text": " ", "start": 0.5, "end": 0.6, "type": "spacing", "speaker_id": "speaker_0", "logprob": 0.0},
            {"text": "world", "start": 0.6, "end": 1.2, "type": "word", "speaker_id": "speaker_0", "logprob": -0.2},
        ],
        "additional_formats": formats,
        "transcription_id": "tr_123",
    }


@pytest.fixture
def console() -> Console:
    return Console(quiet=True)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        R2_ACCOUNT_ID="acct123",
        R2_ACCESS_KEY_ID="AKIDEXAMPLE",
        R2_SECRET_ACCESS_KEY="secret",
        ELEVENLABS_API_KEY="xi-test-key",
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def transport(storage: InMemoryStorage) -> HttpTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(storage.handler))
    return HttpTransport(client=client, chunk_size=64)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def transcription_result() -> TranscriptionResult:
    return TranscriptionResult.model_validate(vendor_payload())


@pytest.fixture
def video_file(tmp_path: Path) -> Path:
    path = tmp_path / "demo.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 1000)
    return path


class PipelineHarness:
    """Orchestrator wired to in-memory collaborators."""

    def __init__(
        self,
        *,
        console: Console,
        storage: InMemoryStorage,
        transport: HttpTransport,
        gateway: FakeGateway,
        transcriber: FakeTranscriber,
        video_repository: FakeVideoRepository,
        artifact_repository: FakeArtifactRepository,
    ) -> None:
        self.storage = storage
        self.gateway = gateway
        self.transcriber = transcriber
        self.video_repository = video_repository
        self.artifact_repository = artifact_repository
        self.orchestrator = PipelineOrchestrator(
            gateway=gateway,  # type: ignore[arg-type]
            transport=transport,
            transcriber=transcriber,  # type: ignore[arg-type]
            extractor=ArtifactExtractor(gateway, transport, console=console),  # type: ignore[arg-type]
            recorder=MetadataRecorder(
                video_repository=video_repository,  # type: ignore[arg-type]
                artifact_repository=artifact_repository,  # type: ignore[arg-type]
                user_repository=FakeUserRepository(),  # type: ignore[arg-type]
                console=console,
            ),
            console=console,
            duration_probe=lambda path: 42,
        )


@pytest.fixture
def make_pipeline(console: Console, storage: InMemoryStorage, transport: HttpTransport, gateway: FakeGateway):
    def factory(
        *,
        result: Optional[TranscriptionResult] = None,
        transcription_error: Optional[Exception] = None,
        video_repo_fails: bool = False,
        artifact_repo_fails: bool = False,
    ) -> PipelineHarness:
        transcriber = FakeTranscriber(
            result=result or TranscriptionResult.model_validate(vendor_payload()),
            error=transcription_error,
        )
        return PipelineHarness(
            console=console,
            storage=storage,
            transport=transport,
            gateway=gateway,
            transcriber=transcriber,
            video_repository=FakeVideoRepository(fail=video_repo_fails),
            artifact_repository=FakeArtifactRepository(fail=artifact_repo_fails),
        )

    return factory

