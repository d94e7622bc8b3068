"""Pydantic models describing a file-processing session and the events that drive it."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from pydantic import Field

from vidscribe.models.artifact import ExtractedArtifacts
from vidscribe.models.base import VidscribeBaseModel
from vidscribe.utils.progress import PipelineStage


class SelectedFile(VidscribeBaseModel):
    """Local file chosen for processing."""

    path: Path
    name: str = Field(min_length=1)
    media_type: str
    size_bytes: int = Field(default=0, ge=0)


class PipelineState(VidscribeBaseModel):
    """Snapshot of one session.

    ``stage`` selects which of the remaining fields are meaningful: ``upload_progress``
    while uploading, ``storage_key`` from ``uploaded`` on, ``video_id`` once the video row
    exists, ``error`` for the two failed stages, and ``transcript_text`` / ``artifacts`` /
    ``notice`` for completed sessions.
    """

    stage: PipelineStage = PipelineStage.IDLE
    session_id: Optional[str] = None
    selected_file: Optional[SelectedFile] = None
    upload_progress: int = Field(default=0, ge=0, le=100)
    storage_key: Optional[str] = None
    video_id: Optional[str] = None
    transcript_text: Optional[str] = None
    artifacts: Optional[ExtractedArtifacts] = None
    error: Optional[str] = None
    notice: Optional[str] = None


class FileChosen(VidscribeBaseModel):
    """The user picked a (validated) file; starts a new session."""

    file: SelectedFile
    session_id: str = Field(min_length=1)


class FileCleared(VidscribeBaseModel):
    """The user removed the selected file."""


class UploadStarted(VidscribeBaseModel):
    """The user submitted the selected file."""


class UploadProgressed(VidscribeBaseModel):
    percent: int = Field(ge=0, le=100)


class UploadSucceeded(VidscribeBaseModel):
    storage_key: str = Field(min_length=1)


class UploadFailed(VidscribeBaseModel):
    reason: str


class VideoRecorded(VidscribeBaseModel):
    video_id: str = Field(min_length=1)


class TranscriptionStarted(VidscribeBaseModel):
    pass


class TranscriptionSucceeded(VidscribeBaseModel):
    text: str = ""


class TranscriptionFailed(VidscribeBaseModel):
    reason: str


class ExtractionFinished(VidscribeBaseModel):
    """Artifact extraction ended; ``artifacts`` is ``None`` when it failed."""

    artifacts: Optional[ExtractedArtifacts] = None
    notice: Optional[str] = None


PipelineEvent = Union[
    FileChosen,
    FileCleared,
    UploadStarted,
    UploadProgressed,
    UploadSucceeded,
    UploadFailed,
    VideoRecorded,
    TranscriptionStarted,
    TranscriptionSucceeded,
    TranscriptionFailed,
    ExtractionFinished,
]


__all__ = [
    "ExtractionFinished",
    "FileChosen",
    "FileCleared",
    "PipelineEvent",
    "PipelineState",
    "SelectedFile",
    "TranscriptionFailed",
    "TranscriptionStarted",
    "TranscriptionSucceeded",
    "UploadFailed",
    "UploadProgressed",
    "UploadStarted",
    "UploadSucceeded",
    "VideoRecorded",
]
