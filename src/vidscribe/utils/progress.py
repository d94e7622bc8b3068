"""Progress tracking types shared across the CLI and services."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field

EventT = TypeVar("EventT")


class PipelineStage(str, Enum):
    """Lifecycle stages of a single file-processing session."""

    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    TRANSCRIBING = "transcribing"
    EXTRACTING_ARTIFACTS = "extracting_artifacts"
    COMPLETED = "completed"
    UPLOAD_FAILED = "upload_failed"
    TRANSCRIPTION_FAILED = "transcription_failed"

    @property
    def is_terminal(self) -> bool:
        return self in {PipelineStage.COMPLETED, PipelineStage.UPLOAD_FAILED, PipelineStage.TRANSCRIPTION_FAILED}


class TransferProgress(BaseModel):
    """Byte-level progress of a single upload."""

    bytes_sent: int = Field(ge=0)
    bytes_total: int = Field(ge=0)
    percent: int = Field(ge=0, le=100)

    model_config = ConfigDict(extra="forbid")


def percent_of(done: int, total: int) -> int:
    """Return ``done / total`` as a rounded integer percentage clamped to 0-100."""

    if total <= 0:
        return 0
    return max(0, min(100, round(done * 100 / total)))


class ProgressChannel(Generic[EventT]):
    """Synchronous publish/subscribe channel for typed notifications."""

    def __init__(self) -> None:
        self._listeners: List[Callable[[EventT], None]] = []

    def subscribe(self, listener: Callable[[EventT], None]) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it again."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: EventT) -> None:
        """Deliver ``event`` to every listener in subscription order."""

        for listener in list(self._listeners):
            listener(event)


__all__ = ["EventT", "PipelineStage", "ProgressChannel", "TransferProgress", "percent_of"]
