"""Pure state transitions for a file-processing session."""

from __future__ import annotations

from typing import Callable, Dict, FrozenSet, Type

from vidscribe.models.pipeline import (
    ExtractionFinished,
    FileChosen,
    FileCleared,
    PipelineEvent,
    PipelineState,
    TranscriptionFailed,
    TranscriptionStarted,
    TranscriptionSucceeded,
    UploadFailed,
    UploadProgressed,
    UploadStarted,
    UploadSucceeded,
    VideoRecorded,
)
from vidscribe.utils.progress import PipelineStage


class InvalidTransitionError(RuntimeError):
    """Raised when an event is not valid for the current stage."""


Transition = Callable[[PipelineState, PipelineEvent], PipelineState]


def _require(state: PipelineState, event: PipelineEvent, allowed: FrozenSet[PipelineStage]) -> None:
    if state.stage not in allowed:
        raise InvalidTransitionError(
            f"{type(event).__name__} is not valid while {state.stage.value} "
            f"(expected one of: {', '.join(sorted(stage.value for stage in allowed))})"
        )


def _file_chosen(state: PipelineState, event: FileChosen) -> PipelineState:
    return PipelineState(
        stage=PipelineStage.FILE_SELECTED,
        session_id=event.session_id,
        selected_file=event.file,
    )


def _file_cleared(state: PipelineState, event: FileCleared) -> PipelineState:
    return PipelineState()


def _upload_started(state: PipelineState, event: UploadStarted) -> PipelineState:
    _require(state, event, frozenset({PipelineStage.FILE_SELECTED, PipelineStage.UPLOAD_FAILED}))
    return PipelineState(
        stage=PipelineStage.UPLOADING,
        session_id=state.session_id,
        selected_file=state.selected_file,
        upload_progress=0,
    )


def _upload_progressed(state: PipelineState, event: UploadProgressed) -> PipelineState:
    _require(state, event, frozenset({PipelineStage.UPLOADING}))
    return state.model_copy(update={"upload_progress": max(state.upload_progress, event.percent)})


def _upload_succeeded(state: PipelineState, event: UploadSucceeded) -> PipelineState:
    _require(state, event, frozenset({PipelineStage.UPLOADING}))
    return state.model_copy(
        update={
            "stage": PipelineStage.UPLOADED,
            "upload_progress": 100,
            "storage_key": event.storage_key,
        }
    )


def _upload_failed(state: PipelineState, event: UploadFailed) -> PipelineState:
    # A failed video record after a successful transfer is reported as an upload failure.
    _require(state, event, frozenset({PipelineStage.UPLOADING, PipelineStage.UPLOADED}))
    return state.model_copy(update={"stage": PipelineStage.UPLOAD_FAILED, "error": event.reason})


def _video_recorded(state: PipelineState, event: VideoRecorded) -> PipelineState:
    _require(state, event, frozenset({PipelineStage.UPLOADED}))
    return state.model_copy(update={"video_id": event.video_id})


def _transcription_started(state: PipelineState, event: TranscriptionStarted) -> PipelineState:
    _require(state, event, frozenset({PipelineStage.UPLOADED}))
    if state.video_id is None:
        raise InvalidTransitionError("Transcription cannot start before the video has been recorded.")
    return state.model_copy(update={"stage": PipelineStage.TRANSCRIBING})


def _transcription_succeeded(state: PipelineState, event: TranscriptionSucceeded) -> PipelineState:
    _require(state, event, frozenset({PipelineStage.TRANSCRIBING}))
    return state.model_copy(
        update={"stage": PipelineStage.EXTRACTING_ARTIFACTS, "transcript_text": event.text}
    )


def _transcription_failed(state: PipelineState, event: TranscriptionFailed) -> PipelineState:
    _require(state, event, frozenset({PipelineStage.TRANSCRIBING}))
    return state.model_copy(update={"stage": PipelineStage.TRANSCRIPTION_FAILED, "error": event.reason})


def _extraction_finished(state: PipelineState, event: ExtractionFinished) -> PipelineState:
    _require(state, event, frozenset({PipelineStage.EXTRACTING_ARTIFACTS}))
    return state.model_copy(
        update={
            "stage": PipelineStage.COMPLETED,
            "artifacts": event.artifacts,
            "notice": event.notice,
        }
    )


_TRANSITIONS: Dict[Type[PipelineEvent], Transition] = {  # type: ignore[dict-item]
    FileChosen: _file_chosen,
    FileCleared: _file_cleared,
    UploadStarted: _upload_started,
    UploadProgressed: _upload_progressed,
    UploadSucceeded: _upload_succeeded,
    UploadFailed: _upload_failed,
    VideoRecorded: _video_recorded,
    TranscriptionStarted: _transcription_started,
    TranscriptionSucceeded: _transcription_succeeded,
    TranscriptionFailed: _transcription_failed,
    ExtractionFinished: _extraction_finished,
}


def apply_event(state: PipelineState, event: PipelineEvent) -> PipelineState:
    """Return the state that follows ``state`` once ``event`` has happened.

    The input state is never mutated.

    Raises
    ------
    InvalidTransitionError
        If ``event`` cannot occur in ``state.stage``.
    """

    transition = _TRANSITIONS.get(type(event))
    if transition is None:
        raise InvalidTransitionError(f"Unknown pipeline event: {event!r}")
    return transition(state, event)


__all__ = ["InvalidTransitionError", "apply_event"]
