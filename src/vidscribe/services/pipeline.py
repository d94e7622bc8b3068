"""Session orchestration: upload, record, transcribe, extract artifacts."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from rich.console import Console

from vidscribe.models.artifact import ExtractedArtifacts
from vidscribe.models.pipeline import (
    ExtractionFinished,
    FileChosen,
    FileCleared,
    PipelineEvent,
    PipelineState,
    SelectedFile,
    TranscriptionFailed,
    TranscriptionStarted,
    TranscriptionSucceeded,
    UploadFailed,
    UploadProgressed,
    UploadStarted,
    UploadSucceeded,
    VideoRecorded,
)
from vidscribe.models.transcription import TranscriptionResult
from vidscribe.services.artifacts import ArtifactExtractor, ExtractionError
from vidscribe.services.gateway import ObjectStorageGateway, StorageGatewayError
from vidscribe.services.recorder import MetadataRecorder, PersistenceError, UnauthenticatedError
from vidscribe.services.state_machine import InvalidTransitionError, apply_event
from vidscribe.services.transcription import TranscriptionClient, TranscriptionError
from vidscribe.services.transport import HttpTransport, TransportError
from vidscribe.utils.cancellation import CancellationToken, SessionCancelledError
from vidscribe.utils.media import probe_duration
from vidscribe.utils.progress import PipelineStage, ProgressChannel, TransferProgress
from vidscribe.utils.validation import validate_media_file

StateListener = Callable[[PipelineState], None]
DurationProbe = Callable[[Path], int]

_SUBMITTABLE_STAGES = frozenset({PipelineStage.FILE_SELECTED, PipelineStage.UPLOAD_FAILED})


class PipelineOrchestrator:
    """Drive one file-processing session at a time.

    Every state change goes through :func:`vidscribe.services.state_machine.apply_event`
    and is published to subscribers. Each session owns a :class:`CancellationToken`;
    selecting another file or clearing the current one cancels it, and results that
    arrive for a cancelled session are dropped instead of being applied.
    """

    def __init__(
        self,
        *,
        gateway: ObjectStorageGateway,
        transport: HttpTransport,
        transcriber: TranscriptionClient,
        extractor: ArtifactExtractor,
        recorder: MetadataRecorder,
        console: Optional[Console] = None,
        duration_probe: Optional[DurationProbe] = None,
    ) -> None:
        self._gateway = gateway
        self._transport = transport
        self._transcriber = transcriber
        self._extractor = extractor
        self._recorder = recorder
        self._console = console or Console()
        self._duration_probe = duration_probe or probe_duration
        self._state = PipelineState()
        self._changes: ProgressChannel[PipelineState] = ProgressChannel()
        self._token: Optional[CancellationToken] = None

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> PipelineState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Receive every new state; returns a callable that unsubscribes."""

        return self._changes.subscribe(listener)

    def select_file(self, path: Union[str, Path], media_type: Optional[str] = None) -> PipelineState:
        """Choose the file for a new session.

        Raises
        ------
        FileValidationError
            If the file is not an MP4 video. The current state is left untouched.
        """

        file_path = Path(path)
        accepted_type = validate_media_file(file_path, media_type)

        self._cancel_session()
        token = CancellationToken()
        self._token = token
        selected = SelectedFile(
            path=file_path,
            name=file_path.name,
            media_type=accepted_type,
            size_bytes=file_path.stat().st_size,
        )
        self._console.log(f"[blue]Pipeline:[/blue] selected {selected.name} ({selected.size_bytes} bytes)")
        return self._dispatch(FileChosen(file=selected, session_id=token.session_id))

    def clear_file(self) -> PipelineState:
        """Drop the selected file and any in-flight session."""

        self._cancel_session()
        self._token = None
        return self._dispatch(FileCleared())

    async def process_file(
        self,
        path: Union[str, Path],
        owner_id: Optional[str],
        media_type: Optional[str] = None,
    ) -> PipelineState:
        """Select ``path`` and run the whole pipeline for ``owner_id``."""

        self.select_file(path, media_type)
        return await self.process(owner_id)

    async def process(self, owner_id: Optional[str]) -> PipelineState:
        """Run the session for the currently selected file.

        Upload and transcription failures end the session in a failed state. Artifact
        extraction failures are logged and the session still completes, with
        ``artifacts`` unset and an informational ``notice``.

        Returns
        -------
        PipelineState
            The final state. If the session was abandoned mid-flight, the state of the
            session that replaced it.

        Raises
        ------
        UnauthenticatedError
            If ``owner_id`` is empty; checked before any network call.
        InvalidTransitionError
            If no file is selected, or the session is already running or has finished
            with ``completed`` / ``transcription_failed``. Select the file again to start
            a new session; an ``upload_failed`` session can be resubmitted as is.
        """

        if not owner_id:
            raise UnauthenticatedError("Unauthorized")

        token = self._token
        selected = self._state.selected_file
        if token is None or selected is None:
            raise InvalidTransitionError("No file selected.")
        if self._state.stage not in _SUBMITTABLE_STAGES:
            raise InvalidTransitionError(
                f"Session for {selected.name} is {self._state.stage.value}; select the file again to reprocess it."
            )

        try:
            return await self._run_session(token, selected, owner_id)
        except SessionCancelledError:
            self._console.log(f"[yellow]Pipeline:[/yellow] session {token.session_id} abandoned; results discarded")
            return self._state

    # ------------------------------------------------------------------ #
    # Stages                                                             #
    # ------------------------------------------------------------------ #
    async def _run_session(self, token: CancellationToken, selected: SelectedFile, owner_id: str) -> PipelineState:
        self._commit(token, UploadStarted())

        storage_key = await self._upload(token, selected)
        if storage_key is None:
            return self._state

        duration = await asyncio.to_thread(self._duration_probe, selected.path)
        token.raise_if_cancelled()
        try:
            video_id = await self._recorder.record_video(selected.name, storage_key, duration, owner_id)
        except PersistenceError as exc:
            self._console.log(f"[red]Pipeline:[/red] video record failed: {exc}")
            return self._commit(token, UploadFailed(reason=f"Failed to save video to database: {exc}"))
        self._commit(token, VideoRecorded(video_id=video_id))

        result = await self._transcribe(token, selected, storage_key)
        if result is None:
            return self._state

        artifacts, notice = await self._extract(token, result, storage_key, video_id, owner_id)
        final = self._commit(token, ExtractionFinished(artifacts=artifacts, notice=notice))
        self._console.log(f"[green]Pipeline:[/green] completed {selected.name} (video_id={video_id})")
        return final

    async def _upload(self, token: CancellationToken, selected: SelectedFile) -> Optional[str]:
        progress: ProgressChannel[TransferProgress] = ProgressChannel()
        progress.subscribe(lambda update: self._on_upload_progress(token, update))

        try:
            presigned = await self._gateway.request_upload_url(selected.name, selected.media_type)
            await self._transport.upload_file(
                selected.path,
                presigned.url,
                selected.media_type,
                progress=progress,
                token=token,
            )
        except (StorageGatewayError, TransportError) as exc:
            self._console.log(f"[red]Pipeline:[/red] upload failed: {exc}")
            self._commit(token, UploadFailed(reason=str(exc)))
            return None

        self._console.log(f"[green]Pipeline:[/green] uploaded {selected.name} (key={presigned.key})")
        self._commit(token, UploadSucceeded(storage_key=presigned.key))
        return presigned.key

    async def _transcribe(
        self,
        token: CancellationToken,
        selected: SelectedFile,
        storage_key: str,
    ) -> Optional[TranscriptionResult]:
        self._commit(token, TranscriptionStarted())
        try:
            download = await self._gateway.request_download_url(storage_key)
            result = await self._transcriber.transcribe(download.url, selected.name)
        except (StorageGatewayError, TranscriptionError) as exc:
            self._console.log(f"[red]Pipeline:[/red] transcription failed: {exc}")
            self._commit(token, TranscriptionFailed(reason=str(exc)))
            return None

        self._commit(token, TranscriptionSucceeded(text=result.text))
        return result

    async def _extract(
        self,
        token: CancellationToken,
        result: TranscriptionResult,
        storage_key: str,
        video_id: str,
        owner_id: str,
    ) -> Tuple[Optional[ExtractedArtifacts], Optional[str]]:
        try:
            extracted = await self._extractor.extract(result, storage_key, token=token)
        except ExtractionError as exc:
            orphaned = sorted(exc.partial.keys.values())
            self._console.log(f"[yellow]Pipeline:[/yellow] artifact extraction failed: {exc} (orphaned={orphaned})")
            return None, f"Transcription succeeded but generated files are unavailable: {exc}"

        token.raise_if_cancelled()
        try:
            await self._recorder.record_artifacts(video_id, extracted.keys, owner_id)
        except PersistenceError as exc:
            self._console.log(f"[yellow]Pipeline:[/yellow] artifact records not saved: {exc}")
        return extracted, None

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _on_upload_progress(self, token: CancellationToken, update: TransferProgress) -> None:
        if not self._is_current(token):
            return
        self._dispatch(UploadProgressed(percent=update.percent))

    def _commit(self, token: CancellationToken, event: PipelineEvent) -> PipelineState:
        token.raise_if_cancelled()
        if not self._is_current(token):
            raise SessionCancelledError(f"Session {token.session_id} is no longer active.")
        return self._dispatch(event)

    def _is_current(self, token: CancellationToken) -> bool:
        return token is self._token and not token.cancelled

    def _dispatch(self, event: PipelineEvent) -> PipelineState:
        previous = self._state.stage
        self._state = apply_event(self._state, event)
        if self._state.stage is not previous:
            self._console.log(f"[blue]Pipeline:[/blue] {previous.value} -> {self._state.stage.value}")
        self._changes.publish(self._state)
        return self._state

    def _cancel_session(self) -> None:
        if self._token is not None:
            self._token.cancel()


__all__ = ["DurationProbe", "PipelineOrchestrator", "StateListener"]
