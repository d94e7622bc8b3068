"""CLI commands for processing videos and fetching stored artifacts."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Callable, Iterable, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeRemainingColumn
from rich.table import Table

from vidscribe.config.settings import get_settings
from vidscribe.db.connection import DatabaseConfigurationError, database_dsn
from vidscribe.db.migrate import run_migrations
from vidscribe.models.artifact import ArtifactKind
from vidscribe.models.pipeline import PipelineState
from vidscribe.services import SupportsAclose
from vidscribe.services.artifacts import ArtifactExtractor
from vidscribe.services.gateway import ObjectStorageGateway, StorageConfigurationError, StorageGatewayError
from vidscribe.services.pipeline import PipelineOrchestrator
from vidscribe.services.recorder import MetadataRecorder, UnauthenticatedError
from vidscribe.services.transcription import TranscriptionClient, TranscriptionConfigurationError
from vidscribe.services.transport import HttpTransport, TransportError
from vidscribe.utils.progress import PipelineStage
from vidscribe.utils.validation import FileValidationError


class ProcessExitCode:
    """Mapping of meaningful CLI exit codes."""

    SUCCESS = 0
    INVALID_INPUT = 1
    UPLOAD_FAILED = 2
    TRANSCRIPTION_FAILED = 3
    FETCH_FAILED = 4
    CONFIGURATION_ERROR = 5


StageRanges = dict[PipelineStage, tuple[int, int]]

STAGE_RANGES: StageRanges = {
    PipelineStage.FILE_SELECTED: (0, 0),
    PipelineStage.UPLOADING: (0, 60),
    PipelineStage.UPLOADED: (60, 62),
    PipelineStage.TRANSCRIBING: (62, 90),
    PipelineStage.EXTRACTING_ARTIFACTS: (90, 99),
    PipelineStage.COMPLETED: (100, 100),
}

_STAGE_LABELS = {
    PipelineStage.FILE_SELECTED: "Ready",
    PipelineStage.UPLOADING: "Uploading",
    PipelineStage.UPLOADED: "Saving video",
    PipelineStage.TRANSCRIBING: "Transcribing",
    PipelineStage.EXTRACTING_ARTIFACTS: "Generating files",
    PipelineStage.COMPLETED: "Completed",
    PipelineStage.UPLOAD_FAILED: "Upload failed",
    PipelineStage.TRANSCRIPTION_FAILED: "Transcription failed",
}

_ARTIFACT_LABELS = {
    ArtifactKind.TRANSCRIPT: "Transcript (.txt)",
    ArtifactKind.WORDS: "Word timings (.json)",
    ArtifactKind.SRT: "Subtitles (.srt)",
}


def build_orchestrator(
    console: Console,
    gateway: ObjectStorageGateway,
    transport: HttpTransport,
    transcriber: TranscriptionClient,
) -> PipelineOrchestrator:
    """Wire the pipeline services from environment settings."""

    return PipelineOrchestrator(
        gateway=gateway,
        transport=transport,
        transcriber=transcriber,
        extractor=ArtifactExtractor(gateway, transport, console=console),
        recorder=MetadataRecorder(console=console),
        console=console,
    )


_CONFIGURATION_ERRORS = (DatabaseConfigurationError, StorageConfigurationError, TranscriptionConfigurationError)


def check_configuration(gateway: ObjectStorageGateway, transcriber: TranscriptionClient) -> None:
    """Fail before uploading anything if a required service is not configured."""

    database_dsn()
    gateway.ensure_configured()
    transcriber.ensure_configured()


async def _close_all(resources: Iterable[SupportsAclose]) -> None:
    for resource in resources:
        await resource.aclose()


def register(app: typer.Typer, console: Console) -> None:
    """Register CLI commands for video processing."""

    async def run_pipeline(
        *,
        file: Path,
        owner: str,
        media_type: Optional[str],
        state_listener: Optional[Callable[[PipelineState], None]],
    ) -> PipelineState:
        transport = HttpTransport(timeout=float(get_settings().http_timeout_seconds))
        transcriber = TranscriptionClient(console=console)
        try:
            gateway = ObjectStorageGateway(console=console)
            orchestrator = build_orchestrator(console, gateway, transport, transcriber)
            if state_listener is not None:
                orchestrator.subscribe(state_listener)
            orchestrator.select_file(file, media_type)
            if not owner:
                raise UnauthenticatedError("Unauthorized")
            check_configuration(gateway, transcriber)
            return await orchestrator.process(owner)
        finally:
            await _close_all((transport, transcriber))

    @app.command("process")
    def process(
        file: Path = typer.Argument(..., exists=True, dir_okay=False, help="MP4 file to upload and transcribe"),
        owner: str = typer.Option(..., "--owner", envvar="VIDSCRIBE_OWNER_ID", help="Authenticated user identifier"),
        media_type: Optional[str] = typer.Option(None, "--media-type", help="Override the detected media type"),
        quiet: bool = typer.Option(False, "--quiet", "-q", help="Print a JSON summary instead of rich output"),
    ) -> None:
        progress: Optional[Progress] = None
        if not quiet:
            progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TextColumn("{task.percentage:>3.0f}%"),
                TimeRemainingColumn(),
                console=console,
                transient=True,
            )

        try:
            if progress is None:
                state = asyncio.run(run_pipeline(file=file, owner=owner, media_type=media_type, state_listener=None))
            else:
                with progress as running_progress:
                    task_id = running_progress.add_task("Starting", total=100)
                    state = asyncio.run(
                        run_pipeline(
                            file=file,
                            owner=owner,
                            media_type=media_type,
                            state_listener=_progress_handler_factory(running_progress, task_id, STAGE_RANGES),
                        )
                    )
        except FileValidationError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.INVALID_INPUT) from exc
        except UnauthenticatedError as exc:
            console.print("[red]Error:[/red] An owner identity is required.")
            raise typer.Exit(code=ProcessExitCode.INVALID_INPUT) from exc
        except _CONFIGURATION_ERRORS as exc:
            console.print(f"[red]Configuration error:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.CONFIGURATION_ERROR) from exc

        if quiet:
            typer.echo(json.dumps(state.model_dump(mode="json"), ensure_ascii=False, indent=2))
        else:
            _render_state(console, state)

        raise typer.Exit(code=_exit_code_for(state))

    @app.command("fetch")
    def fetch(
        key: str = typer.Argument(..., help="Storage key of the object to print"),
    ) -> None:
        async def _fetch() -> bytes:
            async with HttpTransport(timeout=float(get_settings().http_timeout_seconds)) as transport:
                download = await ObjectStorageGateway(console=console).request_download_url(key)
                return await transport.download_bytes(download.url)

        try:
            payload = asyncio.run(_fetch())
        except StorageGatewayError as exc:
            console.print(f"[red]Storage error:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.CONFIGURATION_ERROR) from exc
        except TransportError as exc:
            console.print(f"[red]Fetch failed:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.FETCH_FAILED) from exc

        typer.echo(payload.decode("utf-8", errors="replace"))

    @app.command("migrate")
    def migrate() -> None:
        try:
            run_migrations(console=console)
        except DatabaseConfigurationError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.CONFIGURATION_ERROR) from exc


def _exit_code_for(state: PipelineState) -> int:
    if state.stage is PipelineStage.UPLOAD_FAILED:
        return ProcessExitCode.UPLOAD_FAILED
    if state.stage is PipelineStage.TRANSCRIPTION_FAILED:
        return ProcessExitCode.TRANSCRIPTION_FAILED
    return ProcessExitCode.SUCCESS


def _progress_handler_factory(
    progress: Progress,
    task_id: TaskID,
    stage_ranges: StageRanges,
) -> Callable[[PipelineState], None]:
    def handler(state: PipelineState) -> None:
        start, end = stage_ranges.get(state.stage, (0, 0))
        stage_progress = state.upload_progress if state.stage is PipelineStage.UPLOADING else 0
        overall = start + (stage_progress / 100) * max(end - start, 0)
        progress.update(
            task_id,
            completed=min(overall, 100),
            description=f"{_STAGE_LABELS.get(state.stage, state.stage.value)}...",
        )

    return handler


def _render_state(console: Console, state: PipelineState) -> None:
    file_name = state.selected_file.name if state.selected_file else "<no file>"
    label = _STAGE_LABELS.get(state.stage, state.stage.value)

    if state.stage in {PipelineStage.UPLOAD_FAILED, PipelineStage.TRANSCRIPTION_FAILED}:
        console.print(Panel.fit(f"[bold]{file_name}[/bold]\n{state.error}", title=label, border_style="red"))
        return

    console.print(Panel.fit(f"Processed: [bold]{file_name}[/bold]", border_style="green"))
    console.print(f"Storage key: {state.storage_key}")
    console.print(f"Database Video ID: {state.video_id}")
    console.print()
    console.print(Panel.fit(state.transcript_text or "<empty transcript>", title="Transcription", border_style="blue"))

    if state.notice:
        console.print(f"[yellow]Note:[/yellow] {state.notice}")
    if state.artifacts and state.artifacts.urls:
        table = Table(title="Generated Files")
        table.add_column("File", style="cyan")
        table.add_column("Key")
        table.add_column("Download")
        for kind, url in state.artifacts.urls.items():
            table.add_row(_ARTIFACT_LABELS[kind], state.artifacts.keys.get(kind, ""), url)
        console.print(table)


__all__ = ["ProcessExitCode", "build_orchestrator", "check_configuration", "register"]
