"""CLI commands for reading and seeding metadata rows."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from vidscribe.cli.commands.process_video import ProcessExitCode
from vidscribe.db.connection import DatabaseConfigurationError, database_dsn
from vidscribe.services.recorder import MetadataRecorder, PersistenceError, UnauthenticatedError, VideoNotFoundError


def register(app: typer.Typer, console: Console) -> None:
    """Register CLI commands for owner and artifact records."""

    def _recorder() -> MetadataRecorder:
        try:
            database_dsn()
        except DatabaseConfigurationError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.CONFIGURATION_ERROR) from exc
        return MetadataRecorder(console=console)

    @app.command("register-owner")
    def register_owner(
        owner: str = typer.Argument(..., help="Identifier of the user that will own uploaded videos"),
    ) -> None:
        recorder = _recorder()
        try:
            created = asyncio.run(recorder.register_owner(owner))
        except UnauthenticatedError as exc:
            console.print("[red]Error:[/red] An owner identity is required.")
            raise typer.Exit(code=ProcessExitCode.INVALID_INPUT) from exc
        except PersistenceError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.CONFIGURATION_ERROR) from exc

        if created:
            console.print(f"[green]Registered owner[/green] {owner}")
        else:
            console.print(f"Owner {owner} is already registered")

    @app.command("artifacts")
    def artifacts(
        video_id: str = typer.Argument(..., help="Database ID printed by the process command"),
        owner: str = typer.Option(..., "--owner", envvar="VIDSCRIBE_OWNER_ID", help="Authenticated user identifier"),
    ) -> None:
        recorder = _recorder()
        try:
            video, rows = asyncio.run(recorder.list_artifacts(video_id, owner))
        except UnauthenticatedError as exc:
            console.print("[red]Error:[/red] An owner identity is required.")
            raise typer.Exit(code=ProcessExitCode.INVALID_INPUT) from exc
        except VideoNotFoundError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.INVALID_INPUT) from exc
        except PersistenceError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ProcessExitCode.CONFIGURATION_ERROR) from exc

        console.print(f"[bold]{video.filename}[/bold] ({video.duration_seconds}s, key={video.storage_key})")
        if not rows:
            console.print("[yellow]No generated files recorded for this video.[/yellow]")
            return

        table = Table(title="Generated Files")
        table.add_column("Type", style="cyan")
        table.add_column("Key")
        table.add_column("Created")
        for row in rows:
            created_at = row.created_at.isoformat() if row.created_at else ""
            table.add_row(row.kind.value, row.storage_key, created_at)
        console.print(table)


__all__ = ["register"]
