"""Command registration utilities for the vidscribe CLI."""

from __future__ import annotations

import typer
from rich.console import Console

from vidscribe import __version__
from vidscribe.cli.commands import process_video, records


def register_commands(app: typer.Typer, console: Console) -> None:
    """Attach the processing commands and the top-level callback to ``app``."""

    process_video.register(app, console)
    records.register(app, console)

    def _print_version(value: bool) -> None:
        if value:
            console.print(f"vidscribe {__version__}")
            raise typer.Exit()

    @app.callback(invoke_without_command=True)
    def main_callback(
        ctx: typer.Context,
        version: bool = typer.Option(
            False,
            "--version",
            callback=_print_version,
            is_eager=True,
            help="Show the installed version and exit",
        ),
    ) -> None:
        """Upload MP4 videos, transcribe them and store caption artifacts."""

        if ctx.invoked_subcommand is None:
            console.print("[bold green]vidscribe ready.[/bold green] Run [cyan]vidscribe --help[/cyan] for commands.")


__all__ = ["register_commands"]
