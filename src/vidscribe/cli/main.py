"""CLI entry point and application wiring."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from vidscribe.cli.commands import register_commands


class CLIApplication:
    """Owns the Typer application and the console every command logs to."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        # Tracebacks must not print locals: they can hold presigned URLs and API keys.
        self._app = typer.Typer(
            name="vidscribe",
            add_completion=False,
            rich_markup_mode="rich",
            pretty_exceptions_show_locals=False,
        )
        register_commands(self._app, self.console)

    @property
    def app(self) -> typer.Typer:
        return self._app

    def run(self, *, prog_name: Optional[str] = None, args: Optional[list[str]] = None) -> None:
        self._app(prog_name=prog_name or "vidscribe", args=args)


def create_app(console: Optional[Console] = None) -> typer.Typer:
    """Return a configured Typer application, logging to ``console`` if given."""

    return CLIApplication(console=console).app


def main() -> None:
    """Console script entry point for `vidscribe` and `python -m vidscribe`."""

    CLIApplication().run()


__all__ = ["CLIApplication", "create_app", "main"]
