"""Typer command-line interface for vidscribe."""

from vidscribe.cli.main import CLIApplication, create_app, main

__all__ = ["CLIApplication", "create_app", "main"]
