"""Apply the SQL files under `db/migrations` and remember which ones ran."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Set

from psycopg2.extensions import cursor as PsycopgCursor
from rich.console import Console
from rich.table import Table

from vidscribe.db.connection import connection_from_dsn, database_dsn

MIGRATIONS_ROOT = Path(__file__).resolve().parent / "migrations"

_LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    name TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


def _load_migration_files(directory: Path) -> List[Path]:
    return sorted(directory.glob("*.sql"))


def _applied_names(db_cursor: PsycopgCursor) -> Set[str]:
    db_cursor.execute(_LEDGER_DDL)
    db_cursor.execute("SELECT name FROM schema_migrations")
    return {row[0] for row in db_cursor.fetchall()}


def _apply(db_cursor: PsycopgCursor, migration_file: Path) -> None:
    db_cursor.execute(migration_file.read_text(encoding="utf-8"))
    db_cursor.execute("INSERT INTO schema_migrations (name) VALUES (%s)", (migration_file.name,))


def run_migrations(
    console: Optional[Console] = None,
    *,
    dsn: Optional[str] = None,
    directory: Path = MIGRATIONS_ROOT,
) -> List[str]:
    """Apply pending migrations in file-name order inside one transaction.

    Returns the names of the migrations applied by this call; files already listed in
    ``schema_migrations`` are skipped.
    """

    console = console or Console()
    migrations = _load_migration_files(directory)

    if not migrations:
        console.print("[yellow]No migrations found.[/yellow]")
        return []

    connection = connection_from_dsn(dsn or database_dsn())

    table = Table(title="Database Migrations")
    table.add_column("Migration", style="cyan")
    table.add_column("Status")

    applied: List[str] = []
    try:
        with connection.cursor() as db_cursor:
            already_applied = _applied_names(db_cursor)
            for migration in migrations:
                if migration.name in already_applied:
                    table.add_row(migration.name, "[dim]skipped[/dim]")
                    continue
                _apply(db_cursor, migration)
                applied.append(migration.name)
                table.add_row(migration.name, "[green]applied[/green]")
        connection.commit()
    except Exception as exc:  # pragma: no cover - surface migration errors
        connection.rollback()
        console.print(f"[red]Migration failed:[/red] {exc}")
        raise
    finally:
        connection.close()

    console.print(table)
    return applied


def main() -> None:
    """Entry point for `python -m vidscribe.db.migrate`."""

    run_migrations()


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["MIGRATIONS_ROOT", "run_migrations"]
