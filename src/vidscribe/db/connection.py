"""Database connection utilities using psycopg2 connection pooling."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from psycopg2 import connect
from psycopg2.extensions import connection as PsycopgConnection
from psycopg2.pool import ThreadedConnectionPool

from vidscribe.config.settings import Settings, get_settings

DEFAULT_MIN_CONNECTIONS = 1
DEFAULT_MAX_CONNECTIONS = 5


class DatabaseConfigurationError(RuntimeError):
    """Raised when no database DSN is configured."""


class DatabasePool:
    """Lightweight wrapper around psycopg2's ThreadedConnectionPool.

    Repositories run on worker threads (``asyncio.to_thread``), so the thread-safe pool
    variant is used.
    """

    def __init__(
        self,
        dsn: str,
        *,
        min_connections: int = DEFAULT_MIN_CONNECTIONS,
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
    ) -> None:
        self._pool = ThreadedConnectionPool(min_connections, max_connections, dsn)

    @contextmanager
    def connection(self) -> Iterator[PsycopgConnection]:
        """Yield a transactional connection from the pool."""

        conn = self._pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:  # pragma: no cover - re-raised after rollback
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def close(self) -> None:
        """Close all pooled connections."""

        self._pool.closeall()


_pool: Optional[DatabasePool] = None


def database_dsn(settings: Optional[Settings] = None) -> str:
    """Return the configured DSN or raise if ``DATABASE_URL`` is unset."""

    settings = settings or get_settings()
    if settings.database_url is None:
        raise DatabaseConfigurationError("DATABASE_URL is not configured.")
    return str(settings.database_url)


def _ensure_pool() -> DatabasePool:
    global _pool
    if _pool is None:
        _pool = DatabasePool(database_dsn())
    return _pool


@contextmanager
def get_connection() -> Iterator[PsycopgConnection]:
    """Provide a pooled database connection as a context manager."""

    pool = _ensure_pool()
    with pool.connection() as conn:
        yield conn


def connection_from_dsn(dsn: str) -> PsycopgConnection:
    """Create a standalone connection using the given DSN."""

    return connect(dsn)


__all__ = ["DatabaseConfigurationError", "DatabasePool", "connection_from_dsn", "database_dsn", "get_connection"]
