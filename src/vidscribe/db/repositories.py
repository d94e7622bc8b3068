"""Generic repository abstractions for Postgres-backed persistence."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import ClassVar, Dict, Generic, Iterable, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from psycopg2.extensions import connection as PsycopgConnection
from psycopg2.extras import RealDictCursor

from vidscribe.db import ConnectionFactory
from vidscribe.models.base import VidscribeBaseModel

ModelT = TypeVar("ModelT", bound=VidscribeBaseModel)


class RepositoryError(RuntimeError):
    """Base exception raised for repository layer failures."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record cannot be located."""


class BaseRepository(Generic[ModelT]):
    """Reusable building block for table-specific repositories.

    Rows are append-only: records are inserted and read, never updated or deleted here;
    removal happens through the `ON DELETE CASCADE` foreign keys.
    """

    table_name: ClassVar[str]
    model_type: ClassVar[Type[ModelT]]
    insert_fields: ClassVar[Sequence[str]]
    # Model field name -> column name, for fields whose column is named differently.
    column_aliases: ClassVar[Mapping[str, str]] = {}

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        self._connection_factory = connection_factory

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def insert(self, model: ModelT) -> ModelT:
        """Persist a new record to the backing table."""

        payload = self._serialize(model, fields=self.insert_fields, include_none=False)
        row = self._fetch_one(self._insert_query(payload), payload)
        return self._to_model(row)

    def insert_many(self, models: Sequence[ModelT]) -> list[ModelT]:
        """Persist several records in a single transaction."""

        if not models:
            return []

        stored: list[ModelT] = []
        with self._connection() as connection:
            with connection.cursor(cursor_factory=RealDictCursor) as cursor:
                for model in models:
                    payload = self._serialize(model, fields=self.insert_fields, include_none=False)
                    cursor.execute(self._insert_query(payload), payload)
                    row = cursor.fetchone()
                    if row is None:
                        raise RepositoryError(f"Insert into {self.table_name} returned no row.")
                    stored.append(self._to_model(dict(row)))
        return stored

    def get_by_id(self, record_id: object) -> ModelT:
        """Return a single record by its primary key."""

        query = f"SELECT * FROM {self.table_name} WHERE id = %(id)s"
        row = self._fetch_one(query, {"id": self._normalise_identifier(record_id)})
        return self._to_model(row)

    def fetch_all(
        self,
        where_clause: Optional[str] = None,
        params: Optional[Mapping[str, object]] = None,
        *,
        order_by: Optional[str] = None,
    ) -> list[ModelT]:
        """Return all records, optionally filtered by a predicate."""

        base_query = f"SELECT * FROM {self.table_name}"
        if where_clause:
            base_query = f"{base_query} WHERE {where_clause}"
        if order_by:
            base_query = f"{base_query} ORDER BY {order_by}"
        rows = self._fetch_many(base_query, params or {})
        return [self._to_model(row) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _serialize(
        self,
        model: ModelT,
        *,
        fields: Iterable[str],
        include_none: bool,
    ) -> Dict[str, object]:
        raw_values = model.model_dump(mode="json")
        payload: Dict[str, object] = {}

        for field in fields:
            if field not in raw_values:
                continue
            value = raw_values[field]
            if value is None and not include_none:
                continue
            payload[self.column_aliases.get(field, field)] = self._transform_value(field, value)

        return payload

    def _to_model(self, row: Mapping[str, object]) -> ModelT:
        columns_to_fields = {column: field for field, column in self.column_aliases.items()}
        values = {columns_to_fields.get(column, column): value for column, value in row.items()}
        return self.model_type.model_validate(values)

    def _transform_value(self, field: str, value: object) -> object:  # noqa: D401
        """Hook for subclasses to customise value transformations."""

        return value

    def _insert_query(self, payload: Mapping[str, object]) -> str:
        columns, placeholders = self._build_insert_clause(payload)
        return f"INSERT INTO {self.table_name} ({columns}) VALUES ({placeholders}) RETURNING *"

    def _build_insert_clause(self, payload: Mapping[str, object]) -> Tuple[str, str]:
        columns = ", ".join(payload.keys())
        placeholders = ", ".join(f"%({field})s" for field in payload.keys())
        return columns, placeholders

    def _fetch_one(self, query: str, params: Mapping[str, object]) -> Mapping[str, object]:
        with self._connection() as connection:
            with connection.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                row = cursor.fetchone()
                if row is None:
                    raise RecordNotFoundError(f"No records returned for query: {query!r}")
                return dict(row)

    def _fetch_many(self, query: str, params: Mapping[str, object]) -> list[Mapping[str, object]]:
        with self._connection() as connection:
            with connection.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                rows = cursor.fetchall()
                return [dict(row) for row in rows]

    def _connection(self) -> AbstractContextManager[PsycopgConnection]:
        return self._connection_factory()

    def _normalise_identifier(self, value: object) -> object:
        return str(value)


__all__ = [
    "BaseRepository",
    "RecordNotFoundError",
    "RepositoryError",
]
