"""Repository for interacting with the `users` table."""

from __future__ import annotations

from vidscribe.db import ConnectionFactory
from vidscribe.db.repositories import BaseRepository
from vidscribe.models.user import User


class UserRepository(BaseRepository[User]):
    """Data access object for the owner keys that videos reference."""

    table_name = "users"
    model_type = User
    insert_fields = ("id",)

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        super().__init__(connection_factory)

    def ensure(self, user: User) -> bool:
        """Insert ``user`` unless it already exists; return whether a row was created."""

        query = f"INSERT INTO {self.table_name} (id) VALUES (%(id)s) ON CONFLICT (id) DO NOTHING RETURNING id"
        payload = self._serialize(user, fields=self.insert_fields, include_none=False)
        return bool(self._fetch_many(query, payload))


__all__ = ["UserRepository"]
