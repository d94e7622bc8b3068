"""Pydantic model for the owners that videos are recorded against."""

from __future__ import annotations

from pydantic import Field

from vidscribe.models.base import VidscribeBaseModel


class User(VidscribeBaseModel):
    """Domain model representing a row in the ``users`` table."""

    id: str = Field(min_length=1)


__all__ = ["User"]
