"""Pydantic models describing uploaded source videos."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import Field

from vidscribe.models.base import VidscribeBaseModel


class Video(VidscribeBaseModel):
    """Domain model representing a row in the ``videos`` table.

    A video is recorded once, right after its source file has been stored, and is never
    updated afterwards. Artifacts reference it through ``video_id``.
    """

    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    filename: str = Field(min_length=1)
    duration_seconds: int = Field(default=0, ge=0)
    storage_key: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    created_at: Optional[datetime] = None


__all__ = ["Video"]
