"""Pydantic models for derived transcription artifacts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Optional
from uuid import uuid4

from pydantic import Field

from vidscribe.models.base import VidscribeBaseModel


class ArtifactKind(str, Enum):
    """Closed set of artifact kinds derived from a transcription."""

    TRANSCRIPT = "transcript"
    WORDS = "words"
    SRT = "srt"


class Artifact(VidscribeBaseModel):
    """Domain model representing a row in the ``artifacts`` table."""

    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    video_id: str = Field(min_length=1)
    kind: ArtifactKind
    storage_key: str = Field(min_length=1)
    created_at: Optional[datetime] = None


class ExtractedArtifacts(VidscribeBaseModel):
    """Text payloads derived from one transcription plus where each one was stored.

    ``urls`` and ``keys`` only list the kinds whose upload completed, so a partially
    committed extraction can still be inspected after a failure.
    """

    transcript: Optional[str] = None
    words: Optional[str] = None
    srt: Optional[str] = None
    urls: Dict[ArtifactKind, str] = Field(default_factory=dict)
    keys: Dict[ArtifactKind, str] = Field(default_factory=dict)


__all__ = ["Artifact", "ArtifactKind", "ExtractedArtifacts"]
