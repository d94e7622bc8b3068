"""Pydantic models for speech-to-text responses."""

from __future__ import annotations

import base64
import binascii
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TranscriptionWord(BaseModel):
    """Single timed token returned by the transcription service.

    Fields the service adds beyond the modelled ones are kept, so the words artifact
    carries everything the service returned.
    """

    text: str
    start: Optional[float] = Field(default=None, ge=0.0)
    end: Optional[float] = Field(default=None, ge=0.0)
    type: str = "word"
    speaker_id: Optional[str] = None
    logprob: Optional[float] = None

    model_config = ConfigDict(extra="allow")


class AdditionalFormat(BaseModel):
    """Alternate rendition of the transcript, such as an SRT subtitle file."""

    requested_format: str
    file_extension: Optional[str] = None
    content_type: Optional[str] = None
    is_base64_encoded: bool = False
    content: str = ""

    model_config = ConfigDict(extra="ignore")

    def decoded_content(self) -> str:
        """Return the rendition as text, decoding base64 payloads when flagged."""

        if not self.is_base64_encoded:
            return self.content
        try:
            return base64.b64decode(self.content, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError(f"Invalid base64 content for '{self.requested_format}' rendition: {exc}") from exc


class TranscriptionResult(BaseModel):
    """Structured transcription payload.

    Only the fields consumed downstream are modelled; anything else the vendor returns is
    ignored.
    """

    language_code: Optional[str] = None
    language_probability: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    text: str = ""
    words: List[TranscriptionWord] = Field(default_factory=list)
    additional_formats: List[AdditionalFormat] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("words", "additional_formats", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        return [] if value is None else value

    def find_format(self, requested_format: str) -> Optional[AdditionalFormat]:
        """Return the first additional format matching ``requested_format``."""

        for rendition in self.additional_formats:
            if rendition.requested_format == requested_format:
                return rendition
        return None


__all__ = ["AdditionalFormat", "TranscriptionResult", "TranscriptionWord"]
