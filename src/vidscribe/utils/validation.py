"""Validation helpers for user-selected media files."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Optional

ACCEPTED_MEDIA_TYPE = "video/mp4"


class FileValidationError(ValueError):
    """Raised when a selected file cannot be processed."""


def guess_media_type(path: Path) -> Optional[str]:
    """Guess a file's media type from its name."""

    media_type, _ = mimetypes.guess_type(path.name)
    return media_type


def validate_media_file(path: Path, media_type: Optional[str] = None) -> str:
    """Validate a selected file and return the media type it will be uploaded with.

    Only MP4 video is accepted. ``media_type`` is the type declared by the caller; when
    omitted it is guessed from the file name.
    """

    declared = (media_type or guess_media_type(path) or "").strip().lower()
    if declared != ACCEPTED_MEDIA_TYPE:
        raise FileValidationError(f"Please select an MP4 file (got {declared or 'unknown type'} for {path.name!r}).")

    if not path.is_file():
        raise FileValidationError(f"File not found: {path}")

    return ACCEPTED_MEDIA_TYPE


__all__ = ["ACCEPTED_MEDIA_TYPE", "FileValidationError", "guess_media_type", "validate_media_file"]
