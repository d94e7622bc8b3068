"""Shared base model definitions for vidscribe domain objects."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class VidscribeBaseModel(BaseModel):
    """Base model configured for project-wide defaults."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


__all__ = ["VidscribeBaseModel"]
