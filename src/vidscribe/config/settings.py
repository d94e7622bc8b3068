"""Application settings loaded from environment variables and config files."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, PositiveInt, SecretStr
from pydantic.networks import PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict

from vidscribe.config import CONFIG_ROOT


class AdditionalFormatRequest(BaseModel):
    """Alternate rendition requested alongside the plain transcript."""

    format: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class TranscriptionOptions(BaseModel):
    """Request options forwarded to the speech-to-text service."""

    model_id: str = "scribe_v1"
    diarize: bool = True
    additional_formats: List[AdditionalFormatRequest] = Field(
        default_factory=lambda: [AdditionalFormatRequest(format="srt")]
    )

    model_config = ConfigDict(extra="forbid")


def _load_transcription_options(options_path: Path) -> TranscriptionOptions:
    if not options_path.exists():
        return TranscriptionOptions()

    raw_data: Dict[str, object] = yaml.safe_load(options_path.read_text(encoding="utf-8")) or {}
    return TranscriptionOptions.model_validate(raw_data)


class Settings(BaseSettings):
    """Primary application settings for vidscribe."""

    database_url: Optional[PostgresDsn] = Field(default=None, alias="DATABASE_URL")

    r2_account_id: Optional[str] = Field(default=None, alias="R2_ACCOUNT_ID")
    r2_access_key_id: Optional[SecretStr] = Field(default=None, alias="R2_ACCESS_KEY_ID")
    r2_secret_access_key: Optional[SecretStr] = Field(default=None, alias="R2_SECRET_ACCESS_KEY")
    storage_bucket: str = Field(default="ai-captions", alias="STORAGE_BUCKET")
    upload_url_ttl_seconds: PositiveInt = Field(default=60, alias="UPLOAD_URL_TTL_SECONDS")
    download_url_ttl_seconds: PositiveInt = Field(default=120, alias="DOWNLOAD_URL_TTL_SECONDS")

    elevenlabs_api_key: Optional[SecretStr] = Field(default=None, alias="ELEVENLABS_API_KEY")
    elevenlabs_base_url: HttpUrl = Field(default=HttpUrl("https://api.elevenlabs.io"), alias="ELEVENLABS_BASE_URL")
    http_timeout_seconds: PositiveInt = Field(default=300, alias="HTTP_TIMEOUT_SECONDS")

    transcription: TranscriptionOptions = Field(
        default_factory=lambda: _load_transcription_options(CONFIG_ROOT / "transcription.yaml")
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()


__all__ = ["AdditionalFormatRequest", "Settings", "TranscriptionOptions", "get_settings"]
