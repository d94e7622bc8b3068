"""Presigned URL issuance for the object storage bucket."""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console

from vidscribe.config.settings import Settings, get_settings

SOURCE_KEY_PREFIX = "videos/"


class StorageGatewayError(RuntimeError):
    """Base exception raised when a presigned URL cannot be issued."""


class StorageConfigurationError(StorageGatewayError):
    """Raised when storage credentials or configuration are missing."""


class StorageRequestError(StorageGatewayError):
    """Raised when a presign request is missing required parameters."""


@dataclass(slots=True, frozen=True)
class PresignedUpload:
    """Time-limited ``PUT`` URL for a storage key."""

    url: str
    key: str
    upload_url: str


@dataclass(slots=True, frozen=True)
class PresignedDownload:
    """Time-limited ``GET`` URL for a storage key."""

    url: str
    key: str


class _MillisecondClock:
    """Strictly increasing millisecond timestamps within a process."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            now = time.time_ns() // 1_000_000
            self._last = max(now, self._last + 1)
            return self._last


_clock = _MillisecondClock()


def derive_storage_key(name: str, *, timestamp: Optional[int] = None) -> str:
    """Return the storage key used for an upload named ``name``.

    Names that already contain a path separator are used verbatim; plain file names get
    a ``videos/{millis}-`` prefix so unrelated uploads with the same name never collide.
    """

    if "/" in name:
        return name
    stamp = timestamp if timestamp is not None else _clock.next()
    return f"{SOURCE_KEY_PREFIX}{stamp}-{name}"


class ObjectStorageGateway:
    """Issue presigned upload and download URLs for an R2 (S3-compatible) bucket."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
        client: Optional[Any] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._client = client

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    async def request_upload_url(self, name: str, content_type: str) -> PresignedUpload:
        """Return a presigned ``PUT`` URL and the storage key it writes to.

        Raises
        ------
        StorageRequestError
            If ``name`` or ``content_type`` is empty.
        StorageConfigurationError
            If storage credentials are not configured.
        StorageGatewayError
            If the URL cannot be signed.
        """

        if not name or not content_type:
            raise StorageRequestError("Missing file information")

        key = derive_storage_key(name)
        self._console.log(f"[blue]Storage:[/blue] presigning upload (key={key}, content_type={content_type})")
        url = await asyncio.to_thread(
            self._presign,
            "put_object",
            {"Bucket": self._settings.storage_bucket, "Key": key, "ContentType": content_type},
            self._settings.upload_url_ttl_seconds,
        )
        return PresignedUpload(url=url, key=key, upload_url=self._object_url(key))

    async def request_download_url(self, key: str) -> PresignedDownload:
        """Return a presigned ``GET`` URL for ``key``.

        The download window is longer than the upload one because the transcription
        service fetches the object some time after the URL is issued.
        """

        if not key:
            raise StorageRequestError("Missing file key")

        self._console.log(f"[blue]Storage:[/blue] presigning download (key={key})")
        url = await asyncio.to_thread(
            self._presign,
            "get_object",
            {"Bucket": self._settings.storage_bucket, "Key": key},
            self._settings.download_url_ttl_seconds,
        )
        return PresignedDownload(url=url, key=key)

    def ensure_configured(self) -> None:
        """Raise :class:`StorageConfigurationError` unless R2 credentials are set."""

        self._credentials()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _presign(self, operation: str, params: dict[str, str], expires_in: int) -> str:
        client = self._get_client()
        try:
            return client.generate_presigned_url(operation, Params=params, ExpiresIn=expires_in)
        except (BotoCoreError, ClientError) as exc:
            raise StorageGatewayError(f"Failed to generate presigned URL: {exc}") from exc

    def _get_client(self) -> Any:
        if self._client is None:
            account_id, access_key_id, secret_access_key = self._credentials()
            self._client = boto3.client(
                "s3",
                region_name="auto",
                endpoint_url=self._endpoint(account_id),
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def _credentials(self) -> tuple[str, str, str]:
        settings = self._settings
        account_id = settings.r2_account_id
        access_key_id = settings.r2_access_key_id.get_secret_value() if settings.r2_access_key_id else ""
        secret_access_key = settings.r2_secret_access_key.get_secret_value() if settings.r2_secret_access_key else ""
        if not account_id or not access_key_id or not secret_access_key:
            raise StorageConfigurationError(
                "Missing R2 environment variables. Please set R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, "
                "and R2_SECRET_ACCESS_KEY"
            )
        return account_id, access_key_id, secret_access_key

    @staticmethod
    def _endpoint(account_id: str) -> str:
        return f"https://{account_id}.r2.cloudflarestorage.com"

    def _object_url(self, key: str) -> str:
        account_id = self._settings.r2_account_id or ""
        return f"{self._endpoint(account_id)}/{self._settings.storage_bucket}/{key}"


__all__ = [
    "ObjectStorageGateway",
    "PresignedDownload",
    "PresignedUpload",
    "StorageConfigurationError",
    "StorageGatewayError",
    "StorageRequestError",
    "derive_storage_key",
]
