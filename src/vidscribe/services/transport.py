"""Byte transport to and from presigned storage URLs."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Optional
from urllib.parse import urlsplit

import aiofiles
import httpx

from vidscribe.utils.cancellation import CancellationToken
from vidscribe.utils.progress import ProgressChannel, TransferProgress, percent_of

DEFAULT_CHUNK_SIZE = 256 * 1024
DEFAULT_TIMEOUT_SECONDS = 300.0


class TransportFailure(str, Enum):
    """Ways a single transfer can fail."""

    STATUS = "status"
    NETWORK = "network"
    ABORTED = "aborted"
    SOURCE = "source"


class TransportError(RuntimeError):
    """Raised when a transfer does not complete with a 2xx response."""

    def __init__(self, reason: str, *, kind: TransportFailure, status_code: Optional[int] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.kind = kind
        self.status_code = status_code


class _UploadAborted(Exception):
    pass


class _SourceUnreadable(Exception):
    def __init__(self, error: TransportError) -> None:
        super().__init__(str(error))
        self.error = error


def _source_error(path: Path, exc: OSError) -> TransportError:
    return TransportError(f"Could not read {path.name}: {exc.strerror or exc}", kind=TransportFailure.SOURCE)


def redact_url(url: str) -> str:
    """Strip the query string (and with it any signature) from ``url``."""

    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


class _ProgressReporter:
    """Turns byte counts into non-decreasing integer percentages.

    Intermediate events never exceed 99; 100 is reserved for the confirmed completion.
    """

    def __init__(self, total: int, channel: Optional[ProgressChannel[TransferProgress]]) -> None:
        self._total = total
        self._channel = channel
        self._sent = 0
        self._last_percent = -1

    def advance(self, size: int) -> None:
        self._sent += size
        if self._channel is None or self._total <= 0:
            return
        percent = min(99, percent_of(self._sent, self._total))
        if percent <= self._last_percent:
            return
        self._last_percent = percent
        self._channel.publish(TransferProgress(bytes_sent=self._sent, bytes_total=self._total, percent=percent))

    def complete(self) -> None:
        if self._channel is None:
            return
        self._channel.publish(TransferProgress(bytes_sent=self._total, bytes_total=self._total, percent=100))


class HttpTransport:
    """Single-shot ``PUT`` uploads with progress reporting over ``httpx``."""

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._chunk_size = max(1, chunk_size)

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    async def upload_file(
        self,
        path: Path,
        url: str,
        content_type: str,
        *,
        progress: Optional[ProgressChannel[TransferProgress]] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """Upload the file at ``path`` to ``url``.

        Raises
        ------
        TransportError
            On a non-2xx response, a network failure, an unreadable source file, or
            when ``token`` is cancelled mid-transfer.
        """

        try:
            total = path.stat().st_size
        except OSError as exc:
            raise _source_error(path, exc) from exc
        reporter = _ProgressReporter(total, progress)
        await self._put(url, content_type, total, self._file_chunks(path, reporter, token), reporter)

    async def upload_text(
        self,
        payload: str,
        url: str,
        content_type: str,
        *,
        progress: Optional[ProgressChannel[TransferProgress]] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """Upload a UTF-8 text payload to ``url``."""

        body = payload.encode("utf-8")
        reporter = _ProgressReporter(len(body), progress)
        await self._put(url, content_type, len(body), self._byte_chunks(body, reporter, token), reporter)

    async def download_bytes(self, url: str) -> bytes:
        """Fetch the object behind a presigned ``GET`` URL."""

        try:
            response = await self._get_client().get(url)
        except httpx.TransportError as exc:
            raise TransportError("Network error during download", kind=TransportFailure.NETWORK) from exc
        if not response.is_success:
            raise TransportError(
                f"Download failed with status: {response.status_code}",
                kind=TransportFailure.STATUS,
                status_code=response.status_code,
            )
        return response.content

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    async def _put(
        self,
        url: str,
        content_type: str,
        total: int,
        body: AsyncIterator[bytes],
        reporter: _ProgressReporter,
    ) -> None:
        headers = {"Content-Type": content_type, "Content-Length": str(total)}
        try:
            response = await self._get_client().put(url, content=body, headers=headers)
        except _UploadAborted as exc:
            raise TransportError("Upload was aborted", kind=TransportFailure.ABORTED) from exc
        except _SourceUnreadable as exc:
            raise exc.error from exc.__cause__
        except httpx.TransportError as exc:
            raise TransportError("Network error during upload", kind=TransportFailure.NETWORK) from exc

        if not response.is_success:
            raise TransportError(
                f"Upload failed with status: {response.status_code}",
                kind=TransportFailure.STATUS,
                status_code=response.status_code,
            )
        reporter.complete()

    async def _file_chunks(
        self,
        path: Path,
        reporter: _ProgressReporter,
        token: Optional[CancellationToken],
    ) -> AsyncIterator[bytes]:
        try:
            handle = await aiofiles.open(path, "rb")
        except OSError as exc:
            raise _SourceUnreadable(_source_error(path, exc)) from exc

        async with handle:
            while True:
                if token is not None and token.cancelled:
                    raise _UploadAborted()
                try:
                    chunk = await handle.read(self._chunk_size)
                except OSError as exc:
                    raise _SourceUnreadable(_source_error(path, exc)) from exc
                if not chunk:
                    break
                yield chunk
                reporter.advance(len(chunk))

    async def _byte_chunks(
        self,
        body: bytes,
        reporter: _ProgressReporter,
        token: Optional[CancellationToken],
    ) -> AsyncIterator[bytes]:
        for offset in range(0, len(body), self._chunk_size):
            if token is not None and token.cancelled:
                raise _UploadAborted()
            chunk = body[offset : offset + self._chunk_size]
            yield chunk
            reporter.advance(len(chunk))

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
            self._owns_client = True
        return self._client


__all__ = ["HttpTransport", "TransportError", "TransportFailure", "redact_url"]
