"""Client for the remote speech-to-text service."""

from __future__ import annotations

import json
from typing import Optional

import httpx
from pydantic import ValidationError
from rich.console import Console

from vidscribe.config.settings import Settings, get_settings
from vidscribe.models.transcription import TranscriptionResult
from vidscribe.services.transport import redact_url

SPEECH_TO_TEXT_PATH = "/v1/speech-to-text"


class TranscriptionError(RuntimeError):
    """Raised when the transcription stage cannot produce a result."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TranscriptionConfigurationError(TranscriptionError):
    """Raised when the ElevenLabs API key is not configured."""


class TranscriptionClient:
    """Submit stored media to ElevenLabs speech-to-text and parse the response."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._client = client
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def ensure_configured(self) -> None:
        """Raise :class:`TranscriptionConfigurationError` unless an API key is set."""

        self._api_key()

    async def transcribe(self, download_url: str, file_name: str) -> TranscriptionResult:
        """Transcribe the media behind ``download_url``.

        The service fetches the file itself, so ``download_url`` must stay valid until
        the request is answered. Diarization and every additional format configured in
        ``transcription.yaml`` are requested.

        Parameters
        ----------
        download_url:
            Presigned ``GET`` URL of the uploaded source file.
        file_name:
            Original file name, used for log messages only.

        Returns
        -------
        TranscriptionResult
            Parsed transcription with word timings and additional renditions.

        Raises
        ------
        TranscriptionError
            If the API key is missing, the service answers with a non-2xx status, the
            request fails at the network level, or the response cannot be parsed.
        """

        if not download_url:
            raise TranscriptionError("Missing download URL")

        api_key = self._api_key()

        options = self._settings.transcription
        form = {
            "cloud_storage_url": download_url,
            "model_id": options.model_id,
            "diarize": "true" if options.diarize else "false",
            "additional_formats": json.dumps([entry.model_dump() for entry in options.additional_formats]),
        }
        endpoint = str(self._settings.elevenlabs_base_url).rstrip("/") + SPEECH_TO_TEXT_PATH

        self._console.log(
            f"[blue]Transcription:[/blue] starting (file={file_name}, source={redact_url(download_url)}, "
            f"model={options.model_id})"
        )
        try:
            # (None, value) parts are sent as plain multipart fields without a filename.
            response = await self._get_client().post(
                endpoint,
                files={name: (None, value) for name, value in form.items()},
                headers={"xi-api-key": api_key},
            )
        except httpx.TransportError as exc:
            raise TranscriptionError(f"Transcription request failed: {exc}") from exc

        if not response.is_success:
            body = response.text
            self._console.log(f"[red]Transcription:[/red] service error {response.status_code}: {body}")
            raise TranscriptionError(
                f"ElevenLabs API returned {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            result = TranscriptionResult.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TranscriptionError(f"Unexpected transcription response: {exc}") from exc

        self._console.log(
            f"[green]Transcription:[/green] completed (file={file_name}, language={result.language_code}, "
            f"words={len(result.words)}, formats={[entry.requested_format for entry in result.additional_formats]})"
        )
        return result

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=float(self._settings.http_timeout_seconds))
            self._owns_client = True
        return self._client

    def _api_key(self) -> str:
        api_key = self._settings.elevenlabs_api_key
        if api_key is None or not api_key.get_secret_value():
            raise TranscriptionConfigurationError("ElevenLabs API key not configured")
        return api_key.get_secret_value()


__all__ = ["TranscriptionClient", "TranscriptionConfigurationError", "TranscriptionError"]
