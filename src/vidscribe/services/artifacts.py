"""Derive transcript artifacts from a transcription and store each one."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple

from rich.console import Console

from vidscribe.models.artifact import ArtifactKind, ExtractedArtifacts
from vidscribe.models.transcription import TranscriptionResult
from vidscribe.services.gateway import ObjectStorageGateway, StorageGatewayError
from vidscribe.services.transport import HttpTransport, TransportError
from vidscribe.utils.cancellation import CancellationToken

GENERATED_PREFIX = "generated/"
SRT_FORMAT = "srt"


@dataclass(slots=True, frozen=True)
class ArtifactLayout:
    """Where and how an artifact kind is stored."""

    suffix: str
    content_type: str


ARTIFACT_LAYOUTS: Dict[ArtifactKind, ArtifactLayout] = {
    ArtifactKind.TRANSCRIPT: ArtifactLayout(suffix=".transcript.txt", content_type="text/plain"),
    ArtifactKind.WORDS: ArtifactLayout(suffix=".words.json", content_type="application/json"),
    ArtifactKind.SRT: ArtifactLayout(suffix=".captions.srt", content_type="application/x-subrip"),
}

# Upload order is fixed.
UPLOAD_ORDER: Tuple[ArtifactKind, ...] = (ArtifactKind.TRANSCRIPT, ArtifactKind.WORDS, ArtifactKind.SRT)


class ExtractionError(RuntimeError):
    """Raised when artifact extraction does not complete.

    ``partial`` describes whatever was uploaded before the failure. Those objects stay in
    storage; they are never recorded as artifacts.
    """

    def __init__(self, message: str, *, partial: Optional[ExtractedArtifacts] = None) -> None:
        super().__init__(message)
        self.partial = partial or ExtractedArtifacts()


def base_name_for(source_key: str) -> str:
    """Return ``source_key`` without its path prefix and trailing extension."""

    return PurePosixPath(source_key).stem


def artifact_key(source_key: str, kind: ArtifactKind) -> str:
    """Return the storage key of ``kind`` derived from ``source_key``."""

    return f"{GENERATED_PREFIX}{base_name_for(source_key)}{ARTIFACT_LAYOUTS[kind].suffix}"


def serialize_words(result: TranscriptionResult) -> str:
    """Render the word timings as pretty-printed JSON."""

    return json.dumps([word.model_dump(mode="json") for word in result.words], ensure_ascii=False, indent=2)


class ArtifactExtractor:
    """Build transcript, word-timing and subtitle artifacts and upload them."""

    def __init__(
        self,
        gateway: ObjectStorageGateway,
        transport: HttpTransport,
        *,
        console: Optional[Console] = None,
    ) -> None:
        self._gateway = gateway
        self._transport = transport
        self._console = console or Console()

    async def extract(
        self,
        result: TranscriptionResult,
        source_key: str,
        *,
        token: Optional[CancellationToken] = None,
    ) -> ExtractedArtifacts:
        """Derive every artifact from ``result`` and store it next to ``source_key``.

        Artifacts are uploaded in the order transcript, words, srt. Each one needs an
        upload URL, the upload itself and a download URL; the first failure aborts the
        whole extraction.

        Raises
        ------
        ExtractionError
            If the subtitle rendition is missing (nothing is uploaded in that case) or
            any presign/upload step fails.
        SessionCancelledError
            If ``token`` is cancelled between uploads.
        """

        if not source_key:
            raise ExtractionError("Missing source key")

        payloads = self._build_payloads(result)
        extracted = ExtractedArtifacts(
            transcript=payloads.get(ArtifactKind.TRANSCRIPT),
            words=payloads.get(ArtifactKind.WORDS),
            srt=payloads.get(ArtifactKind.SRT),
        )

        for kind in UPLOAD_ORDER:
            payload = payloads.get(kind)
            if payload is None:
                self._console.log(f"[yellow]Artifacts:[/yellow] skipping {kind.value} (empty payload)")
                continue
            if token is not None:
                token.raise_if_cancelled()

            key = artifact_key(source_key, kind)
            try:
                download_url = await self._store(kind, key, payload, token)
            except (StorageGatewayError, TransportError) as exc:
                self._console.log(f"[red]Artifacts:[/red] {kind.value} failed (key={key}): {exc}")
                raise ExtractionError(f"Failed to store {kind.value} artifact: {exc}", partial=extracted) from exc

            extracted = extracted.model_copy(
                update={
                    "urls": {**extracted.urls, kind: download_url},
                    "keys": {**extracted.keys, kind: key},
                }
            )
            self._console.log(f"[green]Artifacts:[/green] stored {kind.value} (key={key})")

        return extracted

    def _build_payloads(self, result: TranscriptionResult) -> Dict[ArtifactKind, str]:
        payloads: Dict[ArtifactKind, str] = {}
        if result.text:
            payloads[ArtifactKind.TRANSCRIPT] = result.text
        payloads[ArtifactKind.WORDS] = serialize_words(result)

        rendition = result.find_format(SRT_FORMAT)
        if rendition is None:
            available: List[str] = [entry.requested_format for entry in result.additional_formats]
            raise ExtractionError(f"SRT format not found in transcription result (available: {available})")
        try:
            payloads[ArtifactKind.SRT] = rendition.decoded_content()
        except ValueError as exc:
            raise ExtractionError(str(exc)) from exc
        return payloads

    async def _store(
        self,
        kind: ArtifactKind,
        key: str,
        payload: str,
        token: Optional[CancellationToken],
    ) -> str:
        layout = ARTIFACT_LAYOUTS[kind]
        upload = await self._gateway.request_upload_url(key, layout.content_type)
        await self._transport.upload_text(payload, upload.url, layout.content_type, token=token)
        download = await self._gateway.request_download_url(upload.key)
        return download.url


__all__ = [
    "ARTIFACT_LAYOUTS",
    "ArtifactExtractor",
    "ArtifactLayout",
    "ExtractionError",
    "UPLOAD_ORDER",
    "artifact_key",
    "base_name_for",
    "serialize_words",
]
