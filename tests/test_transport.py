"""Tests for presigned URL uploads and downloads."""

from pathlib import Path
from typing import List

import httpx
import pytest

from vidscribe.services import transport as transport_module
from vidscribe.services.transport import HttpTransport, TransportError, TransportFailure, redact_url
from vidscribe.utils.cancellation import CancellationToken
from vidscribe.utils.progress import ProgressChannel, TransferProgress

UPLOAD_URL = "https://storage.test/videos/1-demo.mp4?X-Amz-Signature=put"


def _collect(channel: ProgressChannel[TransferProgress]) -> List[int]:
    percents: List[int] = []
    channel.subscribe(lambda update: percents.append(update.percent))
    return percents


@pytest.mark.asyncio
async def test_upload_file_reports_monotonic_progress_ending_at_100(transport, storage, video_file: Path) -> None:
    channel: ProgressChannel[TransferProgress] = ProgressChannel()
    percents = _collect(channel)

    await transport.upload_file(video_file, UPLOAD_URL, "video/mp4", progress=channel)

    assert len(percents) > 2
    assert percents == sorted(percents)
    assert percents[-1] == 100
    assert percents.count(100) == 1
    assert storage.objects["videos/1-demo.mp4"] == video_file.read_bytes()
    assert storage.content_types["videos/1-demo.mp4"] == "video/mp4"


@pytest.mark.asyncio
async def test_upload_sends_content_length(transport, storage) -> None:
    await transport.upload_text("héllo", "https://storage.test/generated/a.txt", "text/plain")

    request = storage.requests[-1]
    assert request.method == "PUT"
    assert request.headers["content-length"] == str(len("héllo".encode("utf-8")))


@pytest.mark.asyncio
async def test_empty_payload_only_reports_completion(transport) -> None:
    channel: ProgressChannel[TransferProgress] = ProgressChannel()
    percents = _collect(channel)

    await transport.upload_text("", "https://storage.test/generated/empty.txt", "text/plain", progress=channel)

    assert percents == [100]


@pytest.mark.asyncio
async def test_non_2xx_status_is_a_transport_failure(transport, storage, video_file: Path) -> None:
    storage.put_status["videos/1-demo.mp4"] = 403
    channel: ProgressChannel[TransferProgress] = ProgressChannel()
    percents = _collect(channel)

    with pytest.raises(TransportError) as excinfo:
        await transport.upload_file(video_file, UPLOAD_URL, "video/mp4", progress=channel)

    assert excinfo.value.kind is TransportFailure.STATUS
    assert excinfo.value.status_code == 403
    assert str(excinfo.value) == "Upload failed with status: 403"
    assert 100 not in percents


@pytest.mark.asyncio
async def test_network_failure_is_a_transport_failure(transport, storage) -> None:
    storage.network_failures.add("generated/a.txt")

    with pytest.raises(TransportError) as excinfo:
        await transport.upload_text("payload", "https://storage.test/generated/a.txt", "text/plain")

    assert excinfo.value.kind is TransportFailure.NETWORK
    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_cancelled_token_aborts_upload(transport, storage, video_file: Path) -> None:
    token = CancellationToken()
    channel: ProgressChannel[TransferProgress] = ProgressChannel()

    def cancel_midway(update: TransferProgress) -> None:
        if update.percent >= 30:
            token.cancel()

    channel.subscribe(cancel_midway)

    with pytest.raises(TransportError) as excinfo:
        await transport.upload_file(video_file, UPLOAD_URL, "video/mp4", progress=channel, token=token)

    assert excinfo.value.kind is TransportFailure.ABORTED
    assert str(excinfo.value) == "Upload was aborted"
    assert "videos/1-demo.mp4" not in storage.objects


@pytest.mark.asyncio
async def test_round_trip_returns_uploaded_content(transport) -> None:
    payload = "1\n00:00:00,000 --> 00:00:01,000\nBonjour à tous\n"
    key_url = "https://storage.test/generated/1-demo.captions.srt"

    await transport.upload_text(payload, f"{key_url}?X-Amz-Signature=put", "application/x-subrip")
    fetched = await transport.download_bytes(f"{key_url}?X-Amz-Signature=get")

    assert fetched.decode("utf-8") == payload


@pytest.mark.asyncio
async def test_download_missing_object_fails(transport) -> None:
    with pytest.raises(TransportError) as excinfo:
        await transport.download_bytes("https://storage.test/generated/missing.txt")

    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_transport_closes_only_its_own_client() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    async with HttpTransport(client=client):
        pass

    assert not client.is_closed
    await client.aclose()


def test_redact_url_drops_signature() -> None:
    assert redact_url(UPLOAD_URL) == "https://storage.test/videos/1-demo.mp4"


@pytest.mark.asyncio
async def test_missing_source_file_is_a_transport_failure(transport, storage, tmp_path: Path) -> None:
    with pytest.raises(TransportError) as excinfo:
        await transport.upload_file(tmp_path / "gone.mp4", UPLOAD_URL, "video/mp4")

    assert excinfo.value.kind is TransportFailure.SOURCE
    assert str(excinfo.value).startswith("Could not read gone.mp4")
    assert storage.requests == []


@pytest.mark.asyncio
async def test_unreadable_source_file_is_a_transport_failure(transport, storage, video_file: Path, monkeypatch) -> None:
    async def refuse(*args, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(transport_module.aiofiles, "open", refuse)

    with pytest.raises(TransportError) as excinfo:
        await transport.upload_file(video_file, UPLOAD_URL, "video/mp4")

    assert excinfo.value.kind is TransportFailure.SOURCE
    assert "Permission denied" in str(excinfo.value)
    assert "videos/1-demo.mp4" not in storage.objects
