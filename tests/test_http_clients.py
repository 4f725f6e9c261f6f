"""Tests for HTTP-based adapters."""

import asyncio
import json

import httpx
import pytest

from session_recorder.adapters.beacon import HttpxBeaconSender
from session_recorder.adapters.chunk_upload_client import HttpxChunkUploader
from session_recorder.domain.recordings import ChunkUpload

ENDPOINT = "https://recorder.test/api/recordings/chunks"


def _chunk(event_offset: int | None = None) -> ChunkUpload:
    return ChunkUpload(
        recording_id="rid-1",
        session_id="1700000000000-abc1234",
        chunk_index=2,
        events=[{"type": 3}],
        event_offset=event_offset,
    )


def test_chunk_uploader_posts_payload_and_parses_ack() -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        seen.append(json.loads(request.content.decode()))
        return httpx.Response(
            200,
            json={
                "chunkIndex": 2,
                "storageKey": "recordings/rid-1/1700000000000-abc1234/chunk-2",
                "eventCount": 1,
            },
        )

    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    uploader = HttpxChunkUploader(endpoint_url=ENDPOINT, http_client=async_client)

    stored = asyncio.run(uploader.upload_chunk(_chunk(event_offset=5)))

    assert stored.chunk_index == 2
    assert stored.event_count == 1
    assert seen == [
        {
            "recordingId": "rid-1",
            "sessionId": "1700000000000-abc1234",
            "chunkIndex": 2,
            "events": [{"type": 3}],
            "eventOffset": 5,
        }
    ]


def test_chunk_uploader_raises_on_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Failed to upload recording chunk"})

    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    uploader = HttpxChunkUploader(endpoint_url=ENDPOINT, http_client=async_client)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(uploader.upload_chunk(_chunk()))


def test_beacon_sends_without_waiting_and_drains() -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content.decode()))
        return httpx.Response(200, json={})

    async def scenario() -> bool:
        async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        beacon = HttpxBeaconSender(endpoint_url=ENDPOINT, http_client=async_client)
        queued = beacon.send(_chunk())
        await beacon.close()
        return queued

    assert asyncio.run(scenario()) is True
    assert seen[0]["chunkIndex"] == 2
    assert "eventOffset" not in seen[0]


def test_beacon_swallows_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    async def scenario() -> bool:
        async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        beacon = HttpxBeaconSender(endpoint_url=ENDPOINT, http_client=async_client)
        queued = beacon.send(_chunk())
        await beacon.close()
        return queued

    assert asyncio.run(scenario()) is True


def test_beacon_without_event_loop_drops_chunk() -> None:
    async_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200))
    )
    beacon = HttpxBeaconSender(endpoint_url=ENDPOINT, http_client=async_client)

    assert beacon.send(_chunk()) is False
