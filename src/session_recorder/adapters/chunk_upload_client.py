"""HTTP client that delivers chunks to the ingestion endpoint."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from session_recorder.api.models import ChunkAck
from session_recorder.domain.recordings import ChunkUpload, StoredChunk


class ChunkUploader(Protocol):
    """Interface for sending one chunk and awaiting its acknowledgement."""

    async def upload_chunk(self, chunk: ChunkUpload) -> StoredChunk:
        """Upload a chunk and return the server acknowledgement."""


@dataclass
class HttpxChunkUploader(ChunkUploader):
    """Chunk uploader implemented with httpx."""

    endpoint_url: str
    http_client: httpx.AsyncClient
    timeout: float = 10.0

    @classmethod
    def create(cls, endpoint_url: str, timeout: float = 10.0) -> "HttpxChunkUploader":
        """Create an uploader with a managed httpx session."""
        return cls(
            endpoint_url=endpoint_url,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def upload_chunk(self, chunk: ChunkUpload) -> StoredChunk:
        """POST the chunk and parse the acknowledgement."""
        response = await self.http_client.post(
            self.endpoint_url, json=chunk.to_payload(), timeout=self.timeout
        )
        response.raise_for_status()
        return ChunkAck.model_validate(response.json()).to_stored()

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()
