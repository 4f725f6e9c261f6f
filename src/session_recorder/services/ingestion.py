"""Chunk ingestion: validate an uploaded batch and persist it."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from session_recorder.domain.recordings import (
    ChunkUpload,
    StoredChunk,
    is_valid_identifier,
)
from session_recorder.services.storage import ObjectStore

logger = logging.getLogger(__name__)


class ChunkValidationError(ValueError):
    """Raised when an ingestion payload is malformed."""


def parse_chunk_payload(payload: object) -> ChunkUpload:
    """Validate a raw JSON payload and return a ChunkUpload."""
    if not isinstance(payload, dict):
        raise ChunkValidationError("Request body must be a JSON object")
    recording_id = payload.get("recordingId")
    session_id = payload.get("sessionId")
    chunk_index = payload.get("chunkIndex")
    events = payload.get("events")
    if not recording_id or not session_id or events is None or chunk_index is None:
        raise ChunkValidationError(
            "Missing required fields: recordingId, sessionId, events, chunkIndex"
        )
    if not is_valid_identifier(recording_id) or not is_valid_identifier(session_id):
        raise ChunkValidationError(
            "recordingId and sessionId must be path-safe strings"
        )
    if not _is_non_negative_int(chunk_index):
        raise ChunkValidationError("chunkIndex must be a non-negative integer")
    if not isinstance(events, list) or not events:
        raise ChunkValidationError("Events must be a non-empty array")
    event_offset = payload.get("eventOffset")
    if event_offset is not None and not _is_non_negative_int(event_offset):
        raise ChunkValidationError("eventOffset must be a non-negative integer")
    return ChunkUpload(
        recording_id=recording_id,
        session_id=session_id,
        chunk_index=chunk_index,
        events=events,
        event_offset=event_offset,
    )


def _is_non_negative_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@dataclass
class IngestionService:
    """Writes validated chunks to their deterministic storage key."""

    store: ObjectStore

    async def ingest(self, payload: object) -> StoredChunk:
        """Validate and store one chunk, overwriting any previous write."""
        chunk = parse_chunk_payload(payload)
        document: dict[str, object] = {
            "recordingId": chunk.recording_id,
            "sessionId": chunk.session_id,
            "chunkIndex": chunk.chunk_index,
            "eventCount": len(chunk.events),
            "events": chunk.events,
            "uploadedAt": datetime.now(tz=UTC).isoformat(),
        }
        if chunk.event_offset is not None:
            document["eventOffset"] = chunk.event_offset
        await self.store.put(chunk.storage_key, json.dumps(document).encode("utf-8"))
        logger.info(
            "Stored chunk %s (%d events)",
            chunk.storage_key,
            len(chunk.events),
        )
        return StoredChunk(
            chunk_index=chunk.chunk_index,
            storage_key=chunk.storage_key,
            event_count=len(chunk.events),
        )
