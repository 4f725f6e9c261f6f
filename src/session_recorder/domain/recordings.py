"""Domain models and storage key layout for recordings."""

import re
from dataclasses import dataclass, field
from datetime import datetime

RECORDINGS_PREFIX = "recordings/"
MERGED_NAME = "merged"
CHUNK_NAME_PREFIX = "chunk-"

_KEY_PATTERN = re.compile(
    r"^recordings/(?P<recording_id>[^/]+)/(?P<session_id>[^/]+)/"
    r"(?:chunk-(?P<chunk_index>\d+)|(?P<merged>merged))$"
)


def chunk_key(recording_id: str, session_id: str, chunk_index: int) -> str:
    """Return the storage key for a chunk."""
    return f"{session_prefix(recording_id, session_id)}{CHUNK_NAME_PREFIX}{chunk_index}"


def merged_key(recording_id: str, session_id: str) -> str:
    """Return the storage key for a merged artifact."""
    return f"{session_prefix(recording_id, session_id)}{MERGED_NAME}"


def session_prefix(recording_id: str, session_id: str) -> str:
    return f"{RECORDINGS_PREFIX}{recording_id}/{session_id}/"


def recording_prefix(recording_id: str) -> str:
    return f"{RECORDINGS_PREFIX}{recording_id}/"


def is_valid_identifier(value: object) -> bool:
    """Return true when the value can be used as a key path segment."""
    if not isinstance(value, str) or not value.strip():
        return False
    if value in {".", ".."}:
        return False
    return "/" not in value and "\\" not in value


@dataclass(frozen=True)
class ParsedKey:
    """A storage key split into its embedded identifiers."""

    key: str
    recording_id: str
    session_id: str
    chunk_index: int | None

    @property
    def is_merged(self) -> bool:
        return self.chunk_index is None

    @property
    def group(self) -> tuple[str, str]:
        return self.recording_id, self.session_id


def parse_key(key: str) -> ParsedKey | None:
    """Parse a chunk or merged key; return None for anything else."""
    match = _KEY_PATTERN.match(key)
    if match is None:
        return None
    raw_index = match.group("chunk_index")
    return ParsedKey(
        key=key,
        recording_id=match.group("recording_id"),
        session_id=match.group("session_id"),
        chunk_index=int(raw_index) if raw_index is not None else None,
    )


@dataclass(frozen=True)
class ChunkUpload:
    """A validated chunk as accepted by the ingestion endpoint."""

    recording_id: str
    session_id: str
    chunk_index: int
    events: list[object]
    event_offset: int | None = None

    @property
    def storage_key(self) -> str:
        return chunk_key(self.recording_id, self.session_id, self.chunk_index)

    def to_payload(self) -> dict[str, object]:
        """Return the JSON body expected by the ingestion endpoint."""
        payload: dict[str, object] = {
            "recordingId": self.recording_id,
            "sessionId": self.session_id,
            "chunkIndex": self.chunk_index,
            "events": self.events,
        }
        if self.event_offset is not None:
            payload["eventOffset"] = self.event_offset
        return payload


@dataclass(frozen=True)
class StoredChunk:
    """Acknowledgement returned after a chunk is persisted."""

    chunk_index: int
    storage_key: str
    event_count: int


@dataclass(frozen=True)
class ObjectInfo:
    """Listing entry for a stored object."""

    key: str
    size: int = 0
    uploaded_at: datetime | None = None


@dataclass(frozen=True)
class StoredObject:
    """A stored object body with its content type."""

    key: str
    body: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class ListPage:
    """One page of a prefix listing."""

    items: list[ObjectInfo]
    next_cursor: str | None = None
    has_more: bool = False


@dataclass
class SessionGroup:
    """Chunk keys discovered for one recording session."""

    recording_id: str
    session_id: str
    chunks: list[ParsedKey] = field(default_factory=list)
    has_merged: bool = False

    def ordered_chunks(self) -> list[ParsedKey]:
        return sorted(self.chunks, key=lambda parsed: parsed.chunk_index or 0)


def group_keys(keys: list[str]) -> dict[tuple[str, str], SessionGroup]:
    """Group chunk and merged keys by (recording_id, session_id)."""
    groups: dict[tuple[str, str], SessionGroup] = {}
    for key in keys:
        parsed = parse_key(key)
        if parsed is None:
            continue
        group = groups.get(parsed.group)
        if group is None:
            group = SessionGroup(
                recording_id=parsed.recording_id, session_id=parsed.session_id
            )
            groups[parsed.group] = group
        if parsed.is_merged:
            group.has_merged = True
        else:
            group.chunks.append(parsed)
    return groups


def append_chunk_events(merged: list[object], document: object) -> None:
    """Extend ``merged`` with a chunk's events minus any prefix already present.

    Chunks that record the offset of their first event may overlap the
    previous chunk after a lost acknowledgement; the overlap is dropped. A
    chunk starting past the end of ``merged`` leaves a gap and is rejected.
    """
    if not isinstance(document, dict):
        raise ValueError("Chunk document is not an object")
    events = document.get("events")
    if not isinstance(events, list):
        raise ValueError("Chunk document has no events array")
    offset = document.get("eventOffset")
    if isinstance(offset, int) and not isinstance(offset, bool):
        if offset > len(merged):
            raise ValueError(
                f"Chunk starts at event {offset} but only {len(merged)} merged"
            )
        events = events[len(merged) - offset :]
    merged.extend(events)
