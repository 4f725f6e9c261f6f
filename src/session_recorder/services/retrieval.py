"""Read-side access to recording sessions and stored objects."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import quote

from session_recorder.domain.recordings import (
    RECORDINGS_PREFIX,
    StoredObject,
    append_chunk_events,
    group_keys,
    merged_key,
    parse_key,
    recording_prefix,
    session_prefix,
)
from session_recorder.services.storage import ObjectStore, list_all

logger = logging.getLogger(__name__)

DOWNLOAD_PATH = "/api/recordings/download"


class InvalidKeyError(ValueError):
    """Raised when a download key falls outside the recordings namespace."""


class SessionNotFoundError(LookupError):
    """Raised when a session has neither a merged artifact nor chunks."""


def validate_download_key(key: str | None) -> str:
    """Return the key if it is a safe path inside the recordings namespace."""
    if not key:
        raise InvalidKeyError("Missing key parameter")
    if not key.startswith(RECORDINGS_PREFIX) or "\\" in key:
        raise InvalidKeyError("Invalid key")
    segments = key.split("/")
    if any(segment in {"", ".", ".."} for segment in segments):
        raise InvalidKeyError("Invalid key")
    return key


def download_ref(key: str) -> str:
    """Return the proxied download URL for a storage key."""
    return f"{DOWNLOAD_PATH}?key={quote(key, safe='')}"


@dataclass(frozen=True)
class SessionLocation:
    """Where a session's events can be read from."""

    session_id: str
    merged_key: str | None = None
    chunk_keys: tuple[str, ...] = ()

    @property
    def is_merged(self) -> bool:
        return self.merged_key is not None


@dataclass(frozen=True)
class RecordingOverview:
    """Listing summary for one recording session."""

    recording_id: str
    session_id: str
    chunk_count: int
    has_merged: bool
    first_chunk_at: datetime | None
    last_chunk_at: datetime | None


@dataclass
class RetrievalService:
    """Locates merged artifacts or ordered chunks for a session."""

    store: ObjectStore
    page_size: int = 1000

    async def list_sessions(self, recording_id: str) -> list[str]:
        """Return the distinct session ids of a recording, newest first."""
        items = await list_all(
            self.store, recording_prefix(recording_id), self.page_size
        )
        sessions = {
            parsed.session_id
            for parsed in (parse_key(item.key) for item in items)
            if parsed is not None
        }
        return sorted(sessions, reverse=True)

    async def locate_session(
        self, recording_id: str, session_id: str
    ) -> SessionLocation:
        """Return the merged artifact key or the ordered chunk keys."""
        items = await list_all(
            self.store, session_prefix(recording_id, session_id), self.page_size
        )
        groups = group_keys([item.key for item in items])
        group = groups.get((recording_id, session_id))
        if group is None:
            raise SessionNotFoundError(f"{recording_id}/{session_id}")
        if group.has_merged:
            return SessionLocation(
                session_id=session_id,
                merged_key=merged_key(recording_id, session_id),
            )
        return SessionLocation(
            session_id=session_id,
            chunk_keys=tuple(parsed.key for parsed in group.ordered_chunks()),
        )

    async def download(self, key: str | None) -> StoredObject:
        """Fetch one stored object after validating its key."""
        return await self.store.get(validate_download_key(key))

    async def load_session_events(
        self, recording_id: str, session_id: str
    ) -> list[object]:
        """Return the full ordered event list of a session."""
        location = await self.locate_session(recording_id, session_id)
        if location.merged_key is not None:
            stored = await self.store.get(location.merged_key)
            return list(json.loads(stored.body).get("events", []))
        events: list[object] = []
        for key in location.chunk_keys:
            stored = await self.store.get(key)
            append_chunk_events(events, json.loads(stored.body))
        return events

    async def list_recordings(self) -> list[RecordingOverview]:
        """Summarise every stored session, most recently active first."""
        items = await list_all(self.store, RECORDINGS_PREFIX, self.page_size)
        uploaded: dict[str, datetime | None] = {
            item.key: item.uploaded_at for item in items
        }
        overviews = []
        for group in group_keys(list(uploaded)).values():
            times = [
                stamp
                for stamp in (uploaded[parsed.key] for parsed in group.chunks)
                if stamp is not None
            ]
            overviews.append(
                RecordingOverview(
                    recording_id=group.recording_id,
                    session_id=group.session_id,
                    chunk_count=len(group.chunks),
                    has_merged=group.has_merged,
                    first_chunk_at=min(times) if times else None,
                    last_chunk_at=max(times) if times else None,
                )
            )
        epoch = datetime.min.replace(tzinfo=UTC)
        return sorted(
            overviews,
            key=lambda overview: _as_utc(
                overview.last_chunk_at or overview.first_chunk_at or epoch
            ),
            reverse=True,
        )

    async def export_recording(self, recording_id: str) -> dict[str, object]:
        """Bundle every stored object of a recording into one document."""
        started_at = datetime.now(tz=UTC)
        prefix = recording_prefix(recording_id)
        items = await list_all(self.store, prefix, self.page_size)
        objects = []
        total_bytes = 0
        for item in items:
            stored = await self.store.get(item.key)
            total_bytes += item.size or len(stored.body)
            objects.append(
                {
                    "key": item.key,
                    "size": item.size or len(stored.body),
                    "uploadedAt": (
                        item.uploaded_at.isoformat() if item.uploaded_at else None
                    ),
                    "contentType": stored.content_type,
                    "body": stored.body.decode("utf-8", errors="replace"),
                }
            )
        logger.info("Exported %d objects for recording %s", len(objects), recording_id)
        return {
            "recordingId": recording_id,
            "startedAt": started_at.isoformat(),
            "finishedAt": datetime.now(tz=UTC).isoformat(),
            "prefix": prefix,
            "matchedObjects": len(objects),
            "totalBytes": total_bytes,
            "objects": objects,
        }


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
