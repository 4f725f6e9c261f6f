"""Domain models for the chunk reassembly job."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class MergeStatus(str, Enum):
    """Outcome of merging one session group."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


ALREADY_MERGED = "already_merged"
INSUFFICIENT_CHUNKS = "insufficient_chunks"
NO_EVENTS = "no_events"


@dataclass(frozen=True)
class MergeResult:
    """Per-group outcome reported by the reassembly job."""

    recording_id: str
    session_id: str
    status: MergeStatus
    reason: str | None = None
    chunk_count: int | None = None
    total_events: int | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "recordingId": self.recording_id,
            "sessionId": self.session_id,
            "status": self.status.value,
        }
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.chunk_count is not None:
            payload["chunkCount"] = self.chunk_count
        if self.total_events is not None:
            payload["totalEvents"] = self.total_events
        return payload


@dataclass
class MergeSummary:
    """Summary of one reassembly run."""

    finished_at: datetime
    results: list[MergeResult] = field(default_factory=list)

    @property
    def sessions_processed(self) -> int:
        return len(self.results)

    def count(self, status: MergeStatus) -> int:
        return sum(1 for result in self.results if result.status is status)
