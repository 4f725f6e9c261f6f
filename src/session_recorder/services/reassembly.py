"""Periodic job merging session chunks into a single artifact."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from session_recorder.domain.reassembly import (
    ALREADY_MERGED,
    INSUFFICIENT_CHUNKS,
    NO_EVENTS,
    MergeResult,
    MergeStatus,
    MergeSummary,
)
from session_recorder.domain.recordings import (
    RECORDINGS_PREFIX,
    SessionGroup,
    append_chunk_events,
    group_keys,
    merged_key,
)
from session_recorder.services.storage import ObjectStore, list_all

logger = logging.getLogger(__name__)


@dataclass
class ReassemblyService:
    """Scans pending chunk groups and commits merged artifacts."""

    store: ObjectStore
    min_chunks: int = 2
    page_size: int = 1000
    delete_chunks_after_merge: bool = False

    async def run(self) -> MergeSummary:
        """Merge every eligible session group and report per-group outcomes."""
        logger.info("Starting recording merge job")
        listing = await list_all(self.store, RECORDINGS_PREFIX, self.page_size)
        # Groups holding only a merged artifact are not reported.
        groups = [
            group
            for group in group_keys([item.key for item in listing]).values()
            if group.chunks
        ]
        logger.info("Found %d sessions to process", len(groups))

        summary = MergeSummary(finished_at=datetime.now(tz=UTC))
        for group in groups:
            summary.results.append(await self._process_group(group))
        summary.finished_at = datetime.now(tz=UTC)
        logger.info(
            "Merge job completed: %d merged, %d skipped, %d failed",
            summary.count(MergeStatus.SUCCESS),
            summary.count(MergeStatus.SKIPPED),
            summary.count(MergeStatus.FAILED),
        )
        return summary

    async def _process_group(self, group: SessionGroup) -> MergeResult:
        label = f"{group.recording_id}/{group.session_id}"
        if group.has_merged:
            logger.info("%s: already merged, skipping", label)
            return _result(group, MergeStatus.SKIPPED, ALREADY_MERGED)
        if len(group.chunks) < self.min_chunks:
            logger.info("%s: only %d chunk(s), skipping", label, len(group.chunks))
            return _result(
                group,
                MergeStatus.SKIPPED,
                INSUFFICIENT_CHUNKS,
                chunk_count=len(group.chunks),
            )
        try:
            return await self._merge_group(group)
        except Exception as exc:
            logger.exception("%s: merge failed", label)
            return _result(group, MergeStatus.FAILED, f"{type(exc).__name__}: {exc}")

    async def _merge_group(self, group: SessionGroup) -> MergeResult:
        ordered = group.ordered_chunks()
        events: list[object] = []
        for parsed in ordered:
            stored = await self.store.get(parsed.key)
            document = json.loads(stored.body)
            append_chunk_events(events, document)

        if not events:
            return _result(
                group, MergeStatus.FAILED, NO_EVENTS, chunk_count=len(ordered)
            )

        artifact = {
            "recordingId": group.recording_id,
            "sessionId": group.session_id,
            "events": events,
            "totalEvents": len(events),
            "chunkCount": len(ordered),
            "mergedAt": datetime.now(tz=UTC).isoformat(),
        }
        await self.store.put(
            merged_key(group.recording_id, group.session_id),
            json.dumps(artifact).encode("utf-8"),
        )
        logger.info(
            "%s/%s: merged %d events from %d chunks",
            group.recording_id,
            group.session_id,
            len(events),
            len(ordered),
        )
        if self.delete_chunks_after_merge:
            for parsed in ordered:
                await self.store.delete(parsed.key)
        return _result(
            group,
            MergeStatus.SUCCESS,
            chunk_count=len(ordered),
            total_events=len(events),
        )


def _result(
    group: SessionGroup,
    status: MergeStatus,
    reason: str | None = None,
    chunk_count: int | None = None,
    total_events: int | None = None,
) -> MergeResult:
    return MergeResult(
        recording_id=group.recording_id,
        session_id=group.session_id,
        status=status,
        reason=reason,
        chunk_count=chunk_count,
        total_events=total_events,
    )
