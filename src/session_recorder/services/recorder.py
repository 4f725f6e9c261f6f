"""Client-side event buffer and upload scheduler for one recording session."""

import asyncio
import logging
import secrets
import string
import time
from collections.abc import Coroutine
from enum import Enum
from types import TracebackType
from typing import Any

from session_recorder.adapters.beacon import BeaconSender
from session_recorder.adapters.chunk_upload_client import ChunkUploader
from session_recorder.config import RecorderSettings
from session_recorder.domain.recordings import ChunkUpload

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def new_session_id(now: float | None = None) -> str:
    """Return a timestamp-prefixed session id, e.g. ``1700000000000-k3x9q2a``."""
    millis = int((time.time() if now is None else now) * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(7))
    return f"{millis}-{suffix}"


class UploadStatus(str, Enum):
    """Status of the most recent upload attempt."""

    IDLE = "idle"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class SessionRecorder:
    """Buffers captured events and uploads them as ordered chunks.

    One instance owns one session. Events are uploaded after a quiet period
    (debounce), on a fixed interval, and when the unacknowledged tail grows
    past ``max_batch_events``. Only one upload runs at a time; a failed
    upload leaves the tail and chunk index untouched so the next trigger
    resends the same range.

    Events appended before ``start()`` are buffered and scheduled once the
    timers are armed; events appended after ``stop()`` are dropped.

    Acknowledged events are evicted from memory; ``uploaded_index`` counts
    them so that ``event_count`` still reflects the whole session.
    """

    def __init__(
        self,
        recording_id: str,
        uploader: ChunkUploader,
        beacon: BeaconSender,
        settings: RecorderSettings | None = None,
        session_id: str | None = None,
    ) -> None:
        self.recording_id = recording_id
        self.session_id = session_id or new_session_id()
        self.uploader = uploader
        self.beacon = beacon
        self.settings = settings or RecorderSettings()

        self.uploaded_index = 0
        self.chunk_index = 0
        self.status = UploadStatus.IDLE
        self._pending: list[object] = []
        self._uploading = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._debounce_task: asyncio.Task | None = None
        self._periodic_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._running = False
        self._stopped = False

    @property
    def event_count(self) -> int:
        return self.uploaded_index + len(self._pending)

    @property
    def uploaded_count(self) -> int:
        return self.uploaded_index

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the upload timers. Must run inside an event loop."""
        if self._stopped:
            raise RuntimeError(f"Recorder for session {self.session_id} was stopped")
        if self._running:
            logger.warning("Recorder for session %s already started", self.session_id)
            return
        self._running = True
        self._periodic_task = asyncio.get_running_loop().create_task(
            self._run_periodic()
        )
        if self._pending:
            self._reset_debounce()
        logger.info(
            "Recording started",
            extra={"recording_id": self.recording_id, "session_id": self.session_id},
        )

    def append(self, event: object) -> None:
        """Buffer one event and (re)arm the debounce timer."""
        if self._stopped:
            logger.warning("Dropping event for stopped session %s", self.session_id)
            return
        self._pending.append(event)
        if not self._running:
            return
        self._reset_debounce()
        if len(self._pending) >= self.settings.max_batch_events and not self._uploading:
            self._spawn(self.upload_attempt())

    async def upload_attempt(self, force: bool = False) -> bool:
        """Upload the unacknowledged tail as the next chunk.

        Returns true when a chunk was acknowledged. When another upload is
        in flight the call is a no-op, unless ``force`` is set, in which
        case it waits for that upload and then sends whatever remains.
        """
        while self._uploading:
            if not force:
                logger.debug("Upload already in progress, skipping")
                return False
            await self._idle.wait()
        if not self._pending:
            return False

        self._uploading = True
        self._idle.clear()
        self.status = UploadStatus.UPLOADING
        batch = list(self._pending)
        chunk = ChunkUpload(
            recording_id=self.recording_id,
            session_id=self.session_id,
            chunk_index=self.chunk_index,
            events=batch,
            event_offset=self.uploaded_index,
        )
        try:
            await self.uploader.upload_chunk(chunk)
        except Exception:
            self.status = UploadStatus.ERROR
            logger.warning(
                "Chunk upload failed, will retry",
                extra={
                    "session_id": self.session_id,
                    "chunk_index": chunk.chunk_index,
                },
                exc_info=True,
            )
            return False
        finally:
            self._uploading = False
            self._idle.set()

        del self._pending[: len(batch)]
        self.uploaded_index += len(batch)
        self.chunk_index += 1
        self.status = UploadStatus.SUCCESS
        logger.debug(
            "Uploaded chunk %d for session %s: %d events",
            chunk.chunk_index,
            self.session_id,
            len(batch),
        )
        return True

    def teardown_flush(self) -> bool:
        """Hand the unacknowledged tail to the beacon without waiting.

        Delivery is best effort: nothing is retried and local state is not
        advanced, since no acknowledgement is ever observed.
        """
        if not self._pending:
            return False
        chunk = ChunkUpload(
            recording_id=self.recording_id,
            session_id=self.session_id,
            chunk_index=self.chunk_index,
            events=list(self._pending),
            event_offset=self.uploaded_index,
        )
        try:
            return self.beacon.send(chunk)
        except Exception:
            logger.debug("Teardown flush could not be queued", exc_info=True)
            return False

    async def stop(self) -> bool:
        """Cancel timers and in-flight work, then upload the remaining tail."""
        await self._shutdown()
        uploaded = await self.upload_attempt(force=True)
        logger.info(
            "Recording stopped",
            extra={
                "session_id": self.session_id,
                "uploaded_events": self.uploaded_index,
                "pending_events": len(self._pending),
            },
        )
        return uploaded

    async def __aenter__(self) -> "SessionRecorder":
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None:
            await self.stop()
            return
        # Abnormal exit: hand the tail to the beacon only.
        await self._shutdown()
        self.teardown_flush()

    async def _shutdown(self) -> None:
        self._running = False
        self._stopped = True
        tasks = [
            task
            for task in (self._debounce_task, self._periodic_task, *self._background)
            if task is not None
        ]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._debounce_task = None
        self._periodic_task = None

    def _reset_debounce(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(
            self._debounce()
        )

    async def _debounce(self) -> None:
        await asyncio.sleep(self.settings.debounce_seconds)
        if self._debounce_task is asyncio.current_task():
            self._debounce_task = None
        self._spawn(self.upload_attempt())

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self.settings.upload_interval_seconds)
            await self.upload_attempt()

    def _spawn(self, coro: Coroutine[Any, Any, object]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
