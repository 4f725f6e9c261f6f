"""In-process periodic trigger for the reassembly job."""

import asyncio
import logging

from session_recorder.services.reassembly import ReassemblyService

logger = logging.getLogger(__name__)


class MergeScheduler:
    """Runs the reassembly job on a fixed interval until stopped."""

    def __init__(
        self, reassembly_service: ReassemblyService, interval_seconds: float
    ) -> None:
        self.reassembly_service = reassembly_service
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop."""
        if self.is_running:
            logger.warning("MergeScheduler is already running")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "MergeScheduler started, merging every %.0f seconds",
            self.interval_seconds,
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the current run to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=10.0)
        except asyncio.TimeoutError:
            logger.warning("MergeScheduler did not stop gracefully, cancelling")
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("MergeScheduler stopped")

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
            except asyncio.TimeoutError:
                pass
            if self._stop_event.is_set():
                return
            try:
                await self.reassembly_service.run()
            except Exception:
                logger.exception("Scheduled merge run failed")
