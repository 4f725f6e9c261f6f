"""Fire-and-forget delivery used for the last flush before teardown."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from session_recorder.domain.recordings import ChunkUpload

logger = logging.getLogger(__name__)


class BeaconSender(Protocol):
    """Interface for an unawaited send that may outlive its caller."""

    def send(self, chunk: ChunkUpload) -> bool:
        """Queue a chunk for delivery; return whether it was queued."""


@dataclass
class HttpxBeaconSender(BeaconSender):
    """Beacon implemented as detached httpx requests on the running loop.

    Each send becomes a background task bounded by ``grace_seconds``. The
    response is never inspected and failures are only logged at debug level.
    """

    endpoint_url: str
    http_client: httpx.AsyncClient
    grace_seconds: float = 2.0
    _pending: set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    @classmethod
    def create(
        cls, endpoint_url: str, grace_seconds: float = 2.0
    ) -> "HttpxBeaconSender":
        """Create a beacon sender with a managed httpx session."""
        return cls(
            endpoint_url=endpoint_url,
            http_client=httpx.AsyncClient(),
            grace_seconds=grace_seconds,
        )

    def send(self, chunk: ChunkUpload) -> bool:
        """Schedule the POST without waiting for it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping teardown flush")
            return False
        task = loop.create_task(self._post(chunk.to_payload()))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _post(self, payload: dict[str, object]) -> None:
        try:
            await self.http_client.post(
                self.endpoint_url, json=payload, timeout=self.grace_seconds
            )
        except httpx.HTTPError:
            logger.debug("Teardown flush was not delivered", exc_info=True)

    async def drain(self) -> None:
        """Give queued sends up to the grace period to finish."""
        if not self._pending:
            return
        _, still_running = await asyncio.wait(
            set(self._pending), timeout=self.grace_seconds
        )
        for task in still_running:
            task.cancel()

    async def close(self) -> None:
        """Drain queued sends and close the HTTP client."""
        await self.drain()
        await self.http_client.aclose()
