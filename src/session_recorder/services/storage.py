"""Object storage abstractions."""

from typing import Protocol

from session_recorder.domain.recordings import ListPage, ObjectInfo, StoredObject


class ObjectNotFoundError(LookupError):
    """Raised when a requested object key does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}")
        self.key = key


class ObjectStore(Protocol):
    """Key to blob storage with prefix listing."""

    async def put(
        self, key: str, data: bytes, content_type: str = "application/json"
    ) -> None:
        """Write an object, replacing any existing content."""

    async def get(self, key: str) -> StoredObject:
        """Return an object or raise ObjectNotFoundError."""

    async def list_page(
        self, prefix: str, limit: int = 1000, cursor: str | None = None
    ) -> ListPage:
        """Return one page of objects whose key starts with prefix."""

    async def delete(self, key: str) -> None:
        """Delete an object if present."""


async def list_all(
    store: ObjectStore, prefix: str, page_size: int = 1000
) -> list[ObjectInfo]:
    """Drain every page of a prefix listing."""
    items: list[ObjectInfo] = []
    cursor: str | None = None
    while True:
        page = await store.list_page(prefix, limit=page_size, cursor=cursor)
        items.extend(page.items)
        if not page.has_more:
            return items
        if not page.next_cursor or page.next_cursor == cursor:
            raise RuntimeError(f"Listing for {prefix!r} stalled before completion")
        cursor = page.next_cursor

