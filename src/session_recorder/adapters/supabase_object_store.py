"""Supabase Storage-backed object store."""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime

from storage3.exceptions import StorageApiError
from supabase import Client

from session_recorder.domain.recordings import ListPage, ObjectInfo, StoredObject
from session_recorder.services.storage import ObjectNotFoundError, ObjectStore


@dataclass
class SupabaseObjectStore(ObjectStore):
    """Object store on a Supabase Storage bucket.

    Supabase lists a single folder level per call with offset pagination.
    ``list_page`` flattens the tree under a prefix breadth-first; the cursor
    is a JSON document holding the folders still to visit and the offset
    reached in the first of them.
    """

    client: Client
    bucket: str

    async def put(
        self, key: str, data: bytes, content_type: str = "application/json"
    ) -> None:
        """Upload an object, overwriting existing content."""
        await asyncio.to_thread(
            self.client.storage.from_(self.bucket).upload,
            key,
            data,
            {"content-type": content_type, "upsert": "true"},
        )

    async def get(self, key: str) -> StoredObject:
        """Download an object body."""
        try:
            body = await asyncio.to_thread(
                self.client.storage.from_(self.bucket).download, key
            )
        except StorageApiError as exc:
            if _is_not_found(exc):
                raise ObjectNotFoundError(key) from exc
            raise
        return StoredObject(key=key, body=body, content_type="application/json")

    async def list_page(
        self, prefix: str, limit: int = 1000, cursor: str | None = None
    ) -> ListPage:
        """Return one page of objects under a prefix."""
        return await asyncio.to_thread(self._list_page_sync, prefix, limit, cursor)

    async def delete(self, key: str) -> None:
        """Remove an object."""
        await asyncio.to_thread(self.client.storage.from_(self.bucket).remove, [key])

    def _list_page_sync(
        self, prefix: str, limit: int, cursor: str | None
    ) -> ListPage:
        folders, offset = _decode_cursor(cursor, prefix)
        bucket = self.client.storage.from_(self.bucket)
        items: list[ObjectInfo] = []
        while folders and len(items) < limit:
            folder = folders[0]
            page_size = limit - len(items)
            entries = bucket.list(
                folder,
                {
                    "limit": page_size,
                    "offset": offset,
                    "sortBy": {"column": "name", "order": "asc"},
                },
            )
            for entry in entries:
                path = f"{folder}/{entry['name']}" if folder else entry["name"]
                if entry.get("id") is None:
                    if f"{path}/".startswith(prefix):
                        folders.append(path)
                elif path.startswith(prefix):
                    items.append(_object_info(path, entry))
            if len(entries) < page_size:
                folders.pop(0)
                offset = 0
            else:
                offset += len(entries)
        if not folders:
            return ListPage(items=items)
        return ListPage(
            items=items,
            next_cursor=json.dumps({"folders": folders, "offset": offset}),
            has_more=True,
        )


def _decode_cursor(cursor: str | None, prefix: str) -> tuple[list[str], int]:
    if cursor is None:
        root, _, _ = prefix.rpartition("/")
        return [root], 0
    state = json.loads(cursor)
    return list(state["folders"]), int(state["offset"])


def _object_info(path: str, entry: dict) -> ObjectInfo:
    metadata = entry.get("metadata") or {}
    stamp = entry.get("updated_at") or entry.get("created_at")
    return ObjectInfo(
        key=path,
        size=int(metadata.get("size") or 0),
        uploaded_at=datetime.fromisoformat(stamp.replace("Z", "+00:00"))
        if stamp
        else None,
    )


def _is_not_found(exc: StorageApiError) -> bool:
    status = str(getattr(exc, "status", ""))
    return status == "404" or "not found" in str(exc).lower()
