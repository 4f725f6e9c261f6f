"""Chunk ingestion and retrieval endpoints."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from session_recorder.api.errors import server_error
from session_recorder.api.models import ChunkAck
from session_recorder.domain.recordings import is_valid_identifier
from session_recorder.services.ingestion import ChunkValidationError
from session_recorder.services.retrieval import (
    InvalidKeyError,
    SessionNotFoundError,
    download_ref,
)
from session_recorder.services.storage import ObjectNotFoundError

if TYPE_CHECKING:
    from session_recorder.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recordings", tags=["recordings"])


def _query_param(request: Request, *names: str) -> str | None:
    """Return a query parameter matched case-insensitively."""
    wanted = {name.lower() for name in names}
    for key, value in request.query_params.items():
        if key.lower() in wanted and value:
            return value
    return None


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


@router.post("/chunks")
async def upload_chunk(request: Request) -> Response:
    """Store one chunk of recorded events."""
    container: AppContainer = request.app.state.container
    try:
        payload = json.loads(await request.body())
    except ValueError:
        return _bad_request("Request body must be valid JSON")
    try:
        stored = await container.ingestion_service.ingest(payload)
    except ChunkValidationError:
        raise
    except Exception as exc:
        logger.exception("Failed to upload recording chunk")
        return server_error(container, "Failed to upload recording chunk", exc)
    return JSONResponse(ChunkAck.from_stored(stored).model_dump(by_alias=True))


@router.get("")
async def list_recordings(request: Request) -> Response:
    """Return every stored session with its chunk and merge state."""
    container: AppContainer = request.app.state.container
    try:
        overviews = await container.retrieval_service.list_recordings()
    except Exception as exc:
        logger.exception("Failed to list recordings")
        return server_error(container, "Failed to list recordings", exc)
    recordings = [
        {
            "recordingId": overview.recording_id,
            "sessionId": overview.session_id,
            "chunkCount": overview.chunk_count,
            "hasMerged": overview.has_merged,
            "firstChunkAt": (
                overview.first_chunk_at.isoformat() if overview.first_chunk_at else None
            ),
            "lastChunkAt": (
                overview.last_chunk_at.isoformat() if overview.last_chunk_at else None
            ),
        }
        for overview in overviews
    ]
    return JSONResponse({"count": len(recordings), "recordings": recordings})


@router.get("/sessions")
async def list_sessions(request: Request) -> Response:
    """Return the session ids of a recording, newest first."""
    container: AppContainer = request.app.state.container
    recording_id = _query_param(request, "recordingId", "rid")
    if not recording_id:
        return _bad_request("Missing recordingId parameter")
    if not is_valid_identifier(recording_id):
        return _bad_request("Invalid recordingId parameter")
    try:
        sessions = await container.retrieval_service.list_sessions(recording_id)
    except Exception as exc:
        logger.exception(
            "Failed to list sessions", extra={"recording_id": recording_id}
        )
        return server_error(container, "Failed to fetch recording", exc)
    if not sessions:
        return JSONResponse(status_code=404, content={"error": "Recording not found"})
    return JSONResponse(
        {
            "type": "sessions",
            "recordingId": recording_id,
            "sessions": sessions,
            "count": len(sessions),
        }
    )


@router.get("/session")
async def get_session(request: Request) -> Response:
    """Return the merged artifact or the ordered chunk refs of a session."""
    container: AppContainer = request.app.state.container
    recording_id = _query_param(request, "recordingId", "rid")
    session_id = _query_param(request, "sessionId")
    if not recording_id or not session_id:
        return _bad_request("Missing recordingId or sessionId parameter")
    if not is_valid_identifier(recording_id) or not is_valid_identifier(session_id):
        return _bad_request("Invalid recordingId or sessionId parameter")
    try:
        location = await container.retrieval_service.locate_session(
            recording_id, session_id
        )
    except SessionNotFoundError:
        return JSONResponse(status_code=404, content={"error": "Session not found"})
    except Exception as exc:
        logger.exception(
            "Failed to locate session",
            extra={"recording_id": recording_id, "session_id": session_id},
        )
        return server_error(container, "Failed to fetch recording", exc)
    if location.merged_key is not None:
        return JSONResponse(
            {
                "type": "merged",
                "sessionId": session_id,
                "ref": download_ref(location.merged_key),
            }
        )
    refs = [download_ref(key) for key in location.chunk_keys]
    return JSONResponse(
        {"type": "chunks", "sessionId": session_id, "refs": refs, "count": len(refs)}
    )


@router.get("/download")
async def download(request: Request) -> Response:
    """Proxy the raw bytes of one stored object."""
    container: AppContainer = request.app.state.container
    key = _query_param(request, "key", "path")
    try:
        stored = await container.retrieval_service.download(key)
    except (InvalidKeyError, ObjectNotFoundError):
        raise
    except Exception as exc:
        logger.exception("Failed to download object", extra={"storage_key": key})
        return server_error(container, "Failed to download file", exc)
    return Response(
        content=stored.body,
        media_type=stored.content_type or "application/json",
        headers={"Cache-Control": "public, max-age=3600"},
    )
