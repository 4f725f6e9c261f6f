"""Admin API endpoints with simple token auth."""

from __future__ import annotations

import json
import re
import time
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import Response

from session_recorder.domain.recordings import is_valid_identifier
from session_recorder.services.retrieval import SessionNotFoundError

if TYPE_CHECKING:
    from session_recorder.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def _require_identifier(value: str, name: str) -> None:
    if not is_valid_identifier(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {name}"
        )


def sanitize_filename_segment(value: str) -> str:
    """Make a value safe to embed in a download filename."""
    return _UNSAFE_FILENAME_CHARS.sub("_", value)[:120] or "rid"


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get(
    "/recordings/{recording_id}/sessions/{session_id}/events",
    dependencies=[Depends(require_admin)],
)
async def session_events(
    recording_id: str, session_id: str, request: Request
) -> dict[str, object]:
    """Return the reconstructed, ordered event log of a session."""
    _require_identifier(recording_id, "recordingId")
    _require_identifier(session_id, "sessionId")
    container: AppContainer = request.app.state.container
    try:
        events = await container.retrieval_service.load_session_events(
            recording_id, session_id
        )
    except SessionNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session chunks do not form a contiguous event log",
        ) from exc
    return {
        "recordingId": recording_id,
        "sessionId": session_id,
        "totalEvents": len(events),
        "events": events,
    }


@router.get(
    "/recordings/{recording_id}/export", dependencies=[Depends(require_admin)]
)
async def export_recording(recording_id: str, request: Request) -> Response:
    """Download every stored object of a recording as one JSON bundle."""
    _require_identifier(recording_id, "recordingId")
    container: AppContainer = request.app.state.container
    bundle = await container.retrieval_service.export_recording(recording_id)
    filename = (
        f"rid-{sanitize_filename_segment(recording_id)}"
        f"-bundle-{int(time.time() * 1000)}.json"
    )
    return Response(
        content=json.dumps(bundle, indent=2),
        media_type="application/json; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-store",
        },
    )
