"""Scheduler-invoked reassembly trigger protected by a shared secret."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response

from session_recorder.api.errors import server_error
from session_recorder.config import parse_bearer_token

if TYPE_CHECKING:
    from session_recorder.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _get_cron_secret(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return container.settings.cron_secret


async def require_cron_secret(
    authorization: str | None = Header(default=None),
    cron_secret: str | None = Depends(_get_cron_secret),
) -> None:
    """Ensure requests carry ``Authorization: Bearer <cron secret>``."""
    if not cron_secret:
        logger.error("CRON_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )
    if parse_bearer_token(authorization) != cron_secret:
        logger.warning("Unauthorized merge trigger attempt")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/merge-recordings", dependencies=[Depends(require_cron_secret)])
async def merge_recordings(request: Request) -> Response:
    """Merge every eligible session and report per-session outcomes."""
    container: AppContainer = request.app.state.container
    try:
        summary = await container.reassembly_service.run()
    except Exception as exc:
        logger.exception("Merge job failed")
        return server_error(container, "Merge job failed", exc)
    return JSONResponse(
        {
            "success": True,
            "timestamp": summary.finished_at.isoformat(),
            "sessionsProcessed": summary.sessions_processed,
            "results": [result.to_payload() for result in summary.results],
        }
    )
