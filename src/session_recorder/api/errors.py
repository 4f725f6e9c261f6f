"""Error responses shared by the API routers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from session_recorder.containers import AppContainer


def server_error(
    container: AppContainer, message: str, exc: Exception
) -> JSONResponse:
    """Return a 500 response, with exception detail only in local environments."""
    content: dict[str, object] = {"error": message}
    if container.settings.environment == "local":
        content["details"] = f"{type(exc).__name__}: {exc}"
    return JSONResponse(status_code=500, content=content)
