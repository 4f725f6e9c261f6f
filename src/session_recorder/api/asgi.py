"""ASGI entrypoint for the session recorder API."""

from session_recorder.api.app import create_app
from session_recorder.containers import build_container

app = create_app(build_container())
