"""Logging configuration helpers."""

import logging

_CONTEXT_FIELDS = (
    "recording_id",
    "session_id",
    "chunk_index",
    "storage_key",
    "uploaded_events",
    "pending_events",
)


class ContextFormatter(logging.Formatter):
    """Formatter that appends recording context passed through ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{name}={getattr(record, name)}"
            for name in _CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if not context:
            return message
        return f"{message} [{' '.join(context)}]"


def configure_logging(level: int = logging.INFO) -> None:
    """Configure the session_recorder logger with a single stream handler."""
    logger = logging.getLogger("session_recorder")
    logger.setLevel(level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
