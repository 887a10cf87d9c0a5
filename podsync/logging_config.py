"""Log handlers for applications embedding podsync.

Feed and discovery records carry the pod, url, status or channels they
concern as record attributes (passed through ``extra``). The formatters
here render that context next to the message, so one pod's failures
can be picked out of an interleaved fan-in log.
"""

import json
import logging
from datetime import datetime, timezone
from typing import IO, Any

from .config import LoggingConfig

CONTEXT_FIELDS = ("pod", "url", "status", "channels")

LEVELS = {
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Get the feed context attached to a log record."""
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with feed context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        data.update(record_context(record))

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text formatter that appends feed context as key=value pairs."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        message = super().formatMessage(record)
        context = record_context(record)
        if context:
            pairs = " ".join(f"{name}={value}" for name, value in context.items())
            message = f"{message} [{pairs}]"
        return message


def configure_logging(
    config: LoggingConfig | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Attach a handler to the "podsync" logger.

    Only podsync's own logger is touched, so the embedding application's
    root configuration stays as it is.

    Args:
        config: Level and output format; defaults to info-level text.
        stream: Where to write; stderr if None.

    Returns:
        The handler added, for the caller to remove when done.
    """
    config = config or LoggingConfig()

    handler = logging.StreamHandler(stream)
    if config.json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            ContextFormatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logger = logging.getLogger("podsync")
    logger.setLevel(LEVELS.get(config.level, logging.INFO))
    logger.addHandler(handler)
    return handler
