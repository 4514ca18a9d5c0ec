"""Logging setup for the CLI and the invocation handlers.

With ``BACKFILL_STRUCTURED_LOGGING=true`` the root logger gets a single
``StreamHandler`` emitting one JSON object per line, which log aggregators
(CloudWatch Logs, Datadog, ELK) index without regex parsing::

    {
        "timestamp": "2026-02-19T00:00:00.123456+00:00",
        "level": "INFO",
        "logger": "observation_backfill.orchestration.summarizer",
        "message": "backfill summarize completed",
        "service": "backfill-observations",
        "summary": { ... },          // present when logged with extra={"summary": ...}
        "exc_info": "Traceback ..."  // present only on exceptions
    }

Otherwise a plain text format is used.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from typing import Any

from observation_backfill.config import Settings

SERVICE_NAME = "backfill-observations"

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Extra attributes copied into the JSON payload when present on a record.
_EXTRA_FIELDS = ("summary", "chunk_key", "run_id", "execution_id")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
        }

        for name in _EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(settings: Settings, stream: Any = None) -> None:
    """Replace the root handlers according to *settings*.

    Log output goes to stderr by default so that ``--json`` command output on
    stdout stays machine-readable.
    """
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    if settings.structured_logging:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # botocore logs every request at DEBUG.
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
