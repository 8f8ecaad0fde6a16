"""Logging setup for the CLI and the query server.

Records go to stderr, one JSON object per line by default. Each line carries
the trace id of the request (or indexing run) that produced it plus any
``extra=`` fields passed at the call site.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import Any

import orjson

from docsense.observability.context import get_trace_context


# Attributes every LogRecord carries; anything else came in through ``extra=``.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Third-party loggers that flood DEBUG output during indexing and serving.
_NOISY_LOGGERS = ("pdfminer", "pdfplumber", "PIL")


def _to_json(value: Any) -> Any:
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


class JsonFormatter(logging.Formatter):
    """Render records as single-line JSON with trace correlation."""

    REDACT_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})
    MAX_MESSAGE_LEN = 2000
    MAX_FIELD_LEN = 500

    def format(self, record: logging.LogRecord) -> str:
        trace = get_trace_context()
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": record.name.rsplit(".", 1)[-1],
            "message": self._clip(record.getMessage(), self.MAX_MESSAGE_LEN),
            "trace_id": trace.get("trace_id", ""),
            "span_id": trace.get("span_id", ""),
        }
        if endpoint := trace.get("endpoint"):
            entry["endpoint"] = endpoint
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if key.lower() in self.REDACT_KEYS:
                entry[key] = "[REDACTED]"
            elif isinstance(value, str):
                entry[key] = self._clip(value, self.MAX_FIELD_LEN)
            else:
                entry[key] = value

        return orjson.dumps(entry, default=_to_json).decode("utf-8")

    @staticmethod
    def _clip(text: str, limit: int) -> str:
        # File names with undecodable bytes carry lone surrogates orjson rejects.
        text = text.encode("utf-8", "backslashreplace").decode("utf-8")
        return text if len(text) <= limit else text[:limit] + "..."


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
    access_log: bool = False,
) -> None:
    """Install a single stderr handler on the root logger.

    Calling it again replaces the previous handler, so the CLI can set up
    logging once per invocation.

    Args:
        level: Root level name, case-insensitive (``debug``, ``info``, ...).
        json_output: JSON lines when true, a plain text format otherwise.
        logger_levels: Extra per-logger levels, e.g. ``{"docsense.search": "debug"}``.
        access_log: Keep uvicorn's per-request access log at the root level.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(_PLAIN_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.getLevelNamesMapping().get(level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not access_log:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    for name, name_level in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(name_level.upper())
