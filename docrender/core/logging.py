"""
Logging Setup

Configures process-wide logging for the service:
- production: JSON lines on stdout
- development: human-readable stdout plus JSON files (error.log, combined.log)

Pipeline code logs through RequestLogAdapter so every record carries the
request id and template name.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, MutableMapping

from .config import Settings

SERVICE_NAME = "docrender"

# Attributes present on every LogRecord; anything else came in via `extra`.
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["stack"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class RequestLogAdapter(logging.LoggerAdapter):
    """Binds request-scoped fields to every record logged through it."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        request_id = extra.get("request_id")
        if request_id:
            msg = f"[{request_id}] {msg}"
        return msg, kwargs


def configure_logging(settings: Settings) -> None:
    """
    Configure the root logger from settings.

    Safe to call more than once; existing handlers are replaced.

    Args:
        settings: Application settings (environment, log_level, log_dir)
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(settings.log_level.upper())

    stream = logging.StreamHandler(sys.stdout)
    if settings.environment == "production":
        stream.setFormatter(JsonFormatter())
        root.addHandler(stream)
        return

    stream.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(stream)

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    error_file = logging.FileHandler(log_dir / "error.log", encoding="utf-8")
    error_file.setLevel(logging.ERROR)
    error_file.setFormatter(JsonFormatter())
    root.addHandler(error_file)

    combined_file = logging.FileHandler(log_dir / "combined.log", encoding="utf-8")
    combined_file.setFormatter(JsonFormatter())
    root.addHandler(combined_file)
