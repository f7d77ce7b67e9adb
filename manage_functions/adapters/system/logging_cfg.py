# /manage_functions/adapters/system/logging_cfg.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class JSONLinesHandler(logging.StreamHandler):
    """One JSON object per record; ``extra={"extra": {...}}`` adds fields."""

    def payload(self, record: logging.LogRecord) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        fields = getattr(record, "extra", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc"] = logging.Formatter().formatException(record.exc_info)
        return payload

    def emit(self, record: logging.LogRecord) -> None:
        self.stream.write(json.dumps(self.payload(record), default=str) + "\n")
        self.flush()


def resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logger(level: int | str = logging.INFO) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(resolve_level(level))
    root.addHandler(JSONLinesHandler(stream=sys.stdout))
