import json
import logging
import os
import sys
import time
from typing import Any, Dict, Optional, TextIO

# Structured fields callers may attach via `extra=`.
_EXTRA_FIELDS = ("iface", "msg_type", "action", "ok", "path")

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in _EXTRA_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, separators=(",", ":"))


def setup_logging(
    level: Optional[str] = None,
    *,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure the root logger once at daemon start.

    SYSUTILD_LOG_LEVEL picks the level (default INFO). SYSUTILD_LOG_FORMAT=plain
    switches to human-readable lines for interactive debugging; JSON otherwise.
    """
    lvl = (level or os.environ.get("SYSUTILD_LOG_LEVEL") or "INFO").upper()
    style = (fmt or os.environ.get("SYSUTILD_LOG_FORMAT") or "json").strip().lower()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, lvl, logging.INFO))

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    if style == "plain":
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
