"""JSON diagnostics for callprobe itself.

Everything callprobe logs goes through the ``callprobe`` logger tree as one
JSON object per line on stderr (stdout belongs to the CLI's output). When
a tracker is handed to :func:`setup_logging`, each record is stamped with
the trace and span id of the call open on the emitting thread, so a
diagnostic can be matched to the span it concerns.
"""

import json
import logging
import os
import sys
from datetime import datetime, UTC
from typing import Any, Dict, Optional

ROOT_LOGGER = "callprobe"
LOG_FILE_NAME = "callprobe.log"


class TraceContextFilter(logging.Filter):
    def __init__(self, tracker=None):
        super().__init__()
        self.tracker = tracker

    def filter(self, record: logging.LogRecord) -> bool:
        if self.tracker is not None:
            chain = self.tracker.current_chain()
            if chain:
                record.trace_id = chain[-1].trace_id
                record.span_id = chain[-1].span_id
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
            "src": f"{record.module}:{record.lineno}",
        }
        for key in ("trace_id", "span_id"):
            value = getattr(record, key, None)
            if value:
                entry[key] = value
        fields = getattr(record, "fields", None)
        if fields:
            entry.update(fields)
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None, tracker=None) -> logging.Logger:
    """Route the ``callprobe`` logger tree to stderr (and ``log_dir``) as JSON.

    Safe to call repeatedly; handlers from a previous call are replaced.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level.upper())

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(os.path.join(log_dir, LOG_FILE_NAME), encoding="utf-8"))
        except OSError as e:
            sys.stderr.write(f"callprobe: file logging disabled: {e}\n")

    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    context = TraceContextFilter(tracker)
    formatter = JSONFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context)
        root.addHandler(handler)

    # uvicorn access lines would bypass the JSON format
    logging.getLogger("uvicorn.access").disabled = True
    return root


def get_logger(name: str) -> logging.Logger:
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class StructuredLogger:
    """``logger.info("event.name", key=value)`` over a ``callprobe.*`` logger.

    Fields are only built into a record when the level is enabled, which
    keeps disabled debug calls on the tracing path cheap.
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)

    def _log(self, level: int, event: str, fields: Dict[str, Any]) -> None:
        if self.logger.isEnabledFor(level):
            # stacklevel 3 points ``src`` at the code calling debug()/info()/...
            self.logger.log(level, event, extra={"fields": fields}, stacklevel=3)

    def debug(self, event: str, **fields):
        self._log(logging.DEBUG, event, fields)

    def info(self, event: str, **fields):
        self._log(logging.INFO, event, fields)

    def warning(self, event: str, **fields):
        self._log(logging.WARNING, event, fields)

    def error(self, event: str, **fields):
        self._log(logging.ERROR, event, fields)

    def critical(self, event: str, **fields):
        self._log(logging.CRITICAL, event, fields)
