"""Record application log calls as spans.

A :class:`LogSpanHandler` attached to a logger turns every record it
receives into a zero-depth ``log.<level>`` span of kind ``log``. The span
is opened on the emitting thread, so it becomes a child of whatever call
is open there and carries that call's name as its caller.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from .logging_config import ROOT_LOGGER
from .models import KIND_LOG

if TYPE_CHECKING:
    from .tracker import CallStackTracker


def _is_internal(record: logging.LogRecord) -> bool:
    return record.name == ROOT_LOGGER or record.name.startswith(ROOT_LOGGER + ".")


class LogSpanHandler(logging.Handler):
    def __init__(self, tracker: "CallStackTracker", level: int = logging.NOTSET):
        super().__init__(level)
        self.tracker = tracker
        self._local = threading.local()

    def emit(self, record: logging.LogRecord) -> None:
        # our own diagnostics, and records raised while we are recording one
        if _is_internal(record) or getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            token = self.tracker.enter(
                f"log.{record.levelname.lower()}",
                f"{record.pathname}:{record.lineno}",
                (record.getMessage(),),
                kind=KIND_LOG,
            )
            self.tracker.exit(token)
        except Exception:
            self.handleError(record)
        finally:
            self._local.busy = False
