"""Line-delimited JSON span log: append on finalize, read back offline."""

from __future__ import annotations

import json
import threading
from pathlib import Path

from .logging_config import StructuredLogger
from .models import Span

logger = StructuredLogger(__name__)

DEFAULT_SPAN_LOG = Path(".callprobe") / "span.log"


class SpanLogWriter:
    """Appends each span as one JSON line. I/O failures are logged, never raised."""

    def __init__(self, path: str | Path = DEFAULT_SPAN_LOG):
        self.path = Path(path)
        self._lock = threading.Lock()
        self.failures = 0

    def __call__(self, span: Span) -> None:
        try:
            line = json.dumps(span.to_dict(), ensure_ascii=False) + "\n"
            with self._lock:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as fp:
                    fp.write(line)
        except (OSError, ValueError) as exc:
            # ValueError covers text that cannot be encoded, such as lone surrogates
            self.failures += 1
            logger.debug("span_log.write_failed", path=str(self.path), error=str(exc))


def load_span_log(path: str | Path) -> list[Span]:
    """Read spans back from a span log. Malformed lines are skipped."""
    path = Path(path)
    spans: list[Span] = []
    skipped = 0
    # decoded per line so a torn or corrupt line cannot abort the whole read
    with open(path, "rb") as fp:
        for raw in fp:
            raw = raw.strip()
            if not raw:
                continue
            try:
                data = json.loads(raw.decode("utf-8"))
                spans.append(Span.from_dict(data))
            except (ValueError, KeyError, TypeError):
                skipped += 1
    if skipped:
        logger.warning("span_log.lines_skipped", path=str(path), skipped=skipped)
    return spans
