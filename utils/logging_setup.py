"""Process-wide logging configuration.

Every module logs through ``logging.getLogger(__name__)`` and tags records with
the component they come from via ``extra={"source": ...}``. Records without a
tag are rendered under ``system``.
"""

import collections
import logging
import threading

import config

LOG_FORMAT = "[%(source)s] [%(asctime)s] %(levelname)s: %(message)s"
DEFAULT_SOURCE_TAG = "system"


class SourceTagFilter(logging.Filter):
    """Guarantee every record carries a ``source`` attribute."""

    def filter(self, record):
        if not getattr(record, "source", None):
            record.source = DEFAULT_SOURCE_TAG
        return True


class RecentLogHandler(logging.Handler):
    """Keep the most recent log entries in memory for the status endpoint."""

    def __init__(self, capacity=500):
        super().__init__()
        self._entries = collections.deque(maxlen=capacity)
        self._entries_lock = threading.Lock()

    def emit(self, record):
        try:
            entry = {
                "timestamp": record.created,
                "level": record.levelname,
                "source": getattr(record, "source", DEFAULT_SOURCE_TAG),
                "message": record.getMessage(),
            }
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(entry)

    def entries(self, limit=None):
        with self._entries_lock:
            items = list(self._entries)
        if limit is not None:
            items = items[-limit:]
        return items


RECENT_LOGS = RecentLogHandler(capacity=config.LOG_BUFFER_SIZE)

_configured = False


def configure_logging(level=None):
    """Install the console handler and the recent-log ring on the root logger."""
    global _configured
    root = logging.getLogger()
    root.setLevel(level or config.LOG_LEVEL)
    if _configured:
        return root

    tag_filter = SourceTagFilter()
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    console.addFilter(tag_filter)
    RECENT_LOGS.addFilter(tag_filter)

    root.addHandler(console)
    root.addHandler(RECENT_LOGS)
    _configured = True
    return root
