import logging

from utils.logging_setup import LOG_FORMAT, RecentLogHandler, SourceTagFilter


def _logger(name, handler):
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    logger.handlers = [handler]
    return logger


def test_recent_log_ring_keeps_newest_entries():
    handler = RecentLogHandler(capacity=3)
    logger = _logger("tests.ring", handler)

    for n in range(5):
        logger.info("message %d", n, extra={"source": "parsing"})

    entries = handler.entries()
    assert [entry["message"] for entry in entries] == ["message 2", "message 3", "message 4"]
    assert entries[0]["source"] == "parsing"
    assert [entry["message"] for entry in handler.entries(limit=1)] == ["message 4"]


def test_untagged_records_render_as_system():
    handler = RecentLogHandler(capacity=5)
    handler.addFilter(SourceTagFilter())
    logger = _logger("tests.untagged", handler)

    logger.warning("no tag")

    assert handler.entries()[0]["source"] == "system"


def test_format_leads_with_source_tag():
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "Error fetching URL", None, None)
    record.source = "fetcher"

    line = logging.Formatter(LOG_FORMAT).format(record)

    assert line.startswith("[fetcher] [")
    assert line.endswith("ERROR: Error fetching URL")
