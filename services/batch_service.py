"""Bounded-concurrency fetch, extract and persist of detail pages."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import config
from crawlers.errors import ParseError

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "parsing"


@dataclass
class ErrorLedger:
    """URLs that failed for good during one run (fetch exhausted or unparseable)."""

    count: int = 0
    urls: List[str] = field(default_factory=list)

    def record(self, url: str):
        self.count += 1
        self.urls.append(url)

    def merge(self, other: "ErrorLedger") -> "ErrorLedger":
        self.count += other.count
        self.urls.extend(other.urls)
        return self

    def __bool__(self):
        return self.count > 0

    def to_dict(self):
        return {"errs": self.count, "err_list": list(self.urls)}


def chunked(items, size):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _extract(crawler, outcome, hinted_title):
    try:
        return crawler.extract_detail(outcome.body, outcome.url, hinted_title)
    except ParseError:
        raise
    except Exception as exc:
        raise ParseError(outcome.url, exc) from exc


async def process_batch(
    crawler,
    urls: List[str],
    store,
    fetcher,
    title_hints: Optional[Dict[str, str]] = None,
    *,
    batch_size: Optional[int] = None,
    pause_seconds: Optional[float] = None,
    sleep=asyncio.sleep,
) -> ErrorLedger:
    """
    Fetch, extract and persist every URL, ``batch_size`` requests at a time.

    Each chunk is fetched concurrently and fully awaited before the next one
    starts, with a fixed pause in between. A failure for one URL is recorded in
    the returned ledger and logged; it never stops its siblings.
    """
    ledger = ErrorLedger()
    title_hints = title_hints or {}
    size = max(1, batch_size or config.CRAWLER_BATCH_SIZE)
    pause = config.CRAWLER_BATCH_PAUSE_SECONDS if pause_seconds is None else pause_seconds
    saved = 0

    chunks = list(chunked(list(urls), size))
    for index, chunk in enumerate(chunks):
        outcomes = await asyncio.gather(
            *(fetcher.fetch_outcome(url, headers=crawler.request_headers(url)) for url in chunk)
        )

        for outcome in outcomes:
            if not outcome.ok:
                ledger.record(outcome.url)
                LOGGER.error(
                    "Error fetching URL: %s. Reason: %s",
                    outcome.url,
                    outcome.error,
                    extra={"source": LOG_SOURCE},
                )
                continue

            try:
                record = _extract(crawler, outcome, title_hints.get(outcome.url))
            except ParseError as exc:
                ledger.record(outcome.url)
                LOGGER.error("Error parsing %s: %s", outcome.url, exc.cause, extra={"source": LOG_SOURCE})
                continue

            try:
                store.upsert_title(record)
            except Exception:
                LOGGER.exception("Error saving %s (%s)", record.title, outcome.url, extra={"source": LOG_SOURCE})
                continue
            saved += 1

        if index < len(chunks) - 1 and pause > 0:
            await sleep(pause)

    LOGGER.info(
        "Processed %d %s titles (%d failed)",
        saved,
        crawler.DISPLAY_NAME or crawler.source.value,
        ledger.count,
        extra={"source": LOG_SOURCE},
    )
    return ledger
