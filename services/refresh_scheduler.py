"""
The two recurring refresh cycles.

Slow cycle (hourly): re-crawl the newest listing pages of every source, then
rebuild all caches. Fast cycle (every 10 minutes): re-crawl the same pages of
the high-churn source only and rebuild just its cache. Each tick is supervised:
any error is logged as a ScheduledCycleError and the next tick still fires.
"""

import logging
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

import config
from crawlers.fetcher import Fetcher
from crawlers.records import Source
from crawlers.registry import all_crawlers
from .batch_service import ErrorLedger
from .crawl_service import refresh_listing_pages

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "cache"

SLOW_JOB_ID = "slow_refresh"
FAST_JOB_ID = "fast_refresh"


class ScheduledCycleError(Exception):
    """Anything that escaped a scheduled tick."""

    def __init__(self, cycle, cause):
        self.cycle = cycle
        self.cause = cause
        super().__init__(f"error in {cycle} routine: {cause}")


class RefreshScheduler:
    def __init__(
        self,
        cache_manager,
        stores: Dict[Source, object],
        *,
        crawlers=None,
        fetcher_factory: Callable[[], Fetcher] = Fetcher,
        fast_source=None,
        pages: Optional[List[int]] = None,
        slow_interval_seconds: Optional[int] = None,
        fast_interval_seconds: Optional[int] = None,
        event_loop=None,
    ):
        self.cache_manager = cache_manager
        self.stores = stores
        self.crawlers = crawlers if crawlers is not None else all_crawlers()
        self.fetcher_factory = fetcher_factory
        self.fast_source = Source.parse(fast_source or config.FAST_REFRESH_SOURCE) or Source.MANGA
        self.pages = list(pages or config.REFRESH_LISTING_PAGES)
        self.slow_interval_seconds = slow_interval_seconds or config.SLOW_REFRESH_INTERVAL_SECONDS
        self.fast_interval_seconds = fast_interval_seconds or config.FAST_REFRESH_INTERVAL_SECONDS
        self.scheduler = AsyncIOScheduler(event_loop=event_loop) if event_loop else AsyncIOScheduler()
        self.total_errors = ErrorLedger()
        self.last_cycle_errors: Dict[str, Optional[str]] = {SLOW_JOB_ID: None, FAST_JOB_ID: None}

    def _crawler_for(self, source):
        for crawler in self.crawlers:
            if crawler.source == source:
                return crawler
        raise ValueError(f"no crawler registered for {source!r}")

    async def run_slow_cycle(self) -> ErrorLedger:
        ledger = ErrorLedger()
        async with self.fetcher_factory() as fetcher:
            for crawler in self.crawlers:
                store = self.stores[crawler.source]
                ledger.merge(await refresh_listing_pages(crawler, store, fetcher, self.pages))

        LOGGER.info("Refetch complete. Updating search caches...", extra={"source": LOG_SOURCE})
        self.cache_manager.load_all()
        LOGGER.info(
            "Caches successfully updated: %s (fetch errors this run: %d)",
            self.cache_manager.counts(),
            ledger.count,
            extra={"source": LOG_SOURCE},
        )
        return ledger

    async def run_fast_cycle(self) -> ErrorLedger:
        crawler = self._crawler_for(self.fast_source)
        async with self.fetcher_factory() as fetcher:
            ledger = await refresh_listing_pages(crawler, self.stores[self.fast_source], fetcher, self.pages)
        self.cache_manager.refresh_source(self.fast_source)
        return ledger

    async def _supervised(self, job_id, cycle):
        try:
            ledger = await cycle()
        except Exception as exc:
            error = ScheduledCycleError(job_id, exc)
            self.last_cycle_errors[job_id] = str(error)
            LOGGER.error("%s", error, exc_info=exc, extra={"source": LOG_SOURCE})
            return None
        self.last_cycle_errors[job_id] = None
        self.total_errors.merge(ledger)
        return ledger

    async def slow_tick(self):
        return await self._supervised(SLOW_JOB_ID, self.run_slow_cycle)

    async def fast_tick(self):
        return await self._supervised(FAST_JOB_ID, self.run_fast_cycle)

    def register_jobs(self):
        self.scheduler.add_job(
            self.slow_tick,
            trigger=IntervalTrigger(seconds=self.slow_interval_seconds),
            id=SLOW_JOB_ID,
            name="Refetch all sources",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.fast_tick,
            trigger=IntervalTrigger(seconds=self.fast_interval_seconds),
            id=FAST_JOB_ID,
            name=f"Refetch {self.fast_source.value}",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    def start(self):
        self.register_jobs()
        self.scheduler.start()
        LOGGER.info(
            "Refresh cycles scheduled: all sources every %ds, %s every %ds",
            self.slow_interval_seconds,
            self.fast_source.value,
            self.fast_interval_seconds,
            extra={"source": LOG_SOURCE},
        )

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
