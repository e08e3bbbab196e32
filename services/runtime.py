"""Process wiring: stores, the cache manager and the background refresh thread."""

import asyncio
import logging
import threading

from crawlers.records import Source
from database import db_path_for, open_and_init_db
from repositories.titles_repo import TitleStore
from .cache_service import CacheManager
from .refresh_scheduler import RefreshScheduler

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "cache"


def open_stores(sources=None):
    """Open (and initialize) one store per source."""
    stores = {}
    for source in sources or list(Source):
        path = db_path_for(source)
        stores[source] = TitleStore(open_and_init_db(path), source.value, db_name=path)
    return stores


def close_stores(stores):
    for store in stores.values():
        store.close()


def load_caches(stores) -> CacheManager:
    """Build the cache manager and run the startup full rebuild."""
    manager = CacheManager(stores)
    manager.load_all()
    counts = manager.counts()
    LOGGER.info(
        "Loaded %d shojo, %d toongod, and %d manga titles into cache for search.",
        counts.get(Source.SHOJO.value, 0),
        counts.get(Source.TOONGOD.value, 0),
        counts.get(Source.MANGA.value, 0),
        extra={"source": LOG_SOURCE},
    )
    return manager


class BackgroundRefresh:
    """Runs the refresh scheduler on its own event loop in a daemon thread."""

    def __init__(self, cache_manager, stores, **scheduler_options):
        self.cache_manager = cache_manager
        self.stores = stores
        self.scheduler_options = scheduler_options
        self.loop = None
        self.scheduler = None
        self._thread = None
        self._started = threading.Event()

    def _run(self):
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self.scheduler = RefreshScheduler(
            self.cache_manager, self.stores, event_loop=self.loop, **self.scheduler_options
        )
        self.scheduler.start()
        self._started.set()
        try:
            self.loop.run_forever()
        finally:
            self.loop.close()

    def start(self):
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run, name="refresh-cycles", daemon=True)
        self._thread.start()
        self._started.wait(timeout=10)
        return self

    def stop(self):
        if self.loop is None:
            return

        def _shutdown():
            self.scheduler.shutdown()
            self.loop.stop()

        self.loop.call_soon_threadsafe(_shutdown)
        self._thread.join(timeout=10)
        self._thread = None


def start_background_refresh(cache_manager, stores, **scheduler_options) -> BackgroundRefresh:
    return BackgroundRefresh(cache_manager, stores, **scheduler_options).start()
