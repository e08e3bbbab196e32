"""In-memory, search-ready snapshots of every source's store.

Each rebuild computes a fresh tuple of :class:`SearchableTitle` per source and
publishes it by swapping one read-only mapping. Readers holding the previous
mapping keep a complete old snapshot; nobody sees a half-built collection.
"""

import logging
import threading
import time
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from crawlers.records import Source
from repositories.titles_repo import SearchableTitle

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "cache"

Snapshot = Tuple[SearchableTitle, ...]
Caches = Mapping[str, Snapshot]
Subscriber = Callable[[Caches], None]


class CacheManager:
    def __init__(self, stores: Mapping[Source, object]):
        self._stores = dict(stores)
        self._caches: Caches = MappingProxyType({source.value: () for source in Source})
        self._publish_lock = threading.Lock()
        self._subscribers: List[Subscriber] = []
        self.last_published_at: Optional[float] = None
        self.loaded_sources = set()

    @property
    def sources(self) -> List[Source]:
        return list(self._stores)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` with the full set of snapshots after every publish."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def get_caches(self) -> Caches:
        return self._caches

    def get_cache(self, source) -> Snapshot:
        return self._caches.get(getattr(source, "value", source), ())

    def build_snapshot(self, source: Source) -> Snapshot:
        store = self._stores[source]
        return tuple(store.get_all_titles_for_search())

    def _publish(self, snapshots: Dict[str, Snapshot]):
        with self._publish_lock:
            merged = dict(self._caches)
            merged.update(snapshots)
            published = MappingProxyType(merged)
            self._caches = published
            self.loaded_sources.update(snapshots)
            self.last_published_at = time.time()

        for callback in list(self._subscribers):
            try:
                callback(published)
            except Exception:
                LOGGER.exception("Cache subscriber %r failed", callback, extra={"source": LOG_SOURCE})

    def load_all(self):
        """Rebuild every source's snapshot and publish them together."""
        snapshots = {source.value: self.build_snapshot(source) for source in self._stores}
        self._publish(snapshots)
        LOGGER.info(
            "Caches loaded: %s",
            ", ".join(f"{name}={len(items)}" for name, items in snapshots.items()),
            extra={"source": LOG_SOURCE},
        )

    def refresh_source(self, source):
        """Rebuild and publish one source's snapshot, leaving the others as they are."""
        member = Source.parse(source)
        if member not in self._stores:
            raise ValueError(f"no store configured for source: {source!r}")
        snapshot = self.build_snapshot(member)
        self._publish({member.value: snapshot})
        LOGGER.info(
            "%s cache successfully updated. Total titles: %d",
            member.value,
            len(snapshot),
            extra={"source": LOG_SOURCE},
        )

    def counts(self) -> Dict[str, int]:
        return {name: len(items) for name, items in self._caches.items()}


class SnapshotSubscriber:
    """Local view of the latest published caches for a consumer such as the API."""

    def __init__(self, manager: Optional[CacheManager] = None):
        self.current: Caches = MappingProxyType({source.value: () for source in Source})
        self._unsubscribe = None
        if manager is not None:
            self.attach(manager)

    def attach(self, manager: CacheManager):
        self.current = manager.get_caches()
        self._unsubscribe = manager.subscribe(self)

    def detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __call__(self, caches: Caches):
        self.current = caches

    def snapshot(self, source) -> Snapshot:
        return self.current.get(getattr(source, "value", source), ())

    def iter_sources(self, sources: Optional[Iterable] = None):
        """Yield ``(source_name, snapshot)`` pairs for the requested sources."""
        names = [getattr(source, "value", source) for source in sources] if sources else [s.value for s in Source]
        for name in names:
            yield name, self.current.get(name, ())
