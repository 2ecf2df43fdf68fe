"""Background watcher that pushes feed changes into the FeedCache.

Polls each source's subscription (newest document by recency field, or a fixed
document) and notifies the cache only when what the feed reports as latest
changes. A failing query clears that one source. The same loop refreshes the
historical context from the result store.
"""

import logging
import sqlite3
import threading
from typing import Dict, Iterable, Optional, Tuple

from ..schemas.sources import SOURCE_CONFIG, SOURCES, Source, SourceDocument
from ..store.repo import ResultStore
from .cache import FeedCache
from .channels import FeedDocumentStore, FeedRecord

logger = logging.getLogger("feed_watcher")

_ABSENT = ("<absent>",)


class FeedWatcher:
    def __init__(
        self,
        cache: FeedCache,
        feed_store: FeedDocumentStore,
        result_store: Optional[ResultStore] = None,
        poll_interval: float = 5.0,
        sources: Iterable[Source] = SOURCES,
    ):
        self.cache = cache
        self.feed_store = feed_store
        self.result_store = result_store
        self.poll_interval = poll_interval
        self.sources = tuple(sources)
        self._fingerprints: Dict[Source, Tuple] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _query(self, source: Source) -> Optional[FeedRecord]:
        config = SOURCE_CONFIG[source]
        if config.fixed_document_id:
            return self.feed_store.get_document(config.collection, config.fixed_document_id)
        return self.feed_store.latest_document(config.collection, config.order_by)

    def poll_source(self, source: Source):
        try:
            record = self._query(source)
        except (sqlite3.Error, ValueError) as e:
            self._fingerprints.pop(source, None)
            self.cache.on_error(source, e)
            return

        fingerprint = record.fingerprint if record else _ABSENT
        if self._fingerprints.get(source) == fingerprint:
            return
        self._fingerprints[source] = fingerprint

        if record is None:
            self.cache.on_update(source, None)
        else:
            self.cache.on_update(source, SourceDocument.from_feed(source, record.doc_id, record.data))

    def poll_history(self):
        if self.result_store is None:
            return
        recent = self.result_store.recent(self.cache.history_limit)
        if recent.error:
            self.cache.clear_history(RuntimeError(recent.error))
        else:
            self.cache.set_history(recent.analyses)

    def poll_once(self):
        for source in self.sources:
            self.poll_source(source)
        self.poll_history()

    def run(self):
        logger.info(f"Feed watcher started for {len(self.sources)} sources")
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Feed watcher loop error")
            self._stop.wait(self.poll_interval)
        logger.info("Feed watcher stopped")

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="feed-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
