"""In-memory cache of the latest document per source.

Push channels call on_update/on_error from their own threads; each source owns
an independent slot and lock so a slow or failing source never touches another.
Updates are applied in call order, mirroring whatever the feed reports as latest.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..errors import FeedUnavailable
from ..schemas.sources import SOURCES, Source, SourceDocument

logger = logging.getLogger("feeds")

HISTORY_LIMIT = 5


class _Slot:
    __slots__ = ("lock", "document", "last_error")

    def __init__(self):
        self.lock = threading.Lock()
        self.document: Optional[SourceDocument] = None
        self.last_error: Optional[FeedUnavailable] = None


class FeedCache:
    def __init__(self, sources: Iterable[Source] = SOURCES, history_limit: int = HISTORY_LIMIT):
        self._slots: Dict[Source, _Slot] = {source: _Slot() for source in sources}
        self._history_lock = threading.Lock()
        self._history: Tuple[Mapping[str, Any], ...] = ()
        self.history_limit = history_limit

    @property
    def sources(self) -> Tuple[Source, ...]:
        return tuple(self._slots)

    def _slot(self, source: Source) -> _Slot:
        try:
            return self._slots[source]
        except KeyError:
            raise KeyError(f"Unknown source: {source}") from None

    def on_update(self, source: Source, document: Optional[SourceDocument]):
        """Replace the cached latest document; None means the feed has no latest document."""
        slot = self._slot(source)
        if document is not None and document.source is not source:
            raise ValueError(f"{document.source.value} document pushed to {source.value} slot")
        with slot.lock:
            slot.document = document
            slot.last_error = None

        if document is None:
            logger.warning(f"No latest document for {source.value}, cleared cache")
        else:
            logger.info(f"Updated {source.value} data ({document.recency or 'no timestamp'})")

    def on_error(self, source: Source, error: BaseException):
        """A push channel failed: forget the source's document, leave other sources alone."""
        slot = self._slot(source)
        feed_error = FeedUnavailable(f"{source.value} feed unavailable", {"error": str(error)})
        with slot.lock:
            slot.document = None
            slot.last_error = feed_error
        logger.error(f"Error in {source.value} listener: {error}")

    def get_latest(self, source: Source) -> Optional[SourceDocument]:
        slot = self._slot(source)
        with slot.lock:
            return slot.document

    def last_error(self, source: Source) -> Optional[FeedUnavailable]:
        slot = self._slot(source)
        with slot.lock:
            return slot.last_error

    def set_history(self, records: Sequence[Mapping[str, Any]]):
        """Replace the historical context. Records arrive newest first."""
        trimmed = tuple(dict(r) for r in records[: self.history_limit])
        with self._history_lock:
            self._history = trimmed
        logger.debug(f"Updated historical analyses ({len(trimmed)} records)")

    def clear_history(self, error: Optional[BaseException] = None):
        with self._history_lock:
            self._history = ()
        if error is not None:
            logger.error(f"Error in historical analyses listener: {error}")

    def get_history(self) -> List[Mapping[str, Any]]:
        with self._history_lock:
            return list(self._history)
