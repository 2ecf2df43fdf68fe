"""Snapshot the feed cache into one consistent AggregatedSnapshot.

A source is available only when it has a document and that document carries a
recency marker that normalizes to a value. Building a snapshot never fails;
an empty cache yields a snapshot with zero available sources.
"""

import logging
import threading
import time
from typing import Dict, Optional

from ..feeds.cache import FeedCache
from ..schemas.outputs import utc_now_iso
from ..schemas.snapshot import NO_DATA, NO_TIMESTAMP, AggregatedSnapshot, DataQuality, SourceStatus
from ..schemas.sources import Source

logger = logging.getLogger("aggregator")


class Aggregator:
    def __init__(self, cache: FeedCache):
        self.cache = cache
        self._last_quality: Optional[DataQuality] = None
        self._lock = threading.Lock()

    def _status_for(self, source: Source) -> SourceStatus:
        document = self.cache.get_latest(source)
        if document is None:
            return SourceStatus(source=source, available=False, reason=NO_DATA)

        marker = document.recency
        if marker is None:
            return SourceStatus(source=source, available=False, reason=NO_TIMESTAMP)

        return SourceStatus(source=source, available=True, document=document, timestamp=marker)

    def snapshot(self) -> AggregatedSnapshot:
        started = time.perf_counter()
        captured_at = utc_now_iso()

        services: Dict[Source, SourceStatus] = {}
        for source in self.cache.sources:
            status = self._status_for(source)
            services[source] = status
            logger.debug(
                f"{source.value}: available={status.available}, "
                f"timestamp={status.timestamp}, reason={status.reason}"
            )

        successful = sum(1 for s in services.values() if s.available)
        quality = DataQuality(
            total_services=len(services),
            successful_services=successful,
            failed_services=len(services) - successful,
            service_status={
                source.value: "available" if status.available else "unavailable"
                for source, status in services.items()
            },
        )

        peak = self.cache.get_latest(Source.BULL_PEAK) if Source.BULL_PEAK in services else None

        snapshot = AggregatedSnapshot(
            timestamp=captured_at,
            collection_duration_ms=round((time.perf_counter() - started) * 1000, 3),
            services=services,
            data_quality=quality,
            peak_record=peak.as_record() if peak else None,
        )

        with self._lock:
            self._last_quality = quality

        logger.info(f"{quality.successful_services}/{quality.total_services} services have data")
        return snapshot

    # Read-only accessors for status reporting.

    def source_status(self) -> Dict[str, str]:
        return {
            source.value: "available" if self._status_for(source).available else "unavailable"
            for source in self.cache.sources
        }

    @property
    def last_quality(self) -> Optional[DataQuality]:
        with self._lock:
            return self._last_quality
