"""Tests for the polling feed watcher and the feed document store."""
import sqlite3
import time
from unittest.mock import Mock

import pytest

from blackswan_monitor.feeds.channels import FeedDocumentStore, FeedRecord
from blackswan_monitor.feeds.watcher import FeedWatcher
from blackswan_monitor.schemas.outputs import RecentAnalyses
from blackswan_monitor.schemas.sources import SOURCE_CONFIG, Source
from blackswan_monitor.store.repo import ResultStore

MACRO = SOURCE_CONFIG[Source.MACRO].collection
NEWS = SOURCE_CONFIG[Source.NEWS].collection
PEAK = SOURCE_CONFIG[Source.BULL_PEAK].collection


@pytest.fixture
def feed_store(test_db):
    return FeedDocumentStore(test_db.DB_PATH)


@pytest.fixture
def watcher(cache, feed_store, test_db):
    return FeedWatcher(cache, feed_store, ResultStore(test_db), poll_interval=0.01)


def test_document_store_upsert_bumps_revision(feed_store):
    feed_store.put_document(MACRO, "m-1", {"timestamp": "t1"})
    feed_store.put_document(MACRO, "m-1", {"timestamp": "t2"})

    record = feed_store.get_document(MACRO, "m-1")
    assert record.revision == 2
    assert record.data == {"timestamp": "t2"}
    assert feed_store.delete_document(MACRO, "m-1") is True
    assert feed_store.delete_document(MACRO, "m-1") is False


def test_latest_document_orders_by_field(feed_store):
    feed_store.put_document(NEWS, "old", {"createdAt": "2024-05-01T00:00:00Z"})
    feed_store.put_document(NEWS, "new", {"createdAt": "2024-05-03T00:00:00Z"})
    feed_store.put_document(NEWS, "mid", {"createdAt": "2024-05-02T00:00:00Z"})
    feed_store.put_document(NEWS, "untimed", {"headline": "x"})

    assert feed_store.latest_document(NEWS, "createdAt").doc_id == "new"
    assert feed_store.latest_document("empty_collection", "createdAt") is None


def test_newest_document_reaches_cache(watcher, feed_store, cache):
    feed_store.put_document(MACRO, "m-1", {"timestamp": "2024-05-01T00:00:00Z"})
    feed_store.put_document(MACRO, "m-2", {"timestamp": "2024-05-02T00:00:00Z", "outlook": "dovish"})

    watcher.poll_once()

    document = cache.get_latest(Source.MACRO)
    assert document.id == "m-2"
    assert document.data["outlook"] == "dovish"
    assert cache.get_latest(Source.NEWS) is None


def test_unchanged_document_is_not_pushed_again(cache, feed_store):
    feed_store.put_document(MACRO, "m-1", {"timestamp": "t"})
    cache.on_update = Mock(wraps=cache.on_update)
    watcher = FeedWatcher(cache, feed_store, sources=[Source.MACRO])

    watcher.poll_once()
    watcher.poll_once()
    assert cache.on_update.call_count == 1

    feed_store.put_document(MACRO, "m-1", {"timestamp": "t", "outlook": "revised"})
    watcher.poll_once()
    assert cache.on_update.call_count == 2
    assert cache.get_latest(Source.MACRO).data["outlook"] == "revised"


def test_deleted_document_clears_cache(watcher, feed_store, cache):
    feed_store.put_document(NEWS, "n-1", {"createdAt": "t"})
    watcher.poll_once()
    assert cache.get_latest(Source.NEWS) is not None

    feed_store.delete_document(NEWS, "n-1")
    watcher.poll_once()
    assert cache.get_latest(Source.NEWS) is None


def test_peak_source_reads_fixed_document(watcher, feed_store, cache):
    feed_store.put_document(PEAK, "archive-2023", {"timestamp": "2099-01-01T00:00:00Z"})
    feed_store.put_document(PEAK, "latest", {"collected_at": "2024-05-01T00:00:00Z", "indicators": []})

    watcher.poll_once()

    document = cache.get_latest(Source.BULL_PEAK)
    assert document.id == "latest"
    assert document.recency == "2024-05-01T00:00:00Z"


def test_failing_source_is_isolated(cache):
    """
    WHY: One broken subscription must not stop the others from updating.
    HOW: The MACRO query raises; NEWS returns a document.
    EXPECTED: MACRO cleared with an error recorded, NEWS cached.
    """
    feed_store = Mock()

    def latest_document(collection, order_by):
        if collection == MACRO:
            raise sqlite3.OperationalError("database is locked")
        if collection == NEWS:
            return FeedRecord(doc_id="n-1", data={"createdAt": "t"}, revision=1)
        return None

    feed_store.latest_document.side_effect = latest_document
    feed_store.get_document.return_value = None
    watcher = FeedWatcher(cache, feed_store)

    watcher.poll_once()

    assert cache.get_latest(Source.MACRO) is None
    assert "database is locked" in str(cache.last_error(Source.MACRO))
    assert cache.get_latest(Source.NEWS).id == "n-1"
    assert cache.last_error(Source.NEWS) is None


def test_history_refreshed_from_result_store(cache, feed_store):
    result_store = Mock()
    result_store.recent.return_value = RecentAnalyses(analyses=[{"id": "a", "blackswan_score": 10}])
    watcher = FeedWatcher(cache, feed_store, result_store)

    watcher.poll_history()

    result_store.recent.assert_called_once_with(cache.history_limit)
    assert cache.get_history() == [{"id": "a", "blackswan_score": 10}]


def test_history_cleared_on_read_error(cache, feed_store):
    cache.set_history([{"id": "stale"}])
    result_store = Mock()
    result_store.recent.return_value = RecentAnalyses(analyses=[], error="disk I/O error")
    watcher = FeedWatcher(cache, feed_store, result_store)

    watcher.poll_history()

    assert cache.get_history() == []


def test_background_thread_picks_up_changes(watcher, feed_store, cache):
    watcher.start()
    try:
        feed_store.put_document(MACRO, "m-1", {"timestamp": "t"})
        deadline = time.monotonic() + 2.0
        while cache.get_latest(Source.MACRO) is None and time.monotonic() < deadline:
            time.sleep(0.01)
        assert cache.get_latest(Source.MACRO).id == "m-1"
    finally:
        watcher.stop()
    assert watcher._thread is None
