"""Tests for the append-only analysis result store."""
import pytest

from blackswan_monitor.errors import StorageError
from blackswan_monitor.llm.validate import ResponseValidator
from blackswan_monitor.schemas.outputs import AnalysisMetadata, AnalysisResult
from blackswan_monitor.store.repo import ResultStore


def _result(score: int, timestamp: str) -> AnalysisResult:
    return AnalysisResult(
        blackswan_score=score,
        analysis="a",
        certainty=50,
        primary_risk_factors=["x"],
        current_market_indicators=["y"],
        reasoning="r",
        timestamp=timestamp,
        analysis_metadata=AnalysisMetadata(
            model="test/model",
            data_sources=["MACRO"],
            successful_services=1,
            total_services=5,
            collection_duration_ms=1.5,
        ),
    )


@pytest.fixture
def store(test_db):
    return ResultStore(test_db)


def test_append_then_get_and_latest(store, valid_analysis, fence):
    result = ResponseValidator("test/model").validate(fence(valid_analysis))

    doc_id = store.append(result)

    record = store.get(doc_id).analyses[0]
    assert record["id"] == doc_id
    assert record["blackswan_score"] == 42
    assert record["risk_level"] == "MODERATE"
    assert record["service"] == "macro-blackswan-analysis-service"
    assert record["serviceVersion"] == "1.0.0"
    assert "createdAt" in record
    assert record["analysis_metadata"]["model"] == "test/model"
    assert store.latest().analyses == [record]


def test_ids_are_unique(store):
    ids = {store.append(_result(10, "2024-05-01T00:00:00.000Z")) for _ in range(5)}
    assert len(ids) == 5


def test_recent_is_newest_first(store):
    store.append(_result(10, "2024-05-01T00:00:00.000Z"))
    store.append(_result(30, "2024-05-03T00:00:00.000Z"))
    store.append(_result(20, "2024-05-02T00:00:00.000Z"))

    recent = store.recent(2)

    assert recent.error is None
    assert [r["blackswan_score"] for r in recent.analyses] == [30, 20]
    assert store.latest().analyses[0]["blackswan_score"] == 30


def test_recent_limit_is_capped(store):
    """
    WHY: Retrieval must stay bounded regardless of what the caller asks for.
    HOW: Store 60 results and ask for 200.
    EXPECTED: 50 results returned.
    """
    for i in range(60):
        store.append(_result(i % 101, f"2024-05-01T00:00:{i:02d}.000Z"))

    assert len(store.recent(200).analyses) == 50
    assert len(store.recent().analyses) == 10


@pytest.mark.parametrize("requested,expected", [(None, 10), (0, 10), (-3, 10), (1, 1), (25, 25), (50, 50), (51, 50)])
def test_clamp_limit(store, requested, expected):
    assert store.clamp_limit(requested) == expected


def test_empty_store(store):
    assert store.recent().analyses == []
    assert store.latest().analyses == []
    assert store.get("missing").analyses == []
    assert store.get("missing").error is None


def test_unreachable_store(settings, tmp_path):
    """
    WHY: Read failures must surface as an indicator, write failures as StorageError.
    HOW: Point the store at a path inside a directory that does not exist.
    EXPECTED: recent() carries an error; append() raises StorageError.
    """
    settings.DB_PATH = str(tmp_path / "missing-dir" / "nope.db")
    store = ResultStore(settings)

    recent = store.recent(5)
    assert recent.analyses == []
    assert recent.error

    with pytest.raises(StorageError, match="Failed to store analysis"):
        store.append(_result(10, "2024-05-01T00:00:00.000Z"))


def test_failed_single_reads_are_distinguishable_from_empty(settings):
    """
    WHY: Callers of latest() and get() must tell "nothing stored yet" from "store unreadable".
    HOW: Read from a database whose results table was never created.
    EXPECTED: Both reads return no records plus an error indicator, without raising.
    """
    store = ResultStore(settings)

    latest = store.latest()
    assert latest.analyses == []
    assert "no such table" in latest.error

    by_id = store.get("any-id")
    assert by_id.analyses == []
    assert "no such table" in by_id.error


def test_invalid_table_name_rejected(settings):
    settings.RESULTS_TABLE = "results; DROP TABLE x"
    with pytest.raises(ValueError):
        ResultStore(settings)
