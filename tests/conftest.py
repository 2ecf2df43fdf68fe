import json
import threading
import time

import pytest
from dotenv import load_dotenv

from blackswan_monitor.config import PACKAGE_DIR, Settings
from blackswan_monitor.errors import UpstreamError
from blackswan_monitor.feeds.cache import FeedCache
from blackswan_monitor.schemas.sources import Source, SourceDocument
from blackswan_monitor.store.db import init_db

PROMPTS_DIR = str(PACKAGE_DIR / "data" / "prompts")

VALID_ANALYSIS = {
    "blackswan_score": 42,
    "risk_level": "MODERATE",
    "analysis": "Liquidity is thinning while leverage builds in perpetual futures.",
    "certainty": 70,
    "primary_risk_factors": ["Rising funding rates", "Stablecoin outflows"],
    "current_market_indicators": ["BTC dominance 54%", "VIX 18"],
    "cascade_probability": 15,
    "time_horizon": "30 days",
    "cross_domain_signals": ["Treasury yields rising with crypto leverage"],
    "reasoning": "Macro is stable but crypto positioning is crowded.",
}


@pytest.fixture(scope="session", autouse=True)
def _load_env():
    # Load .env once per session to avoid side-effects on import time
    load_dotenv()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DB_PATH=str(tmp_path / "test_blackswan.db"),
        OPENROUTER_API_KEY="sk-test",
        PROMPTS_DIR=PROMPTS_DIR,
        SCHEDULER_ENABLED=False,
        FEED_POLL_INTERVAL_SECONDS=0.05,
        MLFLOW_ENABLE_TRACING=False,
    )


@pytest.fixture
def test_db(settings):
    """
    Creates a temporary database for testing and initializes the schema.
    """
    init_db(settings.DB_PATH, settings.RESULTS_TABLE)
    return settings


@pytest.fixture
def make_document():
    def _make(source: Source, doc_id: str = "doc-1", **fields) -> SourceDocument:
        return SourceDocument.from_feed(source, doc_id, fields)
    return _make


@pytest.fixture
def cache():
    return FeedCache()


@pytest.fixture
def populated_cache(cache, make_document):
    """Cache where every source has a usable document."""
    cache.on_update(Source.BTC_ETH, make_document(
        Source.BTC_ETH, "btc-1",
        createdAt="2024-05-01T10:00:00Z",
        service="crypto-analysis",
        bitcoin={"summary": "BTC consolidating below resistance", "price": 64000, "levels": [60000, 70000]},
        ethereum={"summary": "ETH lagging BTC", "price": 3100},
        overall="neutral",
    ))
    cache.on_update(Source.MACRO, make_document(
        Source.MACRO, "macro-1", timestamp="2024-05-01T09:00:00Z", fed_funds="5.25-5.50", outlook="hawkish hold",
    ))
    cache.on_update(Source.NEWS, make_document(
        Source.NEWS, "news-1", createdAt="2024-05-01T09:30:00Z", headline_risk="moderate",
    ))
    cache.on_update(Source.SENTIMENT, make_document(
        Source.SENTIMENT, "sent-1", timestamp="2024-05-01T09:45:00Z", fear_greed=72,
    ))
    cache.on_update(Source.BULL_PEAK, make_document(
        Source.BULL_PEAK, "latest",
        timestamp="2024-05-01T08:00:00Z",
        indicators=[
            {"indicator_name": "Pi Cycle Top", "hit_status": False},
            {"indicator_name": "MVRV Z-Score", "hit_status": True},
        ],
    ))
    return cache


def fenced(data: dict, prose: str = "Here is my assessment.") -> str:
    return f"{prose}\n```json\n{json.dumps(data, indent=2)}\n```\nLet me know if you need more."


class FakeAnalysisClient:
    """Stands in for AnalysisClient; records prompts and returns canned text."""

    def __init__(self, response=None, error: Exception = None, model: str = "test/model", delay: float = 0.0):
        self.response = response if response is not None else fenced(VALID_ANALYSIS)
        self.error = error
        self.model = model
        self.configured = True
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def request(self, payload):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            self.calls.append(payload)
            if self.delay:
                time.sleep(self.delay)
            if self.error:
                raise self.error
            return self.response
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def fake_client():
    return FakeAnalysisClient()


@pytest.fixture
def failing_client():
    return FakeAnalysisClient(error=UpstreamError("AI analysis failed: connection reset"))


@pytest.fixture
def valid_analysis():
    return json.loads(json.dumps(VALID_ANALYSIS))


@pytest.fixture
def fence():
    return fenced


@pytest.fixture
def client_factory():
    return FakeAnalysisClient
