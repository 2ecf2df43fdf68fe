"""Builds and owns the component graph for one running service."""

import logging
from typing import Optional

from .config import Settings, get_settings
from .feeds.cache import FeedCache
from .feeds.channels import FeedDocumentStore
from .feeds.watcher import FeedWatcher
from .llm.client import AnalysisClient
from .llm.formatter import PromptFormatter
from .llm.validate import ResponseValidator
from .pipeline.aggregate import Aggregator
from .pipeline.run import CycleOrchestrator
from .store.db import init_db
from .store.repo import ResultStore

logger = logging.getLogger("service")


class BlackSwanService:
    def __init__(self, settings: Optional[Settings] = None, client: Optional[AnalysisClient] = None):
        self.settings = settings or get_settings()
        init_db(self.settings.DB_PATH, self.settings.RESULTS_TABLE)

        self.cache = FeedCache(history_limit=self.settings.HISTORY_LIMIT)
        self.feed_store = FeedDocumentStore(self.settings.DB_PATH)
        self.result_store = ResultStore(self.settings)
        self.aggregator = Aggregator(self.cache)
        self.client = client or AnalysisClient(self.settings)
        self.orchestrator = CycleOrchestrator(
            cache=self.cache,
            aggregator=self.aggregator,
            formatter=PromptFormatter(prompts_dir=self.settings.PROMPTS_DIR),
            client=self.client,
            validator=ResponseValidator(model=self.client.model),
            store=self.result_store,
        )
        self.watcher = FeedWatcher(
            cache=self.cache,
            feed_store=self.feed_store,
            result_store=self.result_store,
            poll_interval=self.settings.FEED_POLL_INTERVAL_SECONDS,
        )

    def run_cycle(self):
        return self.orchestrator.run_cycle()

    def start(self):
        # Prime the cache before the first cycle can run
        self.watcher.poll_once()
        self.watcher.start()

    def stop(self):
        logger.info("Removing all feed listeners")
        self.watcher.stop()
