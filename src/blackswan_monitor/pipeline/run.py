"""Per-cycle orchestration: snapshot -> format -> request -> validate -> store.

run_cycle() always returns a terminal outcome. Any step failure moves the cycle
to FAILED and skips the remaining steps; a storage failure alone does not fail
the cycle. Cycles are serialized so manual and scheduled triggers never overlap.
"""

import logging
import threading
from enum import Enum
from typing import List, Optional, Protocol

from ..errors import BlackSwanError, InsufficientData, StorageError
from ..feeds.cache import FeedCache
from ..llm.client import AnalysisClient
from ..llm.formatter import PromptFormatter
from ..llm.validate import ResponseValidator
from ..mlops.tracing import MLflowTracer, tracer as default_tracer
from ..schemas.outputs import AnalysisResult, CycleFailure, CycleOutcome, CycleSuccess, StorageResult
from ..store.repo import ResultStore
from .aggregate import Aggregator

logger = logging.getLogger("pipeline")


class CycleState(str, Enum):
    START = "start"
    SNAPSHOT = "snapshot"
    FORMAT = "format"
    REQUEST = "request"
    VALIDATE = "validate"
    STORE = "store"
    DONE = "done"
    FAILED = "failed"


class CycleListener(Protocol):
    def on_analysis_complete(self, outcome: CycleSuccess) -> None: ...

    def on_analysis_failed(self, outcome: CycleFailure) -> None: ...


class CycleOrchestrator:
    def __init__(
        self,
        cache: FeedCache,
        aggregator: Aggregator,
        formatter: PromptFormatter,
        client: AnalysisClient,
        validator: ResponseValidator,
        store: ResultStore,
        tracer: Optional[MLflowTracer] = None,
    ):
        self.cache = cache
        self.aggregator = aggregator
        self.formatter = formatter
        self.client = client
        self.validator = validator
        self.store = store
        self.tracer = tracer or default_tracer
        self.state = CycleState.START
        self._listeners: List[CycleListener] = []
        self._cycle_lock = threading.Lock()

    def add_listener(self, listener: CycleListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: CycleListener):
        self._listeners.remove(listener)

    def _enter(self, state: CycleState):
        self.state = state
        logger.debug(f"Cycle step: {state.value}")

    def _store(self, result: AnalysisResult) -> StorageResult:
        try:
            doc_id = self.store.append(result)
        except StorageError as e:
            logger.warning(f"Analysis validated but not stored: {e}")
            return StorageResult(stored=False, error=str(e))
        return StorageResult(stored=True, document_id=doc_id)

    def _notify(self, outcome: CycleOutcome):
        for listener in list(self._listeners):
            try:
                if outcome.success:
                    listener.on_analysis_complete(outcome)
                else:
                    listener.on_analysis_failed(outcome)
            except Exception:
                logger.exception(f"Cycle listener {listener!r} failed")

    def _execute(self) -> CycleSuccess:
        self._enter(CycleState.SNAPSHOT)
        with self.tracer.span("cycle.snapshot", span_type="RETRIEVER"):
            snapshot = self.aggregator.snapshot()
            quality = snapshot.data_quality
            self.tracer.trace_data_quality(quality.successful_services, quality.total_services)

        if quality.successful_services == 0:
            raise InsufficientData(
                "No data available from any service",
                {"total_services": str(quality.total_services)},
            )

        self._enter(CycleState.FORMAT)
        with self.tracer.span("cycle.format", span_type="CHAIN"):
            payload = self.formatter.format(snapshot, self.cache.get_history())

        self._enter(CycleState.REQUEST)
        with self.tracer.span("cycle.request", span_type="LLM", attributes={"model": self.client.model}):
            raw_text = self.client.request(payload)
            self.tracer.trace_llm_call(self.client.model, payload.text, raw_text)

        self._enter(CycleState.VALIDATE)
        with self.tracer.span("cycle.validate", span_type="PARSER"):
            result = self.validator.validate(raw_text, snapshot)

        self._enter(CycleState.STORE)
        with self.tracer.span("cycle.store", span_type="CHAIN"):
            storage = self._store(result)

        return CycleSuccess(analysis=result, storage=storage, data_quality=quality)

    def run_cycle(self) -> CycleOutcome:
        with self._cycle_lock:
            logger.info("Starting Black Swan risk analysis")
            self._enter(CycleState.START)
            outcome: CycleOutcome
            try:
                with self.tracer.span("cycle.run", span_type="CHAIN"):
                    outcome = self._execute()
                self._enter(CycleState.DONE)
                logger.info("Analysis completed successfully")
            except BlackSwanError as e:
                failed_step = self.state
                self._enter(CycleState.FAILED)
                logger.error(f"Analysis failed at {failed_step.value}: {e}")
                outcome = CycleFailure(error=e.message, error_type=type(e).__name__, failed_step=failed_step.value)
            except Exception as e:
                failed_step = self.state
                self._enter(CycleState.FAILED)
                logger.exception(f"Unexpected error at {failed_step.value}")
                outcome = CycleFailure(error=str(e), error_type="UnexpectedError", failed_step=failed_step.value)

            self._notify(outcome)
            return outcome
