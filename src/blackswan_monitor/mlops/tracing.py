"""
MLflow tracing integration for analysis-cycle observability.
Provides span-based tracing for aggregation, the LLM call, validation and storage.
"""
import logging
import time
from typing import Optional, Dict, Any
from contextlib import contextmanager

import mlflow

from ..config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class MLflowTracer:
    """Handles MLflow tracing for LLM observability."""

    def __init__(self):
        self.enabled = settings.MLFLOW_ENABLE_TRACING
        if self.enabled:
            try:
                mlflow.set_tracking_uri(settings.MLFLOW_TRACKING_URI)
                logger.info("MLflow tracing enabled")
            except Exception as e:
                logger.warning(f"Failed to initialize MLflow tracing: {e}")
                self.enabled = False
        else:
            logger.debug("MLflow tracing disabled")

    @contextmanager
    def span(
        self,
        name: str,
        span_type: str = "UNKNOWN",
        attributes: Optional[Dict[str, Any]] = None,
        inputs: Optional[Dict[str, Any]] = None
    ):
        """
        Create a traced span for an operation.

        Args:
            name: Name of the span (e.g., "cycle.snapshot", "cycle.request")
            span_type: Type of span (e.g., "LLM", "RETRIEVER", "CHAIN", "PARSER")
            attributes: Additional metadata for the span
            inputs: Input data to the operation
        """
        if not self.enabled:
            yield None
            return

        with mlflow.start_span(name=name, span_type=span_type) as span:
            if attributes:
                span.set_attributes(attributes)
            if inputs:
                span.set_inputs(inputs)

            start_time = time.time()
            try:
                yield span
            finally:
                elapsed = time.time() - start_time
                span.set_attribute("latency_ms", int(elapsed * 1000))

    def _annotate_current(self, attributes: Dict[str, Any]):
        try:
            current_span = mlflow.get_current_active_span()
            if current_span:
                current_span.set_attributes(attributes)
        except AttributeError:
            # MLflow version may not have this method, skip silently
            pass

    def trace_llm_call(self, model: str, prompt: str, response: Optional[str]):
        """Log details of an LLM call within the current span."""
        if not self.enabled:
            return

        try:
            self._annotate_current({
                "model": model,
                "prompt_length": len(prompt),
                "response_length": len(response or ""),
            })
        except Exception as e:
            logger.warning(f"Failed to trace LLM call: {e}")

    def trace_data_quality(self, successful: int, total: int):
        """Log aggregation coverage within the current span."""
        if not self.enabled:
            return

        try:
            self._annotate_current({
                "successful_services": successful,
                "total_services": total,
                "coverage": successful / total if total > 0 else 0.0,
            })
        except Exception as e:
            logger.warning(f"Failed to trace data quality: {e}")


# Global tracer instance
tracer = MLflowTracer()
