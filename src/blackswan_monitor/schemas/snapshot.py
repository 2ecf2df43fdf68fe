"""Pydantic schemas for the aggregated view of all sources.

Defines SourceStatus, DataQuality and AggregatedSnapshot.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from .sources import Source, SourceDocument

NO_DATA = "No data available"
NO_TIMESTAMP = "No timestamp found"


class SourceStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: Source
    available: bool
    document: Optional[SourceDocument] = None
    timestamp: Optional[Any] = None
    reason: Optional[str] = None


class DataQuality(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_services: int
    successful_services: int
    failed_services: int
    service_status: Dict[str, str]

    @model_validator(mode="after")
    def counters_add_up(self) -> "DataQuality":
        if self.successful_services + self.failed_services != self.total_services:
            raise ValueError(
                f"{self.successful_services} successful + {self.failed_services} failed "
                f"!= {self.total_services} total services"
            )
        return self


class AggregatedSnapshot(BaseModel):
    """Point-in-time merge of every source's latest known state."""
    model_config = ConfigDict(frozen=True)

    timestamp: str
    collection_duration_ms: float
    services: Dict[Source, SourceStatus]
    data_quality: DataQuality
    # Raw peak-indicator record as cached, kept even when it has no usable timestamp.
    peak_record: Optional[Dict[str, Any]] = None

    @property
    def available_sources(self) -> List[Source]:
        return [source for source, status in self.services.items() if status.available]
