from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .snapshot import DataQuality


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AnalysisMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str
    data_sources: List[str]
    successful_services: int
    total_services: int
    collection_duration_ms: float


class AnalysisResult(BaseModel):
    """
    Validated output of one analysis cycle.
    Fields the model adds beyond the required ones (risk_level, time_horizon, ...)
    are kept as extras. Only score and certainty are constrained; the narrative
    and list fields are kept as the model wrote them.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    blackswan_score: int = Field(..., ge=0, le=100)
    analysis: Any
    certainty: int = Field(..., ge=1, le=100)
    primary_risk_factors: Any
    current_market_indicators: Any
    reasoning: Any
    timestamp: str = Field(default_factory=utc_now_iso)
    analysis_metadata: AnalysisMetadata


class StorageResult(BaseModel):
    stored: bool
    document_id: Optional[str] = None
    error: Optional[str] = None


class RecentAnalyses(BaseModel):
    analyses: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


class CycleSuccess(BaseModel):
    success: Literal[True] = True
    analysis: AnalysisResult
    storage: StorageResult
    data_quality: DataQuality


class CycleFailure(BaseModel):
    success: Literal[False] = False
    error: str
    error_type: str
    failed_step: str
    timestamp: str = Field(default_factory=utc_now_iso)


CycleOutcome = Union[CycleSuccess, CycleFailure]
