"""Source configuration and the per-source document model.

Sources form a closed set; everything the pipeline needs to know about a
source (backing collection, recency fields, prompt section) lives in SOURCE_CONFIG.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Source(str, Enum):
    BTC_ETH = "BTC_ETH"
    MACRO = "MACRO"
    NEWS = "NEWS"
    SENTIMENT = "SENTIMENT"
    BULL_PEAK = "BULL_PEAK"


class SourceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection: str
    recency_fields: Tuple[str, ...]
    prompt_key: str
    label: str
    unavailable_text: str
    fixed_document_id: Optional[str] = None  # subscribe to one document instead of the newest
    collapse_summaries: Tuple[str, ...] = ()  # sub-objects reduced to their `summary` text
    peak_indicators: bool = False

    @property
    def order_by(self) -> str:
        return self.recency_fields[0]


SOURCE_CONFIG: Dict[Source, SourceConfig] = {
    Source.BTC_ETH: SourceConfig(
        collection="crypto_analyses",
        recency_fields=("createdAt",),
        prompt_key="btc_eth_analysis",
        label="BTC/ETH",
        unavailable_text="BTC/ETH analysis service unavailable",
        collapse_summaries=("bitcoin", "ethereum"),
    ),
    Source.MACRO: SourceConfig(
        collection="macro_indicators_analysis",
        recency_fields=("timestamp",),
        prompt_key="macro_indicators_analysis",
        label="Macro",
        unavailable_text="Macro indicators service unavailable",
    ),
    Source.NEWS: SourceConfig(
        collection="news_analysis",
        recency_fields=("createdAt",),
        prompt_key="news_analysis",
        label="News",
        unavailable_text="News analysis service unavailable",
    ),
    Source.SENTIMENT: SourceConfig(
        collection="sentiment_analysis",
        recency_fields=("timestamp",),
        prompt_key="sentiment_analysis",
        label="Sentiment",
        unavailable_text="Sentiment analysis service unavailable",
    ),
    Source.BULL_PEAK: SourceConfig(
        collection="bull-market-peak-indicators",
        recency_fields=("timestamp", "collected_at"),
        prompt_key="bull_market_peak_indicators",
        label="Bull Market Peak",
        unavailable_text="No Bull Market Peak Indicators available",
        fixed_document_id="latest",
        peak_indicators=True,
    ),
}

SOURCES: Tuple[Source, ...] = tuple(Source)


# --- Recency normalization ---------------------------------------------------

def _datetime_to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _is_platform_timestamp(value: Any) -> bool:
    if isinstance(value, datetime):
        return True
    return callable(getattr(value, "to_datetime", None)) or callable(getattr(value, "ToDatetime", None))


def _platform_timestamp_to_iso(value: Any) -> str:
    if isinstance(value, datetime):
        return _datetime_to_iso(value)
    convert = getattr(value, "to_datetime", None) or getattr(value, "ToDatetime")
    return _datetime_to_iso(convert())


def _is_primitive_timestamp(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return value != 0
    return False


# Ordered: the first matching case converts the value.
_RECENCY_CASES: Tuple[Tuple[Callable[[Any], bool], Callable[[Any], Any]], ...] = (
    (_is_platform_timestamp, _platform_timestamp_to_iso),
    (_is_primitive_timestamp, lambda value: value),
)


def normalize_recency(value: Any) -> Optional[Any]:
    """Return the comparable recency marker for a raw timestamp value, or None if it has none."""
    for matches, convert in _RECENCY_CASES:
        if matches(value):
            return convert(value)
    return None


class SourceDocument(BaseModel):
    """Latest document reported by a source's feed."""
    model_config = ConfigDict(frozen=True)

    source: Source
    id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_feed(cls, source: Source, doc_id: Optional[str], fields: Mapping[str, Any]) -> "SourceDocument":
        return cls(source=source, id=doc_id, data=dict(fields))

    @property
    def recency(self) -> Optional[Any]:
        for field in SOURCE_CONFIG[self.source].recency_fields:
            marker = normalize_recency(self.data.get(field))
            if marker is not None:
                return marker
        return None

    def as_record(self) -> Dict[str, Any]:
        """Document fields with the feed id folded in, as the feed delivered them."""
        return {"id": self.id, **self.data}
