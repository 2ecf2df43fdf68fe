"""Extract and validate the structured analysis from raw model text.

The text is untrusted: it may wrap JSON in a fenced block, surround it with
prose, or contain no JSON at all. Extraction tries each strategy in order and
the first one that yields a JSON object wins.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, Optional, Tuple

import pydantic

from ..errors import ParseError, ValidationError
from ..schemas.outputs import AnalysisMetadata, AnalysisResult, utc_now_iso
from ..schemas.snapshot import AggregatedSnapshot

logger = logging.getLogger("validator")

REQUIRED_FIELDS = (
    "blackswan_score",
    "analysis",
    "certainty",
    "primary_risk_factors",
    "current_market_indicators",
    "reasoning",
)
RANGES: Tuple[Tuple[str, int, int], ...] = (
    ("blackswan_score", 0, 100),
    ("certainty", 1, 100),
)

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)


def _fenced_block(text: str) -> Optional[str]:
    match = _FENCED_JSON_RE.search(text)
    return match.group(1) if match else None


def _whole_text(text: str) -> Optional[str]:
    return text


def _brace_slice(text: str) -> Optional[str]:
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last <= first:
        return None
    return text[first:last + 1]


EXTRACTORS: Tuple[Tuple[str, Callable[[str], Optional[str]]], ...] = (
    ("fenced_block", _fenced_block),
    ("whole_text", _whole_text),
    ("brace_slice", _brace_slice),
)


def _parse_object(candidate: Optional[str]) -> Optional[Dict[str, Any]]:
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json(text: Any) -> Dict[str, Any]:
    """Return the first JSON object found by the extractor chain, or raise ParseError."""
    if not isinstance(text, str) or not text.strip():
        raise ParseError("No JSON found in AI response")

    for name, extractor in EXTRACTORS:
        parsed = _parse_object(extractor(text))
        if parsed is not None:
            logger.debug(f"Extracted analysis JSON via {name}")
            return parsed

    raise ParseError("No JSON found in AI response")


def check_required_fields(data: Dict[str, Any]):
    for field in REQUIRED_FIELDS:
        if field not in data:
            raise ValidationError(f"Missing required field: {field}")


def check_ranges(data: Dict[str, Any]):
    for field, lower, upper in RANGES:
        value = data[field]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{field} must be a number", {"value": repr(value)})
        if value < lower:
            raise ValidationError(f"{field} must be >= {lower}", {"value": str(value)})
        if value > upper:
            raise ValidationError(f"{field} must be <= {upper}", {"value": str(value)})


class ResponseValidator:
    def __init__(self, model: str):
        self.model = model

    def _metadata(self, snapshot: Optional[AggregatedSnapshot]) -> AnalysisMetadata:
        if snapshot is None:
            return AnalysisMetadata(
                model=self.model,
                data_sources=[],
                successful_services=0,
                total_services=0,
                collection_duration_ms=0.0,
            )
        quality = snapshot.data_quality
        return AnalysisMetadata(
            model=self.model,
            data_sources=[source.value for source in snapshot.available_sources],
            successful_services=quality.successful_services,
            total_services=quality.total_services,
            collection_duration_ms=snapshot.collection_duration_ms,
        )

    def validate(self, raw_text: Any, snapshot: Optional[AggregatedSnapshot] = None) -> AnalysisResult:
        try:
            data = extract_json(raw_text)
            check_required_fields(data)
            check_ranges(data)
        except (ParseError, ValidationError) as e:
            logger.error(f"Failed to process AI response: {e}")
            logger.debug(f"Raw AI response: {raw_text!r}")
            raise

        fields = {k: v for k, v in data.items() if k not in ("timestamp", "analysis_metadata")}
        try:
            result = AnalysisResult(
                **fields,
                timestamp=utc_now_iso(),
                analysis_metadata=self._metadata(snapshot),
            )
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ValidationError(f"Invalid field {location}: {first['msg']}") from e

        logger.info(f"Black Swan Score: {result.blackswan_score}/100")
        logger.info(f"Certainty: {result.certainty}%")
        factors = result.primary_risk_factors
        logger.info(f"Primary Risk Factors: {len(factors) if isinstance(factors, list) else 0} identified")
        return result
