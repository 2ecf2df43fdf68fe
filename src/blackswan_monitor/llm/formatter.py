"""Render an AggregatedSnapshot plus recent history into the model prompt.

Every prompt section is always a non-empty string: unavailable sources and
missing history render fixed placeholder text.
"""

import json
from typing import Any, Dict, Mapping, Optional, Sequence

from pydantic import BaseModel

from ..schemas.snapshot import AggregatedSnapshot
from ..schemas.sources import SOURCE_CONFIG, Source, SourceConfig
from .prompts import fill_prompt, load_prompt

PROMPT_NAME = "blackswan_analysis"

BOOKKEEPING_FIELDS = ("id", "createdAt", "timestamp", "service")
HISTORY_FIELDS = (
    "timestamp",
    "blackswan_score",
    "risk_level",
    "certainty",
    "primary_risk_factors",
    "cascade_probability",
    "time_horizon",
    "cross_domain_signals",
)
NO_HISTORY_TEXT = "No historical Black Swan analyses available for context"


class PromptPayload(BaseModel):
    text: str
    inputs: Dict[str, str]


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _drop_nulls(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _drop_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_drop_nulls(v) for v in value if v is not None]
    return value


def format_source_data(data: Mapping[str, Any], config: SourceConfig) -> str:
    clean = _drop_nulls({k: v for k, v in data.items() if k not in BOOKKEEPING_FIELDS})

    # Keep only the summary text of large nested sub-objects
    for key in config.collapse_summaries:
        nested = clean.pop(key, None)
        summary = nested.get("summary") if isinstance(nested, Mapping) else nested
        if summary is not None:
            clean[key] = summary

    return _to_json(clean)


def format_peak_indicators(record: Optional[Mapping[str, Any]], unavailable_text: str) -> str:
    indicators = record.get("indicators") if isinstance(record, Mapping) else None
    if not isinstance(indicators, list):
        return unavailable_text

    lines = []
    for indicator in indicators:
        if not isinstance(indicator, Mapping):
            indicator = {}
        name = indicator.get("indicator_name") or "Unknown Indicator"
        hit = "true" if indicator.get("hit_status") else "false"
        lines.append(f"{name}: {hit}")

    return "\n".join(lines) if lines else unavailable_text


def format_history(records: Sequence[Mapping[str, Any]]) -> str:
    if not records:
        return NO_HISTORY_TEXT

    blocks = []
    for index, record in enumerate(records):
        summary = {field: record[field] for field in HISTORY_FIELDS if field in record}
        blocks.append(f"### Analysis {index + 1} ({record.get('timestamp')})\n{_to_json(summary)}")
    return "\n\n".join(blocks)


class PromptFormatter:
    def __init__(self, template: Optional[str] = None, prompts_dir: Optional[str] = None):
        self._template = template
        self._prompts_dir = prompts_dir

    @property
    def template(self) -> str:
        if self._template is None:
            self._template = load_prompt(PROMPT_NAME, self._prompts_dir)
        return self._template

    def build_inputs(self, snapshot: AggregatedSnapshot, history: Sequence[Mapping[str, Any]]) -> Dict[str, str]:
        inputs: Dict[str, str] = {"timestamp": snapshot.timestamp}

        for source, status in snapshot.services.items():
            config = SOURCE_CONFIG[source]
            if config.peak_indicators:
                inputs[config.prompt_key] = format_peak_indicators(snapshot.peak_record, config.unavailable_text)
            elif status.available and status.document is not None:
                inputs[config.prompt_key] = format_source_data(status.document.as_record(), config)
            else:
                inputs[config.prompt_key] = config.unavailable_text

        # Sources missing from the snapshot still get their placeholder
        for source in Source:
            config = SOURCE_CONFIG[source]
            inputs.setdefault(config.prompt_key, config.unavailable_text)

        inputs["historical_analyses"] = format_history(history)
        return inputs

    def format(self, snapshot: AggregatedSnapshot, history: Sequence[Mapping[str, Any]]) -> PromptPayload:
        inputs = self.build_inputs(snapshot, history)
        return PromptPayload(text=fill_prompt(self.template, inputs), inputs=inputs)
