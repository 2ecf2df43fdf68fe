import re
from pathlib import Path
from typing import Mapping, Optional

import yaml

from ..config import get_settings

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-zA-Z0-9_]+)\s*\}\}")


def load_prompt(name: str, prompts_dir: Optional[str] = None) -> str:
    base = Path(prompts_dir or get_settings().PROMPTS_DIR)

    # Prioritize .yaml for structured prompts
    yaml_path = base / f"{name}.yaml"
    if yaml_path.exists():
        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}
            return data.get("content", "")

    # Fallback to .md
    md_path = base / f"{name}.md"
    if md_path.exists():
        with open(md_path, "r") as f:
            return f.read()

    raise FileNotFoundError(f"Prompt {name} not found as .yaml or .md in {base}")


def fill_prompt(template: str, values: Mapping[str, str]) -> str:
    """Substitute {{key}} markers; markers without a value are left untouched."""
    def _sub(match: re.Match) -> str:
        key = match.group(1)
        return str(values[key]) if key in values else match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, template)
