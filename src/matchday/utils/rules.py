"""Loader for the JSON tuning file shared by the engine components.

The file is split into sections ("match", "loop", "season", "finance").
Components read their own section and fall back to built-in defaults for
any key that is absent, so a partial rules file is always valid.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent.parent.parent.parent / "config" / "rules.json"


def load_rules(rules_path: str | Path | None = None) -> dict[str, Any]:
    """Load the whole rules document.

    Args:
        rules_path: Path to rules.json. None means "use built-in defaults".

    Returns:
        Parsed rules dict (empty when no file is used).
    """
    if rules_path is None:
        return {}

    path = Path(rules_path)
    if not path.exists():
        logger.warning(f"Rules file not found: {path}, using defaults")
        return {}

    with open(path) as f:
        rules = json.load(f)

    if not isinstance(rules, dict):
        raise ValueError(f"Rules file {path} must contain a JSON object")
    return rules


def load_section(rules_path: str | Path | None, section: str) -> dict[str, Any]:
    """Return one section of the rules file, or an empty dict."""
    return dict(load_rules(rules_path).get(section, {}))
