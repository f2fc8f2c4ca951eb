"""Startup checks for the scripts: interpreter, installed stack, rules file."""

from __future__ import annotations

import importlib.util
import sys
from collections.abc import Sequence
from pathlib import Path

from matchday.utils.rules import load_rules

MIN_PYTHON = (3, 10)
DEFAULT_REQUIRED_MODULES = (
    "pydantic",
    "numpy",
    "sqlalchemy",
)
RULE_SECTIONS = ("match", "loop", "season", "finance")
INSTALL_HINT = 'Install project dependencies with `python -m pip install -e ".[dev]"`.'


def _format_version(version: tuple[int, int]) -> str:
    return f"{version[0]}.{version[1]}"


def validate_runtime(
    entrypoint: str = "matchday",
    min_python: tuple[int, int] = MIN_PYTHON,
    required_modules: Sequence[str] = DEFAULT_REQUIRED_MODULES,
    python_version: tuple[int, int] | None = None,
    rules_path: str | Path | None = None,
) -> None:
    """Raise RuntimeError naming ``entrypoint`` if the script cannot run here.

    Checks the interpreter version, that the core stack is importable and,
    when ``rules_path`` is given, that the rules file exists and only holds
    known sections. A typo in ``--rules`` would otherwise run on defaults.
    """
    current = python_version or (sys.version_info.major, sys.version_info.minor)
    if current < min_python:
        raise RuntimeError(
            f"{entrypoint} requires Python >={_format_version(min_python)}, "
            f"found {_format_version(current)}. {INSTALL_HINT}"
        )

    missing = [mod for mod in required_modules if importlib.util.find_spec(mod) is None]
    if missing:
        raise RuntimeError(
            f"{entrypoint} is missing required Python modules: "
            f"{', '.join(sorted(missing))}. {INSTALL_HINT}"
        )

    if rules_path is not None:
        validate_rules_file(rules_path, entrypoint)


def validate_rules_file(rules_path: str | Path, entrypoint: str = "matchday") -> None:
    path = Path(rules_path)
    if not path.is_file():
        raise RuntimeError(f"{entrypoint}: rules file {path} not found")

    try:
        rules = load_rules(path)
    except ValueError as exc:
        # json.JSONDecodeError is a ValueError too
        raise RuntimeError(f"{entrypoint}: rules file {path} is invalid: {exc}") from exc

    unknown = sorted(set(rules) - set(RULE_SECTIONS))
    if unknown:
        raise RuntimeError(
            f"{entrypoint}: unknown rules section(s) in {path}: {', '.join(unknown)} "
            f"(expected {', '.join(RULE_SECTIONS)})"
        )
