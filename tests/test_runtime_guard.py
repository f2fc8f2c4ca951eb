"""Tests for the script startup checks."""

from __future__ import annotations

import importlib.util
import json

import pytest

from conftest import RULES_PATH
from matchday.utils.runtime import DEFAULT_REQUIRED_MODULES, validate_rules_file, validate_runtime


class TestInterpreterAndModules:
    def test_accepts_supported_python(self):
        validate_runtime(min_python=(3, 10), required_modules=(), python_version=(3, 12))

    def test_rejects_unsupported_python_naming_the_script(self):
        with pytest.raises(RuntimeError) as exc:
            validate_runtime(
                "run_match", min_python=(3, 10), required_modules=(), python_version=(3, 9)
            )

        message = str(exc.value)
        assert message.startswith("run_match requires Python >=3.10")
        assert "found 3.9" in message

    def test_rejects_missing_modules(self, monkeypatch: pytest.MonkeyPatch):
        original_find_spec = importlib.util.find_spec

        def fake_find_spec(name: str):
            if name == "missing_pkg":
                return None
            return original_find_spec(name)

        monkeypatch.setattr(importlib.util, "find_spec", fake_find_spec)

        with pytest.raises(RuntimeError) as exc:
            validate_runtime(
                "seed_world",
                required_modules=("json", "missing_pkg"),
                python_version=(3, 12),
            )

        message = str(exc.value)
        assert "seed_world is missing required Python modules: missing_pkg." in message
        assert "pip install -e" in message

    def test_default_modules_cover_core_stack(self):
        assert set(DEFAULT_REQUIRED_MODULES) == {"pydantic", "numpy", "sqlalchemy"}
        validate_runtime()


class TestRulesFile:
    def test_shipped_rules_pass(self):
        validate_runtime("run_full_season", rules_path=RULES_PATH)

    def test_missing_file(self, tmp_path):
        with pytest.raises(RuntimeError, match="run_full_season: rules file .* not found"):
            validate_runtime("run_full_season", rules_path=tmp_path / "nope.json")

    def test_unknown_section(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"match": {}, "mtach": {"home_advantage": 9}}))

        with pytest.raises(RuntimeError, match="unknown rules section\\(s\\) .*: mtach"):
            validate_rules_file(path, "run_match")

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_invalid_document(self, tmp_path, content):
        path = tmp_path / "rules.json"
        path.write_text(content)

        with pytest.raises(RuntimeError, match="is invalid"):
            validate_rules_file(path)
