"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Add backend to path for imports
backend_path = str(Path(__file__).parent.parent / "backend")
if backend_path not in sys.path:
    sys.path.insert(0, backend_path)

RESOURCES_DIR = Path(__file__).parent / "resources"

# Point declarative decision tests at the bundled resources before config is imported
os.environ["DMN_TEST_ROOT"] = str(RESOURCES_DIR)
os.environ.pop("DMN_SPEC_ROOT", None)
os.environ.pop("DMN_COVERAGE_REPORT_PATH", None)

pytest_plugins = ["pytester", "decisions.pytest_plugin"]

DMN_NAMESPACE = "https://www.omg.org/spec/DMN/20191111/MODEL/"


def build_dmn(
    tables: dict[str, list[tuple[str, str, str]]],
    input_name: str = "age",
    hit_policy: str = "UNIQUE",
) -> str:
    """Build a DMN document with one single-input decision table per key.

    ``tables`` maps a decision key to ``(rule_id, input_entry, output_entry)``
    rows.
    """
    decisions = []
    for key, rules in tables.items():
        rows = "".join(
            f'<rule id="{rule_id}">'
            f"<inputEntry><text>{_escape(condition)}</text></inputEntry>"
            f"<outputEntry><text>{_escape(output)}</text></outputEntry>"
            f"</rule>"
            for rule_id, condition, output in rules
        )
        decisions.append(
            f'<decision id="{key}" name="{key}">'
            f'<decisionTable id="{key}Table" hitPolicy="{hit_policy}">'
            f'<input label="{input_name}"><inputExpression><text>{input_name}</text>'
            f"</inputExpression></input>"
            f'<output name="result" />'
            f"{rows}</decisionTable></decision>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<definitions xmlns="{DMN_NAMESPACE}" id="generated" name="generated" '
        f'namespace="http://example.com/dmn">{"".join(decisions)}</definitions>'
    )


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


@pytest.fixture
def resources_dir() -> Path:
    """Directory holding the bundled DMN and YAML fixtures."""
    return RESOURCES_DIR


@pytest.fixture
def dmn_factory(tmp_path: Path) -> Callable[..., Path]:
    """Write a generated DMN file into a temporary directory."""

    def write(name: str, tables: dict[str, list[tuple[str, str, str]]], **kwargs) -> Path:
        path = tmp_path / f"{name}.dmn"
        path.write_text(build_dmn(tables, **kwargs))
        return path

    return write


@pytest.fixture
def adult_dmn(dmn_factory) -> Path:
    """Single-rule decision ``Adult`` matching ``age >= 18``."""
    return dmn_factory("adult", {"Adult": [("rule1", ">= 18", '"Adult"')]})
