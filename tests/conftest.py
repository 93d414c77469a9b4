"""Shared pytest fixtures and test helpers for divcore tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from divcore.config.models import PluginsConfig
from divcore.config.settings import DivSettings
from divcore.domain.variables import Variable, VariableStore


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def settings() -> DivSettings:
    """Default settings with entry-point discovery switched off."""
    return DivSettings(plugins=PluginsConfig(discover=False))


@pytest.fixture
def store() -> VariableStore:
    """A store with one variable of each common kind."""
    return VariableStore(
        [
            Variable.create("counter", "integer", 0),
            Variable.create("name", "string", "divkit"),
            Variable.create("ratio", "number", 0.5),
            Variable.create("enabled", "boolean", True),
            Variable.create("items", "array", [{"name": "a"}, {"name": "b"}]),
            Variable.create("profile", "dict", {"city": "Oslo", "age": 30}),
        ]
    )


@pytest.fixture
def sample_card() -> dict[str, Any]:
    """A card with a template, variables and bound text."""
    return {
        "templates": {
            "tutorialCard": {
                "type": "container",
                "items": [{"type": "text", "$text": "title"}],
            },
        },
        "card": {
            "log_id": "sample",
            "variables": [
                {"name": "counter", "type": "integer", "value": 0},
                {"name": "name", "type": "string", "value": "divkit"},
                {"name": "items", "type": "array", "value": [{"name": "a"}, {"name": "b"}]},
                {"name": "host_width", "type": "property", "value": 320},
            ],
            "states": [
                {
                    "state_id": 0,
                    "div": {
                        "type": "container",
                        "items": [
                            {"type": "tutorialCard", "title": "Hi"},
                            {"type": "text", "text": "Count: @{counter}"},
                        ],
                    },
                }
            ],
        },
    }


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[str, Any], Path]:
    """Write *data* as JSON to ``tmp_path/name`` and return the path."""

    def write(name: str, data: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return write


def increment(name: str = "counter", *, log_id: str | None = None) -> dict[str, Any]:
    """A ``set_variable`` action adding one to an integer variable."""
    action: dict[str, Any] = {
        "typed": {
            "type": "set_variable",
            "variable_name": name,
            "value": {"type": "integer", "value": f"@{{{name} + 1}}"},
        }
    }
    if log_id is not None:
        action["log_id"] = log_id
    return action
