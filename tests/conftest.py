"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from helpers import RecordingTask, scenario_task
from ml_process.tasks.registry import TaskRegistry, default_registry


@pytest.fixture()
def journal() -> list[str]:
    RecordingTask.journal = []
    return RecordingTask.journal


@pytest.fixture()
def registry(journal: list[str]) -> TaskRegistry:
    registry = default_registry()
    registry.register("record", RecordingTask)
    return registry


@pytest.fixture()
def write_scenario(tmp_path: Path) -> Callable[..., Path]:
    def _write(tasks: list[dict[str, Any]], name: str = "scenario.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps({"tasks": tasks}), "utf-8")
        return path

    return _write


@pytest.fixture()
def chain_scenario(write_scenario: Callable[..., Path]) -> Path:
    """A produces d1, B turns d1 into d2, C consumes d2."""

    return write_scenario(
        [
            scenario_task("C", data_in=["d2"]),
            scenario_task("B", data_in=["d1"], data_out=["d2"]),
            scenario_task("A", data_out=["d1"]),
        ],
    )
