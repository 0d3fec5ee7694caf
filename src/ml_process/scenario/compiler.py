"""Compile a JSON scenario description into an unordered task list.

Scenario layout::

    {
      "tasks": [
        {
          "id": "sort-corpus",
          "algorithm": "command",
          "params": {"command": "sort --output {outputs} {inputs}"},
          "data_sets": {"in": ["raw"], "out": ["sorted"]},
          "files": {"in": ["corpus.txt"], "out": ["sorted.txt"]},
          "features": {"in": [], "out": []}
        }
      ]
    }

File names are relative to the working directory and become the task's
inputs and outputs. Data sets and features only link producers to
consumers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ml_process.plan.errors import ScenarioError
from ml_process.plan.models import (
    OccurrenceIndex,
    ResourceClass,
    TaskDescription,
)

_SECTION_KEYS = {
    ResourceClass.DATA_SET: "data_sets",
    ResourceClass.FILE: "files",
    ResourceClass.FEATURE: "features",
}


@dataclass(slots=True)
class CompiledScenario:
    """Unordered task list plus resource occurrence index."""

    tasks: list[TaskDescription]
    occurrences: OccurrenceIndex


class ScenarioCompiler:
    """Reads one scenario file relative to a working directory."""

    def __init__(self, scenario_path: Path, work_dir: Path) -> None:
        self.scenario_path = scenario_path
        self.work_dir = work_dir

    def compile(self) -> CompiledScenario:
        try:
            raw = json.loads(self.scenario_path.read_text("utf-8"))
        except OSError as error:
            raise ScenarioError(f"Cannot read scenario {self.scenario_path}: {error}") from error
        except json.JSONDecodeError as error:
            raise ScenarioError(f"Invalid scenario JSON in {self.scenario_path}: {error}") from error
        return compile_scenario(raw, work_dir=self.work_dir)


def compile_scenario(raw: object, *, work_dir: Path) -> CompiledScenario:
    """Build task descriptions and the occurrence index from a parsed scenario."""

    if not isinstance(raw, dict):
        raise ScenarioError("Scenario must be a JSON object")
    raw_tasks = raw.get("tasks")
    if not isinstance(raw_tasks, list) or not raw_tasks:
        raise ScenarioError("scenario.tasks must be a non-empty array")

    tasks: list[TaskDescription] = []
    occurrences = OccurrenceIndex()
    seen: set[str] = set()
    for item in raw_tasks:
        task = _compile_task(item, work_dir=work_dir, occurrences=occurrences)
        if task.task_id in seen:
            raise ScenarioError(f"Duplicate task id: {task.task_id!r}")
        seen.add(task.task_id)
        tasks.append(task)
    return CompiledScenario(tasks=tasks, occurrences=occurrences)


def _compile_task(
    item: object,
    *,
    work_dir: Path,
    occurrences: OccurrenceIndex,
) -> TaskDescription:
    if not isinstance(item, dict):
        raise ScenarioError("scenario task entry must be an object")

    task_id = item.get("id")
    algorithm = item.get("algorithm")
    if not isinstance(task_id, str) or not task_id.strip():
        raise ScenarioError("scenario task id must be a non-empty string")
    if not isinstance(algorithm, str) or not algorithm.strip():
        raise ScenarioError(f"Task {task_id!r}: algorithm must be a non-empty string")

    task = TaskDescription(
        task_id=task_id.strip(),
        algorithm=algorithm.strip(),
        parameters=_parameters(item.get("params", {}), task_id),
    )
    for resource_class, key in _SECTION_KEYS.items():
        inputs, outputs = _section(item.get(key), key, task_id)
        if resource_class is ResourceClass.FILE:
            inputs = [_resolve(name, work_dir) for name in inputs]
            outputs = [_resolve(name, work_dir) for name in outputs]
            task.inputs.extend(inputs)
            task.outputs.extend(outputs)
        for name in inputs:
            occurrences.record_input(resource_class, name, task.task_id)
        for name in outputs:
            occurrences.record_output(resource_class, name, task.task_id)
    return task


def _parameters(raw: object, task_id: str) -> dict[str, str]:
    if not isinstance(raw, dict):
        raise ScenarioError(f"Task {task_id!r}: params must be an object")
    parameters: dict[str, str] = {}
    for key, value in raw.items():
        if isinstance(value, dict | list) or value is None:
            raise ScenarioError(f"Task {task_id!r}: param {key!r} must be a scalar")
        parameters[str(key)] = str(value).lower() if isinstance(value, bool) else str(value)
    return parameters


def _section(raw: Any, key: str, task_id: str) -> tuple[list[str], list[str]]:
    if raw is None:
        return [], []
    if not isinstance(raw, dict):
        raise ScenarioError(f"Task {task_id!r}: {key} must be an object with in/out arrays")
    result: list[list[str]] = []
    for direction in ("in", "out"):
        values = raw.get(direction, [])
        if not isinstance(values, list) or not all(
            isinstance(value, str) and value.strip() for value in values
        ):
            raise ScenarioError(
                f"Task {task_id!r}: {key}.{direction} must be an array of non-empty strings",
            )
        result.append([value.strip() for value in values])
    return result[0], result[1]


def _resolve(name: str, work_dir: Path) -> str:
    path = Path(name)
    if path.is_absolute():
        return str(path)
    return str(work_dir / path)
