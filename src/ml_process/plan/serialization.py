"""Whole-document JSON codec for the schedule file."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from ml_process.plan.errors import InvalidPlanError
from ml_process.plan.models import TaskDescription, TaskStatus, index_by_id

FORMAT_VERSION = 1


def dump_plan(tasks: Sequence[TaskDescription]) -> str:
    """Serialize the ordered plan using deterministic formatting."""

    payload = {
        "format_version": FORMAT_VERSION,
        "tasks": [_task_to_dict(task) for task in tasks],
    }
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)


def load_plan(text: str) -> list[TaskDescription]:
    """Deserialize and validate a plan; rebuilds the ``dependents`` relation."""

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as error:
        raise InvalidPlanError(f"Schedule file is not valid JSON: {error}") from error
    if not isinstance(raw, dict):
        raise InvalidPlanError("Schedule file must contain a JSON object")

    version = raw.get("format_version")
    if version != FORMAT_VERSION:
        raise InvalidPlanError(f"Unsupported schedule format version: {version!r}")
    raw_tasks = raw.get("tasks")
    if not isinstance(raw_tasks, list):
        raise InvalidPlanError("schedule.tasks must be an array")

    tasks = [_task_from_dict(item) for item in raw_tasks]
    index = index_by_id(tasks)
    if len(index) != len(tasks):
        raise InvalidPlanError("Schedule file contains duplicate task ids")
    for task in tasks:
        for dependency_id in task.dependencies:
            producer = index.get(dependency_id)
            if producer is None:
                raise InvalidPlanError(
                    f"Task {task.task_id!r} depends on unknown task {dependency_id!r}",
                )
            producer.dependents.add(task.task_id)
    return tasks


def _task_to_dict(task: TaskDescription) -> dict[str, Any]:
    return {
        "id": task.task_id,
        "algorithm": task.algorithm,
        "parameters": dict(task.parameters),
        "inputs": list(task.inputs),
        "outputs": list(task.outputs),
        "dependencies": sorted(task.dependencies),
        "status": task.status.value,
        "order": task.order,
    }


def _task_from_dict(item: object) -> TaskDescription:
    if not isinstance(item, dict):
        raise InvalidPlanError("schedule task entry must be an object")

    task_id = item.get("id")
    algorithm = item.get("algorithm")
    parameters = item.get("parameters", {})
    order = item.get("order")
    if not isinstance(task_id, str) or not task_id:
        raise InvalidPlanError("schedule task id must be a non-empty string")
    if not isinstance(algorithm, str):
        raise InvalidPlanError(f"Task {task_id!r}: algorithm must be a string")
    if not isinstance(parameters, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in parameters.items()
    ):
        raise InvalidPlanError(f"Task {task_id!r}: parameters must map strings to strings")
    if not isinstance(order, int) or order < 0:
        raise InvalidPlanError(f"Task {task_id!r}: order must be a non-negative integer")

    try:
        status = TaskStatus(item.get("status"))
    except ValueError as error:
        raise InvalidPlanError(f"Task {task_id!r}: unknown status {item.get('status')!r}") from error

    return TaskDescription(
        task_id=task_id,
        algorithm=algorithm,
        parameters=dict(parameters),
        inputs=_string_list(item, "inputs", task_id),
        outputs=_string_list(item, "outputs", task_id),
        dependencies=set(_string_list(item, "dependencies", task_id)),
        status=status,
        order=order,
    )


def _string_list(item: dict[str, Any], key: str, task_id: str) -> list[str]:
    values = item.get(key, [])
    if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
        raise InvalidPlanError(f"Task {task_id!r}: {key} must be an array of strings")
    return list(values)
