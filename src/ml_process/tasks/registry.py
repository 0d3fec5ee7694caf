"""Explicit algorithm-name -> task factory registry."""

from __future__ import annotations

from collections.abc import Callable

from ml_process.plan.models import TaskDescription
from ml_process.tasks.base import Task, UnknownAlgorithmError
from ml_process.tasks.builtin import CommandTask, FileMerger, NoOpTask

TaskFactory = Callable[[str, dict[str, str], list[str], list[str]], Task]


class TaskRegistry:
    """Maps algorithm names used in scenarios to task constructors."""

    def __init__(self) -> None:
        self._factories: dict[str, TaskFactory] = {}

    def register(self, name: str, factory: TaskFactory, *, replace: bool = False) -> None:
        if not replace and name in self._factories:
            raise ValueError(f"Algorithm already registered: {name!r}")
        self._factories[name] = factory

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))

    def create(self, description: TaskDescription) -> Task:
        """Instantiate the task implementation for a scheduled description."""

        factory = self._factories.get(description.algorithm)
        if factory is None:
            raise UnknownAlgorithmError(
                description.task_id,
                f"unknown algorithm {description.algorithm!r}",
            )
        return factory(
            description.task_id,
            dict(description.parameters),
            list(description.inputs),
            list(description.outputs),
        )


def default_registry() -> TaskRegistry:
    """Registry populated with the built-in task implementations."""

    registry = TaskRegistry()
    registry.register("noop", NoOpTask)
    registry.register("merge", FileMerger)
    registry.register("command", CommandTask)
    return registry
