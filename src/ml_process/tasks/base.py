"""Generic task interface invoked by workers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class TaskError(RuntimeError):
    """Task-level failure; recorded as FAILED, never fatal to the worker."""

    def __init__(self, task_id: str, message: str) -> None:
        super().__init__(f"Task {task_id}: {message}")
        self.task_id = task_id


class UnknownAlgorithmError(TaskError):
    """Algorithm name is not present in the task registry."""


class Task(ABC):
    """One executable unit built from a task description."""

    def __init__(
        self,
        task_id: str,
        parameters: dict[str, str],
        inputs: list[str],
        outputs: list[str],
    ) -> None:
        self.task_id = task_id
        self.parameters = parameters
        self.inputs = inputs
        self.outputs = outputs

    @abstractmethod
    def perform(self) -> None:
        """Run the task.

        Raises:
            TaskError: if the task cannot complete.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(task_id={self.task_id!r})"
