"""Task interface, registry and built-in implementations."""

from ml_process.tasks.base import Task, TaskError, UnknownAlgorithmError
from ml_process.tasks.registry import TaskFactory, TaskRegistry, default_registry

__all__ = [
    "Task",
    "TaskError",
    "TaskFactory",
    "TaskRegistry",
    "UnknownAlgorithmError",
    "default_registry",
]
