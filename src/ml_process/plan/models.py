"""Domain models for the task plan and resource occurrence index."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

UNASSIGNED_ORDER = -1


class TaskStatus(str, Enum):
    """Scheduled task lifecycle states."""

    WAITING = "waiting"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        """Position on the WAITING -> PENDING -> IN_PROGRESS -> terminal chain."""

        return _STATUS_RANKS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.FAILED)


_STATUS_RANKS = {
    TaskStatus.WAITING: 0,
    TaskStatus.PENDING: 1,
    TaskStatus.IN_PROGRESS: 2,
    TaskStatus.DONE: 3,
    TaskStatus.FAILED: 3,
}


class ResourceClass(str, Enum):
    """Resource kinds linking producer tasks to consumer tasks."""

    DATA_SET = "data_set"
    FILE = "file"
    FEATURE = "feature"

    @property
    def producer_required(self) -> bool:
        return self is ResourceClass.DATA_SET


@dataclass(slots=True, eq=False)
class TaskDescription:
    """One scheduled unit of work, as stored in the schedule file."""

    task_id: str
    algorithm: str
    parameters: dict[str, str] = field(default_factory=dict)
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    dependencies: set[str] = field(default_factory=set)
    dependents: set[str] = field(default_factory=set)
    status: TaskStatus = TaskStatus.WAITING
    order: int = UNASSIGNED_ORDER

    def set_dependency(self, producer: TaskDescription) -> None:
        """Make this task depend on ``producer`` (and register the reverse edge)."""

        if producer.task_id == self.task_id:
            return
        self.dependencies.add(producer.task_id)
        producer.dependents.add(self.task_id)

    def all_prerequisites_sorted(self, index: Mapping[str, TaskDescription]) -> bool:
        return all(index[dep].order != UNASSIGNED_ORDER for dep in self.dependencies)

    def all_prerequisites_done(self, index: Mapping[str, TaskDescription]) -> bool:
        return all(index[dep].status == TaskStatus.DONE for dep in self.dependencies)


@dataclass(slots=True)
class ResourceOccurrences:
    """Producer and consumer task ids for one named resource."""

    producers: list[str] = field(default_factory=list)
    consumers: list[str] = field(default_factory=list)


@dataclass(slots=True)
class OccurrenceIndex:
    """Per resource class: resource name -> where it is produced and consumed."""

    data_sets: dict[str, ResourceOccurrences] = field(default_factory=dict)
    files: dict[str, ResourceOccurrences] = field(default_factory=dict)
    features: dict[str, ResourceOccurrences] = field(default_factory=dict)

    def of(self, resource_class: ResourceClass) -> dict[str, ResourceOccurrences]:
        if resource_class is ResourceClass.DATA_SET:
            return self.data_sets
        if resource_class is ResourceClass.FILE:
            return self.files
        return self.features

    def record_output(self, resource_class: ResourceClass, name: str, task_id: str) -> None:
        self.of(resource_class).setdefault(name, ResourceOccurrences()).producers.append(task_id)

    def record_input(self, resource_class: ResourceClass, name: str, task_id: str) -> None:
        self.of(resource_class).setdefault(name, ResourceOccurrences()).consumers.append(task_id)


@dataclass(slots=True)
class PlanSnapshot:
    """Status counts over a whole plan."""

    total: int = 0
    counts: dict[TaskStatus, int] = field(default_factory=dict)

    @classmethod
    def from_tasks(cls, tasks: Iterable[TaskDescription]) -> PlanSnapshot:
        snapshot = cls()
        for task in tasks:
            snapshot.total += 1
            snapshot.counts[task.status] = snapshot.counts.get(task.status, 0) + 1
        return snapshot

    def count(self, status: TaskStatus) -> int:
        return self.counts.get(status, 0)


def index_by_id(tasks: Iterable[TaskDescription]) -> dict[str, TaskDescription]:
    return {task.task_id: task for task in tasks}
