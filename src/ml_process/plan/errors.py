"""Error taxonomy for plan construction, schedule storage and dispatch."""

from __future__ import annotations


class PlanError(Exception):
    """Base class for errors fatal to plan creation or schedule access."""


class DataError(PlanError):
    """Inconsistent scenario data; no schedule is ever written for it."""


class ScenarioError(DataError):
    """Scenario description is malformed or cannot be read."""


class MissingProducerError(DataError):
    """A mandatory-class resource is consumed but never produced."""

    def __init__(self, resource: str, consumers: list[str]) -> None:
        super().__init__(
            f"Data set {resource!r} is never produced "
            f"(consumed by: {', '.join(consumers) or '-'})",
        )
        self.resource = resource
        self.consumers = consumers


class DuplicateProducerError(DataError):
    """A resource is declared as output by more than one task."""

    def __init__(self, resource: str, producers: list[str]) -> None:
        super().__init__(
            f"Resource {resource!r} is produced by more than one task: {', '.join(producers)}",
        )
        self.resource = resource
        self.producers = producers


class LoopDependencyError(DataError):
    """The task graph contains at least one dependency cycle."""

    def __init__(self, task_ids: list[str]) -> None:
        super().__init__(f"Loop dependency among tasks: {', '.join(task_ids)}")
        self.task_ids = task_ids


class PlanStoreError(PlanError):
    """Schedule file could not be locked, read, written or interpreted."""


class StoreUnavailableError(PlanStoreError):
    """I/O failure while locking, reading or writing the schedule file."""


class InvalidPlanError(PlanStoreError):
    """Schedule file content is corrupt or does not match the request."""


class SchedulingContention(Exception):  # noqa: N818
    """Nothing is ready right now, but tasks are still in progress.

    This is a back-off-and-retry signal, never a failure.
    """

    def __init__(self, *, in_progress: int, waiting: int) -> None:
        super().__init__(
            f"No task ready: {in_progress} in progress, {waiting} waiting",
        )
        self.in_progress = in_progress
        self.waiting = waiting
