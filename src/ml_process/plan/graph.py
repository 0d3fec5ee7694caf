"""Dependency graph construction from resource producers and consumers."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ml_process.plan.errors import (
    DataError,
    DuplicateProducerError,
    MissingProducerError,
)
from ml_process.plan.models import (
    OccurrenceIndex,
    ResourceClass,
    ResourceOccurrences,
    TaskDescription,
    TaskStatus,
    index_by_id,
)

logger = logging.getLogger(__name__)


def set_dependencies(tasks: Sequence[TaskDescription], occurrences: OccurrenceIndex) -> None:
    """Attach producer -> consumer edges for every resource class.

    Data sets must be produced by exactly one task. Files and features that
    nobody produces are assumed to exist before the process starts.

    Raises:
        MissingProducerError
        DuplicateProducerError
        DataError
    """

    index = index_by_id(tasks)
    for resource_class in ResourceClass:
        for name, occurrence in occurrences.of(resource_class).items():
            _link_resource(
                index=index,
                resource_class=resource_class,
                name=name,
                occurrence=occurrence,
            )


def initial_statuses(tasks: Sequence[TaskDescription]) -> None:
    """Mark independent tasks PENDING and everything else WAITING."""

    for task in tasks:
        task.status = TaskStatus.WAITING if task.dependencies else TaskStatus.PENDING


def _link_resource(
    *,
    index: dict[str, TaskDescription],
    resource_class: ResourceClass,
    name: str,
    occurrence: ResourceOccurrences,
) -> None:
    producers = _unique(occurrence.producers)
    if len(producers) > 1:
        raise DuplicateProducerError(name, producers)

    if not producers:
        if resource_class.producer_required and occurrence.consumers:
            raise MissingProducerError(name, list(occurrence.consumers))
        if occurrence.consumers:
            logger.debug("%s %r assumed to exist beforehand", resource_class.value, name)
        return

    producer = _lookup(index, producers[0], name)
    for consumer_id in occurrence.consumers:
        _lookup(index, consumer_id, name).set_dependency(producer)


def _lookup(index: dict[str, TaskDescription], task_id: str, resource: str) -> TaskDescription:
    try:
        return index[task_id]
    except KeyError as error:
        raise DataError(
            f"Resource {resource!r} refers to unknown task {task_id!r}",
        ) from error


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
