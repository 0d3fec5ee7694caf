"""Topological ordering of the task plan.

Kahn, A. B. (1962), "Topological sorting of large networks",
Communications of the ACM 5 (11): 558-562.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence

from ml_process.plan.errors import LoopDependencyError
from ml_process.plan.models import UNASSIGNED_ORDER, TaskDescription, index_by_id


def sort_plan(tasks: Sequence[TaskDescription]) -> list[TaskDescription]:
    """Return tasks in execution order with ``order`` assigned 0..n-1.

    Simultaneously ready tasks keep their relative input order, so the
    result is deterministic for a given input sequence.

    Raises:
        LoopDependencyError: if some tasks could not be ranked.
    """

    index = index_by_id(tasks)
    position = {task.task_id: pos for pos, task in enumerate(tasks)}
    for task in tasks:
        task.order = UNASSIGNED_ORDER

    independent: deque[TaskDescription] = deque(
        task for task in tasks if task.all_prerequisites_sorted(index)
    )
    queued = {task.task_id for task in independent}
    ordered: list[TaskDescription] = []

    while independent:
        task = independent.popleft()
        task.order = len(ordered)
        ordered.append(task)

        for dependent_id in sorted(task.dependents, key=position.__getitem__):
            if dependent_id in queued:
                continue
            dependent = index[dependent_id]
            if dependent.all_prerequisites_sorted(index):
                queued.add(dependent_id)
                independent.append(dependent)

    unranked = [task.task_id for task in tasks if task.order == UNASSIGNED_ORDER]
    if unranked:
        raise LoopDependencyError(unranked)
    return ordered
