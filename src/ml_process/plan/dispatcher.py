"""Plan access shared by all workers of all cooperating processes.

Every public operation is one transaction on the schedule file: lock, read
the whole plan, decide, write the whole plan back, unlock. The first
transaction that finds the schedule file empty builds the plan.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ml_process.plan.errors import (
    DataError,
    InvalidPlanError,
    SchedulingContention,
    StoreUnavailableError,
)
from ml_process.plan.graph import initial_statuses, set_dependencies
from ml_process.plan.models import (
    PlanSnapshot,
    TaskDescription,
    TaskStatus,
    index_by_id,
)
from ml_process.plan.sorting import sort_plan
from ml_process.plan.store import ScheduleStore
from ml_process.tasks.base import Task, TaskError

if TYPE_CHECKING:
    from ml_process.scenario.compiler import CompiledScenario
    from ml_process.tasks.registry import TaskRegistry

logger = logging.getLogger(__name__)

RESET_ALL = "!"
RESET_CHANGED = "#"


class ScenarioSource(Protocol):
    """Anything able to produce the unordered task list for a plan."""

    def compile(self) -> CompiledScenario:
        """Return tasks and resource occurrences."""


@dataclass(slots=True)
class ScenarioCheckResult:
    """Outcome of a parse-only scenario check."""

    lines: list[str] = field(default_factory=list)
    success: bool = True


@dataclass(slots=True)
class _Selection:
    task: TaskDescription | None
    in_progress: int = 0
    waiting: int = 0


class Plan:
    """Dispatcher and status bookkeeping over one schedule file."""

    def __init__(
        self,
        *,
        store: ScheduleStore,
        scenario: ScenarioSource,
        registry: TaskRegistry,
        reset_path: Path | None = None,
    ) -> None:
        self.store = store
        self.scenario = scenario
        self.registry = registry
        self.reset_path = reset_path
        self.has_plan_errors = False

    # -- dispatch ---------------------------------------------------------------

    def get_next_pending_task(self) -> Task | None:
        """Hand out the lowest-ranked ready task, marking it IN_PROGRESS.

        Returns:
            The runnable task, or None when nothing is left to do.

        Raises:
            SchedulingContention: nothing is ready but work is still running.
            DataError: the plan could not be built from the scenario.
            PlanStoreError: the schedule file is unavailable or corrupt.
        """

        with self.store.exclusive_lock():
            tasks = self._load_or_create_locked()
            changed = False
            while True:
                selection = _select_next(tasks)
                candidate = selection.task
                if candidate is None:
                    break
                try:
                    runnable = self.registry.create(candidate)
                except TaskError as error:
                    logger.error("Cannot instantiate task %s: %s", candidate.task_id, error)
                    candidate.status = TaskStatus.FAILED
                    changed = True
                    continue
                except Exception:
                    logger.exception("Task %s constructor crashed", candidate.task_id)
                    candidate.status = TaskStatus.FAILED
                    changed = True
                    continue

                candidate.status = TaskStatus.IN_PROGRESS
                self.store.write_plan(tasks)
                logger.info(
                    "Dispatched task %s (order %d, algorithm %s)",
                    candidate.task_id,
                    candidate.order,
                    candidate.algorithm,
                )
                return runnable

            if changed:
                self.store.write_plan(tasks)

        if selection.in_progress and selection.waiting:
            raise SchedulingContention(
                in_progress=selection.in_progress,
                waiting=selection.waiting,
            )
        return None

    def update_task_status(self, task_id: str, status: TaskStatus) -> bool:
        """Record a new status for one task.

        Statuses only move forward; a request that would keep or regress the
        current status is ignored and ``False`` is returned. DONE and FAILED
        are accepted only for a task that is IN_PROGRESS, so a report from a
        run that was reset meanwhile cannot release dependents.

        Raises:
            InvalidPlanError: if no plan exists or the task id is unknown.
        """

        with self.store.exclusive_lock():
            if self.store.is_empty():
                raise InvalidPlanError(f"No plan in {self.store.schedule_path}")
            tasks = self.store.read_plan()
            index = index_by_id(tasks)
            task = index.get(task_id)
            if task is None:
                raise InvalidPlanError(f"Task {task_id!r} not found in plan")

            if status.rank <= task.status.rank or (
                status.is_terminal and task.status != TaskStatus.IN_PROGRESS
            ):
                logger.warning(
                    "Ignoring status change of %s: %s -> %s",
                    task_id,
                    task.status.value,
                    status.value,
                )
                return False

            task.status = status
            if status == TaskStatus.DONE:
                _promote_dependents(task, index)
            self.store.write_plan(tasks)

        logger.info("Task %s is now %s", task_id, status.value)
        return True

    # -- plan lifecycle ---------------------------------------------------------

    def load_or_create(self) -> list[TaskDescription]:
        """Return the current plan, building it first if the file is empty."""

        with self.store.exclusive_lock():
            return self._load_or_create_locked()

    def check_scenario(self) -> ScenarioCheckResult:
        """Build the plan in memory only and report problems."""

        result = ScenarioCheckResult()
        try:
            tasks = self._build_plan()
        except DataError as error:
            result.success = False
            result.lines.append(f"Scenario error: {error}")
            return result

        result.lines.append(f"Scenario OK: {len(tasks)} task(s)")
        for task in tasks:
            result.lines.append(f"  {task.order:>4} {task.task_id} [{task.algorithm}]")
            if task.algorithm not in self.registry:
                result.success = False
                result.lines.append(
                    f"Unknown algorithm {task.algorithm!r} for task {task.task_id}",
                )

        for path in _external_inputs(tasks):
            if not Path(path).exists():
                logger.warning("External input file does not exist yet: %s", path)
                result.lines.append(f"Warning: external input missing: {path}")
        return result

    def current_tasks(self) -> list[TaskDescription]:
        """Read the stored plan as it is; never builds it or applies a reset list."""

        with self.store.exclusive_lock():
            if self.store.is_empty():
                return []
            return self.store.read_plan()

    def snapshot(self) -> PlanSnapshot:
        return PlanSnapshot.from_tasks(self.current_tasks())

    def has_failed_tasks(self) -> bool:
        return self.snapshot().count(TaskStatus.FAILED) > 0

    def request_reset(self, prefixes: Iterable[str]) -> None:
        """Ask the next plan access (by any process) to reset matching tasks."""

        if self.reset_path is None:
            raise ValueError("Plan has no reset list path configured")
        cleaned = [prefix.strip() for prefix in prefixes if prefix.strip()]
        if not cleaned:
            return
        with self.store.exclusive_lock():
            try:
                self.reset_path.write_text(",".join(cleaned), "utf-8")
            except OSError as error:
                raise StoreUnavailableError(
                    f"Cannot write reset list {self.reset_path}: {error}",
                ) from error
        logger.info("Reset requested for task prefixes: %s", ", ".join(cleaned))

    def request_cleanup(self) -> bool:
        """Delete the schedule file once nothing is pending or running."""

        with self.store.exclusive_lock():
            if self.store.is_empty():
                return False
            snapshot = PlanSnapshot.from_tasks(self.store.read_plan())
            active = snapshot.count(TaskStatus.PENDING) + snapshot.count(TaskStatus.IN_PROGRESS)
            if active:
                logger.info("Cleanup skipped: %d task(s) still pending or running", active)
                return False
            self.store.remove()
        logger.info("Schedule file removed: %s", self.store.schedule_path)
        return True

    # -- internals (lock held) --------------------------------------------------

    def _load_or_create_locked(self) -> list[TaskDescription]:
        self.store.create_if_absent()
        if self.store.is_empty():
            tasks = self._build_plan()
            self.store.write_plan(tasks)
            logger.info(
                "Plan created: %d task(s) in %s",
                len(tasks),
                self.store.schedule_path,
            )
        else:
            tasks = self.store.read_plan()

        self._apply_reset_list(tasks)
        return tasks

    def _build_plan(self) -> list[TaskDescription]:
        try:
            compiled = self.scenario.compile()
            set_dependencies(compiled.tasks, compiled.occurrences)
            ordered = sort_plan(compiled.tasks)
        except DataError as error:
            self.has_plan_errors = True
            logger.error("Plan creation failed: %s", error)
            raise
        initial_statuses(ordered)
        return ordered

    def _apply_reset_list(self, tasks: list[TaskDescription]) -> None:
        if self.reset_path is None or not self.reset_path.exists():
            return
        try:
            raw = self.reset_path.read_text("utf-8")
        except OSError as error:
            raise StoreUnavailableError(
                f"Cannot read reset list {self.reset_path}: {error}",
            ) from error

        prefixes = [part.strip() for part in raw.split(",") if part.strip()]
        changed = self._refresh_changed_tasks(tasks)
        reset_ids = reset_tasks(tasks, prefixes, changed=changed)
        if reset_ids or changed:
            self.store.write_plan(tasks)
        if reset_ids:
            logger.info("Reset %d task(s): %s", len(reset_ids), ", ".join(reset_ids))
        try:
            self.reset_path.unlink(missing_ok=True)
        except OSError as error:
            raise StoreUnavailableError(
                f"Cannot remove reset list {self.reset_path}: {error}",
            ) from error

    def _refresh_changed_tasks(self, tasks: list[TaskDescription]) -> list[str]:
        """Copy edited scenario definitions into the stored plan.

        Only the algorithm, parameters, inputs and outputs of tasks already in
        the plan are refreshed. Added, removed or rewired tasks need a new plan.
        """

        fresh = index_by_id(self._build_plan())
        stored_ids = {task.task_id for task in tasks}
        for task_id in fresh.keys() - stored_ids:
            logger.warning(
                "Task %s is not in the stored plan; remove the schedule to add it",
                task_id,
            )

        changed: list[str] = []
        for task in tasks:
            update = fresh.get(task.task_id)
            if update is None:
                logger.warning("Task %s is no longer in the scenario", task.task_id)
                continue
            if update.dependencies != task.dependencies:
                logger.warning(
                    "Dependencies of task %s changed; remove the schedule to re-plan",
                    task.task_id,
                )
            if (update.algorithm, update.parameters, update.inputs, update.outputs) == (
                task.algorithm,
                task.parameters,
                task.inputs,
                task.outputs,
            ):
                continue
            task.algorithm = update.algorithm
            task.parameters = update.parameters
            task.inputs = update.inputs
            task.outputs = update.outputs
            changed.append(task.task_id)
        if changed:
            logger.info("Scenario changed for task(s): %s", ", ".join(changed))
        return changed


def reset_tasks(
    tasks: Sequence[TaskDescription],
    prefixes: Sequence[str],
    *,
    changed: Iterable[str] = (),
) -> list[str]:
    """Return matching tasks and all their dependents to a restartable status.

    ``!`` among the prefixes selects every task; ``#`` selects nothing by
    itself and only triggers the reset of ``changed`` tasks. Tasks that are
    IN_PROGRESS are left running; their dependents are still reset.

    This is the only operation that moves a status backwards; it runs only
    on operator request.
    """

    if not prefixes:
        return []
    index = index_by_id(tasks)
    changed_ids = set(changed)
    plain = tuple(prefix for prefix in prefixes if prefix not in (RESET_ALL, RESET_CHANGED))
    seeds = [
        task
        for task in tasks
        if RESET_ALL in prefixes
        or task.task_id in changed_ids
        or (plain and task.task_id.startswith(plain))
    ]
    affected: set[str] = set()
    queue = deque(seeds)
    while queue:
        task = queue.popleft()
        if task.task_id in affected:
            continue
        affected.add(task.task_id)
        queue.extend(index[dependent_id] for dependent_id in task.dependents)

    reset_ids: list[str] = []
    for task in tasks:
        if task.task_id not in affected:
            continue
        if task.status == TaskStatus.IN_PROGRESS:
            logger.warning("Task %s is in progress and is not reset", task.task_id)
            affected.discard(task.task_id)
            continue
        task.status = TaskStatus.WAITING
        reset_ids.append(task.task_id)
    for task in tasks:
        if task.task_id in affected and task.all_prerequisites_done(index):
            task.status = TaskStatus.PENDING
    return reset_ids


def _select_next(tasks: Sequence[TaskDescription]) -> _Selection:
    """First ready task in rank order, or counts of what blocks dispatch.

    Readiness is recomputed from dependency statuses, so a stale stored
    status can never release a task early.
    """

    index = index_by_id(tasks)
    selection = _Selection(task=None)
    for task in sorted(tasks, key=lambda item: item.order):
        if task.status == TaskStatus.IN_PROGRESS:
            selection.in_progress += 1
        elif task.status.is_terminal:
            continue
        elif task.all_prerequisites_done(index):
            selection.task = task
            return selection
        else:
            selection.waiting += 1
    return selection


def _promote_dependents(task: TaskDescription, index: dict[str, TaskDescription]) -> None:
    for dependent_id in task.dependents:
        dependent = index[dependent_id]
        if dependent.status == TaskStatus.WAITING and dependent.all_prerequisites_done(index):
            dependent.status = TaskStatus.PENDING
            logger.debug("Task %s is ready", dependent_id)


def _external_inputs(tasks: Sequence[TaskDescription]) -> list[str]:
    produced = {path for task in tasks for path in task.outputs}
    seen: set[str] = set()
    result: list[str] = []
    for task in tasks:
        for path in task.inputs:
            if path in produced or path in seen:
                continue
            seen.add(path)
            result.append(path)
    return result
