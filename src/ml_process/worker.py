"""Worker loop that pulls tasks from the shared plan and performs them."""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass

from ml_process.plan.dispatcher import Plan
from ml_process.plan.errors import PlanError, SchedulingContention
from ml_process.plan.models import TaskStatus
from ml_process.tasks.base import Task, TaskError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkerRunSummary:
    """Aggregate worker counters for process reporting."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    contention_waits: int = 0
    fatal_error: str | None = None


class PlanWorker:
    """Dispatches and performs tasks until the plan has nothing left for it."""

    def __init__(
        self,
        *,
        plan: Plan,
        worker_id: str,
        backoff_base_seconds: float = 0.5,
        backoff_max_seconds: float = 10.0,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.plan = plan
        self.worker_id = worker_id
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self._stop = stop_event or threading.Event()
        self._random = random.Random()  # noqa: S311
        self.summary = WorkerRunSummary()

    def run_loop(self) -> WorkerRunSummary:
        """Work until the plan is exhausted, a stop is requested or a fatal error occurs."""

        consecutive_waits = 0
        logger.info("Worker %s started", self.worker_id)
        while not self._stop.is_set():
            try:
                task = self.plan.get_next_pending_task()
            except SchedulingContention as contention:
                consecutive_waits += 1
                self.summary.contention_waits += 1
                delay = self._compute_backoff(attempt=consecutive_waits)
                logger.debug(
                    "Worker %s waiting %.2fs: %s",
                    self.worker_id,
                    delay,
                    contention,
                )
                self._stop.wait(timeout=delay)
                continue
            except PlanError as error:
                self._record_fatal(error)
                break
            except Exception as error:
                logger.exception("Worker %s crashed while dispatching", self.worker_id)
                self._record_fatal(error)
                break

            consecutive_waits = 0
            if task is None:
                logger.info("Worker %s found no more tasks", self.worker_id)
                break
            if not self._run_task(task):
                break

        logger.info(
            "Worker %s finished: processed=%d succeeded=%d failed=%d",
            self.worker_id,
            self.summary.processed,
            self.summary.succeeded,
            self.summary.failed,
        )
        return self.summary

    def stop(self) -> None:
        self._stop.set()

    def _run_task(self, task: Task) -> bool:
        """Perform one task and record its outcome; False means stop the worker."""

        self.summary.processed += 1
        try:
            task.perform()
        except TaskError as error:
            logger.error("Task %s failed: %s", task.task_id, error)
            outcome = TaskStatus.FAILED
        except Exception:
            logger.exception("Task %s crashed", task.task_id)
            outcome = TaskStatus.FAILED
        else:
            outcome = TaskStatus.DONE

        try:
            self.plan.update_task_status(task.task_id, outcome)
        except PlanError as error:
            self._record_fatal(error)
            return False

        if outcome == TaskStatus.DONE:
            self.summary.succeeded += 1
        else:
            self.summary.failed += 1
        return True

    def _record_fatal(self, error: Exception) -> None:
        logger.error("Worker %s stopped: %s", self.worker_id, error)
        self.summary.fatal_error = str(error)

    def _compute_backoff(self, *, attempt: int) -> float:
        max_delay = min(
            self.backoff_max_seconds,
            self.backoff_base_seconds * (2 ** max(attempt - 1, 0)),
        )
        return self._random.uniform(max_delay / 2, max_delay)
