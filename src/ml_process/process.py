"""Process-level entry point: one scheduler instance with its worker threads."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from ml_process.config import ProcessContext
from ml_process.plan.dispatcher import Plan
from ml_process.plan.errors import PlanError
from ml_process.plan.models import PlanSnapshot, TaskStatus
from ml_process.plan.store import ScheduleStore
from ml_process.scenario.compiler import ScenarioCompiler
from ml_process.tasks.registry import TaskRegistry, default_registry
from ml_process.worker import PlanWorker, WorkerRunSummary

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


@dataclass(slots=True)
class ProcessResult:
    """Outcome of one process run."""

    exit_status: int
    lines: list[str] = field(default_factory=list)
    summaries: list[WorkerRunSummary] = field(default_factory=list)


def build_plan(context: ProcessContext, registry: TaskRegistry | None = None) -> Plan:
    """Wire the plan for a scenario from an explicit context."""

    store = ScheduleStore(
        context.schedule_path,
        lock_timeout_seconds=context.settings.store.lock_timeout_seconds,
    )
    return Plan(
        store=store,
        scenario=ScenarioCompiler(context.scenario_path, context.work_dir),
        registry=registry or default_registry(),
        reset_path=context.reset_path,
    )


class MlProcess:
    """Starts the configured worker threads and reports the exit status."""

    def __init__(self, context: ProcessContext, *, registry: TaskRegistry | None = None) -> None:
        self.context = context
        self.plan = build_plan(context, registry)
        self._stop = threading.Event()

    def run(self) -> ProcessResult:
        worker_settings = self.context.settings.worker
        logger.info(
            "Starting process - scenario: %s, working directory: %s, "
            "%d thread(s); %d instance(s) assumed",
            self.context.scenario_path,
            self.context.work_dir,
            worker_settings.threads,
            worker_settings.instances,
        )

        if self.context.parse_only:
            check = self.plan.check_scenario()
            return ProcessResult(
                exit_status=EXIT_OK if check.success else EXIT_FAILED,
                lines=check.lines,
            )

        if self.context.reset_prefixes:
            try:
                self.plan.request_reset(self.context.reset_prefixes)
            except PlanError as error:
                logger.error("Reset request failed: %s", error)
                return ProcessResult(exit_status=EXIT_FAILED, lines=[f"Error: {error}"])

        workers = [
            PlanWorker(
                plan=self.plan,
                worker_id=f"worker-{number}",
                backoff_base_seconds=worker_settings.contention_backoff_base_seconds,
                backoff_max_seconds=worker_settings.contention_backoff_max_seconds,
                stop_event=self._stop,
            )
            for number in range(worker_settings.threads)
        ]
        threads = [
            threading.Thread(target=worker.run_loop, name=worker.worker_id)
            for worker in workers
        ]
        for thread in threads:
            thread.start()
        try:
            for thread in threads:
                thread.join()
        except KeyboardInterrupt:
            logger.warning("Interrupted, waiting for running tasks to finish")
            self._stop.set()
            for thread in threads:
                thread.join()

        summaries = [worker.summary for worker in workers]
        return self._finish(summaries)

    def stop(self) -> None:
        self._stop.set()

    def _finish(self, summaries: list[WorkerRunSummary]) -> ProcessResult:
        lines: list[str] = []
        fatal = [summary.fatal_error for summary in summaries if summary.fatal_error]
        failed_tasks = False
        try:
            snapshot = self.plan.snapshot()
        except PlanError as error:
            fatal.append(str(error))
        else:
            failed_tasks = snapshot.count(TaskStatus.FAILED) > 0
            lines.append(f"Plan status: {render_counts(snapshot)}")

        if self.context.settings.cleanup and not fatal and not failed_tasks:
            try:
                self.plan.request_cleanup()
            except PlanError as error:
                fatal.append(str(error))

        exit_status = (
            EXIT_FAILED if failed_tasks or self.plan.has_plan_errors or fatal else EXIT_OK
        )
        lines.insert(
            0,
            "Process summary: "
            f"processed={sum(item.processed for item in summaries)} "
            f"succeeded={sum(item.succeeded for item in summaries)} "
            f"failed={sum(item.failed for item in summaries)} "
            f"exit_status={exit_status}",
        )
        lines.extend(f"Error: {message}" for message in dict.fromkeys(fatal))
        logger.info("All threads finished, exit status: %d", exit_status)
        return ProcessResult(exit_status=exit_status, lines=lines, summaries=summaries)


def render_counts(snapshot: PlanSnapshot) -> str:
    if not snapshot.total:
        return "no plan"
    ordered = sorted(snapshot.counts.items(), key=lambda item: (item[0].rank, item[0].value))
    return " ".join(f"{status.value}={count}" for status, count in ordered)
