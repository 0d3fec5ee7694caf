"""Controllers for scheduler CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from ml_process.config import ProcessContext, Settings
from ml_process.plan.errors import PlanError
from ml_process.plan.models import PlanSnapshot, TaskStatus
from ml_process.process import EXIT_FAILED, MlProcess, ProcessResult, build_plan, render_counts

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"


@dataclass(slots=True)
class RunCommand:
    """CLI input for running (or joining) a scenario."""

    scenario_path: Path
    work_dir: Path | None = None
    threads: int | None = None
    instances: int | None = None
    reset: tuple[str, ...] = ()
    parse_only: bool = False
    cleanup: bool | None = None
    verbosity: str | None = None


@dataclass(slots=True)
class StatusCommand:
    """CLI input for plan inspection."""

    scenario_path: Path
    work_dir: Path | None = None
    status: str | None = None


class ProcessCliController:
    """Coordinates scenario runs and plan inspection."""

    def run(self, command: RunCommand) -> ProcessResult:
        try:
            settings = _settings_for(command)
            configure_logging(settings)
            context = ProcessContext.for_scenario(
                command.scenario_path,
                work_dir=command.work_dir,
                settings=settings,
                reset_prefixes=_split_prefixes(command.reset),
                parse_only=command.parse_only,
            )
        except ValueError as error:
            return ProcessResult(exit_status=EXIT_FAILED, lines=[f"Error: {error}"])
        return MlProcess(context).run()

    def status(self, command: StatusCommand) -> list[str]:
        context = ProcessContext.for_scenario(
            command.scenario_path,
            work_dir=command.work_dir,
            settings=Settings.from_env(),
        )
        status_filter = TaskStatus(command.status) if command.status else None
        try:
            tasks = build_plan(context).current_tasks()
        except PlanError as error:
            return [f"Error: {error}"]
        if not tasks:
            return [f"No plan yet: {context.schedule_path}"]

        lines = [
            f"Plan: {context.schedule_path}",
            f"Tasks: {len(tasks)} ({render_counts(PlanSnapshot.from_tasks(tasks))})",
        ]
        for task in tasks:
            if status_filter is not None and task.status != status_filter:
                continue
            dependencies = ",".join(sorted(task.dependencies)) or "-"
            lines.append(
                f"  {task.order:>4} {task.task_id} status={task.status.value} "
                f"algorithm={task.algorithm} depends_on={dependencies}",
            )
        return lines


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, force=True)


def _settings_for(command: RunCommand) -> Settings:
    settings = Settings.from_env()
    worker = settings.worker
    if command.threads is not None:
        worker = replace(worker, threads=command.threads)
    if command.instances is not None:
        worker = replace(worker, instances=command.instances)
    settings = replace(
        settings,
        worker=worker,
        verbosity=(command.verbosity or settings.verbosity).upper(),
        cleanup=settings.cleanup if command.cleanup is None else command.cleanup,
    )
    settings.validate()
    return settings


def _split_prefixes(values: tuple[str, ...]) -> tuple[str, ...]:
    prefixes: list[str] = []
    for value in values:
        prefixes.extend(part.strip() for part in value.split(",") if part.strip())
    return tuple(prefixes)
