"""Scenario and plan builders shared by the tests."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from ml_process.config import ProcessContext, Settings, WorkerSettings
from ml_process.plan.dispatcher import Plan
from ml_process.plan.store import ScheduleStore, reset_path_for, schedule_path_for
from ml_process.scenario.compiler import ScenarioCompiler
from ml_process.tasks.base import Task, TaskError
from ml_process.tasks.registry import TaskRegistry


class RecordingTask(Task):
    """Appends its id to a shared journal; fails when ``fail`` is ``true``."""

    journal: list[str] = []
    journal_lock = threading.Lock()

    def perform(self) -> None:
        with self.journal_lock:
            self.journal.append(self.task_id)
        if self.parameters.get("fail") == "true":
            raise TaskError(self.task_id, "requested failure")


def scenario_task(  # noqa: PLR0913
    task_id: str,
    *,
    algorithm: str = "record",
    params: dict[str, Any] | None = None,
    data_in: list[str] | None = None,
    data_out: list[str] | None = None,
    files_in: list[str] | None = None,
    files_out: list[str] | None = None,
    features_in: list[str] | None = None,
    features_out: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "id": task_id,
        "algorithm": algorithm,
        "params": params or {},
        "data_sets": {"in": data_in or [], "out": data_out or []},
        "files": {"in": files_in or [], "out": files_out or []},
        "features": {"in": features_in or [], "out": features_out or []},
    }


def make_plan(scenario_path: Path, registry: TaskRegistry) -> Plan:
    return Plan(
        store=ScheduleStore(schedule_path_for(scenario_path)),
        scenario=ScenarioCompiler(scenario_path, scenario_path.parent),
        registry=registry,
        reset_path=reset_path_for(scenario_path),
    )


def make_context(
    scenario_path: Path,
    *,
    threads: int = 1,
    cleanup: bool = False,
    reset_prefixes: tuple[str, ...] = (),
    parse_only: bool = False,
) -> ProcessContext:
    settings = Settings(
        cleanup=cleanup,
        worker=WorkerSettings(
            threads=threads,
            contention_backoff_base_seconds=0.01,
            contention_backoff_max_seconds=0.05,
        ),
    )
    return ProcessContext.for_scenario(
        scenario_path,
        settings=settings,
        reset_prefixes=reset_prefixes,
        parse_only=parse_only,
    )
