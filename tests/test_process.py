from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import allure
import pytest

from helpers import RecordingTask, make_context, scenario_task
from ml_process.plan.models import PlanSnapshot, TaskStatus
from ml_process.process import EXIT_FAILED, EXIT_OK, MlProcess, render_counts
from ml_process.tasks.registry import TaskRegistry

pytestmark = [
    allure.epic("Scheduler"),
    allure.feature("Process Runs"),
]


def _final_statuses(process: MlProcess) -> dict[str, TaskStatus]:
    return {task.task_id: task.status for task in process.plan.load_or_create()}


def test_linear_chain_runs_in_order(
    chain_scenario: Path,
    registry: TaskRegistry,
    journal: list[str],
) -> None:
    process = MlProcess(make_context(chain_scenario), registry=registry)

    result = process.run()

    assert result.exit_status == EXIT_OK
    assert journal == ["A", "B", "C"]
    assert result.lines[0] == "Process summary: processed=3 succeeded=3 failed=0 exit_status=0"
    assert result.lines[1] == "Plan status: done=3"


def test_mutual_dependency_fails_before_anything_runs(
    write_scenario: Callable[..., Path],
    registry: TaskRegistry,
    journal: list[str],
) -> None:
    scenario = write_scenario(
        [
            scenario_task("A", data_in=["y"], data_out=["x"]),
            scenario_task("B", data_in=["x"], data_out=["y"]),
        ],
    )
    process = MlProcess(make_context(scenario, threads=2), registry=registry)

    result = process.run()

    assert result.exit_status == EXIT_FAILED
    assert journal == []
    assert process.plan.store.is_empty()
    assert any("Loop dependency" in line for line in result.lines)


@pytest.mark.parametrize("threads", [1, 2, 4])
def test_independent_branches_complete_with_parallel_workers(
    write_scenario: Callable[..., Path],
    registry: TaskRegistry,
    journal: list[str],
    threads: int,
) -> None:
    scenario = write_scenario(
        [
            scenario_task("A", data_out=["a"]),
            scenario_task("C", data_out=["c"]),
            scenario_task("B", data_in=["a"]),
            scenario_task("D", data_in=["c"]),
        ],
    )
    process = MlProcess(make_context(scenario, threads=threads), registry=registry)

    result = process.run()

    assert result.exit_status == EXIT_OK
    assert sorted(journal) == ["A", "B", "C", "D"]
    assert journal.index("A") < journal.index("B")
    assert journal.index("C") < journal.index("D")
    assert len(result.summaries) == threads


def test_failed_task_blocks_dependents_and_sets_exit_status(
    write_scenario: Callable[..., Path],
    registry: TaskRegistry,
    journal: list[str],
) -> None:
    scenario = write_scenario(
        [
            scenario_task("A", params={"fail": True}, data_out=["a"]),
            scenario_task("B", data_in=["a"]),
            scenario_task("E"),
        ],
    )
    process = MlProcess(make_context(scenario, cleanup=True), registry=registry)

    result = process.run()

    assert result.exit_status == EXIT_FAILED
    assert "B" not in journal
    assert _final_statuses(process) == {
        "A": TaskStatus.FAILED,
        "B": TaskStatus.WAITING,
        "E": TaskStatus.DONE,
    }
    assert process.plan.store.schedule_path.exists()


def test_cleanup_removes_schedule_after_success(
    chain_scenario: Path,
    registry: TaskRegistry,
) -> None:
    process = MlProcess(make_context(chain_scenario, cleanup=True), registry=registry)

    result = process.run()

    assert result.exit_status == EXIT_OK
    assert not process.plan.store.schedule_path.exists()


def test_second_run_joins_finished_plan_without_rerunning(
    chain_scenario: Path,
    registry: TaskRegistry,
    journal: list[str],
) -> None:
    MlProcess(make_context(chain_scenario), registry=registry).run()
    journal.clear()

    result = MlProcess(make_context(chain_scenario), registry=registry).run()

    assert result.exit_status == EXIT_OK
    assert journal == []


def test_reset_reruns_matching_tasks_and_dependents(
    chain_scenario: Path,
    registry: TaskRegistry,
    journal: list[str],
) -> None:
    MlProcess(make_context(chain_scenario), registry=registry).run()
    journal.clear()

    result = MlProcess(
        make_context(chain_scenario, reset_prefixes=("B",)),
        registry=registry,
    ).run()

    assert result.exit_status == EXIT_OK
    assert journal == ["B", "C"]


def test_parse_only_reports_plan_and_writes_nothing(
    chain_scenario: Path,
    registry: TaskRegistry,
    journal: list[str],
) -> None:
    process = MlProcess(make_context(chain_scenario, parse_only=True), registry=registry)

    result = process.run()

    assert result.exit_status == EXIT_OK
    assert result.lines[0] == "Scenario OK: 3 task(s)"
    assert journal == []
    assert process.plan.store.is_empty()


def test_render_counts() -> None:
    assert render_counts(PlanSnapshot()) == "no plan"
    snapshot = PlanSnapshot(
        total=4,
        counts={TaskStatus.DONE: 2, TaskStatus.WAITING: 1, TaskStatus.FAILED: 1},
    )
    assert render_counts(snapshot) == "waiting=1 done=2 failed=1"


class _NeedsMode(RecordingTask):
    def __init__(self, task_id, parameters, inputs, outputs) -> None:
        super().__init__(task_id, parameters, inputs, outputs)
        self.mode = parameters["mode"]


def test_crashing_task_constructor_fails_the_task_not_the_run(
    write_scenario: Callable[..., Path],
    registry: TaskRegistry,
    journal: list[str],
) -> None:
    registry.register("needs-mode", _NeedsMode)
    scenario = write_scenario(
        [
            scenario_task("A", algorithm="needs-mode", data_out=["a"]),
            scenario_task("B", data_in=["a"]),
            scenario_task("E"),
        ],
    )
    process = MlProcess(make_context(scenario, threads=2), registry=registry)

    result = process.run()

    assert result.exit_status == EXIT_FAILED
    assert journal == ["E"]
    assert [summary.fatal_error for summary in result.summaries] == [None, None]
    assert _final_statuses(process) == {
        "A": TaskStatus.FAILED,
        "B": TaskStatus.WAITING,
        "E": TaskStatus.DONE,
    }


def test_reset_all_reruns_every_task(
    chain_scenario: Path,
    registry: TaskRegistry,
    journal: list[str],
) -> None:
    MlProcess(make_context(chain_scenario), registry=registry).run()
    journal.clear()

    result = MlProcess(
        make_context(chain_scenario, reset_prefixes=("!",)),
        registry=registry,
    ).run()

    assert result.exit_status == EXIT_OK
    assert journal == ["A", "B", "C"]
    assert sum(summary.processed for summary in result.summaries) == 3
