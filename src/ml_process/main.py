"""CLI entrypoint for ml-process."""

from pathlib import Path

import rich_click as click

from ml_process import __version__
from ml_process.controllers import ProcessCliController, RunCommand, StatusCommand
from ml_process.plan.models import TaskStatus

click.rich_click.USE_MARKDOWN = True
PROCESS_CONTROLLER = ProcessCliController()


@click.group()
@click.version_option(version=__version__, prog_name="ml-process")
def ml_process() -> None:
    """Multi-process task scheduler driven by a scenario file."""


@ml_process.command("run")
@click.argument("scenario", type=click.Path(path_type=Path))
@click.option(
    "--threads",
    "-t",
    type=click.IntRange(min=1),
    default=None,
    help="Worker threads in this process (default: ML_PROCESS_THREADS or 1).",
)
@click.option(
    "--instances",
    "-i",
    type=click.IntRange(min=1),
    default=None,
    help="Number of cooperating processes expected (informational).",
)
@click.option(
    "--workdir",
    "-d",
    "work_dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Working directory; defaults to the scenario's directory.",
)
@click.option(
    "--reset",
    "-r",
    multiple=True,
    help=(
        "Comma-separated task id prefixes to reset before scheduling; `!` resets every "
        "task, `#` only tasks whose scenario definition changed. Can be repeated."
    ),
)
@click.option(
    "--parse-only",
    "-p",
    is_flag=True,
    default=False,
    help="Only check the scenario and print the planned order.",
)
@click.option(
    "--cleanup/--no-cleanup",
    "-l/-L",
    default=None,
    help="Remove the schedule file when every task has finished.",
)
@click.option(
    "--verbosity",
    "-v",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Logging level (default: ML_PROCESS_VERBOSITY or info).",
)
def run(  # noqa: PLR0913
    scenario: Path,
    threads: int | None,
    instances: int | None,
    work_dir: Path | None,
    reset: tuple[str, ...],
    parse_only: bool,
    cleanup: bool | None,
    verbosity: str | None,
) -> None:
    """Run the scenario's tasks, joining any other process already working on it.

    The first process to find no schedule builds the plan; all others share it
    through the lock-protected `<scenario>.todo` file.
    """

    result = PROCESS_CONTROLLER.run(
        RunCommand(
            scenario_path=scenario,
            work_dir=work_dir,
            threads=threads,
            instances=instances,
            reset=reset,
            parse_only=parse_only,
            cleanup=cleanup,
            verbosity=verbosity,
        ),
    )
    _emit_lines(result.lines)
    if result.exit_status != 0:
        click.get_current_context().exit(result.exit_status)


@ml_process.command("status")
@click.argument("scenario", type=click.Path(path_type=Path))
@click.option(
    "--workdir",
    "-d",
    "work_dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Working directory; defaults to the scenario's directory.",
)
@click.option(
    "--status",
    type=click.Choice([status.value for status in TaskStatus], case_sensitive=False),
    default=None,
    help="Only list tasks with this status.",
)
def status_command(scenario: Path, work_dir: Path | None, status: str | None) -> None:
    """List planned tasks in execution order with their current status."""

    try:
        lines = PROCESS_CONTROLLER.status(
            StatusCommand(
                scenario_path=scenario,
                work_dir=work_dir,
                status=status.lower() if status else None,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    ml_process()
