"""Built-in task implementations available to every scenario."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path

from ml_process.tasks.base import Task, TaskError

logger = logging.getLogger(__name__)


class NoOpTask(Task):
    """Does nothing; useful for grouping dependencies."""

    def perform(self) -> None:
        logger.debug("No-op task %s", self.task_id)


class FileMerger(Task):
    """Concatenate input files into outputs.

    Inputs are split into equally sized consecutive groups, one group per
    output file, so the input count must be divisible by the output count.
    """

    def __init__(
        self,
        task_id: str,
        parameters: dict[str, str],
        inputs: list[str],
        outputs: list[str],
    ) -> None:
        super().__init__(task_id, parameters, inputs, outputs)
        if parameters:
            logger.warning("Task %s: merge parameters are ignored", task_id)

    def perform(self) -> None:
        if not self.outputs:
            raise TaskError(self.task_id, "merge needs at least one output")
        if len(self.inputs) % len(self.outputs) != 0:
            raise TaskError(
                self.task_id,
                "number of inputs must be divisible by the number of outputs",
            )

        ratio = len(self.inputs) // len(self.outputs)
        for position, output in enumerate(self.outputs):
            group = self.inputs[ratio * position : ratio * (position + 1)]
            try:
                _merge_files(group, Path(output))
            except OSError as error:
                raise TaskError(self.task_id, f"merge into {output} failed: {error}") from error


class CommandTask(Task):
    """Run an external command rendered from the ``command`` parameter.

    Placeholders: ``{inputs}``, ``{outputs}`` (space separated, quoted) and
    ``{task_id}``. An optional ``timeout`` parameter limits the run time in
    seconds.
    """

    def perform(self) -> None:
        argv = self._build_args()
        timeout = self._timeout()
        for output in self.outputs:
            Path(output).parent.mkdir(parents=True, exist_ok=True)

        logger.info("Task %s: running %s", self.task_id, argv[0])
        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as error:
            raise TaskError(self.task_id, f"command not found: {argv[0]}") from error
        except subprocess.TimeoutExpired as error:
            raise TaskError(self.task_id, f"command timed out after {timeout}s") from error
        except OSError as error:
            raise TaskError(self.task_id, f"command failed to start: {error}") from error

        if completed.returncode != 0:
            stderr_tail = completed.stderr.strip()[-500:]
            raise TaskError(
                self.task_id,
                f"command exited with code {completed.returncode}: {stderr_tail or '-'}",
            )

    def _build_args(self) -> list[str]:
        template = self.parameters.get("command", "").strip()
        if not template:
            raise TaskError(self.task_id, "command parameter is empty")
        try:
            rendered = template.format(
                inputs=" ".join(shlex.quote(path) for path in self.inputs),
                outputs=" ".join(shlex.quote(path) for path in self.outputs),
                task_id=shlex.quote(self.task_id),
            )
        except (KeyError, IndexError) as error:
            raise TaskError(
                self.task_id,
                f"unsupported command template placeholder: {error}",
            ) from error

        argv = shlex.split(rendered)
        if not argv:
            raise TaskError(self.task_id, "command template rendered empty command")
        return argv

    def _timeout(self) -> float | None:
        raw = self.parameters.get("timeout")
        if raw is None:
            return None
        try:
            value = float(raw)
        except ValueError as error:
            raise TaskError(self.task_id, f"invalid timeout: {raw!r}") from error
        return value if value > 0 else None


def _merge_files(inputs: list[str], output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("wb") as target:
        for name in inputs:
            with Path(name).open("rb") as source:
                shutil.copyfileobj(source, target)
