"""Lock-protected persistence of the whole ordered plan in one schedule file."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from ml_process.plan.errors import StoreUnavailableError
from ml_process.plan.models import TaskDescription
from ml_process.plan.serialization import dump_plan, load_plan

logger = logging.getLogger(__name__)

SCHEDULE_SUFFIX = ".todo"
RESET_SUFFIX = ".reset"
LOCK_SUFFIX = ".lock"


def schedule_path_for(scenario_path: Path) -> Path:
    """Schedule file path derived from the scenario file path."""

    return scenario_path.with_name(scenario_path.name + SCHEDULE_SUFFIX)


def reset_path_for(scenario_path: Path) -> Path:
    return scenario_path.with_name(scenario_path.name + RESET_SUFFIX)


class ScheduleStore:
    """Schedule file facade; every read-modify-write runs under ``exclusive_lock``.

    An empty schedule file means that no plan has been computed yet.
    """

    def __init__(self, schedule_path: Path, *, lock_timeout_seconds: float = -1) -> None:
        self.schedule_path = schedule_path
        self.lock_path = schedule_path.with_name(schedule_path.name + LOCK_SUFFIX)
        self.lock_timeout_seconds = lock_timeout_seconds
        self._thread_lock = threading.Lock()
        self._file_lock = FileLock(str(self.lock_path), timeout=lock_timeout_seconds)

    def create_if_absent(self) -> None:
        """Make sure the schedule file exists (possibly empty)."""

        try:
            self.schedule_path.parent.mkdir(parents=True, exist_ok=True)
            self.schedule_path.touch(exist_ok=True)
        except OSError as error:
            raise StoreUnavailableError(
                f"Cannot create schedule file {self.schedule_path}: {error}",
            ) from error

    @contextmanager
    def exclusive_lock(self) -> Iterator[ScheduleStore]:
        """Hold the schedule exclusively for this thread and process."""

        timeout = None if self.lock_timeout_seconds < 0 else self.lock_timeout_seconds
        if not self._thread_lock.acquire(timeout=-1 if timeout is None else timeout):
            raise StoreUnavailableError(f"Timed out waiting for {self.schedule_path}")
        try:
            try:
                self._file_lock.acquire(timeout=self.lock_timeout_seconds)
            except Timeout as error:
                raise StoreUnavailableError(
                    f"Timed out locking schedule file {self.lock_path}",
                ) from error
            except OSError as error:
                raise StoreUnavailableError(
                    f"Cannot lock schedule file {self.lock_path}: {error}",
                ) from error
            try:
                yield self
            finally:
                self._file_lock.release()
        finally:
            self._thread_lock.release()

    def is_empty(self) -> bool:
        try:
            return self.schedule_path.stat().st_size == 0
        except FileNotFoundError:
            return True
        except OSError as error:
            raise StoreUnavailableError(
                f"Cannot stat schedule file {self.schedule_path}: {error}",
            ) from error

    def read_plan(self) -> list[TaskDescription]:
        """Load the full ordered plan with current statuses."""

        try:
            text = self.schedule_path.read_text("utf-8")
        except OSError as error:
            raise StoreUnavailableError(
                f"Cannot read schedule file {self.schedule_path}: {error}",
            ) from error
        return load_plan(text)

    def write_plan(self, tasks: Sequence[TaskDescription]) -> None:
        """Replace the whole schedule file content."""

        payload = dump_plan(tasks)
        tmp_path = self.schedule_path.with_name(self.schedule_path.name + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.schedule_path)
        except OSError as error:
            raise StoreUnavailableError(
                f"Cannot write schedule file {self.schedule_path}: {error}",
            ) from error
        logger.debug("Schedule written: %s (%d tasks)", self.schedule_path, len(tasks))

    def remove(self) -> None:
        """Delete the schedule file.

        The lock file stays: other instances may still be waiting on it.
        """

        try:
            self.schedule_path.unlink(missing_ok=True)
        except OSError as error:
            raise StoreUnavailableError(
                f"Cannot remove schedule file {self.schedule_path}: {error}",
            ) from error
