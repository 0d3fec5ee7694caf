"""Runtime configuration for scheduler processes and their workers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from ml_process.plan.store import reset_path_for, schedule_path_for

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class WorkerSettings:
    """Per-process worker pool settings."""

    threads: int = 1
    instances: int = 1
    contention_backoff_base_seconds: float = 0.5
    contention_backoff_max_seconds: float = 10.0


@dataclass(slots=True)
class StoreSettings:
    """Schedule file locking settings."""

    lock_timeout_seconds: float = -1


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    verbosity: str = "INFO"
    cleanup: bool = False
    worker: WorkerSettings = field(default_factory=WorkerSettings)
    store: StoreSettings = field(default_factory=StoreSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for a single local process."""

        return cls(
            verbosity=os.getenv("ML_PROCESS_VERBOSITY", "INFO").strip().upper(),
            cleanup=_env_bool("ML_PROCESS_CLEANUP", default=False),
            worker=WorkerSettings(
                threads=int(os.getenv("ML_PROCESS_THREADS", "1")),
                instances=int(os.getenv("ML_PROCESS_INSTANCES", "1")),
                contention_backoff_base_seconds=float(
                    os.getenv("ML_PROCESS_CONTENTION_BACKOFF_BASE_SECONDS", "0.5"),
                ),
                contention_backoff_max_seconds=float(
                    os.getenv("ML_PROCESS_CONTENTION_BACKOFF_MAX_SECONDS", "10.0"),
                ),
            ),
            store=StoreSettings(
                lock_timeout_seconds=float(os.getenv("ML_PROCESS_LOCK_TIMEOUT_SECONDS", "-1")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error on out-of-range values."""

        if self.worker.threads <= 0:
            raise ValueError("ML_PROCESS_THREADS must be a positive integer.")
        if self.worker.instances <= 0:
            raise ValueError("ML_PROCESS_INSTANCES must be a positive integer.")
        if self.worker.contention_backoff_base_seconds < 0:
            raise ValueError("ML_PROCESS_CONTENTION_BACKOFF_BASE_SECONDS must be >= 0.")
        if self.worker.contention_backoff_max_seconds < self.worker.contention_backoff_base_seconds:
            raise ValueError(
                "ML_PROCESS_CONTENTION_BACKOFF_MAX_SECONDS must be >= the base back-off.",
            )
        if self.verbosity not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid verbosity {self.verbosity!r}. Expected one of: {', '.join(_LOG_LEVELS)}",
            )

    @property
    def log_level(self) -> int:
        return logging.getLevelNamesMapping()[self.verbosity]


@dataclass(slots=True)
class ProcessContext:
    """Everything one scheduler process needs, passed down explicitly."""

    scenario_path: Path
    work_dir: Path
    settings: Settings = field(default_factory=Settings)
    reset_prefixes: tuple[str, ...] = ()
    parse_only: bool = False

    @classmethod
    def for_scenario(
        cls,
        scenario_path: Path,
        *,
        work_dir: Path | None = None,
        settings: Settings | None = None,
        reset_prefixes: tuple[str, ...] = (),
        parse_only: bool = False,
    ) -> ProcessContext:
        """Resolve the working directory the way operators expect.

        Without an explicit working directory, the scenario's own directory is
        used; relative scenario paths are then resolved against it.
        """

        if work_dir is None:
            work_dir = scenario_path.parent
        elif not scenario_path.is_absolute() and scenario_path.parent == Path():
            scenario_path = work_dir / scenario_path

        if not work_dir.is_dir():
            raise ValueError(f"Working directory not found: {work_dir}")
        if not scenario_path.is_file():
            raise ValueError(f"Scenario file not found: {scenario_path}")

        return cls(
            scenario_path=scenario_path,
            work_dir=work_dir,
            settings=settings or Settings.from_env(),
            reset_prefixes=tuple(prefix for prefix in reset_prefixes if prefix),
            parse_only=parse_only,
        )

    @property
    def schedule_path(self) -> Path:
        return schedule_path_for(self.scenario_path)

    @property
    def reset_path(self) -> Path:
        return reset_path_for(self.scenario_path)

    @property
    def max_workers(self) -> int:
        """Expected workers across all cooperating instances."""

        return self.settings.worker.threads * self.settings.worker.instances


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
