"""Task plan: graph building, ordering, schedule storage and dispatch."""

from ml_process.plan.dispatcher import Plan, ScenarioCheckResult, reset_tasks
from ml_process.plan.errors import (
    DataError,
    DuplicateProducerError,
    InvalidPlanError,
    LoopDependencyError,
    MissingProducerError,
    PlanError,
    PlanStoreError,
    ScenarioError,
    SchedulingContention,
    StoreUnavailableError,
)
from ml_process.plan.models import (
    OccurrenceIndex,
    PlanSnapshot,
    ResourceClass,
    ResourceOccurrences,
    TaskDescription,
    TaskStatus,
)
from ml_process.plan.store import ScheduleStore

__all__ = [
    "DataError",
    "DuplicateProducerError",
    "InvalidPlanError",
    "LoopDependencyError",
    "MissingProducerError",
    "OccurrenceIndex",
    "Plan",
    "PlanError",
    "PlanSnapshot",
    "PlanStoreError",
    "ResourceClass",
    "ResourceOccurrences",
    "ScenarioCheckResult",
    "ScenarioError",
    "ScheduleStore",
    "SchedulingContention",
    "StoreUnavailableError",
    "TaskDescription",
    "TaskStatus",
    "reset_tasks",
]
