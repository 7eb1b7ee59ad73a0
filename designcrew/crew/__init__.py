"""Parallel crew execution: tiers, workspaces, dispatch and reporting."""

from .tasks import (
    DEFAULT_PRIORITY,
    OutcomeStatus,
    Plan,
    TaskDescriptor,
    TaskOutcome,
    WorkerResult,
)
from .workspace import (
    GitWorktreeBackend,
    Workspace,
    WorkspaceBackend,
    WorkspaceProvisioner,
    WorkspaceState,
)
from .executor import TaskExecutor
from .scheduling import Dispatcher, Tier, build_tiers, group_by_dependencies, group_by_priority
from .report import OutcomeAggregator, RunReport, TierTiming
from .engine import EngineState, Orchestrator, RunObserver

__all__ = [
    "DEFAULT_PRIORITY",
    "OutcomeStatus",
    "Plan",
    "TaskDescriptor",
    "TaskOutcome",
    "WorkerResult",
    "GitWorktreeBackend",
    "Workspace",
    "WorkspaceBackend",
    "WorkspaceProvisioner",
    "WorkspaceState",
    "TaskExecutor",
    "Dispatcher",
    "Tier",
    "build_tiers",
    "group_by_dependencies",
    "group_by_priority",
    "OutcomeAggregator",
    "RunReport",
    "TierTiming",
    "EngineState",
    "Orchestrator",
    "RunObserver",
]
