"""Structured error types for the crew pipeline."""

from typing import Optional


class CrewError(Exception):
    """Base error for all crew operations."""
    pass


class PlanningFailed(CrewError):
    """Raised when the planner cannot produce at least one task."""

    def __init__(self, source: str, reason: str = "no tasks produced"):
        self.source = source
        self.reason = reason
        super().__init__(f"Planning failed for '{source}': {reason}")


class WorkspaceConflict(CrewError):
    """Raised when a task's revision line is checked out somewhere else."""

    def __init__(self, task_name: str, revision_line: str, detail: str = ""):
        self.task_name = task_name
        self.revision_line = revision_line
        self.detail = detail
        message = f"Workspace conflict for '{task_name}' on {revision_line}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class GitCommandError(CrewError):
    """Raised when a git command exits non-zero for a reason other than a conflict."""

    def __init__(self, args, returncode: int, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(
            f"git {' '.join(self.args_list)} exited {returncode}"
            + (f": {self.stderr}" if self.stderr else "")
        )


class WorkerFailure(CrewError):
    """Raised by a worker when a task cannot be completed."""

    def __init__(self, task_name: str, message: str):
        self.task_name = task_name
        super().__init__(message)


class WorkerTimeout(WorkerFailure):
    """Raised when a worker exceeds the per-task time limit."""

    def __init__(self, task_name: str, timeout: float):
        self.timeout = timeout
        super().__init__(task_name, f"Timed out after {timeout:g}s")


class DuplicateOutcome(CrewError):
    """A second outcome was recorded for the same task.

    Never raised during a run; the aggregator keeps the latest outcome and
    stores this message as a report warning.
    """

    def __init__(self, task_name: str, previous_status: Optional[str] = None):
        self.task_name = task_name
        self.previous_status = previous_status
        message = f"Duplicate outcome for '{task_name}' (last write wins)"
        if previous_status:
            message += f"; replaced {previous_status}"
        super().__init__(message)


class EngineStateError(CrewError):
    """Raised when an orchestrator is driven outside its state machine."""
    pass
