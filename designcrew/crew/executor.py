"""Task executor: wraps one worker invocation into a ``TaskOutcome``."""

import asyncio
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from ..errors import WorkerFailure, WorkerTimeout
from ..logger import get_logger, task_logger
from .tasks import OutcomeStatus, TaskDescriptor, TaskOutcome, WorkerResult, utcnow

_log = get_logger(__name__)

# Default per-task timeout (seconds).
DEFAULT_TASK_TIMEOUT = 300.0


def coerce_worker_result(task_name: str, raw: Any) -> WorkerResult:
    """Accept a ``WorkerResult`` or a plain mapping from a worker."""
    if isinstance(raw, WorkerResult):
        return raw
    if isinstance(raw, Mapping):
        try:
            status = OutcomeStatus.parse(raw.get("status"))
        except ValueError as e:
            raise WorkerFailure(task_name, str(e)) from None
        artifacts = raw.get("artifact_paths") or raw.get("files_created") or ()
        return WorkerResult(
            status=status,
            summary=str(raw.get("summary") or ""),
            artifact_paths=tuple(str(a) for a in artifacts),
        )
    raise WorkerFailure(task_name, f"worker returned {type(raw).__name__}, expected WorkerResult")


class TaskExecutor:
    """Runs a worker exactly once per call and never lets its failure escape.

    Cancellation of the calling task is not a worker failure and propagates.
    """

    def __init__(self, worker, timeout: float = DEFAULT_TASK_TIMEOUT):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.worker = worker
        self.timeout = timeout

    async def execute(
        self,
        task: TaskDescriptor,
        working_dir: Path,
        shared_config: Mapping[str, Any],
        notes: Sequence[str] = (),
        tier: Optional[int] = None,
    ) -> TaskOutcome:
        working_dir = Path(working_dir)
        priority = tier if tier is not None else task.effective_priority
        log = task_logger(_log, task.name)
        started_at = utcnow()
        try:
            raw = await asyncio.wait_for(
                self._perform(task, working_dir, shared_config),
                timeout=self.timeout,
            )
            result = coerce_worker_result(task.name, raw)
        except asyncio.TimeoutError:
            error = WorkerTimeout(task.name, self.timeout)
            log.error("%s", error)
            return self._failed(task, started_at, str(error), working_dir, notes, priority)
        except Exception as e:
            message = str(e) or type(e).__name__
            log.error("failed: %s", message)
            return self._failed(task, started_at, message, working_dir, notes, priority)

        error = None
        if result.status is OutcomeStatus.FAILED:
            error = result.summary or "worker reported failure"
            log.error("reported failure: %s", error)
        return TaskOutcome(
            task_name=task.name,
            status=result.status,
            summary=result.summary,
            started_at=started_at,
            finished_at=utcnow(),
            artifact_paths=tuple(result.artifact_paths),
            error=error,
            priority=priority,
            working_dir=str(working_dir),
            notes=tuple(notes),
        )

    async def _perform(self, task, working_dir, shared_config):
        # Only the executor deadline may surface as asyncio.TimeoutError.
        try:
            return await self.worker.perform(task, working_dir, shared_config)
        except asyncio.TimeoutError as e:
            detail = str(e) or "operation timed out"
            raise WorkerFailure(task.name, f"worker timeout: {detail}") from e

    @staticmethod
    def _failed(task, started_at, error, working_dir, notes, priority) -> TaskOutcome:
        return TaskOutcome(
            task_name=task.name,
            status=OutcomeStatus.FAILED,
            summary=f"{task.name} failed: {error}",
            started_at=started_at,
            finished_at=utcnow(),
            error=error,
            priority=priority,
            working_dir=str(working_dir),
            notes=tuple(notes),
        )
