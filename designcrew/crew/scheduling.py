"""Tier grouping and concurrency-bounded dispatch.

Tiers run strictly one after another. Inside a tier, tasks are cut into
consecutive batches of at most ``concurrency_limit``; every task of a
batch starts together and the whole batch finishes before the next one
starts. A failed task never cancels its siblings.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..logger import get_logger
from .executor import TaskExecutor
from .tasks import DEGRADED_ISOLATION, TaskDescriptor, TaskOutcome
from .workspace import WorkspaceProvisioner

_log = get_logger(__name__)

TIER_MODES = ("priority", "dependencies")


@dataclass(frozen=True)
class Tier:
    priority: int
    tasks: Tuple[TaskDescriptor, ...]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)


def group_by_priority(tasks: Iterable[TaskDescriptor]) -> List[Tier]:
    """Partition tasks into ascending priority tiers.

    Stable: equal priorities keep their input order. Absent or invalid
    priorities fall into the default tier.
    """
    groups: Dict[int, List[TaskDescriptor]] = {}
    for task in tasks:
        groups.setdefault(task.effective_priority, []).append(task)
    return [Tier(priority, tuple(groups[priority])) for priority in sorted(groups)]


def group_by_dependencies(tasks: Iterable[TaskDescriptor]) -> List[Tier]:
    """Layer the dependency graph; tier ``n`` holds tasks whose deps sit in tiers < n.

    Dependencies on unknown names are ignored. If a cycle blocks progress,
    every remaining task goes into one final tier.
    """
    tasks = list(tasks)
    known = {t.name for t in tasks}
    placed: set = set()
    remaining = tasks
    tiers: List[Tier] = []

    while remaining:
        layer = [
            t for t in remaining
            if all(d in placed for d in t.dependencies if d in known)
        ]
        if not layer:
            _log.warning(
                "Dependency cycle among %s; scheduling them together",
                ", ".join(t.name for t in remaining),
            )
            layer = list(remaining)
        placed.update(t.name for t in layer)
        remaining = [t for t in remaining if t.name not in placed]
        tiers.append(Tier(len(tiers) + 1, tuple(layer)))
    return tiers


def build_tiers(tasks: Iterable[TaskDescriptor], mode: str = "priority") -> List[Tier]:
    if mode == "priority":
        return group_by_priority(tasks)
    if mode == "dependencies":
        return group_by_dependencies(tasks)
    raise ValueError(f"Unknown tier mode: {mode!r} (expected one of {', '.join(TIER_MODES)})")


def dependency_violations(tiers: Sequence[Tier]) -> List[str]:
    """Describe dependency edges the tier order does not honour.

    Dependencies are advisory in priority mode; these become warnings.
    """
    tier_of = {t.name: index for index, tier in enumerate(tiers) for t in tier.tasks}
    problems = []
    for index, tier in enumerate(tiers):
        for task in tier.tasks:
            for dep in sorted(task.dependencies):
                if dep not in tier_of:
                    problems.append(f"{task.name} depends on unknown task '{dep}'")
                elif tier_of[dep] == index:
                    problems.append(
                        f"{task.name} depends on {dep} in the same tier ({tier.priority}); they may race"
                    )
                elif tier_of[dep] > index:
                    problems.append(
                        f"{task.name} (tier {tier.priority}) depends on {dep} "
                        f"which runs later (tier {tiers[tier_of[dep]].priority})"
                    )
    return problems


def chunked(items: Sequence, size: int) -> List[tuple]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [tuple(items[i:i + size]) for i in range(0, len(items), size)]


class Dispatcher:
    """Runs the tasks of one tier in concurrency-bounded batches."""

    def __init__(
        self,
        executor: TaskExecutor,
        concurrency_limit: int,
        fallback_dir: Path,
        provisioner: Optional[WorkspaceProvisioner] = None,
        on_task_start: Optional[Callable[[TaskDescriptor, Path, bool], None]] = None,
    ):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.executor = executor
        self.concurrency_limit = concurrency_limit
        self.fallback_dir = Path(fallback_dir)
        self.provisioner = provisioner
        self.on_task_start = on_task_start

    async def dispatch(
        self,
        tier: Tier,
        shared_config: Mapping[str, Any],
        on_outcome: Optional[Callable[[TaskOutcome], None]] = None,
    ) -> List[TaskOutcome]:
        """Execute ``tier`` batch by batch; outcomes come back in completion order.

        ``on_outcome`` runs in this loop, one outcome at a time, so it may
        update state that is not safe for concurrent access.
        """
        outcomes: List[TaskOutcome] = []
        batches = chunked(tier.tasks, self.concurrency_limit)
        for number, batch in enumerate(batches, 1):
            _log.info(
                "Tier %s batch %d/%d: %s",
                tier.priority, number, len(batches), ", ".join(t.name for t in batch),
            )
            running = [
                asyncio.create_task(self._run_one(task, shared_config, tier.priority))
                for task in batch
            ]
            try:
                for finished in asyncio.as_completed(running):
                    outcome = await finished
                    outcomes.append(outcome)
                    if on_outcome is not None:
                        on_outcome(outcome)
            except BaseException:
                for pending in running:
                    pending.cancel()
                raise
        return outcomes

    def _working_dir_for(self, task: TaskDescriptor) -> Tuple[Path, Tuple[str, ...]]:
        if self.provisioner is None:
            return self.fallback_dir, (
                f"{DEGRADED_ISOLATION}: workspaces disabled; ran in {self.fallback_dir}",
            )
        workspace = self.provisioner.acquire(task.name)
        if workspace is not None:
            return workspace.path, ()

        known = self.provisioner.get(task.name)
        reason = known.error if known is not None and known.error else "no workspace provisioned"
        _log.warning("Task %s runs in fallback directory %s (%s)", task.name, self.fallback_dir, reason)
        return self.fallback_dir, (f"{DEGRADED_ISOLATION}: {reason}; ran in {self.fallback_dir}",)

    async def _run_one(self, task: TaskDescriptor, shared_config, tier_priority: int) -> TaskOutcome:
        working_dir, notes = self._working_dir_for(task)
        if self.on_task_start is not None:
            try:
                self.on_task_start(task, working_dir, not notes)
            except Exception as e:
                _log.warning("Task-start hook failed for %s: %s", task.name, e)
        try:
            return await self.executor.execute(
                task, working_dir, shared_config, notes=notes, tier=tier_priority,
            )
        finally:
            if self.provisioner is not None and not notes:
                self.provisioner.release(task.name)
