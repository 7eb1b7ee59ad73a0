"""Run report model and the aggregator that assembles it."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import DuplicateOutcome
from ..logger import get_logger
from .tasks import OutcomeStatus, TaskOutcome, utcnow

_log = get_logger(__name__)


@dataclass(frozen=True)
class TierTiming:
    priority: int
    task_names: Tuple[str, ...]
    started_at: datetime
    finished_at: datetime

    @property
    def duration(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priority": self.priority,
            "task_names": list(self.task_names),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration": round(self.duration, 3),
        }


@dataclass(frozen=True)
class RunReport:
    """Finalized result of one run; outcomes are in completion order."""

    outcomes: Tuple[TaskOutcome, ...]
    started_at: datetime
    finished_at: datetime
    tiers: Tuple[TierTiming, ...] = ()
    warnings: Tuple[str, ...] = ()
    source: str = ""
    revision_lines: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.SUCCESS)

    @property
    def partial(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.PARTIAL)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.FAILED)

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def duration(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    def outcome_for(self, task_name: str) -> Optional[TaskOutcome]:
        for outcome in self.outcomes:
            if outcome.task_name == task_name:
                return outcome
        return None

    def merge_commands(self, target_branch: str = "main") -> List[str]:
        """Git commands that fold every isolated, non-failed task branch into ``target_branch``."""
        lines = [
            self.revision_lines[o.task_name]
            for o in self.outcomes
            if not o.failed and o.isolated and o.task_name in self.revision_lines
        ]
        if not lines:
            return []
        return [f"git checkout {target_branch}"] + [f"git merge {line} --no-edit" for line in lines]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "success": self.success,
            "counts": {
                "total": self.total,
                "succeeded": self.succeeded,
                "partial": self.partial,
                "failed": self.failed,
            },
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration": round(self.duration, 3),
            "tiers": [t.to_dict() for t in self.tiers],
            "outcomes": [o.to_dict() for o in self.outcomes],
            "warnings": list(self.warnings),
            "revision_lines": dict(self.revision_lines),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


class OutcomeAggregator:
    """Collects outcomes and tier timings into a ``RunReport``.

    Not thread-safe: feed it from the single loop that drains completed
    tasks. Recording a task twice keeps the newer outcome and adds a
    warning; it never raises mid-run.
    """

    def __init__(self, source: str = ""):
        self.source = source
        self.started_at = utcnow()
        self._outcomes: List[TaskOutcome] = []
        self._index: Dict[str, int] = {}
        self._tiers: List[TierTiming] = []
        self._open_tier: Optional[Tuple[int, Tuple[str, ...], datetime]] = None
        self._warnings: List[str] = []
        self._revision_lines: Dict[str, str] = {}
        self._report: Optional[RunReport] = None

    # ── Recording ─────────────────────────────────────────────

    def record(self, outcome: TaskOutcome) -> None:
        if self._report is not None:
            self.warn(f"Outcome for '{outcome.task_name}' arrived after finalize; ignored")
            return
        previous = self._index.get(outcome.task_name)
        if previous is not None:
            old = self._outcomes.pop(previous)
            self.warn(str(DuplicateOutcome(outcome.task_name, old.status.value)))
            self._index = {o.task_name: i for i, o in enumerate(self._outcomes)}
        self._index[outcome.task_name] = len(self._outcomes)
        self._outcomes.append(outcome)

    def warn(self, message: str) -> None:
        _log.warning(message)
        self._warnings.append(message)

    def set_revision_line(self, task_name: str, line: str) -> None:
        self._revision_lines[task_name] = line

    def begin_tier(self, priority: int, task_names) -> None:
        if self._open_tier is not None:
            self.end_tier()
        self._open_tier = (priority, tuple(task_names), utcnow())

    def end_tier(self) -> None:
        if self._open_tier is None:
            return
        priority, names, started = self._open_tier
        self._tiers.append(TierTiming(priority, names, started, utcnow()))
        self._open_tier = None

    # ── Running counts ────────────────────────────────────────

    @property
    def total(self) -> int:
        return len(self._outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for o in self._outcomes if o.failed)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self._outcomes if o.succeeded)

    # ── Finalize ──────────────────────────────────────────────

    def finalize(self) -> RunReport:
        """Close timing and return the report; later calls return the same object."""
        if self._report is None:
            self.end_tier()
            self._report = RunReport(
                outcomes=tuple(self._outcomes),
                started_at=self.started_at,
                finished_at=utcnow(),
                tiers=tuple(self._tiers),
                warnings=tuple(self._warnings),
                source=self.source,
                revision_lines=MappingProxyType(dict(self._revision_lines)),
            )
        return self._report
