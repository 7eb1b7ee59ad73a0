"""Task, outcome and plan definitions for crew execution."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

DEFAULT_PRIORITY = 1
DEGRADED_ISOLATION = "degraded isolation"

# Keys of a planner entry that map onto descriptor fields; the rest is payload.
_DESCRIPTOR_KEYS = {"name", "priority", "dependencies", "complexity", "description"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def freeze(value: Any) -> Any:
    """Return a recursively read-only view of plain JSON-like data."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, set):
        return frozenset(value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of :func:`freeze`, producing JSON-serialisable containers."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (tuple, list)):
        return [thaw(v) for v in value]
    if isinstance(value, frozenset):
        return sorted(thaw(v) for v in value)
    return value


def coerce_priority(value: Any) -> Optional[int]:
    """Parse a planner priority; ``None`` when absent or invalid.

    Valid priorities are integers (or integer strings) of at least 1.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return parsed if parsed >= 1 else None


@dataclass(frozen=True)
class TaskDescriptor:
    """A single unit of independently schedulable work.

    ``priority`` is ``None`` when the planner gave no usable value; the
    grouper then places the task in the default tier.
    """

    name: str
    priority: Optional[int] = DEFAULT_PRIORITY
    dependencies: FrozenSet[str] = frozenset()
    complexity: str = "medium"
    description: str = ""
    payload: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def effective_priority(self) -> int:
        return self.priority if self.priority is not None else DEFAULT_PRIORITY

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskDescriptor":
        """Build a descriptor from a planner entry.

        Raises:
            ValueError: the entry has no usable name.
        """
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("task entry has no name")

        raw_deps = data.get("dependencies") or data.get("depends_on") or []
        if isinstance(raw_deps, str):
            raw_deps = [raw_deps]
        deps = frozenset(str(d).strip() for d in raw_deps if str(d).strip()) - {name}

        payload = {
            k: v for k, v in data.items()
            if k not in _DESCRIPTOR_KEYS and k != "depends_on"
        }
        return cls(
            name=name,
            priority=coerce_priority(data.get("priority")),
            dependencies=deps,
            complexity=str(data.get("complexity") or "medium"),
            description=str(data.get("description") or ""),
            payload=freeze(payload),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "priority": self.priority,
            "dependencies": sorted(self.dependencies),
            "complexity": self.complexity,
            "description": self.description,
            "payload": thaw(self.payload),
        }


@dataclass(frozen=True)
class Plan:
    """Planner output: the run's task list plus the shared configuration blob."""

    tasks: Tuple[TaskDescriptor, ...]
    shared_config: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    summary: str = ""
    source: str = ""

    @classmethod
    def build(
        cls,
        tasks: Iterable[TaskDescriptor],
        shared_config: Optional[Mapping[str, Any]] = None,
        summary: str = "",
        source: str = "",
    ) -> "Plan":
        return cls(
            tasks=tuple(tasks),
            shared_config=freeze(dict(shared_config or {})),
            summary=summary,
            source=source,
        )

    @property
    def task_names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.tasks)


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: Any) -> "OutcomeStatus":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        aliases = {"ok": "success", "done": "success", "partial_success": "partial",
                   "error": "failed", "fail": "failed"}
        try:
            return cls(aliases.get(text, text))
        except ValueError:
            raise ValueError(f"Unknown outcome status: {value!r}") from None


@dataclass(frozen=True)
class WorkerResult:
    """What a worker hands back for one task."""

    status: OutcomeStatus
    summary: str = ""
    artifact_paths: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskOutcome:
    """Terminal result of one task's execution, written once by the executor."""

    task_name: str
    status: OutcomeStatus
    summary: str
    started_at: datetime
    finished_at: datetime
    artifact_paths: Tuple[str, ...] = ()
    error: Optional[str] = None
    priority: int = DEFAULT_PRIORITY
    working_dir: str = ""
    notes: Tuple[str, ...] = ()

    def __post_init__(self):
        if (self.status is OutcomeStatus.FAILED) != (self.error is not None):
            raise ValueError("error must be set exactly when status is FAILED")

    @property
    def duration(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    @property
    def isolated(self) -> bool:
        """False when the task ran in the shared fallback directory."""
        return not any(n.startswith(DEGRADED_ISOLATION) for n in self.notes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_name": self.task_name,
            "status": self.status.value,
            "summary": self.summary,
            "artifact_paths": list(self.artifact_paths),
            "error": self.error,
            "priority": self.priority,
            "working_dir": self.working_dir,
            "notes": list(self.notes),
            "isolated": self.isolated,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration": round(self.duration, 3),
        }
