"""Planner interface and the parsing shared by every planner."""

import re
from typing import Any, Iterable, List, Mapping, Optional, Protocol

from ..crew.tasks import Plan, TaskDescriptor
from ..errors import PlanningFailed
from ..logger import get_logger

_log = get_logger(__name__)

_FIGMA_KEY_RE = re.compile(r"figma\.com/(?:file|design)/([A-Za-z0-9]+)")


class Planner(Protocol):
    """Turns a design source into a plan.

    Raises :class:`PlanningFailed` when no task can be produced.
    """

    async def analyze(self, source: str) -> Plan: ...


def extract_file_key(source: str) -> str:
    """Figma file key from a share URL; anything else is taken as the key itself."""
    m = _FIGMA_KEY_RE.search(source or "")
    return m.group(1) if m else (source or "").strip()


def parse_plan(
    source: str,
    entries: Any,
    shared_config: Optional[Mapping[str, Any]] = None,
    summary: str = "",
) -> Plan:
    """Build a ``Plan`` from raw planner entries.

    Entries that are not mappings or have no name are dropped, and a
    repeated name keeps its first entry; each case is logged. Only an
    empty result is an error.
    """
    if isinstance(entries, Mapping):
        entries = [entries]
    if not isinstance(entries, Iterable) or isinstance(entries, (str, bytes)):
        raise PlanningFailed(source, "planner output has no component list")

    tasks: List[TaskDescriptor] = []
    seen = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            _log.warning("Dropping plan entry #%d: not an object", index)
            continue
        try:
            task = TaskDescriptor.from_dict(entry)
        except ValueError as e:
            _log.warning("Dropping plan entry #%d: %s", index, e)
            continue
        if task.name in seen:
            _log.warning("Dropping duplicate task '%s' (entry #%d)", task.name, index)
            continue
        seen.add(task.name)
        tasks.append(task)

    if not tasks:
        raise PlanningFailed(source, "planner returned zero tasks")

    if shared_config is not None and not isinstance(shared_config, Mapping):
        _log.warning("Ignoring shared configuration of type %s", type(shared_config).__name__)
        shared_config = None
    return Plan.build(tasks, shared_config, summary=str(summary or ""), source=source)
