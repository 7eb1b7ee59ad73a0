"""Worker interface and helpers shared by the concrete workers."""

import json
import re
from pathlib import Path
from typing import Any, List, Mapping, Protocol

from ..crew.tasks import TaskDescriptor, WorkerResult, thaw

_WORD_SPLIT_RE = re.compile(r"[-_\s]+")


class Worker(Protocol):
    """Performs one task inside ``working_dir``.

    May be slow and may raise; the executor turns any exception into a
    failed outcome. ``shared_config`` is read-only.
    """

    async def perform(
        self,
        task: TaskDescriptor,
        working_dir: Path,
        shared_config: Mapping[str, Any],
    ) -> WorkerResult: ...


def pascal_case(name: str) -> str:
    """``user-card`` -> ``UserCard``."""
    return "".join(
        word[:1].upper() + word[1:].lower()
        for word in _WORD_SPLIT_RE.split(name.strip())
        if word
    )


def component_files(task: TaskDescriptor) -> List[str]:
    """Relative paths a component task is expected to produce."""
    pascal = pascal_case(task.name)
    base = f"src/components/{pascal}"
    return [
        f"{base}/index.tsx",
        f"{base}/{pascal}.types.ts",
        f"{base}/{pascal}.test.tsx",
    ]


def describe_task(task: TaskDescriptor, working_dir: Path, shared_config: Mapping[str, Any]) -> str:
    """Render the task brief handed to agent-backed workers."""
    pascal = pascal_case(task.name)
    props = task.payload.get("props") or ()
    files = "\n".join(f"{i}. {working_dir / f}" for i, f in enumerate(component_files(task), 1))
    return (
        f"## Task: build the React component {pascal}\n\n"
        f"### Component\n"
        f"- Name: {pascal}\n"
        f"- Description: {task.description or '(none)'}\n"
        f"- Complexity: {task.complexity}\n"
        f"- Depends on: {', '.join(sorted(task.dependencies)) or 'none'}\n"
        f"- Props: {', '.join(map(str, props)) or 'to be decided'}\n\n"
        f"### Design tokens\n```json\n{json.dumps(thaw(shared_config), indent=2)}\n```\n\n"
        f"### Working directory\n{working_dir}\n\n"
        f"### Files to create\n{files}\n\n"
        "Use React function components with TypeScript, Tailwind utility classes "
        "and @testing-library/react tests. Name the props interface "
        f"{pascal}Props and use named exports. Do not ask for confirmation."
    )
