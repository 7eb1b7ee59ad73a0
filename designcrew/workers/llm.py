"""Worker that asks a model for file operations and applies them."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional

from ..crew.tasks import OutcomeStatus, TaskDescriptor, WorkerResult
from ..errors import WorkerFailure
from ..git_ops import GitOps
from ..llm import LLMAdapter, extract_json
from ..logger import get_logger
from .base import component_files, describe_task, pascal_case

_log = get_logger(__name__)

WORKER_SYSTEM_PROMPT = """\
You are a senior front-end engineer generating React components from a
design specification.

Each component has three files: index.tsx (the component),
<Name>.types.ts (prop types) and <Name>.test.tsx (tests). Use React 18
function components, strict TypeScript, Tailwind utility classes and
@testing-library/react.

Reply with a JSON array of operations and nothing else. Allowed operations:
  {"op": "write_file", "path": "<relative path>", "content": "<file text>"}
  {"op": "commit", "message": "<commit message>"}
Paths are relative to the working directory.
"""


class OperationKind(str, Enum):
    WRITE_FILE = "write_file"
    COMMIT = "commit"


@dataclass(frozen=True)
class Operation:
    kind: OperationKind
    path: str = ""
    content: str = ""
    message: str = ""


def parse_operations(task_name: str, data: Any) -> List[Operation]:
    """Validate a model reply; anything outside the closed operation set is a failure."""
    if not isinstance(data, list):
        raise WorkerFailure(task_name, "model reply is not a list of operations")
    ops = []
    for index, item in enumerate(data):
        if not isinstance(item, Mapping):
            raise WorkerFailure(task_name, f"operation #{index} is not an object")
        raw_kind = str(item.get("op") or item.get("kind") or "").strip().lower()
        try:
            kind = OperationKind(raw_kind)
        except ValueError:
            raise WorkerFailure(task_name, f"operation #{index} has unknown kind {raw_kind!r}") from None
        if kind is OperationKind.WRITE_FILE:
            path = str(item.get("path") or "").strip()
            if not path:
                raise WorkerFailure(task_name, f"operation #{index} has no path")
            ops.append(Operation(kind, path=path, content=str(item.get("content") or "")))
        else:
            ops.append(Operation(kind, message=str(item.get("message") or "")))
    return ops


def confine(working_dir: Path, rel: str) -> Path:
    """Resolve ``rel`` under ``working_dir``; ``ValueError`` if it escapes."""
    root = working_dir.resolve()
    target = (root / rel).resolve()
    if target != root and root not in target.parents:
        raise ValueError(f"path escapes the working directory: {rel}")
    return target


class LLMWorker:
    def __init__(self, llm: LLMAdapter, commit_prefix: str = "", allow_commit: bool = True):
        self.llm = llm
        self.commit_prefix = commit_prefix
        self.allow_commit = allow_commit

    async def perform(self, task: TaskDescriptor, working_dir: Path, shared_config: Mapping[str, Any]) -> WorkerResult:
        working_dir = Path(working_dir)
        messages = [
            {"role": "system", "content": WORKER_SYSTEM_PROMPT},
            {"role": "user", "content": describe_task(task, working_dir, shared_config)},
        ]
        try:
            response = await self.llm.achat(messages)
        except ConnectionError as e:
            raise WorkerFailure(task.name, str(e)) from e

        try:
            data = extract_json(response.content or "", opener="[")
        except ValueError as e:
            raise WorkerFailure(task.name, str(e)) from e

        operations = parse_operations(task.name, data)
        written = await self.apply(task, working_dir, operations)

        pascal = pascal_case(task.name)
        expected = component_files(task)
        missing = [rel for rel in expected if not (working_dir / rel).exists()]
        if not written:
            return WorkerResult(OutcomeStatus.FAILED, f"{pascal}: model wrote no files")
        if missing:
            return WorkerResult(
                OutcomeStatus.PARTIAL, f"{pascal}: missing {', '.join(missing)}", tuple(written),
            )
        return WorkerResult(OutcomeStatus.SUCCESS, f"{pascal}: wrote {len(written)} file(s)", tuple(written))

    async def apply(self, task: TaskDescriptor, working_dir: Path, operations: List[Operation]) -> List[str]:
        written: List[str] = []
        for op in operations:
            if op.kind is OperationKind.WRITE_FILE:
                try:
                    target = confine(working_dir, op.path)
                except ValueError as e:
                    raise WorkerFailure(task.name, str(e)) from None
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(op.content, encoding="utf-8")
                written.append(str(target.relative_to(working_dir.resolve())))
            elif op.kind is OperationKind.COMMIT:
                sha = await self._commit(working_dir, op.message or f"feat: add {pascal_case(task.name)} component")
                if sha:
                    _log.info("Committed %s for %s", sha, task.name)
        return written

    async def _commit(self, working_dir: Path, message: str) -> Optional[str]:
        if not self.allow_commit:
            return None
        git = GitOps(working_dir, commit_prefix=self.commit_prefix)
        if not git.available:
            return None
        return await git.commit_all(message)
