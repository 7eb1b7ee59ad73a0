"""Workspace provisioning: one isolated git worktree per task.

The provisioner talks to a narrow backend capability (``WorkspaceBackend``)
so scheduling code can be exercised against an in-memory fake. The git
implementation lives here too; it maps each task onto a dedicated branch
(the task's *revision line*) checked out in its own worktree directory.
"""

import asyncio
import re
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

from ..errors import CrewError, GitCommandError, WorkspaceConflict
from ..git_ops import GitOps, same_path
from ..logger import get_logger

_log = get_logger(__name__)

_SLUG_RE = re.compile(r"[^A-Za-z0-9._-]+")
_CONFLICT_MARKERS = ("already checked out", "already used by worktree", "is already checked out")


def slugify(name: str) -> str:
    slug = _SLUG_RE.sub("-", name.strip()).strip("-.")
    return slug or "task"


class WorkspaceState(str, Enum):
    ABSENT = "absent"
    PROVISIONED = "provisioned"
    IN_USE = "in_use"
    FAILED = "failed"


@dataclass(frozen=True)
class Workspace:
    task_name: str
    path: Path
    revision_line: str
    state: WorkspaceState = WorkspaceState.ABSENT
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return self.state in (WorkspaceState.PROVISIONED, WorkspaceState.IN_USE)


class WorkspaceBackend(Protocol):
    """Versioned-filesystem capability the provisioner depends on.

    All three operations must be idempotent. ``bind_working_directory``
    signals a conflict by raising :class:`WorkspaceConflict`.
    """

    async def ensure_revision_line(self, line: str) -> None: ...

    async def bind_working_directory(self, line: str, path: Path) -> Path: ...

    async def is_bound(self, line: str, path: Path) -> bool: ...


class GitWorktreeBackend:
    """``WorkspaceBackend`` over ``git branch`` / ``git worktree``."""

    def __init__(self, project_root, timeout: float = 60.0):
        self.git = GitOps(project_root, timeout=timeout)

    @property
    def available(self) -> bool:
        return self.git.available

    async def ensure_revision_line(self, line: str) -> None:
        if await self.git.branch_exists(line):
            return
        await self.git.create_branch(line)
        _log.info("Created branch %s", line)

    async def is_bound(self, line: str, path: Path) -> bool:
        if not Path(path).exists():
            return False
        for entry in await self.git.list_worktrees():
            if entry.branch == line and same_path(entry.path, path):
                return True
        return False

    async def bind_working_directory(self, line: str, path: Path) -> Path:
        path = Path(path)
        for entry in await self.git.list_worktrees():
            if same_path(entry.path, path):
                if entry.branch == line:
                    return path
                raise WorkspaceConflict(
                    path.name, line,
                    f"{path} is a worktree of {entry.branch or 'a detached HEAD'}",
                )
            if entry.branch == line:
                raise WorkspaceConflict(path.name, line, f"already checked out at {entry.path}")

        if path.exists():
            raise WorkspaceConflict(path.name, line, f"{path} exists and is not a worktree")

        path.parent.mkdir(parents=True, exist_ok=True)
        result = await self.git.add_worktree(path, line)
        if not result.ok:
            stderr = result.stderr.strip()
            if any(marker in stderr for marker in _CONFLICT_MARKERS):
                raise WorkspaceConflict(path.name, line, stderr)
            raise GitCommandError(["worktree", "add", str(path), line], result.returncode, stderr)
        _log.info("Created worktree %s on %s", path, line)
        return path

    async def remove_worktrees(
        self,
        base: Path,
        delete_branches: bool = False,
        branch_prefix: str = "",
    ) -> List[str]:
        """Tear down every worktree under ``base``; returns removed paths.

        Never invoked by a run. Branches are only deleted on request and only
        when they carry ``branch_prefix``.
        """
        base = Path(base).expanduser().resolve()
        removed: List[str] = []
        for entry in await self.git.list_worktrees():
            entry_path = entry.path.resolve()
            if entry_path == base or base not in entry_path.parents:
                continue
            if await self.git.remove_worktree(entry_path, force=True):
                removed.append(str(entry_path))
        await self.git.prune_worktrees()

        if delete_branches and branch_prefix:
            for branch in await self.git.list_branches(branch_prefix):
                if await self.git.delete_branch(branch):
                    _log.info("Deleted branch %s", branch)

        try:
            base.rmdir()
        except OSError:
            pass  # not empty or already gone
        return removed


class WorkspaceProvisioner:
    """Creates and tracks one workspace per task name.

    Provisioning is idempotent: a name that already has a usable workspace
    gets the same record back without touching the backend.
    """

    def __init__(
        self,
        backend: WorkspaceBackend,
        worktree_base: Path,
        branch_prefix: str = "feature/",
        max_concurrent: int = 1,
    ):
        self.backend = backend
        self.worktree_base = Path(worktree_base)
        self.branch_prefix = branch_prefix
        self.max_concurrent = max(1, int(max_concurrent))
        self._workspaces: Dict[str, Workspace] = {}

    # ── Naming ────────────────────────────────────────────────

    def revision_line_for(self, task_name: str) -> str:
        return f"{self.branch_prefix}{slugify(task_name)}"

    def path_for(self, task_name: str) -> Path:
        return self.worktree_base / slugify(task_name)

    # ── Provisioning ──────────────────────────────────────────

    def get(self, task_name: str) -> Optional[Workspace]:
        return self._workspaces.get(task_name)

    def all(self) -> Dict[str, Workspace]:
        return dict(self._workspaces)

    async def provision(self, task_name: str) -> Workspace:
        """Return a provisioned workspace for ``task_name``.

        Raises:
            WorkspaceConflict: the revision line is checked out elsewhere.
            GitCommandError: the backing store failed for another reason.
        """
        existing = self._workspaces.get(task_name)
        if existing is not None and existing.usable:
            return existing

        line = self.revision_line_for(task_name)
        path = self.path_for(task_name)
        workspace = Workspace(task_name=task_name, path=path, revision_line=line)

        try:
            if not await self.backend.is_bound(line, path):
                await self.backend.ensure_revision_line(line)
                path = Path(await self.backend.bind_working_directory(line, path))
        except WorkspaceConflict as e:
            self._workspaces[task_name] = replace(
                workspace, state=WorkspaceState.FAILED, error=str(e),
            )
            # Backends only know the directory; report the task's own name.
            raise WorkspaceConflict(task_name, line, e.detail or str(e)) from e
        except CrewError as e:
            self._workspaces[task_name] = replace(
                workspace, state=WorkspaceState.FAILED, error=str(e),
            )
            raise

        provisioned = replace(workspace, path=path, state=WorkspaceState.PROVISIONED)
        self._workspaces[task_name] = provisioned
        return provisioned

    async def provision_all(self, task_names: Iterable[str]) -> Dict[str, Workspace]:
        """Provision every name; failures come back as ``FAILED`` records."""
        names = list(dict.fromkeys(task_names))
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def _one(name: str) -> None:
            async with semaphore:
                try:
                    await self.provision(name)
                except WorkspaceConflict as e:
                    _log.warning("%s; task will run in the fallback directory", e)
                except CrewError as e:
                    _log.warning("Provisioning %s failed: %s", name, e)
                except Exception as e:
                    # Any backend error leaves the task on the fallback directory.
                    _log.warning("Provisioning %s failed: %s: %s", name, type(e).__name__, e)
                    self._workspaces[name] = Workspace(
                        task_name=name,
                        path=self.path_for(name),
                        revision_line=self.revision_line_for(name),
                        state=WorkspaceState.FAILED,
                        error=str(e),
                    )

        await asyncio.gather(*(_one(n) for n in names))
        return {n: self._workspaces[n] for n in names}

    # ── Ownership ─────────────────────────────────────────────

    def acquire(self, task_name: str) -> Optional[Workspace]:
        """Mark a provisioned workspace in use; ``None`` if it is not usable."""
        ws = self._workspaces.get(task_name)
        if ws is None or ws.state is not WorkspaceState.PROVISIONED:
            return None
        ws = replace(ws, state=WorkspaceState.IN_USE)
        self._workspaces[task_name] = ws
        return ws

    def release(self, task_name: str) -> None:
        ws = self._workspaces.get(task_name)
        if ws is not None and ws.state is WorkspaceState.IN_USE:
            self._workspaces[task_name] = replace(ws, state=WorkspaceState.PROVISIONED)
