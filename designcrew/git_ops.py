"""Git integration: branches, worktrees and commits, run as async subprocesses."""

import asyncio
import fnmatch
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import GitCommandError
from .logger import get_logger

_log = get_logger(__name__)


@dataclass(frozen=True)
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class WorktreeEntry:
    """One record of ``git worktree list --porcelain``."""

    path: Path
    branch: Optional[str] = None   # short name, e.g. "feature/button"
    head: str = ""


def parse_worktree_porcelain(output: str) -> List[WorktreeEntry]:
    entries: List[WorktreeEntry] = []
    path: Optional[str] = None
    branch: Optional[str] = None
    head = ""
    for line in output.splitlines() + [""]:
        line = line.strip()
        if not line:
            if path:
                entries.append(WorktreeEntry(Path(path), branch, head))
            path, branch, head = None, None, ""
            continue
        key, _, value = line.partition(" ")
        if key == "worktree":
            path = value
        elif key == "HEAD":
            head = value
        elif key == "branch":
            branch = value.removeprefix("refs/heads/")
    return entries


def same_path(a: Path, b: Path) -> bool:
    return Path(a).expanduser().resolve() == Path(b).expanduser().resolve()


class GitOps:
    SENSITIVE_PATTERNS = [
        ".env*",
        "*.key",
        "*.pem",
        "*.p12",
        "*.pfx",
        "*credentials*",
        "*secret*",
        "id_rsa*",
        "id_dsa*",
        "id_ecdsa*",
        "id_ed25519*",
    ]

    def __init__(self, root, commit_prefix: str = "", timeout: float = 30.0):
        self.root = Path(root).resolve()
        self.prefix = commit_prefix
        self.timeout = timeout

    @property
    def available(self) -> bool:
        # Linked worktrees carry a .git *file*, the main checkout a directory.
        return (self.root / ".git").exists()

    async def _run(self, *args: str, check: bool = False) -> GitResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                "git", *args,
                cwd=str(self.root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise GitCommandError(args, 127, "git executable not found") from None

        try:
            out, err = await asyncio.wait_for(proc.communicate(), self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise GitCommandError(args, -1, f"timed out after {self.timeout:g}s") from None

        result = GitResult(
            proc.returncode,
            out.decode("utf-8", "replace"),
            err.decode("utf-8", "replace"),
        )
        if check and not result.ok:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result

    # ── Branches ───────────────────────────────────────────────

    async def branch_exists(self, name: str) -> bool:
        r = await self._run("show-ref", "--verify", "--quiet", f"refs/heads/{name}")
        return r.ok

    async def create_branch(self, name: str) -> None:
        await self._run("branch", name, check=True)

    async def delete_branch(self, name: str, force: bool = True) -> bool:
        r = await self._run("branch", "-D" if force else "-d", name)
        return r.ok

    async def list_branches(self, prefix: str = "") -> List[str]:
        r = await self._run("for-each-ref", "--format=%(refname:short)", "refs/heads/", check=True)
        return [b for b in r.stdout.splitlines() if b and b.startswith(prefix)]

    async def current_branch(self) -> str:
        r = await self._run("branch", "--show-current")
        return r.stdout.strip() or "(detached HEAD)"

    # ── Worktrees ──────────────────────────────────────────────

    async def list_worktrees(self) -> List[WorktreeEntry]:
        r = await self._run("worktree", "list", "--porcelain", check=True)
        return parse_worktree_porcelain(r.stdout)

    async def add_worktree(self, path: Path, branch: str) -> GitResult:
        return await self._run("worktree", "add", str(path), branch)

    async def remove_worktree(self, path: Path, force: bool = True) -> bool:
        args = ["worktree", "remove", str(path)]
        if force:
            args.append("--force")
        r = await self._run(*args)
        if not r.ok:
            _log.warning("Could not remove worktree %s: %s", path, r.stderr.strip())
        return r.ok

    async def prune_worktrees(self) -> None:
        await self._run("worktree", "prune")

    # ── Commits ────────────────────────────────────────────────

    def _is_sensitive_path(self, path: str) -> bool:
        """Return True when a path looks like it may contain secrets."""
        normalized = path.lower()
        filename = Path(path).name.lower()
        for pattern in self.SENSITIVE_PATTERNS:
            lowered_pattern = pattern.lower()
            if (
                fnmatch.fnmatch(normalized, lowered_pattern)
                or fnmatch.fnmatch(filename, lowered_pattern)
            ):
                return True
        return False

    async def stage_changed_files(self) -> List[str]:
        """Stage non-sensitive modified and untracked files."""
        if not self.available:
            return []

        modified = (await self._run("diff", "--name-only")).stdout.splitlines()
        untracked = (await self._run("ls-files", "--others", "--exclude-standard")).stdout.splitlines()

        # Keep file order stable while removing duplicates.
        candidates = list(dict.fromkeys([*modified, *untracked]))
        stageable = [p for p in candidates if p and not self._is_sensitive_path(p)]

        if stageable:
            add_result = await self._run("add", "--", *stageable)
            if not add_result.ok:
                return []
        return stageable

    async def commit_all(self, message: str) -> Optional[str]:
        """Commit every non-sensitive change; returns the short hash or None."""
        staged = await self.stage_changed_files()
        if not staged:
            return None
        r = await self._run("commit", "-m", f"{self.prefix}{message}", "--", *staged)
        if not r.ok:
            _log.warning("Commit in %s failed: %s", self.root, r.stderr.strip())
            return None
        return (await self._run("rev-parse", "--short", "HEAD")).stdout.strip()
