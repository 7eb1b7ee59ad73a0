"""Shared fixtures for designcrew tests."""

import asyncio
import os
import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from designcrew.crew.tasks import OutcomeStatus, TaskDescriptor, WorkerResult
from designcrew.errors import GitCommandError, WorkerFailure, WorkspaceConflict

HAS_GIT = shutil.which("git") is not None


def task(name, priority=1, deps=(), **extra):
    return TaskDescriptor.from_dict(
        {"name": name, "priority": priority, "dependencies": list(deps), **extra}
    )


class FakeBackend:
    """In-memory ``WorkspaceBackend``; counts every call so tests can check idempotence."""

    def __init__(self, conflicts=(), errors=()):
        self.lines = set()
        self.bound = {}
        self.conflicts = set(conflicts)
        self.errors = set(errors)
        self.calls = []

    async def ensure_revision_line(self, line):
        self.calls.append(("ensure", line))
        self.lines.add(line)

    async def is_bound(self, line, path):
        self.calls.append(("is_bound", line))
        return self.bound.get(line) == Path(path)

    async def bind_working_directory(self, line, path):
        self.calls.append(("bind", line))
        if line in self.conflicts:
            raise WorkspaceConflict(Path(path).name, line, "already checked out elsewhere")
        if line in self.errors:
            raise GitCommandError(["worktree", "add", str(path), line], 128, "fatal: broken")
        self.bound[line] = Path(path)
        return Path(path)

    def mutations(self):
        return [c for c in self.calls if c[0] in ("ensure", "bind")]


class ScriptedWorker:
    """Worker whose behaviour per task name is scripted.

    ``delays`` maps task name to seconds slept, ``fail`` names raise
    ``WorkerFailure``, ``hang`` names sleep forever and ``statuses`` overrides
    the returned status. In-flight concurrency is tracked.
    """

    def __init__(self, delays=None, fail=(), hang=(), statuses=None, default_delay=0.01):
        self.delays = dict(delays or {})
        self.fail = set(fail)
        self.hang = set(hang)
        self.statuses = dict(statuses or {})
        self.default_delay = default_delay
        self.started = []
        self.finished = []
        self.working_dirs = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def perform(self, task, working_dir, shared_config):
        self.started.append(task.name)
        self.working_dirs[task.name] = Path(working_dir)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if task.name in self.hang:
                await asyncio.sleep(3600)
            await asyncio.sleep(self.delays.get(task.name, self.default_delay))
            if task.name in self.fail:
                raise WorkerFailure(task.name, f"{task.name} exploded")
            status = self.statuses.get(task.name, OutcomeStatus.SUCCESS)
            return WorkerResult(status=status, summary=f"built {task.name}", artifact_paths=(f"{task.name}.tsx",))
        finally:
            self.in_flight -= 1
            self.finished.append(task.name)


class StaticPlanner:
    def __init__(self, plan=None, error=None):
        self.plan = plan
        self.error = error
        self.calls = 0

    async def analyze(self, source):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.plan


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory and cd into it."""
    orig = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(orig)


@pytest.fixture
def sample_config_data():
    """Minimal .designcrew.yml data dict."""
    return {
        "worktree-base": "../wt",
        "branch-prefix": "feature/",
        "max-parallel": 2,
        "provision-parallel": 1,
        "task-timeout": 60,
        "tier-mode": "priority",
        "use-worktrees": True,
        "write-tokens": True,
        "tokens-path": "src/styles/tokens.ts",
        "verbose": False,
        "use-unicode": True,
        "theme": "dark",
        "worker": {
            "kind": "template",
            "commit": False,
            "overwrite": False,
            "commit-prefix": "test: ",
        },
        "model": {
            "model": "openai/gpt-4o-mini",
            "api-base": "http://localhost:8080/v1",
            "api-key": "not-needed",
            "temperature": 0.2,
            "max-tokens": 2048,
        },
    }


@pytest.fixture
def config_yaml_file(tmp_dir, sample_config_data):
    """Write a config YAML to tmp_dir and return its Path."""
    path = tmp_dir / ".designcrew.yml"
    with open(path, "w") as f:
        yaml.dump(sample_config_data, f, default_flow_style=False)
    return path


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point the global config and logs at a throwaway home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr("designcrew.config.CONFIG_DIR", home / ".designcrew")
    monkeypatch.setattr("designcrew.config.CONFIG_FILE", home / ".designcrew" / "config.yml")
    monkeypatch.setattr("designcrew.logger.DEFAULT_LOG_FILE", home / ".designcrew" / "logs" / "designcrew.log")
    for var in ("DESIGNCREW_MAX_PARALLEL", "DESIGNCREW_TASK_TIMEOUT", "DESIGNCREW_VERBOSE", "DESIGNCREW_WORKER"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def mock_console():
    """A mock Rich Console that silently accepts all print calls."""
    c = MagicMock()
    c.print = MagicMock()
    return c


def _git(cwd, *args):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def git_repo(tmp_path):
    """A throwaway repository with one commit on ``main``."""
    if not HAS_GIT:
        pytest.skip("git not available")
    repo = tmp_path / "project"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test")
    _git(repo, "config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("# project\n")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-q", "-m", "init")
    return repo
