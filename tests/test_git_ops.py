import asyncio
import subprocess
from pathlib import Path

import pytest

from designcrew.crew.workspace import GitWorktreeBackend, WorkspaceProvisioner, WorkspaceState
from designcrew.errors import WorkspaceConflict
from designcrew.git_ops import GitOps, parse_worktree_porcelain, same_path


@pytest.mark.parametrize(
    "path",
    [
        ".env",
        "config/.env.local",
        "secrets/private.key",
        "certs/server.pem",
        "keys/id_rsa",
    ],
)
def test_sensitive_path_detection(tmp_path, path):
    ops = GitOps(str(tmp_path))

    assert ops._is_sensitive_path(path) is True


@pytest.mark.parametrize(
    "path",
    [
        "src/components/Button/index.tsx",
        "src/styles/tokens.ts",
        "README.md",
    ],
)
def test_non_sensitive_path_allowed(tmp_path, path):
    ops = GitOps(str(tmp_path))

    assert ops._is_sensitive_path(path) is False


def test_parse_worktree_porcelain():
    output = (
        "worktree /repo\n"
        "HEAD 1111111\n"
        "branch refs/heads/main\n"
        "\n"
        "worktree /wt/button\n"
        "HEAD 2222222\n"
        "branch refs/heads/feature/button\n"
        "\n"
        "worktree /wt/detached\n"
        "HEAD 3333333\n"
        "detached\n"
    )
    entries = parse_worktree_porcelain(output)

    assert [e.path for e in entries] == [Path("/repo"), Path("/wt/button"), Path("/wt/detached")]
    assert [e.branch for e in entries] == ["main", "feature/button", None]
    assert entries[1].head == "2222222"


def test_parse_worktree_porcelain_empty():
    assert parse_worktree_porcelain("") == []


def test_same_path(tmp_path):
    assert same_path(tmp_path / "a" / ".." / "b", tmp_path / "b")
    assert not same_path(tmp_path / "a", tmp_path / "b")


def test_available(tmp_path, git_repo):
    assert GitOps(git_repo).available
    assert not GitOps(tmp_path).available


def _branches(repo):
    out = subprocess.run(
        ["git", "for-each-ref", "--format=%(refname:short)", "refs/heads/"],
        cwd=repo, check=True, capture_output=True, text=True,
    ).stdout
    return set(out.split())


class TestGitWorktreeBackend:
    def test_provision_creates_branch_and_worktree(self, git_repo):
        base = git_repo.parent / "wt"
        prov = WorkspaceProvisioner(GitWorktreeBackend(git_repo), base)

        ws = asyncio.run(prov.provision("button"))

        assert ws.state is WorkspaceState.PROVISIONED
        assert "feature/button" in _branches(git_repo)
        assert (base / "button" / "README.md").exists()

    def test_provision_is_idempotent_across_runs(self, git_repo):
        base = git_repo.parent / "wt"
        asyncio.run(WorkspaceProvisioner(GitWorktreeBackend(git_repo), base).provision("button"))
        marker = base / "button" / "work-in-progress.txt"
        marker.write_text("keep me")

        ws = asyncio.run(WorkspaceProvisioner(GitWorktreeBackend(git_repo), base).provision("button"))

        assert ws.usable
        assert marker.read_text() == "keep me"
        worktrees = asyncio.run(GitOps(git_repo).list_worktrees())
        assert sum(1 for w in worktrees if w.branch == "feature/button") == 1

    def test_existing_plain_directory_conflicts(self, git_repo):
        base = git_repo.parent / "wt"
        (base / "card").mkdir(parents=True)
        prov = WorkspaceProvisioner(GitWorktreeBackend(git_repo), base)

        with pytest.raises(WorkspaceConflict):
            asyncio.run(prov.provision("card"))
        assert prov.get("card").state is WorkspaceState.FAILED

    def test_branch_checked_out_elsewhere_conflicts(self, git_repo):
        backend = GitWorktreeBackend(git_repo)
        asyncio.run(WorkspaceProvisioner(backend, git_repo.parent / "one").provision("card"))

        other = WorkspaceProvisioner(backend, git_repo.parent / "two")
        result = asyncio.run(other.provision_all(["card"]))

        assert result["card"].state is WorkspaceState.FAILED
        assert "already checked out" in result["card"].error

    def test_existing_branch_is_reused(self, git_repo):
        subprocess.run(["git", "branch", "feature/modal"], cwd=git_repo, check=True)
        prov = WorkspaceProvisioner(GitWorktreeBackend(git_repo), git_repo.parent / "wt")

        ws = asyncio.run(prov.provision("modal"))

        assert ws.usable

    def test_remove_worktrees(self, git_repo):
        base = git_repo.parent / "wt"
        backend = GitWorktreeBackend(git_repo)
        asyncio.run(WorkspaceProvisioner(backend, base).provision_all(["a", "b"]))

        removed = asyncio.run(backend.remove_worktrees(base, delete_branches=True, branch_prefix="feature/"))

        assert len(removed) == 2
        assert not base.exists()
        assert _branches(git_repo) == {"main"}

    def test_remove_keeps_branches_by_default(self, git_repo):
        base = git_repo.parent / "wt"
        backend = GitWorktreeBackend(git_repo)
        asyncio.run(WorkspaceProvisioner(backend, base).provision("a"))

        asyncio.run(backend.remove_worktrees(base))

        assert "feature/a" in _branches(git_repo)


class TestCommitAll:
    def test_commits_and_skips_secrets(self, git_repo):
        (git_repo / "index.tsx").write_text("export {};\n")
        (git_repo / ".env").write_text("TOKEN=x\n")
        git = GitOps(git_repo, commit_prefix="designcrew: ")

        sha = asyncio.run(git.commit_all("add index"))

        assert sha
        log = subprocess.run(
            ["git", "log", "-1", "--pretty=%s"], cwd=git_repo, check=True, capture_output=True, text=True,
        ).stdout.strip()
        assert log == "designcrew: add index"
        status = subprocess.run(
            ["git", "status", "--porcelain"], cwd=git_repo, check=True, capture_output=True, text=True,
        ).stdout
        assert ".env" in status

    def test_nothing_to_commit(self, git_repo):
        assert asyncio.run(GitOps(git_repo).commit_all("noop")) is None
