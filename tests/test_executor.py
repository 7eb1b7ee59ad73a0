"""Tests for TaskExecutor."""

import asyncio

import pytest

from designcrew.crew.executor import TaskExecutor, coerce_worker_result
from designcrew.crew.tasks import OutcomeStatus, WorkerResult
from designcrew.errors import WorkerFailure

from conftest import ScriptedWorker, task


class _ReturnWorker:
    def __init__(self, value):
        self.value = value

    async def perform(self, task, working_dir, shared_config):
        return self.value


class _RaiseWorker:
    def __init__(self, exc):
        self.exc = exc

    async def perform(self, task, working_dir, shared_config):
        raise self.exc


def _execute(worker, tmp_path, timeout=5.0, **kw):
    return asyncio.run(TaskExecutor(worker, timeout=timeout).execute(task("button"), tmp_path, {}, **kw))


class TestCoerceWorkerResult:
    def test_passthrough(self):
        result = WorkerResult(OutcomeStatus.SUCCESS, "ok")
        assert coerce_worker_result("a", result) is result

    def test_mapping(self):
        result = coerce_worker_result("a", {"status": "success", "summary": "s", "files_created": ["x.tsx"]})
        assert result.status is OutcomeStatus.SUCCESS
        assert result.artifact_paths == ("x.tsx",)

    def test_bad_status(self):
        with pytest.raises(WorkerFailure):
            coerce_worker_result("a", {"status": "weird"})

    def test_wrong_type(self):
        with pytest.raises(WorkerFailure, match="expected WorkerResult"):
            coerce_worker_result("a", 42)


class TestTaskExecutor:
    def test_success(self, tmp_path):
        outcome = _execute(ScriptedWorker(), tmp_path, tier=3)
        assert outcome.status is OutcomeStatus.SUCCESS
        assert outcome.artifact_paths == ("button.tsx",)
        assert outcome.error is None
        assert outcome.priority == 3
        assert outcome.working_dir == str(tmp_path)
        assert outcome.finished_at >= outcome.started_at

    def test_priority_defaults_to_task(self, tmp_path):
        outcome = _execute(ScriptedWorker(), tmp_path)
        assert outcome.priority == 1

    def test_notes_are_kept(self, tmp_path):
        outcome = _execute(ScriptedWorker(), tmp_path, notes=("degraded isolation: x",))
        assert outcome.notes == ("degraded isolation: x",)

    def test_reported_failure_gets_error(self, tmp_path):
        outcome = _execute(_ReturnWorker(WorkerResult(OutcomeStatus.FAILED, "")), tmp_path)
        assert outcome.failed
        assert outcome.error == "worker reported failure"

    def test_reported_failure_uses_summary(self, tmp_path):
        outcome = _execute(_ReturnWorker(WorkerResult(OutcomeStatus.FAILED, "lint broke")), tmp_path)
        assert outcome.error == "lint broke"

    def test_partial(self, tmp_path):
        outcome = _execute(_ReturnWorker({"status": "partial", "summary": "half"}), tmp_path)
        assert outcome.status is OutcomeStatus.PARTIAL
        assert outcome.error is None

    def test_exception_becomes_failed_outcome(self, tmp_path):
        outcome = _execute(_RaiseWorker(RuntimeError("disk full")), tmp_path)
        assert outcome.failed
        assert outcome.error == "disk full"
        assert outcome.summary == "button failed: disk full"

    def test_exception_without_message_uses_type(self, tmp_path):
        outcome = _execute(_RaiseWorker(KeyError()), tmp_path)
        assert outcome.failed
        assert outcome.error

    def test_timeout(self, tmp_path):
        outcome = _execute(ScriptedWorker(hang={"button"}), tmp_path, timeout=0.05)
        assert outcome.failed
        assert outcome.error.startswith("Timed out after")

    def test_worker_own_timeout_is_not_the_deadline(self, tmp_path):
        outcome = _execute(_RaiseWorker(asyncio.TimeoutError("read timed out")), tmp_path, timeout=300)
        assert outcome.failed
        assert outcome.error == "worker timeout: read timed out"
        assert "300" not in outcome.error

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            TaskExecutor(ScriptedWorker(), timeout=0)

    def test_cancellation_propagates(self, tmp_path):
        executor = TaskExecutor(ScriptedWorker(hang={"button"}), timeout=60)

        async def scenario():
            running = asyncio.ensure_future(executor.execute(task("button"), tmp_path, {}))
            await asyncio.sleep(0.02)
            running.cancel()
            await running

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(scenario())
