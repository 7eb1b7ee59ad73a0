"""Tests for OutcomeAggregator and RunReport."""

import json

from designcrew.crew.report import OutcomeAggregator
from designcrew.crew.tasks import DEGRADED_ISOLATION, OutcomeStatus, TaskOutcome, utcnow


def _outcome(name, status=OutcomeStatus.SUCCESS, notes=()):
    now = utcnow()
    return TaskOutcome(
        task_name=name,
        status=status,
        summary=f"{name} {status.value}",
        started_at=now,
        finished_at=now,
        error="boom" if status is OutcomeStatus.FAILED else None,
        notes=tuple(notes),
    )


class TestOutcomeAggregator:
    def test_counts(self):
        agg = OutcomeAggregator("demo")
        agg.record(_outcome("a"))
        agg.record(_outcome("b", OutcomeStatus.FAILED))
        agg.record(_outcome("c", OutcomeStatus.PARTIAL))
        report = agg.finalize()
        assert (report.total, report.succeeded, report.partial, report.failed) == (3, 1, 1, 1)
        assert not report.success
        assert report.source == "demo"

    def test_completion_order_kept(self):
        agg = OutcomeAggregator()
        for name in ("c", "a", "b"):
            agg.record(_outcome(name))
        assert [o.task_name for o in agg.finalize().outcomes] == ["c", "a", "b"]

    def test_duplicate_last_write_wins_with_warning(self):
        agg = OutcomeAggregator()
        agg.record(_outcome("a", OutcomeStatus.FAILED))
        agg.record(_outcome("b"))
        agg.record(_outcome("a"))
        report = agg.finalize()
        assert report.total == 2
        assert report.outcome_for("a").succeeded
        assert [o.task_name for o in report.outcomes] == ["b", "a"]
        assert any("Duplicate outcome for 'a'" in w for w in report.warnings)

    def test_finalize_is_idempotent(self):
        agg = OutcomeAggregator()
        agg.record(_outcome("a"))
        first = agg.finalize()
        assert agg.finalize() is first

    def test_record_after_finalize_is_ignored(self):
        agg = OutcomeAggregator()
        report = agg.finalize()
        agg.record(_outcome("late"))
        assert report.total == 0
        assert agg.finalize() is report

    def test_tier_timings(self):
        agg = OutcomeAggregator()
        agg.begin_tier(1, ["a", "b"])
        agg.end_tier()
        agg.begin_tier(2, ["c"])
        report = agg.finalize()
        assert [t.priority for t in report.tiers] == [1, 2]
        assert report.tiers[0].task_names == ("a", "b")

    def test_empty_report_is_success(self):
        report = OutcomeAggregator().finalize()
        assert report.total == 0
        assert report.success


class TestRunReport:
    def test_to_json(self):
        agg = OutcomeAggregator("demo")
        agg.record(_outcome("a"))
        agg.warn("careful")
        data = json.loads(agg.finalize().to_json())
        assert data["counts"] == {"total": 1, "succeeded": 1, "partial": 0, "failed": 0}
        assert data["outcomes"][0]["task_name"] == "a"
        assert data["warnings"] == ["careful"]
        assert data["success"] is True

    def test_merge_commands_skip_failed_and_degraded(self):
        agg = OutcomeAggregator()
        for name in ("a", "b", "c"):
            agg.set_revision_line(name, f"feature/{name}")
        agg.record(_outcome("a"))
        agg.record(_outcome("b", OutcomeStatus.FAILED))
        agg.record(_outcome("c", notes=(f"{DEGRADED_ISOLATION}: conflict",)))
        commands = agg.finalize().merge_commands("develop")
        assert commands == ["git checkout develop", "git merge feature/a --no-edit"]

    def test_merge_commands_empty_without_lines(self):
        agg = OutcomeAggregator()
        agg.record(_outcome("a"))
        assert agg.finalize().merge_commands() == []
