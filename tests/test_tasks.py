"""Tests for task descriptors, plans and outcomes."""

from datetime import timedelta
from types import MappingProxyType

import pytest

from designcrew.crew.tasks import (
    DEGRADED_ISOLATION,
    OutcomeStatus,
    Plan,
    TaskDescriptor,
    TaskOutcome,
    coerce_priority,
    freeze,
    thaw,
    utcnow,
)


class TestCoercePriority:
    @pytest.mark.parametrize("value,expected", [
        (1, 1),
        (3, 3),
        ("2", 2),
        (" 4 ", 4),
        (2.0, 2),
    ])
    def test_valid(self, value, expected):
        assert coerce_priority(value) == expected

    @pytest.mark.parametrize("value", [None, 0, -1, "high", 1.5, True, False, [], {}])
    def test_invalid_is_none(self, value):
        assert coerce_priority(value) is None


class TestTaskDescriptor:
    def test_from_dict_basic(self):
        t = TaskDescriptor.from_dict({
            "name": "card",
            "priority": 2,
            "dependencies": ["button"],
            "complexity": "high",
            "description": "A card",
            "props": ["title"],
            "nodeId": "1:20",
        })
        assert t.name == "card"
        assert t.priority == 2
        assert t.dependencies == frozenset({"button"})
        assert t.complexity == "high"
        assert t.payload["props"] == ("title",)
        assert t.payload["nodeId"] == "1:20"

    def test_missing_name_raises(self):
        with pytest.raises(ValueError):
            TaskDescriptor.from_dict({"priority": 1})
        with pytest.raises(ValueError):
            TaskDescriptor.from_dict({"name": "   "})

    def test_invalid_priority_defaults_to_tier_one(self):
        t = TaskDescriptor.from_dict({"name": "x", "priority": "urgent"})
        assert t.priority is None
        assert t.effective_priority == 1

    def test_depends_on_alias_and_self_dependency_dropped(self):
        t = TaskDescriptor.from_dict({"name": "x", "depends_on": ["x", "y", ""]})
        assert t.dependencies == frozenset({"y"})
        assert "depends_on" not in t.payload

    def test_single_string_dependency(self):
        t = TaskDescriptor.from_dict({"name": "x", "dependencies": "y"})
        assert t.dependencies == frozenset({"y"})

    def test_is_immutable(self):
        t = TaskDescriptor.from_dict({"name": "x", "props": ["a"]})
        with pytest.raises(Exception):
            t.name = "y"
        with pytest.raises(TypeError):
            t.payload["props"] = ()

    def test_to_dict_is_plain(self):
        t = TaskDescriptor.from_dict({"name": "x", "dependencies": ["b", "a"], "props": ["p"]})
        d = t.to_dict()
        assert d["dependencies"] == ["a", "b"]
        assert d["payload"] == {"props": ["p"]}


class TestFreeze:
    def test_round_trip(self):
        data = {"colors": {"primary": "#fff"}, "list": [1, {"a": 2}]}
        frozen = freeze(data)
        assert isinstance(frozen, MappingProxyType)
        assert isinstance(frozen["list"], tuple)
        assert thaw(frozen) == data

    def test_plan_shared_config_is_read_only(self):
        plan = Plan.build([TaskDescriptor("a")], {"colors": {"primary": "#fff"}})
        with pytest.raises(TypeError):
            plan.shared_config["colors"]["primary"] = "#000"
        assert plan.task_names == ("a",)


class TestOutcomeStatus:
    @pytest.mark.parametrize("raw,expected", [
        ("success", OutcomeStatus.SUCCESS),
        ("OK", OutcomeStatus.SUCCESS),
        ("partial_success", OutcomeStatus.PARTIAL),
        ("error", OutcomeStatus.FAILED),
        (OutcomeStatus.PARTIAL, OutcomeStatus.PARTIAL),
    ])
    def test_parse(self, raw, expected):
        assert OutcomeStatus.parse(raw) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            OutcomeStatus.parse("maybe")


class TestTaskOutcome:
    def _outcome(self, **kw):
        now = utcnow()
        base = dict(
            task_name="a",
            status=OutcomeStatus.SUCCESS,
            summary="ok",
            started_at=now,
            finished_at=now + timedelta(seconds=2),
        )
        base.update(kw)
        return TaskOutcome(**base)

    def test_duration(self):
        assert self._outcome().duration == pytest.approx(2.0)

    def test_error_required_exactly_when_failed(self):
        with pytest.raises(ValueError):
            self._outcome(status=OutcomeStatus.FAILED)
        with pytest.raises(ValueError):
            self._outcome(error="boom")
        assert self._outcome(status=OutcomeStatus.FAILED, error="boom").failed

    def test_isolated_flag(self):
        assert self._outcome().isolated
        degraded = self._outcome(notes=(f"{DEGRADED_ISOLATION}: conflict; ran in /p",))
        assert not degraded.isolated
        assert degraded.to_dict()["isolated"] is False
