"""Orchestrator: plan -> provision -> dispatch tier by tier -> report."""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..errors import CrewError, EngineStateError, PlanningFailed
from ..logger import get_logger
from .executor import DEFAULT_TASK_TIMEOUT, TaskExecutor
from .report import OutcomeAggregator, RunReport
from .scheduling import Dispatcher, Tier, build_tiers, dependency_violations
from .tasks import Plan, TaskDescriptor, TaskOutcome
from .workspace import Workspace, WorkspaceProvisioner

_log = get_logger(__name__)


class EngineState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    PROVISIONING = "provisioning"
    DISPATCHING = "dispatching"
    FINALIZING = "finalizing"
    DONE = "done"
    ABORTED = "aborted"


_TRANSITIONS = {
    EngineState.IDLE: {EngineState.PLANNING},
    EngineState.PLANNING: {EngineState.PROVISIONING, EngineState.ABORTED},
    EngineState.PROVISIONING: {EngineState.DISPATCHING, EngineState.ABORTED},
    EngineState.DISPATCHING: {EngineState.DISPATCHING, EngineState.FINALIZING},
    EngineState.FINALIZING: {EngineState.DONE},
    EngineState.DONE: set(),
    EngineState.ABORTED: set(),
}


class RunObserver:
    """No-op hooks the orchestrator calls as a run progresses.

    Subclass and override what you need. Exceptions raised by a hook are
    logged and never affect scheduling.
    """

    def on_state(self, state: EngineState, tier: Optional[int] = None) -> None:
        pass

    def on_plan(self, plan: Plan, tiers: List[Tier]) -> None:
        pass

    def on_workspaces(self, workspaces: Dict[str, Workspace]) -> None:
        pass

    def on_tier_start(self, tier: Tier, index: int, count: int) -> None:
        pass

    def on_task_start(self, task: TaskDescriptor, working_dir: Path, isolated: bool) -> None:
        pass

    def on_outcome(self, outcome: TaskOutcome) -> None:
        pass

    def on_tier_end(self, tier: Tier, outcomes: List[TaskOutcome]) -> None:
        pass

    def on_report(self, report: RunReport) -> None:
        pass


class Orchestrator:
    """Single-use engine for one end-to-end run.

    Planning problems (a failing planner or an empty task list) abort the
    run with :class:`PlanningFailed`. Everything after planning degrades
    instead: workspace failures fall back to ``fallback_dir`` and task
    failures end up as failed outcomes in the report.
    """

    def __init__(
        self,
        planner,
        worker,
        fallback_dir,
        provisioner: Optional[WorkspaceProvisioner] = None,
        max_parallel: int = 3,
        task_timeout: float = DEFAULT_TASK_TIMEOUT,
        tier_mode: str = "priority",
        observers: Iterable[RunObserver] = (),
    ):
        self.planner = planner
        self.provisioner = provisioner
        self.fallback_dir = Path(fallback_dir)
        self.tier_mode = tier_mode
        self.observers = list(observers)
        self.executor = TaskExecutor(worker, timeout=task_timeout)
        self.dispatcher = Dispatcher(
            self.executor,
            concurrency_limit=max_parallel,
            fallback_dir=self.fallback_dir,
            provisioner=provisioner,
            on_task_start=lambda task, wd, iso: self._notify("on_task_start", task, wd, iso),
        )
        self.state = EngineState.IDLE
        self.current_tier: Optional[int] = None
        self.plan: Optional[Plan] = None
        self.report: Optional[RunReport] = None

    # ── State machine ─────────────────────────────────────────

    def _advance(self, state: EngineState, tier: Optional[int] = None) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise EngineStateError(f"Cannot move from {self.state.value} to {state.value}")
        self.state = state
        self.current_tier = tier
        _log.info("Engine state: %s%s", state.value, f" (tier {tier})" if tier is not None else "")
        self._notify("on_state", state, tier)

    def _notify(self, hook: str, *args) -> None:
        for observer in self.observers:
            try:
                getattr(observer, hook)(*args)
            except Exception as e:
                _log.warning("Observer %s.%s failed: %s", type(observer).__name__, hook, e)

    # ── Public API ────────────────────────────────────────────

    def run_sync(self, source: str) -> RunReport:
        return asyncio.run(self.run(source))

    async def run(self, source: str) -> RunReport:
        """Execute the whole pipeline for ``source``.

        Raises:
            PlanningFailed: nothing to schedule; the engine ends ``ABORTED``.
            EngineStateError: this instance already ran.
        """
        if self.state is not EngineState.IDLE:
            raise EngineStateError("Orchestrator instances are single-use")

        self._advance(EngineState.PLANNING)
        plan = await self._plan(source)
        tiers = build_tiers(plan.tasks, self.tier_mode)
        aggregator = OutcomeAggregator(source=source)
        if self.tier_mode == "priority":
            for problem in dependency_violations(tiers):
                aggregator.warn(f"Advisory dependency not enforced: {problem}")
        self._notify("on_plan", plan, tiers)

        self._advance(EngineState.PROVISIONING)
        workspaces: Dict[str, Workspace] = {}
        if self.provisioner is not None:
            workspaces = await self.provisioner.provision_all(plan.task_names)
            for name, ws in workspaces.items():
                if ws.usable:
                    aggregator.set_revision_line(name, ws.revision_line)
        self._notify("on_workspaces", workspaces)

        for index, tier in enumerate(tiers, 1):
            self._advance(EngineState.DISPATCHING, tier=tier.priority)
            self._notify("on_tier_start", tier, index, len(tiers))
            aggregator.begin_tier(tier.priority, tier.names)

            def _collect(outcome: TaskOutcome) -> None:
                aggregator.record(outcome)
                self._notify("on_outcome", outcome)

            outcomes = await self.dispatcher.dispatch(tier, plan.shared_config, on_outcome=_collect)
            aggregator.end_tier()
            self._notify("on_tier_end", tier, outcomes)

        self._advance(EngineState.FINALIZING)
        report = aggregator.finalize()
        missing = set(plan.task_names) - {o.task_name for o in report.outcomes}
        if missing:
            _log.error("No outcome recorded for: %s", ", ".join(sorted(missing)))
        self.report = report
        self._notify("on_report", report)
        self._advance(EngineState.DONE)
        return report

    async def _plan(self, source: str) -> Plan:
        try:
            plan = await self.planner.analyze(source)
        except PlanningFailed as e:
            _log.error("%s", e)
            self._advance(EngineState.ABORTED)
            raise
        except (CrewError, OSError, ValueError) as e:
            _log.error("Planner failed for %s: %s", source, e)
            self._advance(EngineState.ABORTED)
            raise PlanningFailed(source, str(e)) from e
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            _log.error("Planner crashed for %s: %s", source, reason)
            self._advance(EngineState.ABORTED)
            raise PlanningFailed(source, reason) from e

        if plan is None or not plan.tasks:
            error = PlanningFailed(source, "planner returned zero tasks")
            _log.error("%s", error)
            self._advance(EngineState.ABORTED)
            raise error
        self.plan = plan
        return plan
