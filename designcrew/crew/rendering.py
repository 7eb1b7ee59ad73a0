"""Crew-specific console rendering: plan, tier progress, summary and merge steps."""

import threading
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..config import CONFIG_FIELDS, Config
from ..theme import get_theme
from ..rendering import format_duration, get_icon, shorten
from .engine import EngineState, RunObserver
from .report import RunReport
from .scheduling import Tier
from .tasks import Plan, TaskDescriptor, TaskOutcome
from .workspace import Workspace, WorkspaceState

# Status display: (icon_char, palette color, label)
_STATUS_DISPLAY = {
    "success": ("✓", "SUCCESS", "success"),
    "partial": ("◐", "PARTIAL", "partial"),
    "failed":  ("✗", "ERROR",   "failed"),
}

_WORKSPACE_DISPLAY = {
    WorkspaceState.ABSENT:      ("○", "DIM",     "absent"),
    WorkspaceState.PROVISIONED: ("●", "SUCCESS", "ready"),
    WorkspaceState.IN_USE:      ("▸", "INFO",    "in use"),
    WorkspaceState.FAILED:      ("✗", "ERROR",   "failed"),
}


def _c(name: str) -> str:
    """Color from the active palette; resolved per call so ``set_theme`` applies."""
    return getattr(get_theme(), name)


def _tier_color(priority: int) -> str:
    colors = get_theme().TIER_COLORS
    if not colors:
        return ""
    return colors[(max(priority, 1) - 1) % len(colors)]


def _markup(color: str, text: str) -> str:
    return f"[{color}]{text}[/{color}]" if color else text


class CrewRenderer(RunObserver):
    """Prints run progress as one line per event, then a summary panel."""

    def __init__(self, console: Console, verbose: bool = False, target_branch: str = "main"):
        self.console = console
        self.verbose = verbose
        self.target_branch = target_branch
        self._lock = threading.Lock()
        self._tier_done = 0
        self._tier_size = 0

    def _print(self, markup: str) -> None:
        with self._lock:
            self.console.print(f"  {markup}")

    # ── Plan ──────────────────────────────────────────────

    def on_state(self, state: EngineState, tier: Optional[int] = None) -> None:
        if self.verbose:
            suffix = f" (tier {tier})" if tier is not None else ""
            self._print(_markup(_c("DIM"), f"{get_icon('·')} {state.value}{suffix}"))

    def on_plan(self, plan: Plan, tiers: List[Tier]) -> None:
        self.render_plan(plan, tiers)

    def render_plan(self, plan: Plan, tiers: List[Tier]) -> None:
        """Show the task table grouped by tier."""
        accent, border = _c("ACCENT"), _c("BORDER")
        table = Table(
            show_header=True,
            header_style=f"bold {accent}".strip(),
            border_style=border or "none",
            padding=(0, 1),
        )
        table.add_column("Tier", justify="right", min_width=4)
        table.add_column("Task", style="bold", min_width=10)
        table.add_column("Complexity", min_width=8)
        table.add_column("Depends On", min_width=10)
        table.add_column("Description", min_width=24)

        for tier in tiers:
            color = _tier_color(tier.priority)
            for task in tier.tasks:
                table.add_row(
                    _markup(color, str(tier.priority)),
                    escape(task.name),
                    task.complexity,
                    escape(", ".join(sorted(task.dependencies))) or "-",
                    escape(shorten(task.description, 60)),
                )

        lines = [table]
        if plan.summary:
            lines += [Text(""), Text(shorten(plan.summary, 200), style=_c("DIM"))]
        counts = f" {get_icon('·')} ".join(f"tier {t.priority}: {len(t)}" for t in tiers)
        lines += [Text(""), Text(f"{len(plan.tasks)} tasks in {len(tiers)} tiers ({counts})")]

        title = f"Plan for {escape(plan.source)}" if plan.source else "Plan"
        with self._lock:
            self.console.print(Panel(
                Group(*lines),
                title=_markup(f"bold {accent}".strip(), f" {title} "),
                title_align="left",
                border_style=border or "none",
                padding=(0, 1),
            ))

    def render_config(self, config: Config) -> None:
        """Table of every top-level setting, marking values changed from the default."""
        accent, border = _c("ACCENT"), _c("BORDER")
        modified = set(config.modified_keys())
        table = Table(show_header=True, header_style=f"bold {accent}".strip(),
                      border_style=border or "none", padding=(0, 1))
        table.add_column("Key", style="bold", min_width=18)
        table.add_column("Value", min_width=12)
        table.add_column("Description")
        for key, spec in CONFIG_FIELDS.items():
            value = escape(str(config.get_config_value(key)))
            if key in modified:
                value = _markup(_c("WARN"), value)
            table.add_row(key, value, _markup(_c("DIM"), escape(spec.description)))

        source = config.source or "(defaults)"
        with self._lock:
            self.console.print(Panel(
                Group(table, Text(""), Text(f"source: {source}", style=_c("DIM"))),
                title=_markup(f"bold {accent}".strip(), " Configuration "),
                title_align="left",
                border_style=border or "none",
                padding=(0, 1),
            ))

    # ── Workspaces ────────────────────────────────────────

    def on_workspaces(self, workspaces: Dict[str, Workspace]) -> None:
        if not workspaces:
            self._print(_markup(
                _c("WARN"), f"{get_icon('⚠')} workspaces disabled; tasks share the project directory",
            ))
            return
        table = Table(show_header=True, header_style="bold", border_style=_c("BORDER") or "none", padding=(0, 1))
        table.add_column("Task", style="bold")
        table.add_column("Branch")
        table.add_column("Path")
        table.add_column("State")
        for name, ws in workspaces.items():
            icon, color, label = _WORKSPACE_DISPLAY[ws.state]
            state = _markup(_c(color), f"{get_icon(icon)} {label}")
            if ws.error:
                state += "\n" + _markup(_c("DIM"), escape(shorten(ws.error, 60)))
            table.add_row(escape(name), escape(ws.revision_line), escape(str(ws.path)), state)
        with self._lock:
            self.console.print(table)

    # ── Tier progress ─────────────────────────────────────

    def on_tier_start(self, tier: Tier, index: int, count: int) -> None:
        self._tier_done = 0
        self._tier_size = len(tier)
        color = _tier_color(tier.priority)
        header = f"{get_icon('▸')} Tier {tier.priority} ({index}/{count}): {escape(', '.join(tier.names))}"
        with self._lock:
            self.console.print()
            self.console.print(_markup(f"bold {color}".strip(), header))

    def on_task_start(self, task: TaskDescriptor, working_dir: Path, isolated: bool) -> None:
        where = escape(str(working_dir))
        if isolated:
            self._print(
                _markup(_c("INFO"), f"{get_icon('○')} {escape(task.name)}")
                + _markup(_c("DIM"), f" in {where}")
            )
        else:
            self._print(
                _markup(_c("WARN"), f"{get_icon('⚠')} {escape(task.name)}")
                + _markup(_c("DIM"), f" in {where} (shared directory)")
            )

    def on_outcome(self, outcome: TaskOutcome) -> None:
        self._tier_done += 1
        icon, color, label = _STATUS_DISPLAY[outcome.status.value]
        progress = f"[{self._tier_done}/{self._tier_size}]" if self._tier_size else ""
        detail = outcome.error if outcome.failed else outcome.summary
        line = (
            _markup(_c(color), f"{get_icon(icon)} {escape(outcome.task_name)} {label}")
            + _markup(_c("DIM"), f" {format_duration(outcome.duration)} {escape(progress)}")
        )
        if detail:
            line += _markup(_c("DIM"), f" {get_icon('·')} {escape(shorten(detail, 70))}")
        self._print(line)

    def on_tier_end(self, tier: Tier, outcomes: List[TaskOutcome]) -> None:
        failed = sum(1 for o in outcomes if o.failed)
        if failed:
            self._print(_markup(_c("WARN"), f"tier {tier.priority}: {failed} of {len(outcomes)} failed"))

    # ── Summary ───────────────────────────────────────────

    def on_report(self, report: RunReport) -> None:
        self.render_summary(report)
        self.render_details(report)
        self.render_merge_instructions(report)

    def render_summary(self, report: RunReport) -> None:
        lines = [
            f"Tasks:     {report.total}",
            _markup(_c("SUCCESS"), f"Succeeded: {report.succeeded}"),
        ]
        if report.partial:
            lines.append(_markup(_c("PARTIAL"), f"Partial:   {report.partial}"))
        lines.append(_markup(_c("ERROR") if report.failed else _c("DIM"), f"Failed:    {report.failed}"))
        lines.append(f"Duration:  {format_duration(report.duration)}")
        for timing in report.tiers:
            lines.append(_markup(
                _c("DIM"),
                f"  tier {timing.priority}: {len(timing.task_names)} tasks in {format_duration(timing.duration)}",
            ))
        if report.warnings:
            lines.append("")
            lines.extend(
                _markup(_c("WARN"), f"{get_icon('⚠')} {escape(w)}") for w in report.warnings
            )

        title = "Run complete" if report.success else "Run finished with failures"
        border = _c("SUCCESS") if report.success else _c("ERROR")
        with self._lock:
            self.console.print()
            self.console.print(Panel(
                "\n".join(lines),
                title=f" {title} ",
                title_align="left",
                border_style=border or "none",
                padding=(0, 1),
            ))

    def render_details(self, report: RunReport) -> None:
        for outcome in report.outcomes:
            icon, color, _ = _STATUS_DISPLAY[outcome.status.value]
            self._print(_markup(_c(color), f"{get_icon(icon)} {escape(outcome.task_name)}"))
            if outcome.error:
                self._print(_markup(_c("ERROR"), f"    error: {escape(outcome.error)}"))
            for path in outcome.artifact_paths:
                self._print(_markup(_c("DIM"), f"    {get_icon('◆')} {escape(path)}"))
            for note in outcome.notes:
                self._print(_markup(_c("WARN"), f"    {get_icon('⚠')} {escape(note)}"))

    def render_merge_instructions(self, report: RunReport) -> None:
        commands = report.merge_commands(self.target_branch)
        if not commands:
            return
        branches = [c.split()[2] for c in commands if c.startswith("git merge ")]
        recipe = [
            f"# merge each branch into {self.target_branch}",
            *commands,
            "",
            "# or collect everything on one integration branch first",
            "git checkout -b feature/all-components",
            *(f"git merge {b} --no-edit" for b in branches),
        ]
        with self._lock:
            self.console.print(Panel(
                "\n".join(escape(line) for line in recipe),
                title=f" {get_icon('⎇')} Merge instructions ",
                title_align="left",
                border_style=_c("BORDER") or "none",
                padding=(0, 1),
            ))
