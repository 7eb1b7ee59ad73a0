"""
designcrew: plan a design system and build its components in parallel.

Commands: designcrew run | plan | clean | demo | config
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console

from . import __version__
from .config import CONFIG_FIELDS, TIER_MODES, WORKER_KINDS, Config, ConfigFieldSpec
from .crew.engine import Orchestrator, RunObserver
from .crew.rendering import CrewRenderer
from .crew.report import RunReport
from .crew.scheduling import build_tiers, dependency_violations
from .crew.tasks import thaw
from .crew.workspace import GitWorktreeBackend, WorkspaceProvisioner
from .errors import CrewError, PlanningFailed
from .logger import get_logger, setup_logger
from .planners import build_planner
from .rendering import set_use_unicode
from .theme import get_theme, set_theme
from .tokens import TokensPublisher
from .workers import build_worker

_log = get_logger(__name__)

console = Console()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PLANNING = 2


def _banner() -> str:
    accent = get_theme().ACCENT
    name = f"[bold {accent}]designcrew[/bold {accent}]" if accent else "[bold]designcrew[/bold]"
    return f"{name} [dim]v{__version__} · parallel component builds[/dim]"


def _prepare(project_dir: str, verbose: bool) -> Config:
    config = Config.load(project_dir)
    if verbose:
        config.verbose = True
    setup_logger(verbose=config.verbose)
    set_theme(config.theme)
    set_use_unicode(config.use_unicode)
    return config


def build_provisioner(config: Config) -> Optional[WorkspaceProvisioner]:
    """Worktree provisioner for the project, or ``None`` when isolation is off or impossible."""
    if not config.use_worktrees:
        return None
    backend = GitWorktreeBackend(config.root)
    if not backend.available:
        _log.warning("%s is not a git checkout; tasks will share the project directory", config.root)
        console.print(f"[yellow]{config.root} is not a git repository; running without worktrees[/yellow]")
        return None
    return WorkspaceProvisioner(
        backend,
        worktree_base=config.worktree_base_path,
        branch_prefix=config.branch_prefix,
        max_concurrent=config.provision_parallel,
    )


def build_orchestrator(config: Config, source: str, extra_observers: Optional[List[RunObserver]] = None) -> Orchestrator:
    observers: List[RunObserver] = []
    if config.write_tokens:
        observers.append(TokensPublisher(config.tokens_file))
    observers.append(CrewRenderer(console, verbose=config.verbose))
    observers.extend(extra_observers or [])
    return Orchestrator(
        planner=build_planner(source, config),
        worker=build_worker(config),
        fallback_dir=config.root,
        provisioner=build_provisioner(config),
        max_parallel=config.max_parallel,
        task_timeout=float(config.task_timeout),
        tier_mode=config.tier_mode,
        observers=observers,
    )


def _exit_code(report: RunReport) -> int:
    return EXIT_OK if report.success else EXIT_FAILED


@click.group()
@click.version_option(__version__, prog_name="designcrew")
def cli():
    """designcrew: turn a design into isolated, parallel component builds."""


@cli.command()
@click.argument("source")
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--max-parallel", "-p", type=int, default=None, help="Tasks running at once per tier")
@click.option("--task-timeout", "-t", type=int, default=None, help="Per-task time limit (seconds)")
@click.option("--worker", type=click.Choice(sorted(WORKER_KINDS)), default=None, help="Worker implementation")
@click.option("--worktree-base", default=None, help="Directory for per-task worktrees")
@click.option("--no-worktrees", is_flag=True, help="Run every task in the project directory")
@click.option("--tier-mode", type=click.Choice(sorted(TIER_MODES)), default=None, help="How tiers are formed")
@click.option("--no-tokens", is_flag=True, help="Do not write the design tokens module")
@click.option("--report-json", type=click.Path(dir_okay=False), default=None, help="Write the run report as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def run(source, project_dir, max_parallel, task_timeout, worker, worktree_base,
        no_worktrees, tier_mode, no_tokens, report_json, verbose):
    """Plan SOURCE (Figma URL/key, plan file or 'demo') and build every task."""
    config = _prepare(project_dir, verbose)
    overrides = {
        "max-parallel": max_parallel,
        "task-timeout": task_timeout,
        "worktree-base": worktree_base,
        "tier-mode": tier_mode,
        "use-worktrees": False if no_worktrees else None,
        "write-tokens": False if no_tokens else None,
    }
    for key, value in overrides.items():
        if value is not None:
            config.override(key, value)
    if worker:
        config.worker.kind = worker

    console.print(_banner())
    for key, value in config.summary().items():
        console.print(f"  [dim]{key}:[/dim] {value}")

    try:
        orchestrator = build_orchestrator(config, source)
        report = orchestrator.run_sync(source)
    except PlanningFailed as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(EXIT_PLANNING)
    except (CrewError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(EXIT_FAILED)

    if report_json:
        Path(report_json).write_text(report.to_json(), encoding="utf-8")
        console.print(f"  [dim]report written to {report_json}[/dim]")
    sys.exit(_exit_code(report))


@cli.command()
@click.argument("source")
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON")
@click.option("--tier-mode", type=click.Choice(sorted(TIER_MODES)), default=None, help="How tiers are formed")
def plan(source, project_dir, as_json, tier_mode):
    """Run only the planner and show the resulting tiers."""
    config = _prepare(project_dir, verbose=False)
    mode = tier_mode or config.tier_mode
    try:
        result = asyncio.run(build_planner(source, config).analyze(source))
    except PlanningFailed as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(EXIT_PLANNING)
    except (CrewError, OSError, ValueError) as e:
        console.print(f"[red]{PlanningFailed(source, str(e))}[/red]")
        sys.exit(EXIT_PLANNING)

    tiers = build_tiers(result.tasks, mode)
    warnings = dependency_violations(tiers) if mode == "priority" else []
    if as_json:
        payload = {
            "source": result.source,
            "summary": result.summary,
            "tier_mode": mode,
            "tiers": [{"priority": t.priority, "tasks": list(t.names)} for t in tiers],
            "tasks": [t.to_dict() for t in result.tasks],
            "shared_config": thaw(result.shared_config),
            "warnings": warnings,
        }
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    CrewRenderer(console).render_plan(result, tiers)
    for warning in warnings:
        console.print(f"  [yellow]{warning}[/yellow]")


@cli.command()
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--delete-branches", is_flag=True, help="Also delete branches carrying the configured prefix")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def clean(project_dir, delete_branches, yes):
    """Remove every task worktree (and optionally its branch)."""
    config = _prepare(project_dir, verbose=False)
    backend = GitWorktreeBackend(config.root)
    if not backend.available:
        console.print(f"[red]{config.root} is not a git repository[/red]")
        sys.exit(EXIT_FAILED)

    base = config.worktree_base_path
    what = f"all worktrees under {base}"
    if delete_branches:
        what += f" and branches matching {config.branch_prefix}*"
    if not yes and not click.confirm(f"Remove {what}?", default=False):
        console.print("[dim]Aborted.[/dim]")
        return

    try:
        removed = asyncio.run(backend.remove_worktrees(
            base, delete_branches=delete_branches, branch_prefix=config.branch_prefix,
        ))
    except CrewError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(EXIT_FAILED)
    for path in removed:
        console.print(f"  [dim]removed {path}[/dim]")
    console.print(f"Removed {len(removed)} worktree(s).")


@cli.group("config", invoke_without_command=True)
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.pass_context
def config_cmd(ctx, project_dir):
    """Show or change project settings (.designcrew.yml)."""
    ctx.obj = _prepare(project_dir, verbose=False)
    if ctx.invoked_subcommand is None:
        CrewRenderer(console).render_config(ctx.obj)


def _known_key(key: str) -> ConfigFieldSpec:
    if key not in CONFIG_FIELDS:
        console.print(f"[red]Unknown configuration key: {key}[/red]")
        console.print(f"[dim]Available: {', '.join(CONFIG_FIELDS)}[/dim]")
        sys.exit(EXIT_FAILED)
    return CONFIG_FIELDS[key]


@config_cmd.command("get")
@click.argument("key")
@click.pass_obj
def config_get(config, key):
    """Print the current value of KEY."""
    _known_key(key)
    click.echo(config.get_config_value(key))


@config_cmd.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set(config, key, value):
    """Validate VALUE and store it under KEY in the project file."""
    _known_key(key)
    ok, error = config.set_config_value(key, value)
    if not ok:
        console.print(f"[red]{key}: {error}[/red]")
        sys.exit(EXIT_FAILED)
    final = config.get_config_value(key)
    try:
        target = config.save_value(key, final)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(EXIT_FAILED)
    console.print(f"Set {key} = {final} [dim]({target})[/dim]")


@config_cmd.command("reset")
@click.argument("key")
@click.pass_obj
def config_reset(config, key):
    """Remove KEY from the project file so its default applies."""
    spec = _known_key(key)
    config.reset_config_value(key)
    try:
        target = config.save_value(key, reset=True)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(EXIT_FAILED)
    console.print(f"Reset {key} = {spec.default} [dim]({target})[/dim]")


@cli.command()
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--max-parallel", "-p", type=int, default=None, help="Tasks running at once per tier")
@click.option("--no-worktrees", is_flag=True, help="Run every task in the project directory")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def demo(ctx, project_dir, max_parallel, no_worktrees, verbose):
    """Build the built-in demo design system with the template worker."""
    ctx.invoke(
        run,
        source="demo",
        project_dir=project_dir,
        max_parallel=max_parallel,
        worker="template",
        no_worktrees=no_worktrees,
        verbose=verbose,
    )


if __name__ == "__main__":
    cli()
