"""Deterministic worker that scaffolds a React/TypeScript component."""

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping

from ..crew.tasks import OutcomeStatus, TaskDescriptor, WorkerResult, thaw
from ..git_ops import GitOps
from ..logger import get_logger
from .base import component_files, pascal_case

_log = get_logger(__name__)


def _prop_names(task: TaskDescriptor) -> List[str]:
    names = []
    for prop in task.payload.get("props") or ():
        name = str(prop).strip()
        if name.isidentifier() and name not in names:
            names.append(name)
    return names


def _prop_type(name: str) -> str:
    if name == "children":
        return "React.ReactNode"
    if name.startswith("on") and name[2:3].isupper():
        return "() => void"
    if name in ("disabled", "open", "collapsed", "loading"):
        return "boolean"
    return "string"


def render_types(task: TaskDescriptor) -> str:
    pascal = pascal_case(task.name)
    props = _prop_names(task)
    lines = [f"  {p}?: {_prop_type(p)};" for p in props] or ["  className?: string;"]
    header = "import type React from 'react';\n\n" if "children" in props else ""
    return (
        f"{header}"
        f"/** Props for {pascal}. {task.description} */\n"
        f"export interface {pascal}Props {{\n"
        + "\n".join(lines)
        + "\n}\n"
    )


def render_component(task: TaskDescriptor, shared_config: Mapping[str, Any]) -> str:
    pascal = pascal_case(task.name)
    props = _prop_names(task)
    colors = thaw(shared_config.get("colors") or {})
    destructure = ", ".join(props) if props else "className"
    body = "{children}" if "children" in props else pascal
    return (
        "import React from 'react';\n"
        f"import type {{ {pascal}Props }} from './{pascal}.types';\n\n"
        f"const colors = {json.dumps(colors, indent=2, sort_keys=True)} as const;\n\n"
        f"export const {pascal}: React.FC<{pascal}Props> = ({{ {destructure} }}) => {{\n"
        "  return (\n"
        f"    <div\n"
        f"      data-testid=\"{task.name}\"\n"
        "      className=\"rounded-md p-4\"\n"
        "      style={{ color: colors['text-primary'], borderColor: colors['border'] }}\n"
        "    >\n"
        f"      {body}\n"
        "    </div>\n"
        "  );\n"
        "};\n"
    )


def render_test(task: TaskDescriptor) -> str:
    pascal = pascal_case(task.name)
    return (
        "import React from 'react';\n"
        "import { render, screen } from '@testing-library/react';\n"
        f"import {{ {pascal} }} from './index';\n\n"
        f"describe('{pascal}', () => {{\n"
        "  it('renders', () => {\n"
        f"    render(<{pascal} />);\n"
        f"    expect(screen.getByTestId('{task.name}')).toBeTruthy();\n"
        "  });\n"
        "});\n"
    )


class TemplateWorker:
    """Writes the three component files without calling any model.

    Existing files are left alone unless ``overwrite`` is set; a run that
    keeps some files is reported as partial.
    """

    def __init__(self, overwrite: bool = False, commit: bool = False, commit_prefix: str = ""):
        self.overwrite = overwrite
        self.commit = commit
        self.commit_prefix = commit_prefix

    def render(self, task: TaskDescriptor, shared_config: Mapping[str, Any]) -> Dict[str, str]:
        index, types, test = component_files(task)
        return {
            index: render_component(task, shared_config),
            types: render_types(task),
            test: render_test(task),
        }

    async def perform(self, task: TaskDescriptor, working_dir: Path, shared_config: Mapping[str, Any]) -> WorkerResult:
        working_dir = Path(working_dir)
        written, kept = [], []
        for rel, content in self.render(task, shared_config).items():
            target = working_dir / rel
            if target.exists() and not self.overwrite:
                kept.append(rel)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            written.append(rel)

        pascal = pascal_case(task.name)
        summary = f"{pascal}: wrote {len(written)} file(s)"
        if kept:
            summary += f", kept {len(kept)} existing"

        if self.commit and written:
            git = GitOps(working_dir, commit_prefix=self.commit_prefix)
            if git.available:
                sha = await git.commit_all(f"feat: add {pascal} component")
                if sha:
                    summary += f", committed {sha}"

        _log.info("%s in %s", summary, working_dir)
        status = OutcomeStatus.PARTIAL if kept else OutcomeStatus.SUCCESS
        return WorkerResult(status=status, summary=summary, artifact_paths=tuple(written + kept))

