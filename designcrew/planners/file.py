"""Planner that reads a hand-written plan from a JSON or YAML file."""

import json
from pathlib import Path

import yaml

from ..crew.tasks import Plan
from ..errors import PlanningFailed
from ..logger import get_logger
from .base import parse_plan

_log = get_logger(__name__)

PLAN_SUFFIXES = (".json", ".yml", ".yaml")


class FilePlanner:
    """Reads ``components`` (or ``tasks``) and ``designTokens`` (or
    ``shared-config``) from a plan file; ``summary`` is optional."""

    async def analyze(self, source: str) -> Plan:
        path = Path(source).expanduser()
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise PlanningFailed(source, f"cannot read plan file: {e.strerror or e}") from e

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise PlanningFailed(source, f"cannot parse plan file: {e}") from e

        if isinstance(data, list):
            data = {"components": data}
        if not isinstance(data, dict):
            raise PlanningFailed(source, "plan file must hold a mapping or a list")

        entries = data.get("components", data.get("tasks"))
        if entries is None:
            raise PlanningFailed(source, "plan file has no 'components' or 'tasks' list")
        tokens = data.get("designTokens", data.get("shared-config"))
        _log.info("Loaded plan file %s", path)
        return parse_plan(source, entries, tokens, summary=data.get("summary", ""))
