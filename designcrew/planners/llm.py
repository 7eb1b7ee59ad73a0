"""Planner that asks a model to break a Figma design into components."""

from typing import Optional

from ..crew.tasks import Plan
from ..errors import PlanningFailed
from ..llm import LLMAdapter, extract_json
from ..logger import get_logger
from .base import extract_file_key, parse_plan

_log = get_logger(__name__)

PLANNER_SYSTEM_PROMPT = """\
You are a senior front-end architect. You analyse a Figma design and plan
the React component work needed to build it.

Classify every component by atomic-design level and give it a priority:
  1. atoms (Button, Input, Icon, Badge, Avatar): no dependencies
  2. molecules (Card, ListItem, MenuItem, FormField): use atoms
  3. organisms (Header, Sidebar, Footer, Modal, Form): use molecules
  4. templates and pages (Dashboard, Profile, Settings)

Name components in kebab-case (user-card, nav-header). Every component
needs name, description, priority and dependencies; complexity is one of
low, medium, high; list the expected props.

Reply with a single JSON object and nothing else:
{
  "components": [
    {"name": "...", "description": "...", "priority": 1,
     "dependencies": [], "complexity": "low", "props": ["..."]}
  ],
  "designTokens": {"colors": {}, "spacing": {}, "typography": {},
                   "borderRadius": {}, "shadows": {}},
  "summary": "..."
}
"""


class LLMPlanner:
    def __init__(self, llm: LLMAdapter, notes: Optional[str] = None):
        self.llm = llm
        self.notes = notes

    def build_messages(self, source: str) -> list:
        file_key = extract_file_key(source)
        user = (
            "Plan the component work for this Figma design.\n\n"
            f"- File key: {file_key}\n"
            f"- URL: {source}\n\n"
            "Prefer reusable base components, extract every color, spacing and "
            "font value as a design token, account for hover/active/disabled "
            "variants and suggest sensible props."
        )
        if self.notes:
            user += f"\n\nAdditional notes:\n{self.notes}"
        return [
            {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ]

    async def analyze(self, source: str) -> Plan:
        _log.info("Planning %s with %s", source, self.llm.model)
        try:
            response = await self.llm.achat(self.build_messages(source))
        except ConnectionError as e:
            raise PlanningFailed(source, str(e)) from e

        try:
            data = extract_json(response.content or "", opener="{")
        except ValueError as e:
            _log.error("Unparseable plan reply: %s", (response.content or "")[:200])
            raise PlanningFailed(source, str(e)) from e

        if isinstance(data, list):
            data = {"components": data}
        if not isinstance(data, dict):
            raise PlanningFailed(source, "model reply is not a plan object")
        return parse_plan(
            source,
            data.get("components") or [],
            data.get("designTokens"),
            summary=data.get("summary", ""),
        )
