"""Publishes the plan's design tokens as a TypeScript module."""

import json
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .crew.engine import RunObserver
from .crew.scheduling import Tier
from .crew.tasks import Plan, thaw, utcnow
from .logger import get_logger

_log = get_logger(__name__)

TOKEN_GROUPS = ("colors", "spacing", "typography", "borderRadius", "shadows")

# tokens group -> tailwind theme.extend key
_TAILWIND_KEYS = {
    "colors": "colors",
    "spacing": "spacing",
    "borderRadius": "borderRadius",
    "shadows": "boxShadow",
}


def render_tokens_module(tokens: Mapping[str, Any]) -> str:
    tokens = thaw(tokens)
    parts = [
        "/**\n"
        " * Design tokens\n"
        " * Generated by designcrew; do not edit by hand.\n"
        f" * Generated at: {utcnow().isoformat()}\n"
        " */\n"
    ]
    for group in TOKEN_GROUPS:
        value = tokens.get(group) or {}
        parts.append(f"export const {group} = {json.dumps(value, indent=2, ensure_ascii=False)} as const;\n")

    extend = {
        key: tokens.get(group) or {}
        for group, key in _TAILWIND_KEYS.items()
    }
    parts.append(
        "// Tailwind theme.extend\n"
        f"export const tailwindExtend = {json.dumps(extend, indent=2, ensure_ascii=False)};\n"
    )
    return "\n".join(parts)


def write_tokens_module(tokens: Mapping[str, Any], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_tokens_module(tokens), encoding="utf-8")
    return path


class TokensPublisher(RunObserver):
    """Writes the tokens file once the plan is known, before any workspace exists."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.written: Optional[Path] = None

    def on_plan(self, plan: Plan, tiers: List[Tier]) -> None:
        if not plan.shared_config:
            _log.info("Plan carries no design tokens; %s not written", self.path)
            return
        try:
            self.written = write_tokens_module(plan.shared_config, self.path)
        except OSError as e:
            _log.warning("Could not write design tokens to %s: %s", self.path, e)
            return
        _log.info("Design tokens written to %s", self.written)
