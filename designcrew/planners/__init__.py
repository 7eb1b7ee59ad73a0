"""Planners: turn a design source into a task plan."""

from pathlib import Path

from ..config import ModelSettings
from ..llm import LLMAdapter
from .base import Planner, extract_file_key, parse_plan
from .demo import DEMO_SOURCE, DemoPlanner
from .file import PLAN_SUFFIXES, FilePlanner
from .llm import LLMPlanner


def build_planner(source: str, config=None) -> Planner:
    """Pick a planner for ``source``.

    ``demo`` uses the built-in design system, a ``.json``/``.yml``
    path is read as a plan file and anything else goes to the model.
    """
    if source.strip().lower() == DEMO_SOURCE:
        return DemoPlanner()
    if Path(source).suffix.lower() in PLAN_SUFFIXES:
        return FilePlanner()

    model = config.model if config is not None else ModelSettings()
    return LLMPlanner(LLMAdapter(**model.get_llm_kwargs()))


__all__ = [
    "Planner",
    "extract_file_key",
    "parse_plan",
    "DemoPlanner",
    "FilePlanner",
    "LLMPlanner",
    "build_planner",
]
