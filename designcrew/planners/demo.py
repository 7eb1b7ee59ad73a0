"""Offline planner backed by a small built-in design system."""

from ..crew.tasks import Plan
from .base import parse_plan

DEMO_SOURCE = "demo"

DEMO_TOKENS = {
    "colors": {
        "primary": "#3B82F6",
        "primary-dark": "#2563EB",
        "secondary": "#10B981",
        "background": "#FFFFFF",
        "surface": "#F3F4F6",
        "text-primary": "#111827",
        "text-secondary": "#6B7280",
        "border": "#E5E7EB",
        "error": "#EF4444",
        "warning": "#F59E0B",
        "success": "#10B981",
    },
    "typography": {
        "heading-1": {"fontSize": "32px", "fontWeight": "700", "lineHeight": "1.2"},
        "heading-2": {"fontSize": "24px", "fontWeight": "600", "lineHeight": "1.3"},
        "body": {"fontSize": "16px", "fontWeight": "400", "lineHeight": "1.5"},
        "caption": {"fontSize": "12px", "fontWeight": "400", "lineHeight": "1.4"},
    },
    "spacing": {"xs": "4px", "sm": "8px", "md": "16px", "lg": "24px", "xl": "32px", "2xl": "48px"},
    "borderRadius": {"sm": "4px", "md": "8px", "lg": "12px", "full": "9999px"},
    "shadows": {
        "sm": "0 1px 2px rgba(0,0,0,0.05)",
        "md": "0 4px 6px rgba(0,0,0,0.1)",
        "lg": "0 10px 15px rgba(0,0,0,0.1)",
    },
}

DEMO_COMPONENTS = [
    {
        "name": "button",
        "description": "Primary action button with primary, secondary and ghost variants",
        "priority": 1,
        "complexity": "low",
        "props": ["variant", "size", "disabled", "onClick", "children"],
    },
    {
        "name": "input",
        "description": "Text input with label, helper text and error state",
        "priority": 1,
        "complexity": "low",
        "props": ["label", "value", "onChange", "error", "placeholder"],
    },
    {
        "name": "card",
        "description": "Content container with optional header, body and footer actions",
        "priority": 2,
        "complexity": "medium",
        "dependencies": ["button"],
        "props": ["title", "children", "actions"],
    },
    {
        "name": "header",
        "description": "Top navigation bar with logo, links and a search field",
        "priority": 3,
        "complexity": "medium",
        "dependencies": ["button", "input"],
        "props": ["title", "links", "onSearch"],
    },
    {
        "name": "sidebar",
        "description": "Collapsible side navigation",
        "priority": 3,
        "complexity": "medium",
        "dependencies": ["button"],
        "props": ["items", "collapsed", "onToggle"],
    },
    {
        "name": "modal",
        "description": "Dialog overlay with title, content and confirm/cancel buttons",
        "priority": 3,
        "complexity": "high",
        "dependencies": ["button", "card"],
        "props": ["open", "title", "onClose", "onConfirm", "children"],
    },
]


class DemoPlanner:
    """Returns the same six-component plan for every source."""

    async def analyze(self, source: str = DEMO_SOURCE) -> Plan:
        return parse_plan(
            source,
            DEMO_COMPONENTS,
            DEMO_TOKENS,
            summary="Demo design system: two atoms, one molecule and three organisms.",
        )
