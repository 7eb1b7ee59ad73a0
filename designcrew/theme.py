"""Color palettes for terminal output.

Module attributes such as ``ACCENT`` or ``SUCCESS`` resolve against the
active palette at access time, so ``from .theme import ACCENT`` picks up
whatever ``set_theme`` selected before the import ran.
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Theme:
    name: str
    # Core palette
    ACCENT: str
    BORDER: str
    DIM: str
    TEXT: str
    MUTED: str
    # Semantic colors
    SUCCESS: str
    PARTIAL: str
    WARN: str
    ERROR: str
    INFO: str
    # Tier headers cycle through these
    TIER_COLORS: tuple = ()


_THEMES: Dict[str, Theme] = {
    "dark": Theme(
        name="dark",
        ACCENT="#7FA6D9",
        BORDER="#30363D",
        DIM="#6E7681",
        TEXT="#E6EDF3",
        MUTED="#8B949E",
        SUCCESS="#57DB9C",
        PARTIAL="#E3B341",
        WARN="#E3B341",
        ERROR="#F85149",
        INFO="#58A6FF",
        TIER_COLORS=("cyan", "green", "yellow", "magenta", "blue", "red"),
    ),
    "light": Theme(
        name="light",
        ACCENT="#0969DA",
        BORDER="#D0D7DE",
        DIM="#6E7781",
        TEXT="#1F2328",
        MUTED="#57606A",
        SUCCESS="#1A7F37",
        PARTIAL="#9A6700",
        WARN="#9A6700",
        ERROR="#CF222E",
        INFO="#0550AE",
        TIER_COLORS=("blue", "green", "dark_orange", "magenta", "cyan", "red"),
    ),
    "no_color": Theme(
        name="no_color",
        ACCENT="",
        BORDER="",
        DIM="",
        TEXT="",
        MUTED="",
        SUCCESS="",
        PARTIAL="",
        WARN="",
        ERROR="",
        INFO="",
    ),
}
_ALIASES = {"github_dark": "dark", "github_light": "light", "none": "no_color"}

_current: Optional[Theme] = None


def get_theme() -> Theme:
    global _current
    if _current is None:
        _current = _THEMES["no_color" if os.environ.get("NO_COLOR") else "dark"]
    return _current


def set_theme(name: str) -> bool:
    """Activate a palette by name. ``NO_COLOR`` in the environment always wins."""
    global _current
    if os.environ.get("NO_COLOR"):
        _current = _THEMES["no_color"]
        return True
    key = _ALIASES.get(name.lower(), name.lower())
    theme = _THEMES.get(key)
    if theme is None:
        return False
    _current = theme
    return True


def list_themes() -> List[str]:
    return list(_THEMES)


def __getattr__(name: str):
    theme = get_theme()
    if name.isupper() and hasattr(theme, name):
        return getattr(theme, name)
    raise AttributeError(f"module 'theme' has no attribute '{name}'")
