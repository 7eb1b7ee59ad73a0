"""Shared terminal helpers: icon fallback and small formatters."""

__all__ = ["get_icon", "set_use_unicode", "format_duration", "shorten"]


# ── Icon mapping for Unicode/ASCII fallback ──

# Set by main.py from config
_USE_UNICODE = True


def set_use_unicode(enabled: bool):
    """Set whether to use Unicode icons (True) or ASCII fallback (False)."""
    global _USE_UNICODE
    _USE_UNICODE = enabled


# Icon mapping: Unicode → ASCII
_ICON_MAP = {
    "✓": "[OK]",
    "✗": "[X]",
    "◐": "[~]",
    "◆": "[+]",
    "▸": ">",
    "○": "o",
    "●": "*",
    "·": ".",
    "⚠": "!",
    "⎇": "git:",
    "→": "->",
    "⋯": "...",
}


def get_icon(unicode_icon: str) -> str:
    """Return ``unicode_icon``, or its ASCII stand-in when Unicode is off."""
    if _USE_UNICODE:
        return unicode_icon
    return _ICON_MAP.get(unicode_icon, unicode_icon)


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m{secs:02d}s"


def shorten(text: str, width: int = 80) -> str:
    text = " ".join(str(text).split())
    if len(text) <= width:
        return text
    return text[: max(0, width - 3)] + "..."
