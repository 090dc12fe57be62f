"""Heuristic detection of minified JavaScript."""

from __future__ import annotations

_COMMENT_PREFIXES = ("//", "/*", "*")
_AVERAGE_LINE_THRESHOLD = 200
_LONG_LINE_THRESHOLD = 1000
_WHITESPACE_RATIO_THRESHOLD = 0.15


def looks_minified(text: str) -> bool:
    """Return True when ``text`` has the line shape of minified code.

    Banner and license comments are ignored. Code is considered minified
    when its average line is very long, or when it carries a very long
    line that is almost free of whitespace.
    """
    lines = [line.strip() for line in text.splitlines()]
    code_lines = [line for line in lines if line and not line.startswith(_COMMENT_PREFIXES)]
    if not code_lines:
        return False

    total = sum(len(line) for line in code_lines)
    if total / len(code_lines) > _AVERAGE_LINE_THRESHOLD:
        return True

    longest = max(code_lines, key=len)
    if len(longest) < _LONG_LINE_THRESHOLD:
        return False
    whitespace = sum(1 for char in longest if char.isspace())
    return whitespace / len(longest) < _WHITESPACE_RATIO_THRESHOLD


__all__ = ["looks_minified"]
