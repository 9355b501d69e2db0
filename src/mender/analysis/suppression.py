from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Pattern, Tuple

from mender.config import DEFAULT_DIRECTIVE


@dataclass(frozen=True)
class RemovedDirective:
    line_index: int
    text: str


@lru_cache(maxsize=None)
def directive_regex(directive: str = DEFAULT_DIRECTIVE) -> Pattern[str]:
    """Match a whole line holding the directive as a `//` or `/* */` comment."""
    token = re.escape(directive) + r"(?![\w-])"
    return re.compile(
        r"^[ \t]*(?:"
        + r"//[ \t]*" + token + r"[^\r\n]*"
        + r"|/\*[ \t]*" + token + r"[^\r\n]*?\*/[ \t]*"
        + r")(?:\r\n|\n|$)",
        re.MULTILINE,
    )


def has_directive(text: str, directive: str = DEFAULT_DIRECTIVE) -> bool:
    return directive_regex(directive).search(text) is not None


def strip_directive(
    text: str, directive: str = DEFAULT_DIRECTIVE
) -> Tuple[str, Tuple[RemovedDirective, ...]]:
    """Remove every directive line, remembering where each one sat."""
    removed: list[RemovedDirective] = []
    pieces: list[str] = []
    cursor = 0
    removed_lines = 0
    for match in directive_regex(directive).finditer(text):
        pieces.append(text[cursor:match.start()])
        line_index = text.count("\n", 0, match.start()) - removed_lines
        line_text = match.group(0)
        if not line_text.endswith("\n"):
            line_text += _newline_style(text)
        removed.append(RemovedDirective(line_index=line_index, text=line_text))
        removed_lines += 1
        cursor = match.end()
    pieces.append(text[cursor:])
    return "".join(pieces), tuple(removed)


def restore_directive(text: str, removed: Tuple[RemovedDirective, ...]) -> str:
    """Re-insert stripped directive lines at their original line positions."""
    if not removed:
        return text
    lines = text.splitlines(keepends=True)
    for offset, entry in enumerate(removed):
        index = min(entry.line_index + offset, len(lines))
        if index == len(lines) and lines and not lines[-1].endswith(("\n", "\r")):
            lines[-1] = lines[-1] + _newline_style(text)
        lines.insert(index, entry.text)
    return "".join(lines)


def _newline_style(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"
