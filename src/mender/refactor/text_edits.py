from __future__ import annotations

import re
from typing import Callable, Iterable, Iterator

from mender.refactor.model import DiagnosticRecord, TransformContext

_IMPORT_LINE_RE = re.compile(r"^import\b[^\n]*\bfrom\s*['\"][^'\"]+['\"];?[ \t]*$", re.MULTILINE)
_ANY_IMPORT_RE = re.compile(r"^import\b", re.MULTILINE)


def newline_of(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def insert_import(text: str, statement: str, *, marker: str) -> str:
    """Insert `statement` above the first import unless `marker` is present."""
    if marker in text:
        return text
    newline = newline_of(text)
    match = _IMPORT_LINE_RE.search(text) or _ANY_IMPORT_RE.search(text)
    if match is None:
        return f"{statement}{newline}{text}"
    return text[: match.start()] + statement + newline + text[match.start():]


def insert_named_import(
    text: str,
    names: Iterable[str],
    specifier: str,
    *,
    marker: str,
) -> str:
    """Import only those `names` the text actually references."""
    used = [name for name in names if re.search(rf"(?<![\w$.]){re.escape(name)}\b", text)]
    if not used:
        return text
    statement = f"import {{ {', '.join(used)} }} from '{specifier}';"
    return insert_import(text, statement, marker=marker)


def target_lines(
    lines: list[str],
    context: TransformContext,
    accept: Callable[[DiagnosticRecord], bool],
) -> Iterator[tuple[int, DiagnosticRecord]]:
    """Yield current line indexes for the diagnostics `accept` selects.

    Diagnostic coordinates refer to the text the checker saw. Earlier
    transforms may have shifted lines, so each target is re-located by
    matching the original line content near its recorded position.
    """
    baseline = context.baseline_text.splitlines(keepends=False)
    seen: set[int] = set()
    for record in context.diagnostics:
        if not accept(record):
            continue
        hint = record.line - 1
        if not 0 <= hint < len(baseline):
            continue
        index = _locate(lines, baseline[hint], hint)
        if index is None or index in seen:
            continue
        seen.add(index)
        yield index, record


def _locate(lines: list[str], wanted: str, hint: int) -> int | None:
    stripped = [line.rstrip("\r\n") for line in lines]
    if 0 <= hint < len(stripped) and stripped[hint] == wanted:
        return hint
    for distance in range(1, len(stripped) + 1):
        for index in (hint + distance, hint - distance):
            if 0 <= index < len(stripped) and stripped[index] == wanted:
                return index
        if hint - distance < 0 and hint + distance >= len(stripped):
            break
    return None


def rewrite_lines(
    text: str,
    context: TransformContext,
    accept: Callable[[DiagnosticRecord], bool],
    rewrite: Callable[[str, DiagnosticRecord], str],
) -> str:
    lines = text.splitlines(keepends=True)
    targets = list(target_lines(lines, context, accept))
    for index, record in targets:
        body = lines[index].rstrip("\r\n")
        ending = lines[index][len(body):]
        lines[index] = rewrite(body, record) + ending
    return "".join(lines)
