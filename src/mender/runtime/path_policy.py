from __future__ import annotations

from pathlib import Path

DEFAULT_LEDGER_REL_PATH = Path("artifacts/remediation/progress_ledger.json")
DEFAULT_PROGRESS_MARKDOWN_REL_PATH = Path("artifacts/remediation/progress.md")
DEFAULT_ERROR_REPORT_REL_PATH = Path("artifacts/remediation/error_report.md")


def resolve_ledger_path(path: Path | None, *, root: Path) -> Path:
    if path is not None:
        return path
    return root / DEFAULT_LEDGER_REL_PATH


def resolve_progress_markdown_path(path: Path | None, *, root: Path) -> Path:
    if path is not None:
        return path
    return root / DEFAULT_PROGRESS_MARKDOWN_REL_PATH


def resolve_report_path(path: Path | None, *, root: Path) -> Path:
    if path is not None:
        return path
    return root / DEFAULT_ERROR_REPORT_REL_PATH


def relative_posix(path: Path, *, root: Path) -> str:
    """Render `path` relative to `root` with forward slashes when possible."""
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()
