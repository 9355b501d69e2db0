from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, Mapping

from mender.analysis.scanner import module_name
from mender.exceptions import LedgerWriteFailure
from mender.json_types import JSONObject
from mender.refactor.model import FileWorkItem, RemediationOutcome
from mender.runtime.json_io import load_json_object_path, write_json_atomic, write_text_atomic
from mender.runtime.path_policy import relative_posix

LEDGER_SCHEMA_VERSION = 1


@dataclass
class ModuleStats:
    total: int = 0
    fixed: int = 0


@dataclass(frozen=True)
class HistoryEntry:
    date: str
    files_fixed_this_run: int
    files_partially_resolved_this_run: int = 0
    files_regressed_this_run: int = 0
    files_collection_failed_this_run: int = 0
    files_without_fix_this_run: int = 0
    notes: str = ""


@dataclass
class ProgressLedger:
    total_files: int = 0
    fixed_files: int = 0
    partially_resolved_files: int = 0
    per_module_stats: dict[str, ModuleStats] = field(default_factory=dict)
    history: list[HistoryEntry] = field(default_factory=list)
    resolved_paths: list[str] = field(default_factory=list)
    partially_resolved_paths: list[str] = field(default_factory=list)

    @property
    def remaining_files(self) -> int:
        return self.total_files - self.fixed_files

    def to_payload(self) -> JSONObject:
        return {
            "schema_version": LEDGER_SCHEMA_VERSION,
            "total_files": self.total_files,
            "fixed_files": self.fixed_files,
            "partially_resolved_files": self.partially_resolved_files,
            "per_module_stats": {
                name: {"total": stats.total, "fixed": stats.fixed}
                for name, stats in self.per_module_stats.items()
            },
            "history": [
                {
                    "date": entry.date,
                    "files_fixed_this_run": entry.files_fixed_this_run,
                    "files_partially_resolved_this_run": entry.files_partially_resolved_this_run,
                    "files_regressed_this_run": entry.files_regressed_this_run,
                    "files_collection_failed_this_run": entry.files_collection_failed_this_run,
                    "files_without_fix_this_run": entry.files_without_fix_this_run,
                    "notes": entry.notes,
                }
                for entry in self.history
            ],
            "resolved_paths": sorted(self.resolved_paths),
            "partially_resolved_paths": sorted(self.partially_resolved_paths),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "ProgressLedger":
        modules = payload.get("per_module_stats")
        history = payload.get("history")
        return cls(
            total_files=_as_int(payload.get("total_files")),
            fixed_files=_as_int(payload.get("fixed_files")),
            partially_resolved_files=_as_int(payload.get("partially_resolved_files")),
            per_module_stats={
                str(name): ModuleStats(
                    total=_as_int(stats.get("total")),
                    fixed=_as_int(stats.get("fixed")),
                )
                for name, stats in (modules.items() if isinstance(modules, Mapping) else ())
                if isinstance(stats, Mapping)
            },
            history=[
                HistoryEntry(
                    date=str(entry.get("date", "")),
                    files_fixed_this_run=_as_int(entry.get("files_fixed_this_run")),
                    files_partially_resolved_this_run=_as_int(
                        entry.get("files_partially_resolved_this_run")
                    ),
                    files_regressed_this_run=_as_int(entry.get("files_regressed_this_run")),
                    files_collection_failed_this_run=_as_int(
                        entry.get("files_collection_failed_this_run")
                    ),
                    files_without_fix_this_run=_as_int(entry.get("files_without_fix_this_run")),
                    notes=str(entry.get("notes", "")),
                )
                for entry in (history if isinstance(history, list) else ())
                if isinstance(entry, Mapping)
            ],
            resolved_paths=_as_str_list(payload.get("resolved_paths")),
            partially_resolved_paths=_as_str_list(payload.get("partially_resolved_paths")),
        )


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    return 0


def _as_str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return list(dict.fromkeys(str(item) for item in value if isinstance(item, str)))


@dataclass(frozen=True)
class RunSummary:
    """What one run observed and did.

    `suppressed_paths` is the unfiltered scanner output taken before any
    file was remediated, relative to the repository root.
    """

    root: Path
    suppressed_paths: tuple[str, ...]
    items: tuple[FileWorkItem, ...] = ()
    notes: str = ""

    def relative(self, item: FileWorkItem) -> str:
        return relative_posix(item.file_path, root=self.root)

    def paths_with(self, outcome: RemediationOutcome) -> list[str]:
        return [self.relative(item) for item in self.items if item.outcome is outcome]

    def outcome_counts(self) -> Counter[RemediationOutcome]:
        return Counter(item.outcome for item in self.items if item.outcome is not None)


def load_ledger(path: Path) -> ProgressLedger:
    """Read the ledger; a missing or unreadable file yields a fresh one."""
    return ProgressLedger.from_payload(load_json_object_path(path))


def merge_run(
    ledger: ProgressLedger,
    summary: RunSummary,
    *,
    today: date,
) -> ProgressLedger:
    """Fold a run into `ledger`, returning a new value.

    Totals are recomputed from the scanner output unioned with every path
    ever resolved, so `fixed_files <= total_files` always holds and a path
    is never counted as fixed twice.
    """
    resolved = list(ledger.resolved_paths)
    already = set(resolved)
    newly_resolved = [
        path for path in summary.paths_with(RemediationOutcome.RESOLVED) if path not in already
    ]
    resolved.extend(newly_resolved)
    resolved_set = set(resolved)

    run_partial = summary.paths_with(RemediationOutcome.PARTIALLY_RESOLVED)
    partial = [
        path
        for path in dict.fromkeys([*ledger.partially_resolved_paths, *run_partial])
        if path not in resolved_set
    ]

    universe = sorted(set(summary.suppressed_paths) | resolved_set)
    totals = Counter(module_name(path) for path in universe)
    fixed = Counter(module_name(path) for path in resolved_set)
    per_module = {
        name: ModuleStats(total=totals[name], fixed=fixed[name]) for name in sorted(totals)
    }

    history = list(ledger.history)
    if summary.items:
        counts = summary.outcome_counts()
        history.append(
            HistoryEntry(
                date=today.isoformat(),
                files_fixed_this_run=len(newly_resolved),
                files_partially_resolved_this_run=len(run_partial),
                files_regressed_this_run=counts[RemediationOutcome.REGRESSED],
                files_collection_failed_this_run=counts[RemediationOutcome.COLLECTION_FAILED],
                files_without_fix_this_run=counts[RemediationOutcome.NO_FIX_AVAILABLE],
                notes=summary.notes,
            )
        )

    return ProgressLedger(
        total_files=len(universe),
        fixed_files=len(resolved_set),
        partially_resolved_files=len(partial),
        per_module_stats=per_module,
        history=history,
        resolved_paths=resolved,
        partially_resolved_paths=partial,
    )


def save_ledger(
    path: Path,
    ledger: ProgressLedger,
    *,
    write_fn: Callable[[Path, object], None] = write_json_atomic,
) -> None:
    try:
        write_fn(path, ledger.to_payload())
    except OSError as exc:
        raise LedgerWriteFailure(f"could not write progress ledger {path}: {exc}") from exc


def merge_progress(
    ledger_path: Path,
    summary: RunSummary,
    *,
    today: date | None = None,
    dry_run: bool = False,
    write_fn: Callable[[Path, object], None] = write_json_atomic,
) -> ProgressLedger:
    merged = merge_run(load_ledger(ledger_path), summary, today=today or date.today())
    if not dry_run:
        save_ledger(ledger_path, merged, write_fn=write_fn)
    return merged


def _percent(part: int, whole: int) -> str:
    return f"{(part / whole * 100):.2f}%" if whole else "0.00%"


def render_progress_markdown(ledger: ProgressLedger, *, directive: str = "@ts-nocheck") -> str:
    lines = [
        "# Type-checking remediation progress",
        "",
        "## Summary",
        "",
        f"- **Files Fixed**: {ledger.fixed_files}/{ledger.total_files} "
        f"({_percent(ledger.fixed_files, ledger.total_files)})",
        f"- **Remaining {directive} Files**: {ledger.remaining_files}",
        f"- **Partially Resolved Files**: {ledger.partially_resolved_files}",
        "",
        "## Statistics",
        "",
        "| Module | Total | Fixed | Progress |",
        "|--------|-------|-------|----------|",
    ]
    for name, stats in iter_module_progress(ledger):
        lines.append(f"| {name} | {stats.total} | {stats.fixed} | {_percent(stats.fixed, stats.total)} |")
    lines.extend(["", "## Recent Changes", ""])
    for entry in reversed(ledger.history):
        lines.append(f"### {entry.date}")
        lines.append("")
        lines.append(f"- Fixed: {entry.files_fixed_this_run}")
        lines.append(f"- Partially resolved: {entry.files_partially_resolved_this_run}")
        lines.append(f"- Regressed: {entry.files_regressed_this_run}")
        lines.append(f"- Collection failed: {entry.files_collection_failed_this_run}")
        lines.append(f"- No automatic fix: {entry.files_without_fix_this_run}")
        if entry.notes:
            lines.append(f"- Notes: {entry.notes}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def write_progress_markdown(
    path: Path,
    ledger: ProgressLedger,
    *,
    directive: str = "@ts-nocheck",
) -> None:
    try:
        write_text_atomic(path, render_progress_markdown(ledger, directive=directive))
    except OSError as exc:
        raise LedgerWriteFailure(f"could not write progress markdown {path}: {exc}") from exc


def iter_module_progress(ledger: ProgressLedger) -> Iterable[tuple[str, ModuleStats]]:
    return sorted(
        ledger.per_module_stats.items(),
        key=lambda item: (-item[1].total, item[0]),
    )
