from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable

from mender.analysis.classifier import PatternClassifier
from mender.analysis.diagnostics import DiagnosticCollector
from mender.analysis.scanner import NO_FILTERS, ScanFilters, filter_paths, scan_all_suppressed
from mender.config import RemediationConfig
from mender.exceptions import LedgerWriteFailure
from mender.refactor.engine import RemediationExecutor
from mender.refactor.model import FileWorkItem, RemediationOutcome
from mender.refactor.registry import FixStrategyRegistry, default_registry
from mender.runtime.json_io import write_json_atomic
from mender.runtime.path_policy import (
    relative_posix,
    resolve_ledger_path,
    resolve_progress_markdown_path,
)
from mender.synthesis.utilities import UtilitySynthesizer
from mender.tooling.error_report import AnalysisResult, analyze_suppressed
from mender.tooling.progress_ledger import (
    ProgressLedger,
    RunSummary,
    merge_progress,
    write_progress_markdown,
)

_OUTCOME_LABELS: tuple[tuple[RemediationOutcome, str], ...] = (
    (RemediationOutcome.RESOLVED, "Resolved"),
    (RemediationOutcome.PARTIALLY_RESOLVED, "Partially resolved"),
    (RemediationOutcome.REGRESSED, "Regressed"),
    (RemediationOutcome.COLLECTION_FAILED, "Collection failed"),
    (RemediationOutcome.NO_FIX_AVAILABLE, "No automatic fix"),
    (RemediationOutcome.NOT_SUPPRESSED, "Already unsuppressed"),
)


def _default_print_err(message: str) -> None:
    print(message, file=sys.stderr)


@dataclass(frozen=True)
class RunOptions:
    filters: ScanFilters = NO_FILTERS
    patterns: tuple[str, ...] = ()
    dry_run: bool = False
    verbose: bool = False
    today: date | None = None


@dataclass(frozen=True)
class RunResult:
    summary: RunSummary
    ledger: ProgressLedger
    ledger_path: Path

    def count(self, outcome: RemediationOutcome) -> int:
        return self.summary.outcome_counts()[outcome]


def build_collector(config: RemediationConfig) -> DiagnosticCollector:
    project_config = config.tsconfig_path
    if project_config is not None and not project_config.is_file():
        project_config = None
    return DiagnosticCollector(
        checker=config.checker,
        timeout_seconds=config.timeout_seconds,
        directive=config.directive,
        cwd=config.root,
        project_config=project_config,
    )


def _nearest_existing(path: Path) -> Path:
    probe = path
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    return probe


def ensure_ledger_writable(ledger_path: Path) -> None:
    """Refuse to start a run whose progress could not be recorded."""
    probe = _nearest_existing(ledger_path)
    if probe == ledger_path and probe.is_dir():
        raise LedgerWriteFailure(f"progress ledger path is a directory: {ledger_path}")
    if not os.access(probe, os.W_OK):
        raise LedgerWriteFailure(f"progress ledger is not writable: {ledger_path}")


def select_suppressed(
    config: RemediationConfig,
    filters: ScanFilters = NO_FILTERS,
) -> tuple[list[Path], list[Path]]:
    """Return (every suppressed path, the filtered selection)."""
    every = scan_all_suppressed(config.root, config=config)
    return every, filter_paths(every, filters, root=config.root)


def _notes(options: RunOptions) -> str:
    parts: list[str] = []
    if options.filters.module:
        parts.append(f"module={options.filters.module}")
    if options.filters.file:
        parts.append(f"file={options.filters.file}")
    if options.patterns:
        parts.append(f"patterns={','.join(options.patterns)}")
    return " ".join(parts)


def _report_item(item: FileWorkItem, *, root: Path, print_fn: Callable[[str], None]) -> None:
    outcome = item.outcome.value if item.outcome is not None else "unfinished"
    line = f"{relative_posix(item.file_path, root=root)}: {outcome}"
    if item.applied_transforms:
        line += f" [{', '.join(item.applied_transforms)}]"
    if item.detail:
        line += f" ({item.detail})"
    print_fn(line)


def summary_lines(summary: RunSummary, ledger: ProgressLedger) -> list[str]:
    counts = summary.outcome_counts()
    lines = [f"Processed {len(summary.items)} file(s)."]
    for outcome, label in _OUTCOME_LABELS:
        if counts[outcome]:
            lines.append(f"- {label}: {counts[outcome]}")
    lines.append(
        f"Progress: {ledger.fixed_files}/{ledger.total_files} fixed, "
        f"{ledger.remaining_files} remaining."
    )
    return lines


def run_remediation(
    config: RemediationConfig,
    options: RunOptions = RunOptions(),
    *,
    collector: DiagnosticCollector | None = None,
    registry: FixStrategyRegistry | None = None,
    synthesizer: UtilitySynthesizer | None = None,
    print_fn: Callable[[str], None] = print,
    print_err: Callable[[str], None] = _default_print_err,
    write_fn: Callable[[Path, str], None] | None = None,
    ledger_write_fn: Callable[[Path, object], None] = write_json_atomic,
) -> RunResult:
    """Scan, diagnose and remediate suppressed files, then record progress.

    Diagnostics for the selected files are collected concurrently; the
    transform and write steps run one file at a time. Progress for files
    that reached a final outcome is recorded even when the run is
    interrupted.
    """
    root = config.root
    registry = registry if registry is not None else default_registry()
    collector = collector if collector is not None else build_collector(config)
    synthesizer = (
        synthesizer
        if synthesizer is not None
        else UtilitySynthesizer(
            root=root,
            utilities_dir=config.utilities_dir,
            dry_run=options.dry_run,
            print_fn=print_fn,
        )
    )
    executor_kwargs = {} if write_fn is None else {"write_fn": write_fn}
    executor = RemediationExecutor(
        root=root,
        collector=collector,
        classifier=PatternClassifier(registry.rules),
        registry=registry,
        synthesizer=synthesizer,
        directive=config.directive,
        forced_patterns=options.patterns,
        dry_run=options.dry_run,
        verbose=options.verbose,
        print_fn=print_fn,
        print_err=print_err,
        **executor_kwargs,
    )
    every, selected = select_suppressed(config, options.filters)
    ledger_path = resolve_ledger_path(config.ledger_path, root=root)
    if not options.dry_run:
        ensure_ledger_writable(ledger_path)

    suppressed_paths = tuple(relative_posix(path, root=root) for path in every)
    print_fn(f"Found {len(every)} file(s) with {config.directive}.")
    if options.filters != NO_FILTERS:
        print_fn(f"Selected {len(selected)} file(s) after filtering.")
    if options.dry_run:
        print_fn("Dry run: no files will be modified.")

    finalized: list[FileWorkItem] = []
    try:
        precollected = collector.collect_many(selected, workers=config.workers)
        for path in selected:
            item = FileWorkItem(file_path=path)
            executor.remediate(item, diagnostics=precollected.get(path))
            finalized.append(item)
            _report_item(item, root=root, print_fn=print_fn)
    except KeyboardInterrupt:
        print_err(f"Interrupted; recording progress for {len(finalized)} finished file(s).")
        raise
    finally:
        summary = RunSummary(
            root=root,
            suppressed_paths=suppressed_paths,
            items=tuple(finalized),
            notes=_notes(options),
        )
        ledger = merge_progress(
            ledger_path,
            summary,
            today=options.today,
            dry_run=options.dry_run,
            write_fn=ledger_write_fn,
        )
        if config.write_progress_markdown and not options.dry_run:
            write_progress_markdown(
                resolve_progress_markdown_path(config.progress_markdown_path, root=root),
                ledger,
                directive=config.directive,
            )

    for line in summary_lines(summary, ledger):
        print_fn(line)
    return RunResult(
        summary=summary,
        ledger=ledger,
        ledger_path=ledger_path,
    )


def run_analysis(
    config: RemediationConfig,
    filters: ScanFilters = NO_FILTERS,
    *,
    collector: DiagnosticCollector | None = None,
    registry: FixStrategyRegistry | None = None,
) -> AnalysisResult:
    registry = registry if registry is not None else default_registry()
    collector = collector if collector is not None else build_collector(config)
    _, selected = select_suppressed(config, filters)
    items = [FileWorkItem(file_path=path) for path in selected]
    return analyze_suppressed(
        items,
        root=config.root,
        collector=collector,
        classifier=PatternClassifier(registry.rules),
        workers=config.workers,
    )


def pattern_descriptions(registry: FixStrategyRegistry) -> dict[str, str]:
    return {rule.name: rule.description for rule in registry.rules}
