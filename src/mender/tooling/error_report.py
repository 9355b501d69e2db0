from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from mender.analysis.classifier import PatternClassifier
from mender.analysis.diagnostics import DiagnosticCollector
from mender.analysis.scanner import OTHER_MODULE, module_name
from mender.refactor.model import DiagnosticRecord, FileWorkItem
from mender.runtime.json_io import write_text_atomic
from mender.runtime.path_policy import relative_posix


@dataclass(frozen=True)
class FileAnalysis:
    path: str
    diagnostics: tuple[DiagnosticRecord, ...]
    patterns: tuple[str, ...]
    collector_error: bool = False
    detail: str = ""


@dataclass(frozen=True)
class AnalysisResult:
    files: tuple[FileAnalysis, ...]
    pattern_counts: tuple[tuple[str, int], ...]

    @property
    def with_errors(self) -> list[FileAnalysis]:
        return [entry for entry in self.files if entry.diagnostics]

    @property
    def collection_failures(self) -> list[FileAnalysis]:
        return [entry for entry in self.files if entry.collector_error]


def analyze_suppressed(
    items: Sequence[FileWorkItem],
    *,
    root: Path,
    collector: DiagnosticCollector,
    classifier: PatternClassifier,
    workers: int = 1,
) -> AnalysisResult:
    results = collector.collect_many([item.file_path for item in items], workers=workers)
    files: list[FileAnalysis] = []
    for item in items:
        result = results[item.file_path]
        patterns = tuple(classifier.classify(result.diagnostics))
        item.diagnostics = list(result.diagnostics)
        item.matched_patterns = list(patterns)
        files.append(
            FileAnalysis(
                path=relative_posix(item.file_path, root=root),
                diagnostics=result.diagnostics,
                patterns=patterns,
                collector_error=result.collector_error,
                detail=result.detail,
            )
        )
    counts = classifier.pattern_counts(entry.patterns for entry in files)
    return AnalysisResult(files=tuple(files), pattern_counts=tuple(counts))


def _percent(part: int, whole: int) -> str:
    return f"{(part / whole * 100):.2f}%" if whole else "0.00%"


def summary_lines(result: AnalysisResult) -> list[str]:
    affected = [entry for entry in result.files if entry.patterns]
    lines = [
        f"Found {len(result.files)} suppressed file(s).",
        f"{len(result.with_errors)} file(s) have type errors.",
    ]
    if result.collection_failures:
        lines.append(f"{len(result.collection_failures)} file(s) could not be checked.")
    if result.pattern_counts:
        lines.append("Error pattern distribution:")
        for name, count in result.pattern_counts:
            lines.append(f"- {name}: {count} files ({_percent(count, len(affected))})")
    return lines


def render_error_report(
    result: AnalysisResult,
    *,
    descriptions: Mapping[str, str],
    directive: str = "@ts-nocheck",
) -> str:
    total = len(result.files)
    modules: dict[str, Counter[str]] = defaultdict(Counter)
    module_files: Counter[str] = Counter()
    for entry in result.files:
        module = module_name(entry.path)
        module_files[module] += 1
        modules[module].update(entry.patterns)

    lines = [
        "# Type Error Analysis Report",
        "",
        "## Summary",
        "",
        f"- Total files with {directive}: {total}",
        f"- Files with type errors: {len(result.with_errors)}",
        f"- Files that could not be checked: {len(result.collection_failures)}",
        f"- Error patterns detected: {len(result.pattern_counts)}",
        f"- Modules affected: {len(module_files)}",
        "",
        "## Error Pattern Distribution",
        "",
    ]
    for name, count in result.pattern_counts:
        lines.append(f"### {name} ({count} files)")
        lines.append("")
        if name in descriptions:
            lines.append(f"**Description**: {descriptions[name]}")
            lines.append("")
        lines.append(f"**Files affected**: {count} ({_percent(count, total)} of total)")
        lines.append("")

    lines.extend(["## Module Analysis", ""])
    for module, file_count in sorted(module_files.items(), key=lambda item: (-item[1], item[0])):
        lines.append(f"### {module}")
        lines.append("")
        lines.append(f"- Files with {directive}: {file_count}")
        for name, count in sorted(modules[module].items(), key=lambda item: (-item[1], item[0])):
            lines.append(f"  - {name}: {count} files ({_percent(count, file_count)})")
        lines.append("")

    named_modules = sorted(name for name in module_files if name != OTHER_MODULE)
    if result.pattern_counts:
        top_pattern = result.pattern_counts[0][0]
        lines.extend(
            [
                "## Recommendations",
                "",
                f"- Start with the `{top_pattern}` pattern: `mender fix --pattern {top_pattern}`.",
            ]
        )
        if named_modules:
            top_module = max(named_modules, key=lambda name: module_files[name])
            lines.append(f"- Then the `{top_module}` module: `mender fix --module {top_module}`.")
        lines.append("")

    lines.extend(["## Detailed Errors by File", ""])
    for entry in result.files:
        if entry.collector_error:
            lines.append(f"- {entry.path}: collection failed ({entry.detail})")
        elif entry.patterns:
            lines.append(f"- {entry.path}: {', '.join(entry.patterns)}")
        elif entry.diagnostics:
            lines.append(f"- {entry.path}: {len(entry.diagnostics)} unclassified diagnostic(s)")
        else:
            lines.append(f"- {entry.path}: clean")
    return "\n".join(lines).rstrip() + "\n"


def write_error_report(path: Path, text: str) -> None:
    write_text_atomic(path, text)
