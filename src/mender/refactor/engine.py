from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Sequence

from mender.analysis.classifier import PatternClassifier
from mender.analysis.diagnostics import DiagnosticCollector
from mender.analysis.suppression import has_directive, restore_directive, strip_directive
from mender.config import DEFAULT_DIRECTIVE
from mender.exceptions import (
    CollectionFailure,
    RegressionFailure,
    TransformFailure,
    UtilityUnavailable,
)
from mender.refactor.model import (
    CollectionResult,
    DiagnosticRecord,
    FileWorkItem,
    RemediationOutcome,
    RemediationState,
    ResolvedTransform,
    TransformContext,
)
from mender.refactor.registry import FixStrategyRegistry, required_utilities
from mender.runtime.json_io import write_text_atomic
from mender.synthesis.utilities import UtilitySynthesizer


def _default_print_err(message: str) -> None:
    print(message, file=sys.stderr)


class RemediationExecutor:
    """Drive one file from discovery to a finalized outcome.

    Transforms run against an in-memory copy. The file on disk is written at
    most once, by atomic replace, and only for `resolved` or
    `partially_resolved` outcomes; every other outcome leaves the original
    bytes in place.
    """

    def __init__(
        self,
        *,
        root: Path,
        collector: DiagnosticCollector,
        classifier: PatternClassifier,
        registry: FixStrategyRegistry,
        synthesizer: UtilitySynthesizer,
        directive: str = DEFAULT_DIRECTIVE,
        forced_patterns: Sequence[str] = (),
        dry_run: bool = False,
        verbose: bool = False,
        print_fn: Callable[[str], None] = print,
        print_err: Callable[[str], None] = _default_print_err,
        write_fn: Callable[[Path, str], None] = write_text_atomic,
    ) -> None:
        self.root = root
        self.collector = collector
        self.classifier = classifier
        self.registry = registry
        self.synthesizer = synthesizer
        self.directive = directive
        self.forced_patterns = tuple(registry.validate_names(forced_patterns))
        self.dry_run = dry_run
        self.verbose = verbose
        self.print_fn = print_fn
        self.print_err = print_err
        self.write_fn = write_fn

    def _detail(self, message: str) -> None:
        if self.verbose:
            self.print_fn(message)

    def remediate(
        self,
        item: FileWorkItem,
        *,
        diagnostics: CollectionResult | None = None,
    ) -> FileWorkItem:
        """Run the full lifecycle for `item`.

        `diagnostics` may carry a result collected ahead of time (for example
        by a concurrent collection pass); otherwise it is collected here.
        """
        path = item.file_path
        try:
            # Bytes, not read_text: line endings must survive a rollback.
            original = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeError) as exc:
            return self._collection_failed(item, f"could not read {path}: {exc}")
        item.snapshot = original
        if not has_directive(original, self.directive):
            item.has_suppression_directive = False
            return item.finalize(RemediationOutcome.NOT_SUPPRESSED, "no suppression directive")
        stripped, removed = strip_directive(original, self.directive)

        before = diagnostics if diagnostics is not None else self.collector.collect_text(path, original)
        item.state = RemediationState.DIAGNOSED
        if before.collector_error:
            return self._collection_failed(item, before.detail)
        item.diagnostics = list(before.diagnostics)
        if not before.diagnostics:
            return self._commit(
                item,
                stripped,
                RemediationOutcome.RESOLVED,
                "no diagnostics once the directive is removed",
            )
        self._detail(f"{path}: {before.count} diagnostic(s)")

        matched = self.classifier.classify(before.diagnostics)
        for name in self.forced_patterns:
            if name not in matched:
                matched.append(name)
        item.matched_patterns = matched
        item.state = RemediationState.CLASSIFIED
        transforms = self.registry.resolve(path, matched)
        if not transforms:
            return item.finalize(RemediationOutcome.NO_FIX_AVAILABLE, "no automatic fix available")
        self._detail(f"{path}: applying {', '.join(t.name for t in transforms)}")

        try:
            transformed = self._apply(item, transforms, stripped, before.diagnostics)
        except TransformFailure as exc:
            item.applied_transforms.clear()
            return item.finalize(RemediationOutcome.REGRESSED, str(exc))
        item.state = RemediationState.TRANSFORMED
        if transformed == stripped:
            return item.finalize(RemediationOutcome.NO_FIX_AVAILABLE, "fixes produced no change")

        try:
            # Dry runs skip helper creation; the check still has to see them.
            with self.synthesizer.staged(required_utilities(transforms)):
                after = self.collector.collect_text(path, transformed)
        except UtilityUnavailable as exc:
            item.applied_transforms.clear()
            return item.finalize(RemediationOutcome.REGRESSED, str(exc))
        item.state = RemediationState.VERIFIED
        if after.collector_error:
            return self._collection_failed(item, f"re-verification failed: {after.detail}")
        item.diagnostics_after = list(after.diagnostics)
        if after.count == 0:
            return self._commit(item, transformed, RemediationOutcome.RESOLVED, "all diagnostics fixed")
        if after.count < before.count:
            return self._commit(
                item,
                restore_directive(transformed, removed),
                RemediationOutcome.PARTIALLY_RESOLVED,
                f"{before.count} -> {after.count} diagnostic(s); directive kept",
            )
        return item.finalize(
            RemediationOutcome.REGRESSED,
            str(RegressionFailure(path, before.count, after.count)),
        )

    def _apply(
        self,
        item: FileWorkItem,
        transforms: Sequence[ResolvedTransform],
        text: str,
        diagnostics: Sequence[DiagnosticRecord],
    ) -> str:
        baseline = text
        for dependency in required_utilities(transforms):
            self.synthesizer.ensure(dependency)
        for transform in transforms:
            context = TransformContext(
                file_path=item.file_path,
                root=self.root,
                diagnostics=tuple(diagnostics),
                utility_imports=self.synthesizer.import_map(transform.requires, item.file_path),
                baseline_text=baseline,
            )
            try:
                text = transform.apply(text, context)
            except TransformFailure:
                raise
            except Exception as exc:
                raise TransformFailure(transform.name, f"{type(exc).__name__}: {exc}") from exc
            if not isinstance(text, str):
                raise TransformFailure(transform.name, "transform did not return text")
            item.applied_transforms.append(transform.name)
        return text

    def _commit(
        self,
        item: FileWorkItem,
        text: str,
        outcome: RemediationOutcome,
        detail: str,
    ) -> FileWorkItem:
        if self.dry_run:
            self._detail(f"Dry run: would write {item.file_path} ({outcome.value})")
            return item.finalize(outcome, detail)
        if not self._unchanged_on_disk(item):
            return item.finalize(
                RemediationOutcome.REGRESSED,
                f"{item.file_path} changed on disk during remediation; not overwritten",
            )
        try:
            self.write_fn(item.file_path, text)
        except OSError as exc:
            return item.finalize(
                RemediationOutcome.REGRESSED,
                f"could not write {item.file_path}: {exc}",
            )
        item.written = True
        item.has_suppression_directive = outcome is RemediationOutcome.PARTIALLY_RESOLVED
        return item.finalize(outcome, detail)

    def _unchanged_on_disk(self, item: FileWorkItem) -> bool:
        try:
            current = item.file_path.read_bytes().decode("utf-8")
        except (OSError, UnicodeError):
            return False
        return current == item.snapshot

    def _collection_failed(self, item: FileWorkItem, detail: str) -> FileWorkItem:
        self.print_err(f"warning: {CollectionFailure(item.file_path, detail)}")
        return item.finalize(RemediationOutcome.COLLECTION_FAILED, detail)
