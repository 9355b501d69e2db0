from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Mapping, Pattern, Tuple


@dataclass(frozen=True)
class DiagnosticRecord:
    file_path: str
    line: int
    column: int
    code: str
    message: str

    def render(self) -> str:
        return f"{self.file_path}({self.line},{self.column}): error {self.code}: {self.message}"


@dataclass(frozen=True)
class CollectionResult:
    diagnostics: Tuple[DiagnosticRecord, ...] = ()
    collector_error: bool = False
    detail: str = ""

    @classmethod
    def failed(cls, detail: str) -> "CollectionResult":
        return cls(diagnostics=(), collector_error=True, detail=detail)

    @property
    def count(self) -> int:
        return len(self.diagnostics)


@dataclass(frozen=True)
class TransformContext:
    file_path: Path
    root: Path
    diagnostics: Tuple[DiagnosticRecord, ...] = ()
    utility_imports: Mapping[str, str] = field(default_factory=dict)
    baseline_text: str = ""

    def import_for(self, utility: str) -> str:
        return self.utility_imports[utility]


TextTransform = Callable[[str, TransformContext], str]
ScopedTransform = Callable[[Path, str], str]


@dataclass(frozen=True)
class PatternRule:
    name: str
    description: str
    pattern: Pattern[str]
    transform: TextTransform
    codes: frozenset[str] = frozenset()
    requires: Tuple[str, ...] = ()

    def matches(self, message: str, code: str = "") -> bool:
        if self.pattern.search(message):
            return True
        return bool(code) and code in self.codes


def pattern_rule(
    name: str,
    description: str,
    pattern: str,
    *,
    codes: tuple[str, ...] = (),
    requires: tuple[str, ...] = (),
) -> Callable[[TextTransform], PatternRule]:
    """Decorator turning a `(text, context) -> text` function into a rule."""

    def _wrap(fn: TextTransform) -> PatternRule:
        return PatternRule(
            name=name,
            description=description,
            pattern=re.compile(pattern, re.IGNORECASE),
            transform=fn,
            codes=frozenset(codes),
            requires=tuple(requires),
        )

    return _wrap


@dataclass(frozen=True)
class ScopedFixOverride:
    name: str
    description: str
    scope_matcher: Callable[[str], bool]
    transform: ScopedTransform
    requires: Tuple[str, ...] = ()

    def applies_to(self, file_path: Path | str) -> bool:
        return self.scope_matcher(Path(file_path).as_posix())


class TransformKind(str, Enum):
    OVERRIDE = "override"
    PATTERN = "pattern"


@dataclass(frozen=True)
class ResolvedTransform:
    name: str
    kind: TransformKind
    apply: TextTransform
    requires: Tuple[str, ...] = ()


class RemediationOutcome(str, Enum):
    RESOLVED = "resolved"
    PARTIALLY_RESOLVED = "partially_resolved"
    REGRESSED = "regressed"
    COLLECTION_FAILED = "collection_failed"
    NO_FIX_AVAILABLE = "no_fix_available"
    NOT_SUPPRESSED = "not_suppressed"


class RemediationState(str, Enum):
    DISCOVERED = "discovered"
    DIAGNOSED = "diagnosed"
    CLASSIFIED = "classified"
    TRANSFORMED = "transformed"
    VERIFIED = "verified"
    FINALIZED = "finalized"


@dataclass
class FileWorkItem:
    file_path: Path
    has_suppression_directive: bool = True
    diagnostics: List[DiagnosticRecord] = field(default_factory=list)
    matched_patterns: List[str] = field(default_factory=list)
    resolved: bool = False
    state: RemediationState = RemediationState.DISCOVERED
    outcome: RemediationOutcome | None = None
    diagnostics_after: List[DiagnosticRecord] = field(default_factory=list)
    applied_transforms: List[str] = field(default_factory=list)
    written: bool = False
    detail: str = ""
    snapshot: str | None = field(default=None, repr=False)

    def finalize(self, outcome: RemediationOutcome, detail: str = "") -> "FileWorkItem":
        self.outcome = outcome
        self.resolved = outcome is RemediationOutcome.RESOLVED
        self.state = RemediationState.FINALIZED
        if detail:
            self.detail = detail
        return self
