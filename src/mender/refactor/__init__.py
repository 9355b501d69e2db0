from mender.refactor.model import (
    CollectionResult,
    DiagnosticRecord,
    FileWorkItem,
    PatternRule,
    RemediationOutcome,
    RemediationState,
    ResolvedTransform,
    ScopedFixOverride,
    TransformContext,
    TransformKind,
    pattern_rule,
)
from mender.refactor.registry import (
    FixStrategyRegistry,
    default_registry,
    required_utilities,
)

__all__ = [
    "CollectionResult",
    "DiagnosticRecord",
    "FileWorkItem",
    "FixStrategyRegistry",
    "PatternRule",
    "RemediationOutcome",
    "RemediationState",
    "ResolvedTransform",
    "ScopedFixOverride",
    "TransformContext",
    "TransformKind",
    "default_registry",
    "pattern_rule",
    "required_utilities",
]
