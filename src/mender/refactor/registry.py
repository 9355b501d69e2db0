from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from mender.exceptions import UnknownPatternError
from mender.refactor.model import (
    PatternRule,
    ResolvedTransform,
    ScopedFixOverride,
    TextTransform,
    TransformContext,
    TransformKind,
)


def _override_apply(override: ScopedFixOverride) -> TextTransform:
    def _apply(text: str, context: TransformContext) -> str:
        return override.transform(context.file_path, text)

    return _apply


class FixStrategyRegistry:
    """Named fixes: generic pattern rules plus path-scoped overrides.

    Names are unique across both kinds. `resolve` yields matching overrides
    first (registration order), then the rules for the given names in the
    order supplied.
    """

    def __init__(self) -> None:
        self._rules: dict[str, PatternRule] = {}
        self._overrides: dict[str, ScopedFixOverride] = {}

    def register_rule(self, rule: PatternRule) -> PatternRule:
        self._claim(rule.name)
        self._rules[rule.name] = rule
        return rule

    def register_override(self, override: ScopedFixOverride) -> ScopedFixOverride:
        self._claim(override.name)
        self._overrides[override.name] = override
        return override

    def _claim(self, name: str) -> None:
        if name in self._rules or name in self._overrides:
            raise ValueError(f"fix strategy already registered: {name}")

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return tuple(self._rules.values())

    @property
    def overrides(self) -> tuple[ScopedFixOverride, ...]:
        return tuple(self._overrides.values())

    def rule_names(self) -> list[str]:
        return list(self._rules)

    def rule(self, name: str) -> PatternRule:
        try:
            return self._rules[name]
        except KeyError:
            raise UnknownPatternError(name, self.rule_names()) from None

    def validate_names(self, names: Iterable[str]) -> list[str]:
        return [self.rule(name).name for name in names]

    def overrides_for(self, file_path: Path | str) -> list[ScopedFixOverride]:
        return [override for override in self._overrides.values() if override.applies_to(file_path)]

    def resolve(
        self,
        file_path: Path | str,
        matched_pattern_names: Sequence[str],
    ) -> list[ResolvedTransform]:
        transforms = [
            ResolvedTransform(
                name=override.name,
                kind=TransformKind.OVERRIDE,
                apply=_override_apply(override),
                requires=override.requires,
            )
            for override in self.overrides_for(file_path)
        ]
        for name in dict.fromkeys(matched_pattern_names):
            rule = self.rule(name)
            transforms.append(
                ResolvedTransform(
                    name=rule.name,
                    kind=TransformKind.PATTERN,
                    apply=rule.transform,
                    requires=rule.requires,
                )
            )
        return transforms


def required_utilities(transforms: Iterable[ResolvedTransform]) -> list[str]:
    """Each dependency once, in first-use order."""
    ordered: dict[str, None] = {}
    for transform in transforms:
        for name in transform.requires:
            ordered.setdefault(name, None)
    return list(ordered)


def default_registry() -> FixStrategyRegistry:
    from mender.refactor.overrides import BUILTIN_OVERRIDES
    from mender.refactor.rules import BUILTIN_RULES

    registry = FixStrategyRegistry()
    for override in BUILTIN_OVERRIDES:
        registry.register_override(override)
    for rule in BUILTIN_RULES:
        registry.register_rule(rule)
    return registry
