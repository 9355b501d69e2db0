from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from mender.refactor.model import DiagnosticRecord, PatternRule


class PatternClassifier:
    """Map diagnostics onto named pattern rules.

    Matching is a pure test against diagnostic text (and code); results
    always follow rule registration order so downstream fix order is
    reproducible.
    """

    def __init__(self, rules: Sequence[PatternRule]) -> None:
        self.rules = tuple(rules)

    def classify(self, diagnostics: Iterable[DiagnosticRecord]) -> list[str]:
        records = list(diagnostics)
        return [
            rule.name
            for rule in self.rules
            if any(rule.matches(record.message, record.code) for record in records)
        ]

    def classify_messages(self, messages: Iterable[str]) -> list[str]:
        texts = list(messages)
        return [
            rule.name
            for rule in self.rules
            if any(rule.matches(text) for text in texts)
        ]

    def matches_for(self, record: DiagnosticRecord) -> list[str]:
        return [rule.name for rule in self.rules if rule.matches(record.message, record.code)]

    def unmatched(self, diagnostics: Iterable[DiagnosticRecord]) -> list[DiagnosticRecord]:
        return [record for record in diagnostics if not self.matches_for(record)]

    def pattern_counts(
        self, classified: Iterable[Sequence[str]]
    ) -> list[tuple[str, int]]:
        """Per-pattern file counts, most frequent first, ties in registration order."""
        counts: Counter[str] = Counter()
        for names in classified:
            counts.update(set(names))
        order = {rule.name: index for index, rule in enumerate(self.rules)}
        return sorted(
            ((name, count) for name, count in counts.items() if count),
            key=lambda item: (-item[1], order.get(item[0], len(order)), item[0]),
        )
