"""Error taxonomy for the remediation pipeline."""

from __future__ import annotations

from pathlib import Path


class MenderError(RuntimeError):
    """Base class for every error raised by mender."""


class SetupFailure(MenderError):
    """Unrecoverable problem detected before any file is touched."""


class CollectionFailure(MenderError):
    """The external checker could not produce diagnostics."""

    def __init__(self, path: Path | str, detail: str) -> None:
        super().__init__(f"diagnostic collection failed for {path}: {detail}")
        self.path = str(path)
        self.detail = detail


class TransformFailure(MenderError):
    """A fix strategy raised, or one of its dependencies is unavailable."""

    def __init__(self, transform: str, detail: str) -> None:
        super().__init__(f"transform {transform!r} failed: {detail}")
        self.transform = transform
        self.detail = detail


class UtilityUnavailable(TransformFailure):
    """A shared helper module could not be materialized."""

    def __init__(self, name: str, detail: str) -> None:
        super().__init__(f"utility:{name}", detail)
        self.utility = name


class RegressionFailure(MenderError):
    """Re-verification showed no improvement."""

    def __init__(self, path: Path | str, before: int, after: int) -> None:
        super().__init__(
            f"no improvement for {path}: {before} diagnostic(s) before, {after} after"
        )
        self.path = str(path)
        self.before = before
        self.after = after


class LedgerWriteFailure(MenderError):
    """The progress ledger could not be persisted."""


class UnknownPatternError(MenderError, ValueError):
    """A pattern name was requested that the registry does not know."""

    def __init__(self, name: str, known: list[str]) -> None:
        super().__init__(
            f"unknown pattern {name!r}; known patterns: {', '.join(known) or '(none)'}"
        )
        self.name = name
