from __future__ import annotations

import fnmatch
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from mender.analysis.diagnostics import is_transient_path
from mender.analysis.suppression import has_directive
from mender.config import RemediationConfig
from mender.exceptions import SetupFailure
from mender.refactor.model import FileWorkItem

_MODULE_RE = re.compile(r"(?:^|/)modules/([^/]+)/")
OTHER_MODULE = "other"


@dataclass(frozen=True)
class ScanFilters:
    module: str | None = None
    file: str | None = None

    def accepts(self, path: Path) -> bool:
        posix = path.as_posix()
        if self.module and f"/modules/{self.module}/" not in f"/{posix}":
            return False
        if self.file and self.file not in posix:
            return False
        return True


NO_FILTERS = ScanFilters()


def module_name(path: Path | str) -> str:
    match = _MODULE_RE.search(Path(path).as_posix())
    return match.group(1) if match else OTHER_MODULE


def _is_excluded_file(path: Path, *, root: Path, config: RemediationConfig) -> bool:
    if is_transient_path(path):
        return True
    if any(fnmatch.fnmatch(path.name, pattern) for pattern in config.exclude_globs):
        return True
    if config.exclude_paths:
        try:
            rel = path.relative_to(root).as_posix()
        except ValueError:
            rel = path.as_posix()
        return any(
            rel == excluded or rel.startswith(excluded.rstrip("/") + "/")
            for excluded in config.exclude_paths
        )
    return False


def iter_source_paths(root: Path, *, config: RemediationConfig) -> list[Path]:
    """Expand `root` to candidate source files, pruning excluded dirs early."""
    out: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, topdown=True):
        dirnames[:] = sorted(d for d in dirnames if d not in config.exclude_dirs)
        for filename in sorted(filenames):
            if not filename.endswith(config.extensions):
                continue
            candidate = Path(dirpath) / filename
            if _is_excluded_file(candidate, root=root, config=config):
                continue
            out.append(candidate)
    return sorted(out)


def _carries_directive(path: Path, directive: str) -> bool:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeError):
        return False
    return has_directive(text, directive)


def scan_all_suppressed(root: Path, *, config: RemediationConfig) -> list[Path]:
    if not root.is_dir():
        raise SetupFailure(f"root directory does not exist: {root}")
    return [
        path
        for path in iter_source_paths(root, config=config)
        if _carries_directive(path, config.directive)
    ]


def filter_paths(
    paths: Iterable[Path],
    filters: ScanFilters = NO_FILTERS,
    *,
    root: Path | None = None,
) -> list[Path]:
    selected: list[Path] = []
    for path in paths:
        candidate = path
        if root is not None:
            try:
                candidate = path.relative_to(root)
            except ValueError:
                candidate = path
        if filters.accepts(candidate):
            selected.append(path)
    return selected


def scan_suppressed(
    root: Path,
    filters: ScanFilters = NO_FILTERS,
    *,
    config: RemediationConfig,
) -> list[FileWorkItem]:
    """Return work items for every suppressed file under `root`.

    An empty result is not an error; a missing root raises `SetupFailure`.
    """
    paths = filter_paths(scan_all_suppressed(root, config=config), filters, root=root)
    return [FileWorkItem(file_path=path, has_suppression_directive=True) for path in paths]
