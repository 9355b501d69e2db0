from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, Mapping

from mender.config import DEFAULT_UTILITIES_DIR
from mender.exceptions import UtilityUnavailable
from mender.runtime.json_io import write_text_atomic
from mender.synthesis.templates import CANONICAL_UTILITIES


@dataclass
class UtilitySynthesizer:
    """Materialize shared helper modules referenced by generated fixes.

    `ensure` is idempotent and safe to call from several threads: a per-name
    lock serializes the existence check and the first write, and later calls
    in the same run return without touching the filesystem.
    """

    root: Path
    utilities_dir: str = DEFAULT_UTILITIES_DIR
    templates: Mapping[str, str] = field(default_factory=lambda: dict(CANONICAL_UTILITIES))
    extension: str = ".ts"
    dry_run: bool = False
    print_fn: Callable[[str], None] = print
    write_fn: Callable[[Path, str], None] = write_text_atomic
    created: list[Path] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._materialized: set[str] = set()
        self._pending: set[str] = set()

    @property
    def directory(self) -> Path:
        return self.root / self.utilities_dir

    def location(self, name: str) -> Path:
        return self.directory / f"{name}{self.extension}"

    def _lock_for(self, name: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(name, threading.Lock())

    def ensure(self, name: str) -> Path:
        template = self.templates.get(name)
        if template is None:
            raise UtilityUnavailable(name, "no canonical implementation is registered")
        path = self.location(name)
        with self._lock_for(name):
            if name in self._materialized:
                return path
            if path.exists():
                self._materialized.add(name)
                return path
            if self.dry_run:
                self.print_fn(f"Dry run: would create {path}")
                self._materialized.add(name)
                self._pending.add(name)
                return path
            try:
                self.write_fn(path, template)
            except OSError as exc:
                raise UtilityUnavailable(name, f"could not write {path}: {exc}") from exc
            self._materialized.add(name)
            self.created.append(path)
            self.print_fn(f"Created {path}")
        return path

    @contextmanager
    def staged(self, names: Iterable[str]) -> Iterator[list[Path]]:
        """Place dry-run helpers on disk for the duration of the block.

        Only helpers that a dry run skipped are written; they are removed
        again on exit, together with any directories created for them.
        """
        placed: list[Path] = []
        created_dirs: list[Path] = []
        try:
            for name in dict.fromkeys(names):
                path = self.location(name)
                if name not in self._pending or path.exists():
                    continue
                created_dirs.extend(_missing_directories(path.parent))
                try:
                    self.write_fn(path, self.templates[name])
                except OSError as exc:
                    raise UtilityUnavailable(name, f"could not stage {path}: {exc}") from exc
                placed.append(path)
            yield placed
        finally:
            for path in reversed(placed):
                path.unlink(missing_ok=True)
            for directory in reversed(created_dirs):
                if directory.is_dir() and not any(directory.iterdir()):
                    directory.rmdir()

    def import_specifier(self, name: str, from_path: Path) -> str:
        target = self.directory / name
        relative = Path(os.path.relpath(target, start=from_path.parent)).as_posix()
        return relative if relative.startswith(".") else f"./{relative}"

    def import_map(self, names: Iterable[str], from_path: Path) -> dict[str, str]:
        return {name: self.import_specifier(name, from_path) for name in names}


def _missing_directories(directory: Path) -> list[Path]:
    """Directories that writing into `directory` would create, outermost first."""
    missing: list[Path] = []
    probe = directory
    while not probe.exists() and probe != probe.parent:
        missing.append(probe)
        probe = probe.parent
    return list(reversed(missing))
