from __future__ import annotations

import concurrent.futures
import os
import re
import subprocess
import uuid
from pathlib import Path
from typing import Callable, Iterable, Sequence

from mender.analysis.suppression import strip_directive
from mender.config import DEFAULT_CHECKER, DEFAULT_DIRECTIVE, DEFAULT_TIMEOUT_SECONDS
from mender.refactor.model import CollectionResult, DiagnosticRecord
from mender.runtime.json_io import dump_json_pretty

RunCommand = Callable[..., subprocess.CompletedProcess[str]]

_DIAGNOSTIC_RE = re.compile(
    r"^(?P<path>.+?)\((?P<line>\d+),(?P<col>\d+)\):\s*error\s+(?P<code>TS\d+):\s*(?P<message>.*)$"
)
_TRANSIENT_MARKER = ".mender-check-"


def transient_path(path: Path) -> Path:
    """Sibling path for a throwaway copy, so relative imports still resolve."""
    token = uuid.uuid4().hex[:12]
    return path.with_name(f"{path.stem}{_TRANSIENT_MARKER}{token}{path.suffix}")


def is_transient_path(path: Path) -> bool:
    return _TRANSIENT_MARKER in path.name


def write_transient_project(project_config: Path, scratch: Path) -> Path:
    """Write a throwaway tsconfig that extends `project_config` and checks only `scratch`.

    tsc ignores tsconfig.json when files are named on the command line, so
    the scratch file is checked through `-p` so the project's compiler
    options still apply.
    """
    token = uuid.uuid4().hex[:12]
    path = project_config.with_name(f"{project_config.stem}{_TRANSIENT_MARKER}{token}.json")
    payload = {
        "extends": f"./{project_config.name}",
        "files": [Path(os.path.relpath(scratch, start=project_config.parent)).as_posix()],
        "include": [],
    }
    path.write_text(dump_json_pretty(payload), encoding="utf-8")
    return path


def parse_checker_output(
    output: str,
    *,
    reported_name: str,
    file_path: Path,
) -> tuple[list[DiagnosticRecord], int]:
    """Parse checker output.

    Returns the diagnostics reported against `reported_name` (rewritten to
    `file_path`) and the total number of parseable diagnostic lines, which
    includes diagnostics for other files pulled in by imports.
    """
    ours: list[DiagnosticRecord] = []
    total = 0
    for raw_line in output.splitlines():
        match = _DIAGNOSTIC_RE.match(raw_line.strip())
        if match is None:
            continue
        total += 1
        if Path(match.group("path")).name != reported_name:
            continue
        ours.append(
            DiagnosticRecord(
                file_path=str(file_path),
                line=int(match.group("line")),
                column=int(match.group("col")),
                code=match.group("code"),
                message=match.group("message").strip(),
            )
        )
    return ours, total


class DiagnosticCollector:
    def __init__(
        self,
        *,
        checker: Sequence[str] = DEFAULT_CHECKER,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        directive: str = DEFAULT_DIRECTIVE,
        cwd: Path | None = None,
        project_config: Path | None = None,
        run_fn: RunCommand = subprocess.run,
    ) -> None:
        self.checker = tuple(checker)
        self.timeout_seconds = timeout_seconds
        self.directive = directive
        self.cwd = cwd
        self.project_config = project_config
        self.run_fn = run_fn

    def collect(self, path: Path) -> CollectionResult:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            return CollectionResult.failed(f"could not read {path}: {exc}")
        return self.collect_text(path, text)

    def collect_text(self, path: Path, text: str) -> CollectionResult:
        """Check `text` as if it were the content of `path`.

        The directive is stripped from a transient sibling copy; `path`
        itself is never written.
        """
        stripped, _ = strip_directive(text, self.directive)
        scratch = transient_path(path)
        project: Path | None = None
        try:
            try:
                scratch.write_text(stripped, encoding="utf-8")
                if self.project_config is not None:
                    project = write_transient_project(self.project_config, scratch)
            except OSError as exc:
                return CollectionResult.failed(f"could not write transient copy {scratch}: {exc}")
            try:
                proc = self.run_fn(
                    self.command(scratch, project),
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_seconds,
                    check=False,
                    cwd=str(self.cwd) if self.cwd is not None else None,
                )
            except subprocess.TimeoutExpired:
                return CollectionResult.failed(
                    f"checker timed out after {self.timeout_seconds:g}s"
                )
            except OSError as exc:
                return CollectionResult.failed(f"checker could not be started: {exc}")
        finally:
            scratch.unlink(missing_ok=True)
            if project is not None:
                project.unlink(missing_ok=True)
        return self._interpret(proc, scratch=scratch, path=path)

    def command(self, scratch: Path, project: Path | None = None) -> list[str]:
        if project is not None:
            return [*self.checker, "-p", str(project)]
        return [*self.checker, str(scratch)]

    def _interpret(
        self,
        proc: subprocess.CompletedProcess[str],
        *,
        scratch: Path,
        path: Path,
    ) -> CollectionResult:
        output = "\n".join(part for part in (proc.stdout, proc.stderr) if part)
        diagnostics, total = parse_checker_output(
            output,
            reported_name=scratch.name,
            file_path=path,
        )
        if proc.returncode == 0 or diagnostics:
            return CollectionResult(diagnostics=tuple(diagnostics))
        if total:
            # Only imported files failed; this file checks clean on its own.
            return CollectionResult(diagnostics=())
        detail = output.strip().splitlines()[0] if output.strip() else "no output"
        return CollectionResult.failed(
            f"checker exited {proc.returncode} without diagnostics: {detail}"
        )

    def collect_many(
        self,
        paths: Iterable[Path],
        *,
        workers: int = 1,
    ) -> dict[Path, CollectionResult]:
        ordered = list(dict.fromkeys(paths))
        if not ordered:
            return {}
        results: dict[Path, CollectionResult] = {}
        max_workers = max(1, min(int(workers), len(ordered)))
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.collect, path): path for path in ordered}
            for future in concurrent.futures.as_completed(futures):
                path = futures[future]
                try:
                    results[path] = future.result()
                except Exception as exc:
                    results[path] = CollectionResult.failed(f"collector crashed: {exc}")
        return {path: results[path] for path in ordered}
