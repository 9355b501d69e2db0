from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import pytest

from mender.analysis.diagnostics import DiagnosticCollector
from mender.config import RemediationConfig, remediation_config
from tests.checker_helpers import ID_ACCESS, LEGACY_CALL, FakeChecker, findings_for_substrings


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "src" / "modules").mkdir(parents=True)
    return root


@pytest.fixture
def write_source(repo: Path) -> Callable[[str, str], Path]:
    def _write(relative: str, text: str) -> Path:
        path = repo / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(text.encode("utf-8"))
        return path

    return _write


@pytest.fixture
def config(repo: Path) -> RemediationConfig:
    return remediation_config(repo, {"workers": 2, "timeout_seconds": 5})


@pytest.fixture
def id_checker() -> FakeChecker:
    return FakeChecker.from_findings(findings_for_substrings([ID_ACCESS, LEGACY_CALL]))


@pytest.fixture
def make_collector(repo: Path) -> Callable[[FakeChecker], DiagnosticCollector]:
    def _make(checker: FakeChecker) -> DiagnosticCollector:
        return DiagnosticCollector(
            checker=("tsc", "--noEmit"),
            timeout_seconds=5,
            cwd=repo,
            run_fn=checker,
        )

    return _make
