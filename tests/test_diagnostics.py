from __future__ import annotations

import subprocess
from pathlib import Path

from mender.analysis.diagnostics import (
    DiagnosticCollector,
    is_transient_path,
    parse_checker_output,
    transient_path,
)
from tests.checker_helpers import (
    ID_ACCESS,
    FakeChecker,
    findings_for_substrings,
    timeout_responder,
    tsc_output,
)


def _suppressed(tmp_path: Path, name: str = "user.service.ts") -> Path:
    path = tmp_path / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("// @ts-nocheck\nexport const key = user._id;\n", encoding="utf-8")
    return path


def test_parse_checker_output_keeps_only_the_checked_file(tmp_path: Path) -> None:
    target = tmp_path / "a.ts"
    output = "\n".join(
        [
            "src/a.mender-check-1234.ts(3,7): error TS2339: Property '_id' does not exist on type 'X'.",
            "src/other.ts(1,1): error TS2307: Cannot find module 'y'.",
            "Found 2 errors.",
        ]
    )

    ours, total = parse_checker_output(output, reported_name="a.mender-check-1234.ts", file_path=target)

    assert total == 2
    assert len(ours) == 1
    assert ours[0].file_path == str(target)
    assert (ours[0].line, ours[0].column, ours[0].code) == (3, 7, "TS2339")
    assert ours[0].message == "Property '_id' does not exist on type 'X'."


def test_transient_path_is_a_marked_sibling(tmp_path: Path) -> None:
    source = tmp_path / "mod" / "invoice.model.ts"

    scratch = transient_path(source)

    assert scratch.parent == source.parent
    assert scratch.suffix == ".ts"
    assert is_transient_path(scratch)
    assert not is_transient_path(source)
    assert transient_path(source) != scratch


def test_collect_strips_directive_and_cleans_up(tmp_path: Path) -> None:
    path = _suppressed(tmp_path)
    checker = FakeChecker.from_findings(findings_for_substrings([ID_ACCESS]))
    collector = DiagnosticCollector(checker=("tsc",), run_fn=checker)

    result = collector.collect(path)

    assert not result.collector_error
    assert result.count == 1
    assert result.diagnostics[0].line == 1
    assert checker.seen_texts == ["export const key = user._id;\n"]
    assert checker.calls[0][0] == "tsc"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["user.service.ts"]


def test_clean_exit_means_zero_diagnostics(tmp_path: Path) -> None:
    path = _suppressed(tmp_path)
    collector = DiagnosticCollector(
        run_fn=FakeChecker(respond=lambda content, scratch: tsc_output(scratch, []))
    )

    result = collector.collect(path)

    assert not result.collector_error
    assert result.count == 0


def test_timeout_is_a_collection_failure_not_zero(tmp_path: Path) -> None:
    path = _suppressed(tmp_path)
    collector = DiagnosticCollector(timeout_seconds=1, run_fn=FakeChecker(respond=timeout_responder))

    result = collector.collect(path)

    assert result.collector_error
    assert "timed out" in result.detail
    assert sorted(p.name for p in tmp_path.iterdir()) == ["user.service.ts"]


def test_missing_checker_binary_is_a_collection_failure(tmp_path: Path) -> None:
    path = _suppressed(tmp_path)

    def _run(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    result = DiagnosticCollector(run_fn=_run).collect(path)

    assert result.collector_error
    assert "could not be started" in result.detail


def test_nonzero_exit_without_diagnostics_is_a_collection_failure(tmp_path: Path) -> None:
    path = _suppressed(tmp_path)

    def _respond(content: str, scratch: Path) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr="error TS5023: Unknown compiler option.\n"
        )

    result = DiagnosticCollector(run_fn=FakeChecker(respond=_respond)).collect(path)

    assert result.collector_error
    assert "TS5023" in result.detail


def test_errors_only_in_imported_files_count_as_clean(tmp_path: Path) -> None:
    path = _suppressed(tmp_path)

    def _respond(content: str, scratch: Path) -> subprocess.CompletedProcess[str]:
        return tsc_output(
            scratch,
            [],
            extra_lines=["src/shared/helpers.ts(4,2): error TS2322: Type 'x' is not assignable to type 'y'."],
        )

    result = DiagnosticCollector(run_fn=FakeChecker(respond=_respond)).collect(path)

    assert not result.collector_error
    assert result.count == 0


def test_unreadable_file_is_a_collection_failure(tmp_path: Path) -> None:
    result = DiagnosticCollector(run_fn=FakeChecker(respond=timeout_responder)).collect(
        tmp_path / "missing.ts"
    )

    assert result.collector_error
    assert "could not read" in result.detail


def test_collect_many_returns_results_in_input_order(tmp_path: Path) -> None:
    paths = [_suppressed(tmp_path, f"file{index}.ts") for index in range(5)]
    (tmp_path / "file3.ts").write_text("// @ts-nocheck\nexport const ok = 1;\n", encoding="utf-8")
    checker = FakeChecker.from_findings(findings_for_substrings([ID_ACCESS]))
    collector = DiagnosticCollector(run_fn=checker)

    results = collector.collect_many(list(reversed(paths)), workers=3)

    assert list(results) == list(reversed(paths))
    assert [results[path].count for path in paths] == [1, 1, 1, 0, 1]
    assert len(checker.calls) == 5
    assert not any(is_transient_path(p) for p in tmp_path.iterdir())


def test_collect_many_contains_a_crashing_collector(tmp_path: Path) -> None:
    path = _suppressed(tmp_path)

    def _explode(content: str, scratch: Path) -> subprocess.CompletedProcess[str]:
        raise RuntimeError("boom")

    results = DiagnosticCollector(run_fn=FakeChecker(respond=_explode)).collect_many([path], workers=2)

    assert results[path].collector_error
    assert "boom" in results[path].detail
    assert not any(is_transient_path(p) for p in tmp_path.iterdir())


def test_project_config_is_extended_through_dash_p_and_removed(tmp_path: Path) -> None:
    tsconfig = tmp_path / "tsconfig.json"
    tsconfig.write_text('{"compilerOptions": {"strict": true}}\n', encoding="utf-8")
    path = _suppressed(tmp_path / "src" / "modules" / "users", "user.service.ts")
    checker = FakeChecker.from_findings(findings_for_substrings([ID_ACCESS]))
    collector = DiagnosticCollector(
        checker=("tsc", "--noEmit"),
        cwd=tmp_path,
        project_config=tsconfig,
        run_fn=checker,
    )

    result = collector.collect(path)

    assert result.count == 1
    assert result.diagnostics[0].file_path == str(path)
    command = checker.calls[0]
    assert command[:3] == ["tsc", "--noEmit", "-p"]
    assert Path(command[3]).parent == tmp_path
    assert is_transient_path(Path(command[3]))
    project = checker.projects[0]
    assert project["extends"] == "./tsconfig.json"
    assert project["include"] == []
    [checked] = project["files"]
    assert checked.startswith("src/modules/users/user.service.mender-check-")
    assert checker.seen_texts == ["export const key = user._id;\n"]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["src", "tsconfig.json"]
    assert not any(is_transient_path(p) for p in path.parent.iterdir())


def test_project_config_is_removed_after_a_timeout(tmp_path: Path) -> None:
    tsconfig = tmp_path / "tsconfig.json"
    tsconfig.write_text("{}\n", encoding="utf-8")
    path = _suppressed(tmp_path)
    collector = DiagnosticCollector(
        project_config=tsconfig,
        run_fn=FakeChecker(respond=timeout_responder),
    )

    result = collector.collect(path)

    assert result.collector_error
    assert sorted(p.name for p in tmp_path.iterdir()) == ["tsconfig.json", "user.service.ts"]
