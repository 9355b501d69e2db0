from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from mender.analysis.scanner import ScanFilters
from mender.config import (
    RemediationConfig,
    TomlTable,
    merge_payload,
    remediation_config,
    remediation_defaults,
)
from mender.exceptions import LedgerWriteFailure, MenderError, SetupFailure, UnknownPatternError
from mender.refactor.registry import default_registry
from mender.runtime.path_policy import relative_posix, resolve_report_path
from mender.tooling.error_report import render_error_report, summary_lines, write_error_report
from mender.tooling.remediation_run import (
    RunOptions,
    pattern_descriptions,
    run_analysis,
    run_remediation,
    select_suppressed,
)

app = typer.Typer(add_completion=False)

SETUP_FAILURE_EXIT = 2


def _echo_err(message: str) -> None:
    typer.echo(message, err=True)


def _split_csv_entries(entries: List[str]) -> list[str]:
    merged: list[str] = []
    for entry in entries:
        merged.extend(part.strip() for part in entry.split(",") if part.strip())
    return list(dict.fromkeys(merged))


def _build_config(
    *,
    root: Path,
    config: Optional[Path],
    overrides: TomlTable | None = None,
) -> RemediationConfig:
    if not root.is_dir():
        raise SetupFailure(f"root directory does not exist: {root}")
    defaults = remediation_defaults(root, config)
    payload = merge_payload(overrides or {}, defaults)
    return remediation_config(root.resolve(), payload)


def _fail(exc: MenderError) -> typer.Exit:
    _echo_err(f"error: {exc}")
    return typer.Exit(code=SETUP_FAILURE_EXIT)


@app.command("scan")
def scan(
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    module: Optional[str] = typer.Option(None, "--module", help="Only files under modules/<name>/."),
    file: Optional[str] = typer.Option(None, "--file", help="Only paths containing this text."),
) -> None:
    """List files that still carry the suppression directive."""
    try:
        settings = _build_config(root=root, config=config)
        _, selected = select_suppressed(settings, ScanFilters(module=module, file=file))
    except SetupFailure as exc:
        raise _fail(exc) from exc
    for path in selected:
        typer.echo(relative_posix(path, root=settings.root))
    typer.echo(f"{len(selected)} file(s) with {settings.directive}.")


@app.command("analyze")
def analyze(
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    module: Optional[str] = typer.Option(None, "--module"),
    file: Optional[str] = typer.Option(None, "--file"),
    workers: Optional[int] = typer.Option(None, "--workers", min=1),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Checker timeout in seconds."),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        help="Write a markdown error report (default: artifacts/remediation/error_report.md).",
    ),
    write_report: bool = typer.Option(False, "--write-report/--no-write-report"),
) -> None:
    """Classify diagnostics across suppressed files without changing them."""
    registry = default_registry()
    try:
        settings = _build_config(
            root=root,
            config=config,
            overrides={"workers": workers, "timeout_seconds": timeout},
        )
        result = run_analysis(
            settings,
            ScanFilters(module=module, file=file),
            registry=registry,
        )
    except SetupFailure as exc:
        raise _fail(exc) from exc
    for line in summary_lines(result):
        typer.echo(line)
    for entry in result.collection_failures:
        _echo_err(f"warning: {entry.path}: {entry.detail}")
    if report is not None or write_report:
        target = resolve_report_path(report, root=settings.root)
        try:
            write_error_report(
                target,
                render_error_report(
                    result,
                    descriptions=pattern_descriptions(registry),
                    directive=settings.directive,
                ),
            )
        except OSError as exc:
            _echo_err(f"error: could not write report {target}: {exc}")
            raise typer.Exit(code=SETUP_FAILURE_EXIT) from exc
        typer.echo(f"Wrote error report: {target}")


@app.command("fix")
def fix(
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    module: Optional[str] = typer.Option(None, "--module", help="Only files under modules/<name>/."),
    file: Optional[str] = typer.Option(None, "--file", help="Only paths containing this text."),
    pattern: List[str] = typer.Option(
        [],
        "--pattern",
        help="Apply these fix patterns even when the classifier does not match them.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without writing anything."),
    verbose: bool = typer.Option(False, "--verbose"),
    workers: Optional[int] = typer.Option(None, "--workers", min=1),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Checker timeout in seconds."),
) -> None:
    """Remove the suppression directive where automatic fixes succeed."""
    try:
        settings = _build_config(
            root=root,
            config=config,
            overrides={"workers": workers, "timeout_seconds": timeout},
        )
        run_remediation(
            settings,
            RunOptions(
                filters=ScanFilters(module=module, file=file),
                patterns=tuple(_split_csv_entries(pattern)),
                dry_run=dry_run,
                verbose=verbose,
            ),
            print_fn=typer.echo,
            print_err=_echo_err,
        )
    except (SetupFailure, UnknownPatternError, LedgerWriteFailure) as exc:
        raise _fail(exc) from exc


@app.command("patterns")
def patterns() -> None:
    """List the registered fix patterns."""
    registry = default_registry()
    for rule in registry.rules:
        typer.echo(f"{rule.name}: {rule.description}")
    for override in registry.overrides:
        typer.echo(f"{override.name} (file override): {override.description}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
