from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "mender.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

DEFAULT_CHECKER = ("npx", "tsc", "--noEmit", "--pretty", "false")
DEFAULT_DIRECTIVE = "@ts-nocheck"
DEFAULT_TSCONFIG = "tsconfig.json"
DEFAULT_EXTENSIONS = (".ts", ".tsx")
DEFAULT_EXCLUDE_DIRS = (
    "node_modules",
    "test",
    "tests",
    "mocks",
    "__mocks__",
    "fixtures",
    "dist",
)
DEFAULT_EXCLUDE_GLOBS = ("*.test.ts", "*.spec.ts", "*.test.tsx", "*.spec.tsx", "*.d.ts")
DEFAULT_UTILITIES_DIR = "src/types"
DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_WORKERS = 4


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def remediation_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("remediation", {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _as_positive_float(value: TomlValue, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)) and value > 0:
        return float(value)
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def _as_positive_int(value: TomlValue, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
        return int(value)
    return default


def _checker_command(value: TomlValue) -> tuple[str, ...]:
    if isinstance(value, str) and value.strip():
        return tuple(value.split())
    if isinstance(value, list):
        parts = tuple(str(item) for item in value if isinstance(item, str) and item)
        if parts:
            return parts
    return DEFAULT_CHECKER


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


@dataclass(frozen=True)
class RemediationConfig:
    root: Path
    checker: tuple[str, ...] = DEFAULT_CHECKER
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    workers: int = DEFAULT_WORKERS
    directive: str = DEFAULT_DIRECTIVE
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude_dirs: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_EXCLUDE_DIRS))
    exclude_globs: tuple[str, ...] = DEFAULT_EXCLUDE_GLOBS
    exclude_paths: tuple[str, ...] = ()
    utilities_dir: str = DEFAULT_UTILITIES_DIR
    tsconfig_path: Path | None = None
    ledger_path: Path | None = None
    progress_markdown_path: Path | None = None
    write_progress_markdown: bool = True


def remediation_config(
    root: Path,
    section: TomlTable | None = None,
) -> RemediationConfig:
    """Build a typed config from a `[remediation]` table.

    Relative tsconfig, ledger and markdown paths are resolved against
    `root`. An empty `tsconfig` checks files without project settings.
    """
    section = section if isinstance(section, dict) else {}
    exclude_dirs = _normalize_name_list(section.get("exclude_dirs"))
    exclude_globs = _normalize_name_list(section.get("exclude_globs"))
    extensions = _normalize_name_list(section.get("extensions"))
    ledger = section.get("ledger")
    tsconfig = section.get("tsconfig", DEFAULT_TSCONFIG)
    markdown = section.get("progress_markdown")
    return RemediationConfig(
        root=root,
        checker=_checker_command(section.get("checker")),
        timeout_seconds=_as_positive_float(
            section.get("timeout_seconds"), DEFAULT_TIMEOUT_SECONDS
        ),
        workers=_as_positive_int(section.get("workers"), DEFAULT_WORKERS),
        directive=str(section.get("directive") or DEFAULT_DIRECTIVE),
        extensions=tuple(extensions) if extensions else DEFAULT_EXTENSIONS,
        exclude_dirs=frozenset(exclude_dirs) if exclude_dirs else frozenset(DEFAULT_EXCLUDE_DIRS),
        exclude_globs=tuple(exclude_globs) if exclude_globs else DEFAULT_EXCLUDE_GLOBS,
        exclude_paths=tuple(_normalize_name_list(section.get("exclude_paths"))),
        utilities_dir=str(section.get("utilities_dir") or DEFAULT_UTILITIES_DIR),
        tsconfig_path=root / tsconfig if isinstance(tsconfig, str) and tsconfig else None,
        ledger_path=root / str(ledger) if isinstance(ledger, str) and ledger else None,
        progress_markdown_path=(
            root / str(markdown) if isinstance(markdown, str) and markdown else None
        ),
        write_progress_markdown=(
            _as_bool(section["write_progress_markdown"])
            if "write_progress_markdown" in section
            else True
        ),
    )
