from __future__ import annotations

import concurrent.futures
import threading
from pathlib import Path

import pytest

from mender.exceptions import TransformFailure, UtilityUnavailable
from mender.runtime.json_io import write_text_atomic
from mender.synthesis import CANONICAL_UTILITIES, UtilitySynthesizer


def test_ensure_creates_canonical_module_once(tmp_path: Path) -> None:
    messages: list[str] = []
    synthesizer = UtilitySynthesizer(root=tmp_path, print_fn=messages.append)

    first = synthesizer.ensure("mongo-util-types")
    second = synthesizer.ensure("mongo-util-types")

    assert first == second == tmp_path / "src" / "types" / "mongo-util-types.ts"
    assert first.read_text(encoding="utf-8") == CANONICAL_UTILITIES["mongo-util-types"]
    assert synthesizer.created == [first]
    assert messages == [f"Created {first}"]


def test_existing_module_is_left_untouched(tmp_path: Path) -> None:
    target = tmp_path / "src" / "types" / "promise-utils.ts"
    target.parent.mkdir(parents=True)
    target.write_text("export const custom = true;\n", encoding="utf-8")
    synthesizer = UtilitySynthesizer(root=tmp_path, print_fn=lambda message: None)

    assert synthesizer.ensure("promise-utils") == target
    assert target.read_text(encoding="utf-8") == "export const custom = true;\n"
    assert synthesizer.created == []


def test_concurrent_ensure_writes_exactly_once(tmp_path: Path) -> None:
    writes: list[Path] = []
    lock = threading.Lock()

    def _write(path: Path, text: str) -> None:
        with lock:
            writes.append(path)
        write_text_atomic(path, text)

    synthesizer = UtilitySynthesizer(root=tmp_path, write_fn=_write, print_fn=lambda message: None)
    with concurrent.futures.ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(lambda _: synthesizer.ensure("express-extensions"), range(16)))

    assert len(set(results)) == 1
    assert writes == [results[0]]


def test_unwritable_location_raises_utility_unavailable(tmp_path: Path) -> None:
    def _fail(path: Path, text: str) -> None:
        raise PermissionError(13, "Permission denied", str(path))

    synthesizer = UtilitySynthesizer(root=tmp_path, write_fn=_fail, print_fn=lambda message: None)

    with pytest.raises(UtilityUnavailable) as excinfo:
        synthesizer.ensure("mongo-util-types")

    assert isinstance(excinfo.value, TransformFailure)
    assert excinfo.value.utility == "mongo-util-types"
    assert not synthesizer.location("mongo-util-types").exists()


def test_unknown_utility_is_unavailable(tmp_path: Path) -> None:
    with pytest.raises(UtilityUnavailable):
        UtilitySynthesizer(root=tmp_path).ensure("left-pad")


def test_dry_run_reports_without_writing(tmp_path: Path) -> None:
    messages: list[str] = []
    synthesizer = UtilitySynthesizer(root=tmp_path, dry_run=True, print_fn=messages.append)

    path = synthesizer.ensure("promise-utils")

    assert not path.exists()
    assert messages == [f"Dry run: would create {path}"]


def test_staged_places_dry_run_helpers_only_inside_the_block(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    synthesizer = UtilitySynthesizer(root=tmp_path, dry_run=True, print_fn=lambda message: None)
    path = synthesizer.ensure("promise-utils")

    with synthesizer.staged(["promise-utils", "promise-utils"]) as placed:
        assert placed == [path]
        assert path.read_text(encoding="utf-8") == CANONICAL_UTILITIES["promise-utils"]

    assert not path.exists()
    assert not (tmp_path / "src" / "types").exists()
    assert (tmp_path / "src").is_dir()
    assert synthesizer.created == []


def test_staged_is_a_no_op_outside_dry_run(tmp_path: Path) -> None:
    synthesizer = UtilitySynthesizer(root=tmp_path, print_fn=lambda message: None)
    path = synthesizer.ensure("promise-utils")

    with synthesizer.staged(["promise-utils", "mongo-util-types"]) as placed:
        assert placed == []

    assert path.exists()
    assert not synthesizer.location("mongo-util-types").exists()


def test_import_specifier_is_relative_to_the_importing_file(tmp_path: Path) -> None:
    synthesizer = UtilitySynthesizer(root=tmp_path)

    nested = tmp_path / "src" / "modules" / "users" / "user.service.ts"
    sibling = tmp_path / "src" / "types" / "index.ts"

    assert synthesizer.import_specifier("mongo-util-types", nested) == "../../types/mongo-util-types"
    assert synthesizer.import_specifier("mongo-util-types", sibling) == "./mongo-util-types"
    assert synthesizer.import_map(["promise-utils"], nested) == {
        "promise-utils": "../../types/promise-utils"
    }
