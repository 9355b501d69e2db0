from __future__ import annotations

import os
from pathlib import Path

import pytest

from mender.runtime import json_io
from mender.runtime.json_io import load_json_object_path, write_json_atomic, write_text_atomic


def test_write_text_atomic_preserves_bytes_and_mode(tmp_path: Path) -> None:
    target = tmp_path / "file.ts"
    target.write_text("old\n", encoding="utf-8")
    os.chmod(target, 0o640)

    write_text_atomic(target, "a\r\nb\r\n")

    assert target.read_bytes() == b"a\r\nb\r\n"
    assert target.stat().st_mode & 0o777 == 0o640
    assert sorted(p.name for p in tmp_path.iterdir()) == ["file.ts"]


def test_failed_replace_leaves_original_and_no_temp_files(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    target = tmp_path / "ledger.json"
    target.write_text("{}\n", encoding="utf-8")

    def _fail(src: str, dst: str) -> None:
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(json_io.os, "replace", _fail)

    with pytest.raises(OSError):
        write_json_atomic(target, {"fixed_files": 1})

    assert target.read_text(encoding="utf-8") == "{}\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["ledger.json"]


def test_load_json_object_path_tolerates_non_objects(tmp_path: Path) -> None:
    target = tmp_path / "ledger.json"
    target.write_text("[1, 2]\n", encoding="utf-8")

    assert load_json_object_path(target) == {}
    assert load_json_object_path(tmp_path / "absent.json") == {}
