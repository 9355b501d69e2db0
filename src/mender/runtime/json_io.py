from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Mapping


def canonicalize_json(value: object) -> object:
    if isinstance(value, Mapping):
        normalized_items = [
            (str(key), canonicalize_json(item_value))
            for key, item_value in value.items()
        ]
        # Sort key is lexical mapping-key text for canonical JSON shape.
        ordered_items = sorted(normalized_items, key=lambda item: item[0])
        return {key: item_value for key, item_value in ordered_items}
    if isinstance(value, (list, tuple)):
        return [canonicalize_json(item) for item in value]
    return value


def load_json_object_path(
    path: Path,
    *,
    encoding: str = "utf-8",
) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        text = path.read_text(encoding=encoding)
    except (OSError, UnicodeError):
        return {}
    return load_json_object_text(text)


def load_json_object_text(text: str) -> dict[str, object]:
    try:
        payload = json.loads(text)
    except (TypeError, ValueError):
        return {}
    if not isinstance(payload, Mapping):
        return {}
    canonical = canonicalize_json(payload)
    return canonical if isinstance(canonical, dict) else {}


def dump_json_pretty(payload: object) -> str:
    return json.dumps(canonicalize_json(payload), indent=2, sort_keys=False) + "\n"


def write_text_atomic(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    """Replace `path` with `text` so readers never observe a partial write.

    The temporary file lives in the destination directory so `os.replace`
    stays on one filesystem. Raises `OSError` on failure, leaving `path`
    untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)
    try:
        # newline="" keeps CRLF sources byte-identical.
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_json_atomic(path: Path, payload: object) -> None:
    write_text_atomic(path, dump_json_pretty(payload))
