from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import Any


def encode_json(value: Any) -> bytes:
    """
    Encode a JSON-serializable value as compact UTF-8 bytes.

    NaN and infinities are rejected with ValueError since they have no JSON form.
    """
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")


def decode_json(data: bytes) -> Any:
    """
    Decode UTF-8 JSON bytes.

    Raises ValueError (UnicodeDecodeError / json.JSONDecodeError) on malformed input.
    """
    return json.loads(data.decode("utf-8"))


def read_bytes(path: Path) -> bytes | None:
    """
    Read a file, returning None if it does not exist.
    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    """
    Atomically write bytes to disk by writing to a temp file then replacing.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        with tmp_path.open("wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
