"""I/O utilities for source map JSON files.

orjson-backed loading and saving, plus the compact byte rendering used for
size measurements.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson


def load_json(path: Path) -> Any:
    """Load JSON from a file."""
    return orjson.loads(path.read_bytes())


def save_json(obj: Any, path: Path, *, pretty: bool = True) -> None:
    """Save an object as JSON, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    opts = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS if pretty else orjson.OPT_SORT_KEYS
    path.write_bytes(orjson.dumps(obj, option=opts))


def load_source_map(path: Path) -> dict[str, Any]:
    """Load a source map document; the top level must be a JSON object."""
    payload = load_json(path)
    if not isinstance(payload, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return payload


def dump_compact(obj: Any) -> bytes:
    """Compact JSON bytes with insertion-ordered keys (no sorting)."""
    return orjson.dumps(obj)
