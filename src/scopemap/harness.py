"""Round-trip verification and size measurement for codec comparisons."""

from __future__ import annotations

import gzip
import logging
from dataclasses import dataclass
from typing import Any

from scopemap.codecs import SCOPE_FIELDS, ScopeCodec
from scopemap.errors import RoundTripMismatchError
from scopemap.io_utils import dump_compact
from scopemap.types import ScopeInfo, SourceMapJson, scope_info_to_dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PayloadSize:
    raw: int
    gzip: int

    def delta_against(self, base: PayloadSize) -> dict[str, float | None]:
        """Relative change against ``base``; ``None`` where ``base`` is empty."""

        def _delta(old: int, new: int) -> float | None:
            return round((new - old) / old, 4) if old else None

        return {"raw": _delta(base.raw, self.raw), "gzip": _delta(base.gzip, self.gzip)}


def scope_payload_size(source_map: SourceMapJson) -> PayloadSize:
    """Size of the scope fields alone, serialized compactly with orjson."""
    payload = {field: source_map[field] for field in SCOPE_FIELDS if field in source_map}
    data = dump_compact(payload)
    return PayloadSize(raw=len(data), gzip=len(gzip.compress(data, mtime=0)))


def _diff(expected: Any, actual: Any, path: str, out: list[str]) -> None:
    if isinstance(expected, dict) and isinstance(actual, dict):
        for key in sorted(expected.keys() | actual.keys()):
            child = f"{path}.{key}" if path else key
            if key not in actual:
                out.append(f"{child}: missing")
            elif key not in expected:
                out.append(f"{child}: unexpected {actual[key]!r}")
            else:
                _diff(expected[key], actual[key], child, out)
        return
    if isinstance(expected, list) and isinstance(actual, list):
        if len(expected) != len(actual):
            out.append(f"{path}: expected {len(expected)} item(s), got {len(actual)}")
        for idx, (left, right) in enumerate(zip(expected, actual)):
            _diff(left, right, f"{path}[{idx}]", out)
        return
    if expected != actual:
        out.append(f"{path}: expected {expected!r}, got {actual!r}")


def diff_scope_info(expected: ScopeInfo, actual: ScopeInfo) -> list[str]:
    """Paths where two ``ScopeInfo`` values differ (empty when equal)."""
    differences: list[str] = []
    _diff(scope_info_to_dict(expected), scope_info_to_dict(actual), "", differences)
    return differences


def verify_codec(codec: ScopeCodec, reference: ScopeInfo, source_map: SourceMapJson) -> SourceMapJson:
    """Encode ``reference`` with ``codec``, decode it again and compare.

    Returns the encoded map; raises ``RoundTripMismatchError`` on any
    difference.
    """
    encoded = codec.encode(reference, source_map)
    decoded = codec.decode(encoded)
    differences = diff_scope_info(reference, decoded)
    if differences:
        raise RoundTripMismatchError(codec.label, differences)
    logger.debug("%s: round trip verified", codec.label)
    return encoded
