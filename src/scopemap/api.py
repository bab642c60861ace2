"""Boundary operations: put a ``ScopeInfo`` into a source map and get it back."""

from __future__ import annotations

from scopemap.codecs import get_codec
from scopemap.config import DEFAULT_CODEC, CodecConfig
from scopemap.types import ScopeInfo, SourceMapJson


def encode(
    info: ScopeInfo,
    source_map: SourceMapJson,
    *,
    codec: str = DEFAULT_CODEC,
    config: CodecConfig | None = None,
) -> SourceMapJson:
    """Shallow copy of ``source_map`` with ``info`` serialized by ``codec``.

    ``source_map["names"]`` is extended in place; every other host field is
    carried over untouched.
    """
    return get_codec(codec, config).encode(info, source_map)


def decode(
    source_map: SourceMapJson,
    *,
    codec: str = DEFAULT_CODEC,
    config: CodecConfig | None = None,
) -> ScopeInfo:
    """Rebuild the ``ScopeInfo`` stored by ``codec``; ``source_map`` is not modified."""
    return get_codec(codec, config).decode(source_map)
