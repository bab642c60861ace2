"""Codec base class: the encode/decode contract every framing strategy shares."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, ClassVar

from scopemap.config import UNSIGNED_SUFFIX, CodecConfig
from scopemap.errors import (
    InvalidDefinitionReferenceError,
    MalformedItemError,
    MalformedVlqError,
    MissingFieldsError,
)
from scopemap.names import NameTable
from scopemap.tree import ScopeInfoBuilder, walk_scope_info
from scopemap.types import GeneratedRange, ScopeInfo, SourceMapJson
from scopemap.validation import validate_scope_info
from scopemap.vlq import TokenIterator, VlqList

logger = logging.getLogger(__name__)

# Every field any strategy writes. Encoding removes the ones the chosen
# strategy does not own so two encodings never coexist in one map.
SCOPE_FIELDS: tuple[str, ...] = ("originalScopes", "generatedRanges", "scopes")


class ScopeCodec(ABC):
    """One framing strategy bound to one ``CodecConfig``.

    Subclasses provide ``new_builder`` (encode) and ``decode_fields``
    (decode); the base class owns copying the map, the name table,
    validation and field bookkeeping.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    fields: ClassVar[tuple[str, ...]]

    def __init__(self, config: CodecConfig | None = None) -> None:
        self.config = config if config is not None else CodecConfig()

    @property
    def label(self) -> str:
        return f"{self.name}{UNSIGNED_SUFFIX}" if self.config.unsigned else self.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}(label={self.label!r})"

    # -- token helpers -----------------------------------------------------

    def new_tokens(self) -> VlqList:
        return VlqList(unsigned_mode=self.config.unsigned)

    def new_iterator(self, text: str) -> TokenIterator:
        return TokenIterator(text, unsigned=self.config.unsigned)

    # -- boundary operations ----------------------------------------------

    def encode(self, info: ScopeInfo, source_map: SourceMapJson) -> SourceMapJson:
        """Return a shallow copy of ``source_map`` carrying ``info``.

        The map's ``names`` list is extended in place (created when
        missing), and only once encoding succeeds. ``info`` is never mutated.
        """
        if self.config.validate:
            validate_scope_info(info)
        result = dict(source_map)
        names = result.get("names")
        if names is None:
            names = []
            result["names"] = names
        elif not isinstance(names, list):
            raise MalformedItemError(f"'names' must be a list, got {type(names).__name__}")
        names_before = len(names)
        # interned into a scratch copy; the caller's list only grows on success
        table = NameTable(list(names))

        encoded = walk_scope_info(info, self.new_builder(table))
        names.extend(table.names[names_before:])
        for field in SCOPE_FIELDS:
            if field not in encoded:
                result.pop(field, None)
        result.update(encoded)
        logger.debug(
            "%s: encoded %d source tree(s), %d top-level range(s); %d new name(s)",
            self.label,
            len(info.scopes),
            len(info.ranges),
            len(names) - names_before,
        )
        return result

    def decode(self, source_map: SourceMapJson) -> ScopeInfo:
        """Rebuild the ``ScopeInfo`` stored in ``source_map`` by this strategy."""
        missing = [field for field in ("names", *self.fields) if field not in source_map]
        if missing:
            raise MissingFieldsError(missing)
        raw_names = source_map["names"]
        if not isinstance(raw_names, list):
            raise MalformedItemError(f"'names' must be a list, got {type(raw_names).__name__}")
        table = NameTable(list(raw_names))

        info = self.decode_fields(source_map, table)
        _check_callsites(info.ranges, len(info.scopes))
        logger.debug(
            "%s: decoded %d source tree(s), %d top-level range(s)",
            self.label,
            len(info.scopes),
            len(info.ranges),
        )
        return info

    # -- strategy hooks ----------------------------------------------------

    @abstractmethod
    def new_builder(self, names: NameTable) -> ScopeInfoBuilder:
        """Fresh builder holding all running delta state of one encode call."""

    @abstractmethod
    def decode_fields(self, source_map: SourceMapJson, names: NameTable) -> ScopeInfo:
        """Parse this strategy's fields (already known to be present)."""


# ---------------------------------------------------------------------------
# Helpers shared by strategies
# ---------------------------------------------------------------------------

def string_field(source_map: SourceMapJson, key: str) -> str:
    value = source_map[key]
    if not isinstance(value, str):
        raise MalformedItemError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def string_list_field(source_map: SourceMapJson, key: str) -> list[str]:
    value = source_map[key]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedItemError(f"'{key}' must be a list of strings")
    return value


def read_sized_item(iterator: TokenIterator, length: int, read: Callable[[TokenIterator], Any]) -> Any:
    """Run ``read`` over the next ``length`` numbers only.

    Trailing numbers ``read`` leaves unconsumed are skipped; reading past
    the declared length raises ``MalformedItemError``.
    """
    if length < 0:
        raise MalformedItemError(f"Negative item length {length}")
    offset = iterator.position
    item = iterator.split_off(length)
    try:
        result = read(item)
    except MalformedVlqError as exc:
        # every digit was validated by split_off: only an overrun gets here
        raise MalformedItemError(
            f"Item at offset {offset} overruns its declared length of {length} token(s)",
        ) from exc
    if item.has_more():
        logger.debug("Skipping %d unknown trailing character(s) of item at offset %d", len(item.remaining()), offset)
    return result


def _check_callsites(ranges: list[GeneratedRange], source_count: int) -> None:
    for range_ in ranges:
        if range_.callsite is not None and range_.callsite.source_index >= source_count:
            raise InvalidDefinitionReferenceError(
                f"Callsite references source {range_.callsite.source_index} "
                f"but only {source_count} source tree(s) were decoded",
            )
        _check_callsites(range_.children, source_count)
