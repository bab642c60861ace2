"""Tag framing: both trees in one ``scopes`` stream.

Every item is ``tag``, ``length``, payload. ``EMPTY`` carries no length and
is ignored; tags a reader does not know are skipped by their length.
Roots follow one another in source order, so a start item at depth zero
begins the tree of the next source.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any

from scopemap.bindings import write_bindings
from scopemap.codecs.base import ScopeCodec, read_sized_item, string_field
from scopemap.codecs.fields import (
    GeneratedState,
    OriginalState,
    RelativePosition,
    checked_position,
    line_delta,
    read_relative_position,
    write_range_header,
    write_relative_position,
    write_scope_header,
    write_variables,
)
from scopemap.codecs.reader import ItemReader
from scopemap.names import NameTable
from scopemap.tree import DefinitionRef
from scopemap.types import GeneratedRange, OriginalScope, Position, ScopeInfo, SourceMapJson
from scopemap.vlq import TokenIterator, VlqList

logger = logging.getLogger(__name__)


class SplitTag(IntEnum):
    EMPTY = 0
    ORIGINAL_START = 1
    ORIGINAL_END = 2
    GENERATED_START = 3
    GENERATED_END = 4


def frame_tagged(tokens: VlqList, tag: int, payload: VlqList) -> str:
    """Render ``tag``, ``len(payload)``, payload with the mode of ``tokens``."""
    return tokens.unsigned(tag).unsigned(len(payload)).extend(payload).encode()


class TagSplitBuilder:
    def __init__(self, codec: TagSplitCodec, names: NameTable) -> None:
        self._codec = codec
        self._names = names
        self._items: list[str] = []
        self._source_index = -1
        self._item_count = 0
        self._original = OriginalState()
        self._generated = GeneratedState()

    def _emit(self, tag: SplitTag, payload: VlqList) -> None:
        self._items.append(frame_tagged(self._codec.new_tokens(), tag, payload))

    def _original_position(self, position: Position) -> VlqList:
        tokens = self._codec.new_tokens()
        tokens.unsigned(line_delta(position.line, self._original.line))
        tokens.unsigned(position.column)
        self._original.line = position.line
        return tokens

    def _generated_position(self, position: Position) -> VlqList:
        tokens = self._codec.new_tokens()
        write_relative_position(tokens, RelativePosition.between(position, self._generated.position))
        self._generated.move_to(position)
        return tokens

    def begin_source(self, source_index: int) -> None:
        self._source_index = source_index
        self._original.reset()

    def start_original(self, scope: OriginalScope) -> DefinitionRef:
        payload = self._original_position(scope.start)
        write_scope_header(payload, scope, self._original, self._names)
        write_variables(payload, scope.variables, self._names)
        self._emit(SplitTag.ORIGINAL_START, payload)
        definition = DefinitionRef(self._source_index, self._item_count)
        self._item_count += 1
        return definition

    def end_original(self, scope: OriginalScope) -> None:
        self._emit(SplitTag.ORIGINAL_END, self._original_position(scope.end))
        self._item_count += 1

    def start_generated(self, range_: GeneratedRange, definition: DefinitionRef | None) -> None:
        payload = self._generated_position(range_.start)
        write_range_header(payload, range_, definition, self._generated)
        write_bindings(payload, range_, self._names)
        self._emit(SplitTag.GENERATED_START, payload)

    def end_generated(self, range_: GeneratedRange) -> None:
        self._emit(SplitTag.GENERATED_END, self._generated_position(range_.end))

    def build(self) -> dict[str, Any]:
        return {"scopes": "".join(self._items)}


class TagSplitReader(ItemReader):
    def _original_position(self, item: TokenIterator) -> Position:
        line = self.read_original_line(item)
        return checked_position(line, item.next_unsigned())

    def _generated_position(self, item: TokenIterator) -> Position:
        delta, _ = read_relative_position(item)
        position = delta.resolve(self.generated.position)
        self.generated.move_to(position)
        return position

    def read_original_start(self, item: TokenIterator) -> None:
        if not self.scopes.depth:
            self.original.reset()
        self.open_scope(item, self._original_position(item))
        self.item_count += 1

    def read_original_end(self, item: TokenIterator) -> None:
        self.scopes.close(self._original_position(item))
        self.item_count += 1

    def read_generated_start(self, item: TokenIterator) -> None:
        self.open_range(item, self._generated_position(item))

    def read_generated_end(self, item: TokenIterator) -> None:
        self.ranges.close(self._generated_position(item))


class TagSplitCodec(ScopeCodec):
    name = "tag-split"
    description = "Tagged, length-prefixed start/end items for both trees in a single string"
    fields = ("scopes",)

    def new_builder(self, names: NameTable) -> TagSplitBuilder:
        return TagSplitBuilder(self, names)

    def decode_fields(self, source_map: SourceMapJson, names: NameTable) -> ScopeInfo:
        reader = TagSplitReader(names)
        handlers = {
            SplitTag.ORIGINAL_START: reader.read_original_start,
            SplitTag.ORIGINAL_END: reader.read_original_end,
            SplitTag.GENERATED_START: reader.read_generated_start,
            SplitTag.GENERATED_END: reader.read_generated_end,
        }
        iterator = self.new_iterator(string_field(source_map, "scopes"))
        while iterator.has_more():
            tag = iterator.next_unsigned()
            if tag == SplitTag.EMPTY:
                continue
            length = iterator.next_unsigned()
            handler = handlers.get(tag)
            if handler is None:
                logger.debug("Skipping item with unknown tag %d (%d token(s))", tag, length)
                read_sized_item(iterator, length, lambda _item: None)
                continue
            read_sized_item(iterator, length, handler)
        return ScopeInfo(scopes=reader.scopes.finish(), ranges=reader.ranges.finish())
