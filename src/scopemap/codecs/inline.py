"""Baseline framing: separate start and end items, flags inline.

``originalScopes`` holds one string per source. An original item starts
with ``lineDelta << 1 | isEnd`` and the absolute column; start items carry
the scope header and the counted variables.

``generatedRanges`` is one string. A generated item starts with a relative
position whose head carries an end marker (bit 1); start items carry the
range header and the counted bindings.

Original items (starts and ends) are numbered globally across sources, in
source order; that number is what a definition reference points at.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from scopemap.bindings import write_bindings
from scopemap.codecs.base import ScopeCodec, read_sized_item, string_field, string_list_field
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
from scopemap.errors import MalformedItemError, UnbalancedScopeTreeError
from scopemap.names import NameTable
from scopemap.tree import DefinitionRef
from scopemap.types import GeneratedRange, OriginalScope, Position, ScopeInfo, SourceMapJson
from scopemap.vlq import TokenIterator, VlqList


class InlineFlagsBuilder:
    def __init__(self, codec: InlineFlagsCodec, names: NameTable) -> None:
        self._codec = codec
        self._names = names
        self._sources: list[list[str]] = []
        self._ranges: list[str] = []
        self._item_count = 0
        self._original = OriginalState()
        self._generated = GeneratedState()

    def begin_source(self, source_index: int) -> None:
        self._sources.append([])
        self._original.reset()

    def _original_head(self, position: Position, *, is_end: bool) -> VlqList:
        tokens = self._codec.new_tokens()
        tokens.unsigned(line_delta(position.line, self._original.line) << 1 | int(is_end))
        tokens.unsigned(position.column)
        self._original.line = position.line
        return tokens

    def _emit_original(self, tokens: VlqList) -> None:
        self._sources[-1].append(self._codec.frame_item(tokens))
        self._item_count += 1

    def start_original(self, scope: OriginalScope) -> DefinitionRef:
        tokens = self._original_head(scope.start, is_end=False)
        write_scope_header(tokens, scope, self._original, self._names)
        write_variables(tokens, scope.variables, self._names)
        definition = DefinitionRef(len(self._sources) - 1, self._item_count)
        self._emit_original(tokens)
        return definition

    def end_original(self, scope: OriginalScope) -> None:
        self._emit_original(self._original_head(scope.end, is_end=True))

    def _generated_head(self, position: Position, *, is_end: bool) -> VlqList:
        tokens = self._codec.new_tokens()
        delta = RelativePosition.between(position, self._generated.position)
        write_relative_position(tokens, delta, end_marker=is_end)
        self._generated.move_to(position)
        return tokens

    def start_generated(self, range_: GeneratedRange, definition: DefinitionRef | None) -> None:
        tokens = self._generated_head(range_.start, is_end=False)
        write_range_header(tokens, range_, definition, self._generated)
        write_bindings(tokens, range_, self._names)
        self._ranges.append(self._codec.frame_item(tokens))

    def end_generated(self, range_: GeneratedRange) -> None:
        self._ranges.append(self._codec.frame_item(self._generated_head(range_.end, is_end=True)))

    def build(self) -> dict[str, Any]:
        return {
            "originalScopes": ["".join(items) for items in self._sources],
            "generatedRanges": "".join(self._ranges),
        }


class InlineFlagsReader(ItemReader):
    def read_original_item(self, item: TokenIterator) -> None:
        head = item.next_unsigned()
        if head < 0:
            raise MalformedItemError(f"Negative original item head {head}")
        line = self.original.line + (head >> 1)
        position = checked_position(line, item.next_unsigned())
        self.original.line = line
        if head & 0x1:
            self.scopes.close(position)
        else:
            self.open_scope(item, position)
        self.item_count += 1

    def read_generated_item(self, item: TokenIterator) -> None:
        delta, is_end = read_relative_position(item, with_end_marker=True)
        position = delta.resolve(self.generated.position)
        self.generated.move_to(position)
        if is_end:
            self.ranges.close(position)
        else:
            self.open_range(item, position)


class InlineFlagsCodec(ScopeCodec):
    name = "inline-flags"
    description = "Separate start/end items with inline flags, one string per source plus one for ranges"
    fields = ("originalScopes", "generatedRanges")

    def frame_item(self, tokens: VlqList) -> str:
        return tokens.encode()

    def read_items(self, iterator: TokenIterator, read: Callable[[TokenIterator], None]) -> None:
        while iterator.has_more():
            read(iterator)

    def new_builder(self, names: NameTable) -> InlineFlagsBuilder:
        return InlineFlagsBuilder(self, names)

    def decode_fields(self, source_map: SourceMapJson, names: NameTable) -> ScopeInfo:
        sources = string_list_field(source_map, "originalScopes")
        ranges_text = string_field(source_map, "generatedRanges")
        reader = InlineFlagsReader(names)

        for source_index, text in enumerate(sources):
            reader.original.reset()
            roots_before = len(reader.scopes.roots)
            self.read_items(self.new_iterator(text), reader.read_original_item)
            if reader.scopes.depth:
                raise UnbalancedScopeTreeError(
                    f"Source {source_index}: {reader.scopes.depth} original scope(s) never closed",
                )
            found = len(reader.scopes.roots) - roots_before
            if found != 1:
                raise MalformedItemError(f"Source {source_index} must hold exactly one root scope, found {found}")

        scopes = reader.scopes.finish()
        self.read_items(self.new_iterator(ranges_text), reader.read_generated_item)
        return ScopeInfo(scopes=scopes, ranges=reader.ranges.finish())


class LengthPrefixedCodec(InlineFlagsCodec):
    """``inline-flags`` with every item preceded by its token count.

    A decoder skips trailing tokens it does not understand, so fields can be
    appended to any item without breaking older readers.
    """

    name = "length-prefixed"
    description = "inline-flags items, each prefixed with its remaining token count"

    def frame_item(self, tokens: VlqList) -> str:
        return self.new_tokens().unsigned(len(tokens)).extend(tokens).encode()

    def read_items(self, iterator: TokenIterator, read: Callable[[TokenIterator], None]) -> None:
        while iterator.has_more():
            read_sized_item(iterator, iterator.next_unsigned(), read)
