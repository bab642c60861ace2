"""Combined framing: one item per node carrying both its start and its end.

Items live in a single ``scopes`` string. ``ORIGINAL`` and ``GENERATED``
items carry a length; ``EMPTY`` closes the innermost open node.

The end is stored relative to the end of the node's last child, or to its
own start when it has no children. Once a node closes, the running state
moves to its end. Only ``ORIGINAL`` items are numbered for definition
references.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, ClassVar

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
from scopemap.codecs.reader import ItemReader, ListLayout
from scopemap.codecs.tagged import frame_tagged
from scopemap.errors import MalformedItemError, UnbalancedRangeTreeError, UnbalancedScopeTreeError
from scopemap.names import NameTable
from scopemap.tree import DefinitionRef
from scopemap.types import GeneratedRange, OriginalScope, Position, ScopeInfo, SourceMapJson
from scopemap.vlq import TokenIterator, VlqList

logger = logging.getLogger(__name__)


class CombinedTag(IntEnum):
    EMPTY = 0
    ORIGINAL = 1
    GENERATED = 2


class TagCombinedBuilder:
    def __init__(self, codec: TagCombinedCodec, names: NameTable) -> None:
        self._codec = codec
        self._names = names
        self._items: list[str] = []
        self._source_index = -1
        self._item_count = 0
        self._original = OriginalState()
        self._generated = GeneratedState()

    def emit(self, tag: int, payload: VlqList | None = None) -> None:
        if payload is None:
            self._items.append(self._codec.new_tokens().unsigned(tag).encode())
        else:
            self._items.append(frame_tagged(self._codec.new_tokens(), tag, payload))

    def begin_source(self, source_index: int) -> None:
        self._source_index = source_index
        self._original.reset()

    def start_original(self, scope: OriginalScope) -> DefinitionRef:
        reference = scope.children[-1].end if scope.children else scope.start
        payload = self._codec.new_tokens()
        payload.unsigned(line_delta(scope.start.line, self._original.line))
        payload.unsigned(scope.start.column)
        payload.unsigned(line_delta(scope.end.line, reference.line))
        payload.unsigned(scope.end.column)
        self._original.line = scope.start.line
        write_scope_header(payload, scope, self._original, self._names)
        self.inline_variables(payload, scope)
        self.emit(CombinedTag.ORIGINAL, payload)
        definition = DefinitionRef(self._source_index, self._item_count)
        self._item_count += 1
        self.emit_variables(scope)
        return definition

    def end_original(self, scope: OriginalScope) -> None:
        self.emit(CombinedTag.EMPTY)
        self._original.line = scope.end.line

    def start_generated(self, range_: GeneratedRange, definition: DefinitionRef | None) -> None:
        reference = range_.children[-1].end if range_.children else range_.start
        payload = self._codec.new_tokens()
        write_relative_position(payload, RelativePosition.between(range_.start, self._generated.position))
        write_relative_position(payload, RelativePosition.between(range_.end, reference))
        self._generated.move_to(range_.start)
        write_range_header(payload, range_, definition, self._generated)
        self.inline_bindings(payload, range_)
        self.emit(CombinedTag.GENERATED, payload)
        self.emit_bindings(range_)

    def end_generated(self, range_: GeneratedRange) -> None:
        self.emit(CombinedTag.EMPTY)
        self._generated.move_to(range_.end)

    # Lists travel inline by default; follow-up framings override all four.

    def inline_variables(self, payload: VlqList, scope: OriginalScope) -> None:
        write_variables(payload, scope.variables, self._names)

    def inline_bindings(self, payload: VlqList, range_: GeneratedRange) -> None:
        write_bindings(payload, range_, self._names)

    def emit_variables(self, scope: OriginalScope) -> None:
        pass

    def emit_bindings(self, range_: GeneratedRange) -> None:
        pass

    def build(self) -> dict[str, Any]:
        return {"scopes": "".join(self._items)}


@dataclass(slots=True)
class OpenNode:
    """A node whose ``EMPTY`` item has not arrived yet."""

    is_original: bool
    node: OriginalScope | GeneratedRange
    end: RelativePosition
    reference: Position  # end of the last closed child, or the node's start


class TagCombinedReader(ItemReader):
    list_layout: ClassVar[ListLayout] = ListLayout.COUNTED

    def __init__(self, names: NameTable) -> None:
        super().__init__(names)
        self.open_nodes: list[OpenNode] = []
        self.just_opened: OpenNode | None = None
        self._seen_generated = False

    def read_item(self, iterator: TokenIterator, tag: int) -> None:
        self.just_opened = None
        if tag == CombinedTag.EMPTY:
            self.close()
            return
        length = iterator.next_unsigned()
        if tag == CombinedTag.ORIGINAL:
            read_sized_item(iterator, length, self.read_original)
        elif tag == CombinedTag.GENERATED:
            read_sized_item(iterator, length, self.read_generated)
        else:
            logger.debug("Skipping item with unknown tag %d (%d token(s))", tag, length)
            read_sized_item(iterator, length, lambda _item: None)

    def read_original(self, item: TokenIterator) -> None:
        if self.open_nodes and not self.open_nodes[-1].is_original:
            raise MalformedItemError("Original scope item inside an open generated range")
        if not self.open_nodes:
            self.original.reset()
        start = checked_position(self.read_original_line(item), item.next_unsigned())
        end = RelativePosition(item.next_unsigned(), item.next_unsigned())
        scope = self.open_scope(item, start, self.list_layout)
        self.item_count += 1
        self.just_opened = OpenNode(is_original=True, node=scope, end=end, reference=start)
        self.open_nodes.append(self.just_opened)

    def read_generated(self, item: TokenIterator) -> None:
        if self.open_nodes and self.open_nodes[-1].is_original:
            raise MalformedItemError("Generated range item inside an open original scope")
        self._seen_generated = True
        start_delta, _ = read_relative_position(item)
        start = start_delta.resolve(self.generated.position)
        end, _ = read_relative_position(item)
        self.generated.move_to(start)
        range_ = self.open_range(item, start, self.list_layout)
        self.just_opened = OpenNode(is_original=False, node=range_, end=end, reference=start)
        self.open_nodes.append(self.just_opened)

    def close(self) -> None:
        if not self.open_nodes:
            error = UnbalancedRangeTreeError if self._seen_generated else UnbalancedScopeTreeError
            raise error('Items not nested properly: encountered "EMPTY" item without an open node')
        closing = self.open_nodes.pop()
        if closing.is_original:
            end = checked_position(closing.reference.line + closing.end.line_delta, closing.end.column_delta)
            self.scopes.close(end)
            self.original.line = end.line
        else:
            end = closing.end.resolve(closing.reference)
            self.ranges.close(end)
            self.generated.move_to(end)
        if self.open_nodes and self.open_nodes[-1].is_original == closing.is_original:
            self.open_nodes[-1].reference = end

    def finish(self) -> ScopeInfo:
        if self.open_nodes:
            error = UnbalancedScopeTreeError if self.open_nodes[0].is_original else UnbalancedRangeTreeError
            raise error(f"Malformed scope encoding: {len(self.open_nodes)} node(s) never closed")
        return ScopeInfo(scopes=self.scopes.finish(), ranges=self.ranges.finish())


class TagCombinedCodec(ScopeCodec):
    name = "tag-combined"
    description = "One tagged item per node with start and end combined; EMPTY closes the innermost node"
    fields = ("scopes",)

    builder_class: ClassVar[type[TagCombinedBuilder]] = TagCombinedBuilder
    reader_class: ClassVar[type[TagCombinedReader]] = TagCombinedReader

    def new_builder(self, names: NameTable) -> TagCombinedBuilder:
        return self.builder_class(self, names)

    def decode_fields(self, source_map: SourceMapJson, names: NameTable) -> ScopeInfo:
        reader = self.reader_class(names)
        iterator = self.new_iterator(string_field(source_map, "scopes"))
        while iterator.has_more():
            reader.read_item(iterator, iterator.next_unsigned())
        return reader.finish()
