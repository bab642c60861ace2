"""Separator framing of the scopes proposal.

Items are separated by ``,``; in ``generatedRanges`` every new generated
line starts after a ``;``, so ranges store only a column (relative while
the line is unchanged).

Start and end items are told apart by their token count: an original end
item is exactly two tokens, a generated end item exactly one. Variables
and bindings run until the item ends.

Definitions are a source delta plus an item index numbered per source,
relative only while the source is unchanged.
"""

from __future__ import annotations

from typing import Any

from scopemap.bindings import write_bindings
from scopemap.codecs.base import ScopeCodec, string_field, string_list_field
from scopemap.codecs.fields import (
    GeneratedState,
    OriginalState,
    RangeHeader,
    RelativePosition,
    checked_position,
    line_delta,
    write_range_header,
    write_scope_header,
    write_variables,
)
from scopemap.codecs.reader import ItemReader, ListLayout
from scopemap.errors import InvalidDefinitionReferenceError, MalformedItemError
from scopemap.names import NameTable
from scopemap.tree import DefinitionRef, ScopeTreeAssembler
from scopemap.types import GeneratedRange, OriginalScope, Position, ScopeInfo, SourceMapJson
from scopemap.vlq import TokenIterator, VlqList, count_vlqs

ITEM_SEPARATOR = ","
LINE_SEPARATOR = ";"


class ProposalBuilder:
    def __init__(self, codec: ProposalCodec, names: NameTable) -> None:
        self._codec = codec
        self._names = names
        self._sources: list[list[str]] = []
        self._source_item_count = 0
        self._original = OriginalState()
        self._generated = GeneratedState()
        self._chunks: list[str] = []
        self._line_has_items = False

    def begin_source(self, source_index: int) -> None:
        self._sources.append([])
        self._source_item_count = 0
        self._original.reset()

    def _original_position(self, position: Position) -> VlqList:
        tokens = self._codec.new_tokens()
        tokens.unsigned(line_delta(position.line, self._original.line))
        tokens.unsigned(position.column)
        self._original.line = position.line
        return tokens

    def start_original(self, scope: OriginalScope) -> DefinitionRef:
        tokens = self._original_position(scope.start)
        write_scope_header(tokens, scope, self._original, self._names)
        write_variables(tokens, scope.variables, self._names, with_count=False)
        self._sources[-1].append(tokens.encode())
        definition = DefinitionRef(len(self._sources) - 1, self._source_item_count)
        self._source_item_count += 1
        return definition

    def end_original(self, scope: OriginalScope) -> None:
        self._sources[-1].append(self._original_position(scope.end).encode())
        self._source_item_count += 1

    def _generated_column(self, position: Position) -> VlqList:
        """Emit pending separators; return the item's tokens holding the column."""
        delta = RelativePosition.between(position, self._generated.position)
        if delta.line_delta:
            self._chunks.append(LINE_SEPARATOR * delta.line_delta)
            self._line_has_items = False
        if self._line_has_items:
            self._chunks.append(ITEM_SEPARATOR)
        self._line_has_items = True
        self._generated.move_to(position)
        return self._codec.new_tokens().unsigned(delta.column_delta)

    def start_generated(self, range_: GeneratedRange, definition: DefinitionRef | None) -> None:
        tokens = self._generated_column(range_.start)
        write_range_header(tokens, range_, definition, self._generated, per_source_definitions=True)
        write_bindings(tokens, range_, self._names, with_count=False)
        self._chunks.append(tokens.encode())

    def end_generated(self, range_: GeneratedRange) -> None:
        self._chunks.append(self._generated_column(range_.end).encode())

    def build(self) -> dict[str, Any]:
        return {
            "originalScopes": [ITEM_SEPARATOR.join(items) for items in self._sources],
            "generatedRanges": "".join(self._chunks),
        }


class ProposalReader(ItemReader):
    def __init__(self, names: NameTable) -> None:
        super().__init__(names, per_source_definitions=True)
        self.sources: list[ScopeTreeAssembler] = []

    def begin_source(self) -> None:
        self.scopes = ScopeTreeAssembler()
        self.sources.append(self.scopes)
        self.original.reset()
        self.item_count = 0

    def begin_line(self, line: int) -> None:
        self.generated.line = line
        self.generated.column = 0

    def resolve_definition(self, header: RangeHeader) -> OriginalScope | None:
        if header.definition_item is None:
            return None
        source = header.definition_source
        if source is None or not 0 <= source < len(self.sources):
            raise InvalidDefinitionReferenceError(f"Invalid definition source index {source}")
        return self.sources[source].lookup(header.definition_item)

    def read_original_item(self, item: TokenIterator, token_count: int) -> None:
        if token_count < 2:
            raise MalformedItemError(f"Original scope item needs at least 2 tokens, got {token_count}")
        position = checked_position(self.read_original_line(item), item.next_unsigned())
        if token_count == 2:
            self.scopes.close(position)
        else:
            self.open_scope(item, position, ListLayout.TRAILING)
        self.item_count += 1

    def read_generated_item(self, item: TokenIterator, token_count: int) -> None:
        if token_count < 1:
            raise MalformedItemError("Empty generated range item")
        position = checked_position(self.generated.line, self.generated.column + item.next_unsigned())
        self.generated.move_to(position)
        if token_count == 1:
            self.ranges.close(position)
        else:
            self.open_range(item, position, ListLayout.TRAILING)


class ProposalCodec(ScopeCodec):
    name = "proposal"
    description = 'The currently proposed "Scopes" encoding: comma-separated items, semicolon-separated lines'
    fields = ("originalScopes", "generatedRanges")

    def new_builder(self, names: NameTable) -> ProposalBuilder:
        return ProposalBuilder(self, names)

    def decode_fields(self, source_map: SourceMapJson, names: NameTable) -> ScopeInfo:
        sources = string_list_field(source_map, "originalScopes")
        ranges_text = string_field(source_map, "generatedRanges")
        reader = ProposalReader(names)

        roots: list[OriginalScope] = []
        for source_index, text in enumerate(sources):
            reader.begin_source()
            for raw in text.split(ITEM_SEPARATOR):
                reader.read_original_item(self.new_iterator(raw), count_vlqs(raw))
            found = reader.scopes.finish()
            if len(found) != 1:
                raise MalformedItemError(f"Source {source_index} must hold exactly one root scope, found {len(found)}")
            roots.extend(found)

        for line, line_text in enumerate(ranges_text.split(LINE_SEPARATOR)):
            reader.begin_line(line)
            if not line_text:
                continue
            for raw in line_text.split(ITEM_SEPARATOR):
                reader.read_generated_item(self.new_iterator(raw), count_vlqs(raw))
        return ScopeInfo(scopes=roots, ranges=reader.ranges.finish())
