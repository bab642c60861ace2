"""Decode-side state shared by the framing strategies.

An ``ItemReader`` owns everything one decode call accumulates: both tree
assemblers, the running delta states and the original item counter.
Strategies parse their framing and hand each item's payload to it.
"""

from __future__ import annotations

from enum import StrEnum

from scopemap.bindings import read_bindings
from scopemap.codecs.fields import (
    GeneratedState,
    OriginalState,
    RangeHeader,
    new_range,
    new_scope,
    read_range_header,
    read_scope_header,
    read_variables,
)
from scopemap.errors import MalformedItemError
from scopemap.names import NameTable
from scopemap.tree import RangeTreeAssembler, ScopeTreeAssembler
from scopemap.types import GeneratedRange, OriginalScope, Position
from scopemap.vlq import TokenIterator


class ListLayout(StrEnum):
    """How an item carries its variables or bindings."""

    COUNTED = "counted"    # a count, then the entries
    TRAILING = "trailing"  # entries until the item ends
    SEPARATE = "separate"  # a follow-up item delivers them


class ItemReader:
    def __init__(self, names: NameTable, *, per_source_definitions: bool = False) -> None:
        self.names = names
        self.scopes = ScopeTreeAssembler()
        self.ranges = RangeTreeAssembler(names)
        self.original = OriginalState()
        self.generated = GeneratedState()
        self.item_count = 0
        self.per_source_definitions = per_source_definitions

    def open_scope(self, item: TokenIterator, start: Position, layout: ListLayout = ListLayout.COUNTED) -> OriginalScope:
        """Read a scope header and its variables; open the scope at the current item index."""
        header = read_scope_header(item, self.original, self.names)
        if layout is ListLayout.COUNTED:
            variables = read_variables(item, self.names)
        elif layout is ListLayout.TRAILING:
            variables = []
            while item.has_more():
                variables.append(self.names.resolve(item.next_unsigned()))
        else:
            variables = []
        scope = new_scope(start, header, variables)
        self.scopes.open(scope, self.item_count)
        return scope

    def open_range(self, item: TokenIterator, start: Position, layout: ListLayout = ListLayout.COUNTED) -> GeneratedRange:
        """Read a range header and its bindings; open the range."""
        header = read_range_header(item, self.generated, per_source_definitions=self.per_source_definitions)
        range_ = new_range(start, header, self.resolve_definition(header))
        if layout is ListLayout.COUNTED:
            count = item.next_unsigned()
            self.ranges.open(range_, read_bindings(item, start, count=count))
        elif layout is ListLayout.TRAILING:
            self.ranges.open(range_, read_bindings(item, start, until=lambda: not item.has_more()))
        else:
            self.ranges.open(range_)
        return range_

    def resolve_definition(self, header: RangeHeader) -> OriginalScope | None:
        if header.definition_item is None:
            return None
        return self.scopes.lookup(header.definition_item)

    def read_original_line(self, item: TokenIterator) -> int:
        """Apply an unsigned line delta to the running original line."""
        line = self.original.line + item.next_unsigned()
        if line < 0:
            raise MalformedItemError(f"Decoded original line {line} is negative")
        self.original.line = line
        return line
