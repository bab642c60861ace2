"""Field-level writers and readers shared by every framing strategy.

Strategies only decide how items are framed (separators, tags, lengths,
combined start/end). The fields inside an item, and the running delta state
they are relative to, are the same everywhere and live here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag

from scopemap.errors import InvalidScopeInfoError, MalformedItemError
from scopemap.names import NameTable
from scopemap.tree import DefinitionRef
from scopemap.types import GeneratedRange, OriginalPosition, OriginalScope, Position
from scopemap.vlq import TokenIterator, VlqList


class OriginalFlag(IntFlag):
    HAS_NAME = 0x1
    HAS_KIND = 0x2
    IS_STACK_FRAME = 0x4


class GeneratedFlag(IntFlag):
    HAS_DEFINITION = 0x1
    HAS_CALLSITE = 0x2
    IS_STACK_FRAME = 0x4
    IS_HIDDEN = 0x8


# ---------------------------------------------------------------------------
# Running delta state
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class OriginalState:
    """Delta state of one original scope tree; reset at every new root."""

    line: int = 0
    kind: int = 0

    def reset(self) -> None:
        self.line = 0
        self.kind = 0


@dataclass(slots=True)
class GeneratedState:
    """Delta state of the generated range stream."""

    line: int = 0
    column: int = 0
    definition_source: int = 0
    definition: int = 0
    callsite_source: int = 0
    callsite_line: int = 0
    callsite_column: int = 0

    @property
    def position(self) -> Position:
        return Position(self.line, self.column)

    def move_to(self, position: Position) -> None:
        self.line = position.line
        self.column = position.column


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RelativePosition:
    """A position stored relative to a reference position.

    The column is relative only when the line is unchanged.
    """

    line_delta: int
    column_delta: int

    @classmethod
    def between(cls, position: Position, reference: Position) -> RelativePosition:
        line_delta = position.line - reference.line
        column_delta = position.column - (reference.column if line_delta == 0 else 0)
        if line_delta < 0 or column_delta < 0:
            raise InvalidScopeInfoError(
                f"Position {position} precedes the reference position {reference}; "
                "items must be emitted in document order",
            )
        return cls(line_delta, column_delta)

    def resolve(self, reference: Position) -> Position:
        line = reference.line + self.line_delta
        column = self.column_delta + (reference.column if self.line_delta == 0 else 0)
        return checked_position(line, column)


def write_relative_position(
    tokens: VlqList,
    delta: RelativePosition,
    *,
    end_marker: bool | None = None,
) -> None:
    """Head token ``column << k | markers | lineChanged``, then the line delta.

    ``k`` is 2 when an end-marker bit (0x2) is part of the head, else 1.
    """
    line_changed = 1 if delta.line_delta else 0
    if end_marker is None:
        head = (delta.column_delta << 1) | line_changed
    else:
        head = (delta.column_delta << 2) | (0x2 if end_marker else 0) | line_changed
    tokens.unsigned(head)
    if line_changed:
        tokens.unsigned(delta.line_delta)


def read_relative_position(
    iterator: TokenIterator,
    *,
    with_end_marker: bool = False,
) -> tuple[RelativePosition, bool]:
    """Inverse of ``write_relative_position``; returns (delta, is_end)."""
    head = iterator.next_unsigned()
    if head < 0:
        raise MalformedItemError(f"Negative position head {head}")
    line_delta = iterator.next_unsigned() if head & 0x1 else 0
    if with_end_marker:
        return RelativePosition(line_delta, head >> 2), bool(head & 0x2)
    return RelativePosition(line_delta, head >> 1), False


def line_delta(line: int, reference_line: int) -> int:
    delta = line - reference_line
    if delta < 0:
        raise InvalidScopeInfoError(
            f"Line {line} precedes line {reference_line}; items must be emitted in document order",
        )
    return delta


def checked_position(line: int, column: int) -> Position:
    """Build a decoded position, rejecting negatives as malformed input."""
    if line < 0 or column < 0:
        raise MalformedItemError(f"Decoded position ({line}, {column}) is negative")
    return Position(line, column)


# ---------------------------------------------------------------------------
# Original scope fields
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ScopeHeader:
    flags: int
    name: str | None
    kind: str | None

    @property
    def is_stack_frame(self) -> bool:
        return bool(self.flags & OriginalFlag.IS_STACK_FRAME)


def write_scope_header(tokens: VlqList, scope: OriginalScope, state: OriginalState, names: NameTable) -> None:
    """``flags`` then the optional name index and kind delta."""
    flags = 0
    if scope.name is not None:
        flags |= OriginalFlag.HAS_NAME
    if scope.kind is not None:
        flags |= OriginalFlag.HAS_KIND
    if scope.is_stack_frame:
        flags |= OriginalFlag.IS_STACK_FRAME
    tokens.unsigned(int(flags))
    if scope.name is not None:
        tokens.unsigned(names.index_of(scope.name))
    if scope.kind is not None:
        kind_index = names.index_of(scope.kind)
        tokens.signed(kind_index - state.kind)
        state.kind = kind_index


def read_scope_header(iterator: TokenIterator, state: OriginalState, names: NameTable) -> ScopeHeader:
    flags = iterator.next_unsigned()
    name = None
    kind = None
    if flags & OriginalFlag.HAS_NAME:
        name = names.resolve(iterator.next_unsigned())
    if flags & OriginalFlag.HAS_KIND:
        state.kind += iterator.next_signed()
        kind = names.resolve(state.kind)
    return ScopeHeader(flags=flags, name=name, kind=kind)


def write_variables(tokens: VlqList, variables: list[str], names: NameTable, *, with_count: bool = True) -> None:
    if with_count:
        tokens.unsigned(len(variables))
    for variable in variables:
        tokens.unsigned(names.index_of(variable))


def read_variables(iterator: TokenIterator, names: NameTable, count: int | None = None) -> list[str]:
    """Read ``count`` variable name indices; ``None`` reads the count first."""
    if count is None:
        count = iterator.next_unsigned()
    if count < 0:
        raise MalformedItemError(f"Negative variable count {count}")
    return [names.resolve(iterator.next_unsigned()) for _ in range(count)]


# ---------------------------------------------------------------------------
# Generated range fields
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RangeHeader:
    flags: int
    definition_source: int | None
    definition_item: int | None
    callsite: OriginalPosition | None

    @property
    def is_stack_frame(self) -> bool:
        return bool(self.flags & GeneratedFlag.IS_STACK_FRAME)

    @property
    def is_hidden(self) -> bool:
        return bool(self.flags & GeneratedFlag.IS_HIDDEN)


def write_range_header(
    tokens: VlqList,
    range_: GeneratedRange,
    definition: DefinitionRef | None,
    state: GeneratedState,
    *,
    per_source_definitions: bool = False,
) -> None:
    """``flags``, definition reference, callsite.

    With ``per_source_definitions`` the definition is a source delta plus an
    item index relative only within the same source; otherwise it is a single
    delta over item indices that are global across sources.
    """
    flags = 0
    if definition is not None:
        flags |= GeneratedFlag.HAS_DEFINITION
    if range_.callsite is not None:
        flags |= GeneratedFlag.HAS_CALLSITE
    if range_.is_stack_frame:
        flags |= GeneratedFlag.IS_STACK_FRAME
    if range_.is_hidden:
        flags |= GeneratedFlag.IS_HIDDEN
    tokens.unsigned(int(flags))

    if definition is not None:
        if per_source_definitions:
            source_delta = definition.source_index - state.definition_source
            tokens.signed(source_delta)
            tokens.signed(definition.item_index - (state.definition if source_delta == 0 else 0))
            state.definition_source = definition.source_index
        else:
            tokens.signed(definition.item_index - state.definition)
        state.definition = definition.item_index

    callsite = range_.callsite
    if callsite is not None:
        source_delta = callsite.source_index - state.callsite_source
        same_source = source_delta == 0
        line_delta_value = callsite.line - (state.callsite_line if same_source else 0)
        same_line = same_source and line_delta_value == 0
        tokens.signed(source_delta)
        tokens.signed(line_delta_value)
        tokens.signed(callsite.column - (state.callsite_column if same_line else 0))
        state.callsite_source = callsite.source_index
        state.callsite_line = callsite.line
        state.callsite_column = callsite.column


def read_range_header(
    iterator: TokenIterator,
    state: GeneratedState,
    *,
    per_source_definitions: bool = False,
) -> RangeHeader:
    flags = iterator.next_unsigned()
    definition_source = None
    definition_item = None
    if flags & GeneratedFlag.HAS_DEFINITION:
        if per_source_definitions:
            source_delta = iterator.next_signed()
            item = iterator.next_signed()
            state.definition = item + (state.definition if source_delta == 0 else 0)
            state.definition_source += source_delta
            definition_source = state.definition_source
        else:
            state.definition += iterator.next_signed()
        definition_item = state.definition

    callsite = None
    if flags & GeneratedFlag.HAS_CALLSITE:
        source_delta = iterator.next_signed()
        line_delta_value = iterator.next_signed()
        column = iterator.next_signed()
        same_source = source_delta == 0
        state.callsite_column = column + (state.callsite_column if same_source and line_delta_value == 0 else 0)
        state.callsite_line = line_delta_value + (state.callsite_line if same_source else 0)
        state.callsite_source += source_delta
        if state.callsite_source < 0 or state.callsite_line < 0 or state.callsite_column < 0:
            raise MalformedItemError(
                f"Decoded callsite ({state.callsite_source}, {state.callsite_line}, "
                f"{state.callsite_column}) is negative",
            )
        callsite = OriginalPosition(state.callsite_source, state.callsite_line, state.callsite_column)

    return RangeHeader(
        flags=flags,
        definition_source=definition_source,
        definition_item=definition_item,
        callsite=callsite,
    )


# ---------------------------------------------------------------------------
# Decoded nodes
# ---------------------------------------------------------------------------

def new_scope(start: Position, header: ScopeHeader, variables: list[str]) -> OriginalScope:
    """A freshly opened scope; ``end`` is fixed when its end item arrives."""
    return OriginalScope(
        start=start,
        end=start,
        kind=header.kind,
        name=header.name,
        is_stack_frame=header.is_stack_frame,
        variables=variables,
    )


def new_range(start: Position, header: RangeHeader, original_scope: OriginalScope | None) -> GeneratedRange:
    return GeneratedRange(
        start=start,
        end=start,
        original_scope=original_scope,
        is_stack_frame=header.is_stack_frame,
        is_hidden=header.is_hidden,
        callsite=header.callsite,
    )
