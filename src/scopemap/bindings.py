"""Variable bindings: encoding, decoding and range resolution.

Per variable one signed token ``v``:

  v >= -1  constant expression name index (-1: unavailable in the whole range)
  v <  -1  ``-v`` pieces; the first value index follows, then one
           ``(lineDelta, columnDelta, nameIndex)`` triple per further piece,
           relative to the previous piece's ``from`` (the column only when
           the line is unchanged)

Only ``from`` positions are stored. ``to`` is reconstructed as the next
piece's ``from``, or the owning range's end for the last piece.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from itertools import pairwise

from scopemap.errors import BindingStartMismatchError, MalformedItemError
from scopemap.names import NameTable
from scopemap.types import BindingRange, BindingValue, GeneratedRange, Position
from scopemap.vlq import TokenIterator, VlqList


@dataclass(frozen=True, slots=True)
class BindingSegment:
    """Decoded piece before resolution: absolute ``from`` and a name index."""

    from_: Position
    name_index: int


type RawBinding = list[BindingSegment]


def write_binding(tokens: VlqList, value: BindingValue, start: Position, names: NameTable) -> None:
    """Emit one variable's binding entry.

    A single-piece list collapses to its bare value; the one-piece marker
    ``-1`` already means "unavailable".
    """
    if isinstance(value, list):
        if not value:
            raise MalformedItemError("Cannot encode an empty binding range list")
        if value[0].from_ != start:
            raise BindingStartMismatchError(
                f"First binding starts at {value[0].from_} but the range starts at {start}",
            )
        if len(value) == 1:
            value = value[0].value
    if not isinstance(value, list):
        tokens.signed(names.optional_index(value))
        return

    tokens.signed(-len(value))
    tokens.signed(names.optional_index(value[0].value))
    for previous, piece in pairwise(value):
        line_delta = piece.from_.line - previous.from_.line
        column_delta = piece.from_.column - (previous.from_.column if line_delta == 0 else 0)
        tokens.signed(line_delta)
        tokens.signed(column_delta)
        tokens.signed(names.optional_index(piece.value))


def write_bindings(tokens: VlqList, range_: GeneratedRange, names: NameTable, *, with_count: bool = True) -> None:
    if with_count:
        tokens.unsigned(len(range_.values))
    for value in range_.values:
        write_binding(tokens, value, range_.start, names)


def read_binding(iterator: TokenIterator, start: Position) -> RawBinding:
    head = iterator.next_signed()
    if head >= -1:
        return [BindingSegment(start, head)]

    segments = [BindingSegment(start, iterator.next_signed())]
    for _ in range(-head - 1):
        line_delta = iterator.next_signed()
        column_delta = iterator.next_signed()
        name_index = iterator.next_signed()
        previous = segments[-1].from_
        line = previous.line + line_delta
        column = column_delta + (previous.column if line_delta == 0 else 0)
        if line < 0 or column < 0:
            raise MalformedItemError(f"Binding piece position ({line}, {column}) is negative")
        segments.append(BindingSegment(Position(line, column), name_index))
    return segments


def read_bindings(
    iterator: TokenIterator,
    start: Position,
    *,
    count: int | None = None,
    until: Callable[[], bool] | None = None,
) -> list[RawBinding]:
    """Read ``count`` entries, or entries until ``until()`` turns true."""
    bindings: list[RawBinding] = []
    if count is not None:
        if count < 0:
            raise MalformedItemError(f"Negative binding count {count}")
        for _ in range(count):
            bindings.append(read_binding(iterator, start))
        return bindings
    if until is None:
        raise ValueError("read_bindings needs either count or until")
    while not until():
        bindings.append(read_binding(iterator, start))
    return bindings


def resolve_bindings(raw: list[RawBinding], end: Position, names: NameTable) -> list[BindingValue]:
    """Expand decoded segments into values once the range end is known.

    One segment collapses to a bare constant (or None); several become
    ``BindingRange`` pieces whose ``to`` is the next piece's ``from``.
    """
    values: list[BindingValue] = []
    for segments in raw:
        if len(segments) == 1:
            values.append(names.resolve_optional(segments[0].name_index))
            continue
        pieces = [
            BindingRange(from_=segment.from_, to=segment.from_, value=names.resolve_optional(segment.name_index))
            for segment in segments
        ]
        for previous, piece in pairwise(pieces):
            previous.to = piece.from_
        pieces[-1].to = end
        values.append(pieces)
    return values
