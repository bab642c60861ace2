"""Tests for binding entries and the binding range resolver."""
from __future__ import annotations

import pytest

from scopemap.bindings import (
    BindingSegment,
    read_binding,
    read_bindings,
    resolve_bindings,
    write_binding,
    write_bindings,
)
from scopemap.errors import BindingStartMismatchError, InvalidNameReferenceError, MalformedItemError
from scopemap.names import NameTable
from scopemap.types import BindingRange, GeneratedRange, Position
from scopemap.vlq import TokenIterator, VlqList

START = Position(0, 10)
END = Position(1, 200)
THREE_PIECES = [
    BindingRange(from_=Position(0, 10), to=Position(0, 50), value="a1"),
    BindingRange(from_=Position(0, 50), to=Position(1, 5), value=None),
    BindingRange(from_=Position(1, 5), to=Position(1, 200), value="a2"),
]


class TestWriteBinding:
    def test_three_pieces(self) -> None:
        names = NameTable()
        tokens = VlqList()
        write_binding(tokens, THREE_PIECES, START, names)
        # -3 pieces, "a1", then (0, 40, -1) and (1, 5, "a2")
        assert tokens.encode() == "HAAwCDCKC"
        assert names.names == ["a1", "a2"]

    def test_constant_and_unavailable(self) -> None:
        names = NameTable(["x"])
        tokens = VlqList()
        write_binding(tokens, "x", START, names)
        write_binding(tokens, None, START, names)
        assert tokens.encode() == "AD"

    def test_single_piece_collapses_to_its_value(self) -> None:
        names = NameTable()
        tokens = VlqList()
        write_binding(tokens, [BindingRange(from_=START, to=END, value="v")], START, names)
        assert tokens.encode() == "A"

    def test_first_piece_must_start_at_range_start(self) -> None:
        with pytest.raises(BindingStartMismatchError):
            write_binding(VlqList(), THREE_PIECES, Position(0, 11), NameTable())

    def test_counted_entries(self) -> None:
        range_ = GeneratedRange(start=START, end=END, values=["p", None])
        tokens = VlqList()
        write_bindings(tokens, range_, NameTable())
        assert tokens.encode() == "EAD"


class TestReadBinding:
    def test_segments_carry_absolute_positions(self) -> None:
        segments = read_binding(TokenIterator("HAAwCDCKC"), START)
        assert segments == [
            BindingSegment(Position(0, 10), 0),
            BindingSegment(Position(0, 50), -1),
            BindingSegment(Position(1, 5), 1),
        ]

    def test_constant_is_a_single_segment(self) -> None:
        assert read_binding(TokenIterator("D"), START) == [BindingSegment(START, -1)]

    def test_negative_piece_position_is_malformed(self) -> None:
        # two pieces, value 0, then a line delta of -1
        with pytest.raises(MalformedItemError):
            read_binding(TokenIterator("FADAA"), START)

    def test_read_until_item_ends(self) -> None:
        iterator = TokenIterator("ADC")
        bindings = read_bindings(iterator, START, until=lambda: not iterator.has_more())
        assert len(bindings) == 3

    def test_negative_count(self) -> None:
        with pytest.raises(MalformedItemError):
            read_bindings(TokenIterator(""), START, count=-1)


class TestResolveBindings:
    def test_three_pieces_reconstruct_exactly(self) -> None:
        names = NameTable(["a1", "a2"])
        raw = [read_binding(TokenIterator("HAAwCDCKC"), START)]
        [value] = resolve_bindings(raw, END, names)
        assert value == THREE_PIECES
        assert isinstance(value, list)
        for previous, piece in zip(value, value[1:]):
            assert previous.to == piece.from_
        assert value[-1].to == END

    def test_single_segment_is_a_bare_value(self) -> None:
        names = NameTable(["k"])
        assert resolve_bindings([[BindingSegment(START, 0)], [BindingSegment(START, -1)]], END, names) == ["k", None]

    def test_unknown_name_index(self) -> None:
        with pytest.raises(InvalidNameReferenceError):
            resolve_bindings([[BindingSegment(START, 3)]], END, NameTable())
