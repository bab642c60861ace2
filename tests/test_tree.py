"""Tests for the tree walk and the decode-side assemblers."""
from __future__ import annotations

from typing import Any

import pytest

from scopemap.bindings import BindingSegment
from scopemap.errors import (
    InvalidDefinitionReferenceError,
    MalformedItemError,
    UnbalancedRangeTreeError,
    UnbalancedScopeTreeError,
)
from scopemap.names import NameTable
from scopemap.tree import DefinitionRef, RangeTreeAssembler, ScopeTreeAssembler, walk_scope_info
from scopemap.types import GeneratedRange, OriginalScope, Position, ScopeInfo


class RecordingBuilder:
    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []
        self._count = 0
        self._source = -1

    def begin_source(self, source_index: int) -> None:
        self._source = source_index
        self.events.append(("source", source_index))

    def start_original(self, scope: OriginalScope) -> DefinitionRef:
        self.events.append(("start", scope.name))
        ref = DefinitionRef(self._source, self._count)
        self._count += 1
        return ref

    def end_original(self, scope: OriginalScope) -> None:
        self.events.append(("end", scope.name))
        self._count += 1

    def start_generated(self, range_: GeneratedRange, definition: DefinitionRef | None) -> None:
        self.events.append(("range", definition))

    def end_generated(self, range_: GeneratedRange) -> None:
        self.events.append(("range-end",))

    def build(self) -> dict[str, Any]:
        return {"events": len(self.events)}


def _scope(name: str, start: int, end: int, children: list[OriginalScope] | None = None) -> OriginalScope:
    return OriginalScope(start=Position(start, 0), end=Position(end, 0), name=name, children=children or [])


class TestWalkScopeInfo:
    def test_preorder_then_ranges(self) -> None:
        inner = _scope("inner", 1, 2)
        other = _scope("other", 0, 3)
        info = ScopeInfo(
            scopes=[_scope("root", 0, 5, [inner]), other],
            ranges=[
                GeneratedRange(
                    start=Position(0, 0),
                    end=Position(9, 0),
                    original_scope=other,
                    children=[GeneratedRange(start=Position(1, 0), end=Position(2, 0), original_scope=inner)],
                )
            ],
        )
        builder = RecordingBuilder()
        assert walk_scope_info(info, builder) == {"events": 12}
        assert builder.events == [
            ("source", 0),
            ("start", "root"),
            ("start", "inner"),
            ("end", "inner"),
            ("end", "root"),
            ("source", 1),
            ("start", "other"),
            ("end", "other"),
            ("range", DefinitionRef(1, 4)),
            ("range", DefinitionRef(0, 1)),
            ("range-end",),
            ("range-end",),
        ]

    def test_input_is_not_mutated(self, nested_info: ScopeInfo) -> None:
        before = repr(nested_info)
        walk_scope_info(nested_info, RecordingBuilder())
        assert repr(nested_info) == before


class TestScopeTreeAssembler:
    def test_nesting_and_parents(self) -> None:
        assembler = ScopeTreeAssembler()
        root = OriginalScope(start=Position(0, 0), end=Position(0, 0))
        child = OriginalScope(start=Position(1, 0), end=Position(1, 0))
        assembler.open(root, 0)
        assembler.open(child, 1)
        assert assembler.depth == 2
        assembler.close(Position(2, 0))
        assembler.close(Position(3, 0))
        assert assembler.finish() == [root]
        assert root.children == [child]
        assert child.parent is root
        assert child.end == Position(2, 0)
        assert assembler.lookup(1) is child

    def test_close_without_open(self) -> None:
        with pytest.raises(UnbalancedScopeTreeError, match='"end" item without "start" item'):
            ScopeTreeAssembler().close(Position(0, 0))

    def test_unknown_item_index(self) -> None:
        with pytest.raises(InvalidDefinitionReferenceError, match="Invalid original scope index 3"):
            ScopeTreeAssembler().lookup(3)

    def test_unclosed_scope(self) -> None:
        assembler = ScopeTreeAssembler()
        assembler.open(OriginalScope(start=Position(0, 0), end=Position(0, 0)), 0)
        with pytest.raises(UnbalancedScopeTreeError):
            assembler.finish()


class TestRangeTreeAssembler:
    def _range(self) -> GeneratedRange:
        return GeneratedRange(start=Position(0, 0), end=Position(0, 0))

    def test_follow_up_bindings_resolve_on_close(self) -> None:
        assembler = RangeTreeAssembler(NameTable(["v"]))
        range_ = self._range()
        assembler.open(range_)
        assembler.attach_bindings([[BindingSegment(Position(0, 0), 0)]])
        assembler.close(Position(4, 0))
        assert assembler.finish() == [range_]
        assert range_.values == ["v"]

    def test_second_bindings_item(self) -> None:
        assembler = RangeTreeAssembler(NameTable())
        assembler.open(self._range(), [])
        with pytest.raises(MalformedItemError, match="second bindings item"):
            assembler.attach_bindings([])

    def test_bindings_without_open_range(self) -> None:
        with pytest.raises(MalformedItemError):
            RangeTreeAssembler(NameTable()).attach_bindings([])

    def test_close_without_open(self) -> None:
        with pytest.raises(UnbalancedRangeTreeError):
            RangeTreeAssembler(NameTable()).close(Position(0, 0))
