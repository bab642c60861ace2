"""Tests for encode-side invariant checks."""
from __future__ import annotations

import pytest

from scopemap.errors import BindingStartMismatchError, InvalidScopeInfoError
from scopemap.types import BindingRange, GeneratedRange, OriginalPosition, OriginalScope, Position, ScopeInfo
from scopemap.validation import validate_scope_info


def _scope(start: tuple[int, int], end: tuple[int, int], **kwargs) -> OriginalScope:
    return OriginalScope(start=Position(*start), end=Position(*end), **kwargs)


def _range(start: tuple[int, int], end: tuple[int, int], **kwargs) -> GeneratedRange:
    return GeneratedRange(start=Position(*start), end=Position(*end), **kwargs)


class TestValidateScopeInfo:
    def test_fixture_is_valid(self, nested_info: ScopeInfo) -> None:
        validate_scope_info(nested_info)

    def test_start_after_end(self) -> None:
        with pytest.raises(InvalidScopeInfoError, match="after end"):
            validate_scope_info(ScopeInfo(scopes=[_scope((2, 0), (1, 0))]))

    def test_child_outside_parent(self) -> None:
        root = _scope((0, 0), (5, 0), children=[_scope((1, 0), (6, 0))])
        with pytest.raises(InvalidScopeInfoError, match=r"scopes\[0\]\.children\[0\]"):
            validate_scope_info(ScopeInfo(scopes=[root]))

    def test_overlapping_siblings(self) -> None:
        root = _scope((0, 0), (9, 0), children=[_scope((1, 0), (4, 0)), _scope((3, 0), (5, 0))])
        with pytest.raises(InvalidScopeInfoError, match="preceding"):
            validate_scope_info(ScopeInfo(scopes=[root]))

    def test_overlapping_top_level_ranges(self) -> None:
        info = ScopeInfo(ranges=[_range((0, 0), (2, 0)), _range((1, 0), (3, 0))])
        with pytest.raises(InvalidScopeInfoError, match="overlaps"):
            validate_scope_info(info)

    def test_values_must_match_variables(self) -> None:
        scope = _scope((0, 0), (1, 0), variables=["a", "b"])
        info = ScopeInfo(scopes=[scope], ranges=[_range((0, 0), (1, 0), original_scope=scope, values=["x"])])
        with pytest.raises(InvalidScopeInfoError, match="1 value"):
            validate_scope_info(info)

    def test_callsite_source_must_exist(self) -> None:
        info = ScopeInfo(
            scopes=[_scope((0, 0), (1, 0))],
            ranges=[_range((0, 0), (1, 0), callsite=OriginalPosition(1, 0, 0))],
        )
        with pytest.raises(InvalidScopeInfoError, match="callsite source index 1"):
            validate_scope_info(info)


class TestBindingRanges:
    def _info(self, pieces: list[BindingRange]) -> ScopeInfo:
        scope = _scope((0, 0), (9, 0), variables=["v"])
        range_ = _range((0, 0), (2, 0), original_scope=scope, values=[pieces])
        return ScopeInfo(scopes=[scope], ranges=[range_])

    def test_first_piece_must_start_at_range_start(self) -> None:
        pieces = [BindingRange(from_=Position(0, 1), to=Position(2, 0), value="a")]
        with pytest.raises(BindingStartMismatchError):
            validate_scope_info(self._info(pieces))

    def test_gap_between_pieces(self) -> None:
        pieces = [
            BindingRange(from_=Position(0, 0), to=Position(1, 0), value="a"),
            BindingRange(from_=Position(1, 2), to=Position(2, 0), value="b"),
        ]
        with pytest.raises(InvalidScopeInfoError, match="previous piece ends"):
            validate_scope_info(self._info(pieces))

    def test_last_piece_must_end_at_range_end(self) -> None:
        pieces = [BindingRange(from_=Position(0, 0), to=Position(1, 0), value="a")]
        with pytest.raises(InvalidScopeInfoError, match="last binding ends"):
            validate_scope_info(self._info(pieces))

    def test_empty_piece_list(self) -> None:
        with pytest.raises(InvalidScopeInfoError, match="empty"):
            validate_scope_info(self._info([]))
