"""Encode-side invariant checks.

A ``ScopeInfo`` that violates these invariants cannot round-trip, so
encoders refuse it up front instead of truncating or padding anything.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from scopemap.errors import BindingStartMismatchError, InvalidScopeInfoError
from scopemap.types import BindingRange, GeneratedRange, OriginalScope, Position, ScopeInfo, iter_scopes_preorder


class _Node(Protocol):
    start: Position
    end: Position

    @property
    def children(self) -> Sequence[_Node]: ...


def _check_tree(node: _Node, path: str) -> None:
    if node.start > node.end:
        raise InvalidScopeInfoError(f"{path}: start {node.start} is after end {node.end}")
    previous_end = node.start
    for idx, child in enumerate(node.children):
        child_path = f"{path}.children[{idx}]"
        if child.start < previous_end:
            raise InvalidScopeInfoError(
                f"{child_path}: starts at {child.start}, before the end of its preceding "
                f"sibling or the start of its parent ({previous_end})",
            )
        if child.end > node.end:
            raise InvalidScopeInfoError(f"{child_path}: ends at {child.end}, after its parent ({node.end})")
        _check_tree(child, child_path)
        previous_end = child.end


def check_binding_ranges(range_: GeneratedRange, pieces: list[BindingRange], path: str) -> None:
    """Binding pieces must be gapless and cover exactly ``[start, end]``."""
    if not pieces:
        raise InvalidScopeInfoError(f"{path}: binding range list is empty")
    if pieces[0].from_ != range_.start:
        raise BindingStartMismatchError(
            f"{path}: first binding starts at {pieces[0].from_}, range starts at {range_.start}",
        )
    for idx in range(1, len(pieces)):
        if pieces[idx - 1].to != pieces[idx].from_:
            raise InvalidScopeInfoError(
                f"{path}[{idx}]: starts at {pieces[idx].from_} but the previous piece ends at {pieces[idx - 1].to}",
            )
        if pieces[idx].from_ < pieces[idx - 1].from_:
            raise InvalidScopeInfoError(f"{path}[{idx}]: binding pieces are out of order")
    if pieces[-1].to != range_.end:
        raise InvalidScopeInfoError(
            f"{path}: last binding ends at {pieces[-1].to}, range ends at {range_.end}",
        )


def _check_range_payload(range_: GeneratedRange, source_count: int, known_scopes: set[int], path: str) -> None:
    scope: OriginalScope | None = range_.original_scope
    if scope is not None and id(scope) not in known_scopes:
        raise InvalidScopeInfoError(f"{path}: original scope is not part of the encoded ScopeInfo")
    if scope is not None and len(range_.values) != len(scope.variables):
        raise InvalidScopeInfoError(
            f"{path}: {len(range_.values)} value(s) for {len(scope.variables)} variable(s) of its original scope",
        )
    if range_.callsite is not None and range_.callsite.source_index >= source_count:
        raise InvalidScopeInfoError(
            f"{path}: callsite source index {range_.callsite.source_index} has no scope tree "
            f"({source_count} source(s))",
        )
    for idx, value in enumerate(range_.values):
        if isinstance(value, list):
            check_binding_ranges(range_, value, f"{path}.values[{idx}]")
    for idx, child in enumerate(range_.children):
        _check_range_payload(child, source_count, known_scopes, f"{path}.children[{idx}]")


def validate_scope_info(info: ScopeInfo) -> None:
    """Raise ``InvalidScopeInfoError`` (or ``BindingStartMismatchError``) on the first violation."""
    for idx, root in enumerate(info.scopes):
        _check_tree(root, f"scopes[{idx}]")
    known_scopes = {id(scope) for root in info.scopes for scope in iter_scopes_preorder(root)}
    previous_end: Position | None = None
    for idx, range_ in enumerate(info.ranges):
        path = f"ranges[{idx}]"
        if previous_end is not None and range_.start < previous_end:
            raise InvalidScopeInfoError(f"{path}: overlaps the preceding top-level range")
        _check_tree(range_, path)
        _check_range_payload(range_, len(info.scopes), known_scopes, path)
        previous_end = range_.end
