"""Tree walking shared by every framing strategy.

Encoding: ``walk_scope_info`` performs the pre-order walk of both trees and
drives a ``ScopeInfoBuilder``. A framing strategy is just another builder;
adding one never touches the walk. Cross-tree references are tracked in an
explicit ``{scope identity -> DefinitionRef}`` map, so the input tree is
never mutated.

Decoding: ``ScopeTreeAssembler`` and ``RangeTreeAssembler`` implement the
push/pop discipline that rebuilds nested trees from a flat item stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from scopemap.bindings import RawBinding, resolve_bindings
from scopemap.errors import (
    InvalidDefinitionReferenceError,
    InvalidScopeInfoError,
    MalformedItemError,
    UnbalancedRangeTreeError,
    UnbalancedScopeTreeError,
)
from scopemap.names import NameTable
from scopemap.types import GeneratedRange, OriginalScope, Position, ScopeInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DefinitionRef:
    """Where an original scope's start item was emitted.

    ``item_index`` is in the numbering of the builder that produced it
    (global across sources, or per source).
    """

    source_index: int
    item_index: int


class ScopeInfoBuilder(Protocol):
    """Capability interface a framing strategy implements to encode."""

    def begin_source(self, source_index: int) -> None: ...

    def start_original(self, scope: OriginalScope) -> DefinitionRef: ...

    def end_original(self, scope: OriginalScope) -> None: ...

    def start_generated(self, range_: GeneratedRange, definition: DefinitionRef | None) -> None: ...

    def end_generated(self, range_: GeneratedRange) -> None: ...

    def build(self) -> dict[str, Any]: ...


def _walk_original(
    scope: OriginalScope,
    builder: ScopeInfoBuilder,
    definitions: dict[int, DefinitionRef],
) -> None:
    definitions[id(scope)] = builder.start_original(scope)
    for child in scope.children:
        _walk_original(child, builder, definitions)
    builder.end_original(scope)


def _walk_generated(
    range_: GeneratedRange,
    builder: ScopeInfoBuilder,
    definitions: dict[int, DefinitionRef],
) -> None:
    definition = None
    if range_.original_scope is not None:
        definition = definitions.get(id(range_.original_scope))
        if definition is None:
            raise InvalidScopeInfoError(
                "Generated range references an original scope that is not part of the encoded ScopeInfo",
            )
    builder.start_generated(range_, definition)
    for child in range_.children:
        _walk_generated(child, builder, definitions)
    builder.end_generated(range_)


def walk_scope_info(info: ScopeInfo, builder: ScopeInfoBuilder) -> dict[str, Any]:
    """Drive ``builder`` over both trees; returns the fields it built.

    All original scope trees are emitted before any generated range, so
    every definition reference points backwards.
    """
    definitions: dict[int, DefinitionRef] = {}
    for source_index, root in enumerate(info.scopes):
        builder.begin_source(source_index)
        _walk_original(root, builder, definitions)
    for range_ in info.ranges:
        _walk_generated(range_, builder, definitions)
    return builder.build()


# ---------------------------------------------------------------------------
# Decode-side assembly
# ---------------------------------------------------------------------------

class ScopeTreeAssembler:
    """Rebuilds original scope trees from start/end items."""

    def __init__(self) -> None:
        self.roots: list[OriginalScope] = []
        self._stack: list[OriginalScope] = []
        self._by_item: dict[int, OriginalScope] = {}

    @property
    def depth(self) -> int:
        return len(self._stack)

    def open(self, scope: OriginalScope, item_index: int) -> None:
        self._stack.append(scope)
        self._by_item[item_index] = scope

    def close(self, end: Position) -> OriginalScope:
        """Pop the innermost open scope, attach ``end``, link it to its parent."""
        if not self._stack:
            raise UnbalancedScopeTreeError(
                'Scope items not nested properly: encountered "end" item without "start" item',
            )
        scope = self._stack.pop()
        scope.end = end
        if self._stack:
            parent = self._stack[-1]
            scope.parent = parent
            parent.children.append(scope)
        else:
            self.roots.append(scope)
        return scope

    def lookup(self, item_index: int) -> OriginalScope:
        scope = self._by_item.get(item_index)
        if scope is None:
            raise InvalidDefinitionReferenceError(f"Invalid original scope index {item_index}")
        return scope

    def finish(self) -> list[OriginalScope]:
        if self._stack:
            raise UnbalancedScopeTreeError(
                f"Malformed original scope encoding: {len(self._stack)} scope(s) never closed",
            )
        return self.roots


@dataclass(slots=True)
class _OpenRange:
    range_: GeneratedRange
    bindings: list[RawBinding] | None


class RangeTreeAssembler:
    """Rebuilds generated range trees; resolves bindings once ends are known."""

    def __init__(self, names: NameTable) -> None:
        self.roots: list[GeneratedRange] = []
        self._names = names
        self._stack: list[_OpenRange] = []

    @property
    def depth(self) -> int:
        return len(self._stack)

    def open(self, range_: GeneratedRange, bindings: list[RawBinding] | None = None) -> None:
        self._stack.append(_OpenRange(range_=range_, bindings=bindings))

    def attach_bindings(self, bindings: list[RawBinding]) -> None:
        """Bindings delivered by a follow-up item of the innermost open range."""
        if not self._stack:
            raise MalformedItemError("Bindings item without an open generated range")
        entry = self._stack[-1]
        if entry.bindings is not None:
            raise MalformedItemError("Generated range received a second bindings item")
        entry.bindings = bindings

    def close(self, end: Position) -> GeneratedRange:
        if not self._stack:
            raise UnbalancedRangeTreeError(
                'Range items not nested properly: encountered "end" item without "start" item',
            )
        entry = self._stack.pop()
        range_ = entry.range_
        range_.end = end
        if entry.bindings is not None:
            range_.values = resolve_bindings(entry.bindings, end, self._names)
        if self._stack:
            self._stack[-1].range_.children.append(range_)
        else:
            self.roots.append(range_)
        return range_

    def finish(self) -> list[GeneratedRange]:
        if self._stack:
            raise UnbalancedRangeTreeError(
                f"Malformed generated range encoding: {len(self._stack)} range(s) never closed",
            )
        logger.debug("Assembled %d top-level generated range(s)", len(self.roots))
        return self.roots
