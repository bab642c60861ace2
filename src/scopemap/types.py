"""Core types for scope and generated-range debug metadata.

Two independent trees describe one source map:

  OriginalScope    lexical scope in the authored source (one root per source)
  GeneratedRange   region of generated code, optionally tied to an OriginalScope
  BindingRange     piece of a variable's value expression inside a range
  ScopeInfo        both trees together; what codecs encode and decode

All positions are 0-based and ordered lexicographically (line, column).
Equality is structural: a range's ``original_scope`` compares by value, and
``OriginalScope.parent`` is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from scopemap.errors import InvalidDefinitionReferenceError


type SourceMapJson = dict[str, Any]
type BindingValue = str | None | list[BindingRange]


@dataclass(frozen=True, slots=True, order=True)
class Position:
    """0-based line/column position."""

    line: int
    column: int

    def __post_init__(self) -> None:
        if self.line < 0 or self.column < 0:
            raise ValueError(f"Position must be non-negative, got ({self.line}, {self.column})")


@dataclass(frozen=True, slots=True)
class OriginalPosition:
    """Position in a specific authored source (used for callsites)."""

    source_index: int
    line: int
    column: int

    def __post_init__(self) -> None:
        if self.source_index < 0:
            raise ValueError(f"source_index must be >= 0, got {self.source_index}")
        if self.line < 0 or self.column < 0:
            raise ValueError(f"OriginalPosition must be non-negative, got ({self.line}, {self.column})")


@dataclass(slots=True)
class OriginalScope:
    """A scope in the authored source.

    ``kind`` is free-form; JavaScript-like languages conventionally use
    'global', 'class', 'function' and 'block'. ``variables`` is ordered and
    positionally matched against ``GeneratedRange.values``.
    """

    start: Position
    end: Position
    kind: str | None = None
    name: str | None = None
    is_stack_frame: bool = False
    variables: list[str] = field(default_factory=list)
    children: list[OriginalScope] = field(default_factory=list)
    parent: OriginalScope | None = field(default=None, compare=False, repr=False)


@dataclass(slots=True)
class BindingRange:
    """Value expression of a variable over ``[from_, to)``; ``None`` = unavailable."""

    from_: Position
    to: Position
    value: str | None = None


@dataclass(slots=True)
class GeneratedRange:
    """A region of generated code.

    ``callsite`` is set when the range is the result of inlining
    ``original_scope``; it points at the call in the authored code.
    ``values`` has one entry per variable of ``original_scope``: a constant
    expression, ``None`` (unavailable in the whole range) or a gapless list
    of ``BindingRange`` pieces covering the range.
    """

    start: Position
    end: Position
    original_scope: OriginalScope | None = None
    is_stack_frame: bool = False
    is_hidden: bool = False
    callsite: OriginalPosition | None = None
    values: list[BindingValue] = field(default_factory=list)
    children: list[GeneratedRange] = field(default_factory=list)


@dataclass(slots=True)
class ScopeInfo:
    """Original scope trees (index = source index) plus generated ranges."""

    scopes: list[OriginalScope] = field(default_factory=list)
    ranges: list[GeneratedRange] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Traversal helpers
# ---------------------------------------------------------------------------

def iter_scopes_preorder(root: OriginalScope) -> list[OriginalScope]:
    """Scopes of one tree in document (pre-order) order."""
    ordered: list[OriginalScope] = []
    stack = [root]
    while stack:
        scope = stack.pop()
        ordered.append(scope)
        stack.extend(reversed(scope.children))
    return ordered


# ---------------------------------------------------------------------------
# Dict serialization (JSON-safe, deterministic)
# ---------------------------------------------------------------------------

def _position_to_list(position: Position) -> list[int]:
    return [position.line, position.column]


def _position_from_list(raw: Any) -> Position:
    line, column = raw
    return Position(int(line), int(column))


def _scope_to_dict(scope: OriginalScope) -> dict[str, Any]:
    row: dict[str, Any] = {
        "start": _position_to_list(scope.start),
        "end": _position_to_list(scope.end),
    }
    if scope.kind is not None:
        row["kind"] = scope.kind
    if scope.name is not None:
        row["name"] = scope.name
    if scope.is_stack_frame:
        row["isStackFrame"] = True
    if scope.variables:
        row["variables"] = list(scope.variables)
    if scope.children:
        row["children"] = [_scope_to_dict(child) for child in scope.children]
    return row


def _value_to_json(value: BindingValue) -> Any:
    if isinstance(value, list):
        return [
            {
                "from": _position_to_list(piece.from_),
                "to": _position_to_list(piece.to),
                "value": piece.value,
            }
            for piece in value
        ]
    return value


def scope_info_to_dict(info: ScopeInfo) -> dict[str, Any]:
    """Serialize both trees to a JSON-safe dict.

    A range's ``original_scope`` becomes ``{"source": i, "scope": n}`` where
    ``n`` is the pre-order index of the scope inside source tree ``i``.
    """

    addresses: dict[int, tuple[int, int]] = {}
    for source_index, root in enumerate(info.scopes):
        for scope_index, scope in enumerate(iter_scopes_preorder(root)):
            addresses[id(scope)] = (source_index, scope_index)

    def _range_to_dict(range_: GeneratedRange) -> dict[str, Any]:
        row: dict[str, Any] = {
            "start": _position_to_list(range_.start),
            "end": _position_to_list(range_.end),
        }
        if range_.original_scope is not None:
            address = addresses.get(id(range_.original_scope))
            if address is None:
                raise InvalidDefinitionReferenceError(
                    "Generated range references a scope that is not part of this ScopeInfo",
                )
            row["originalScope"] = {"source": address[0], "scope": address[1]}
        if range_.is_stack_frame:
            row["isStackFrame"] = True
        if range_.is_hidden:
            row["isHidden"] = True
        if range_.callsite is not None:
            row["callsite"] = {
                "sourceIndex": range_.callsite.source_index,
                "line": range_.callsite.line,
                "column": range_.callsite.column,
            }
        if range_.values:
            row["values"] = [_value_to_json(value) for value in range_.values]
        if range_.children:
            row["children"] = [_range_to_dict(child) for child in range_.children]
        return row

    return {
        "scopes": [_scope_to_dict(root) for root in info.scopes],
        "ranges": [_range_to_dict(range_) for range_ in info.ranges],
    }


def _scope_from_dict(row: dict[str, Any]) -> OriginalScope:
    scope = OriginalScope(
        start=_position_from_list(row["start"]),
        end=_position_from_list(row["end"]),
        kind=row.get("kind"),
        name=row.get("name"),
        is_stack_frame=bool(row.get("isStackFrame", False)),
        variables=[str(v) for v in row.get("variables", [])],
        children=[_scope_from_dict(child) for child in row.get("children", [])],
    )
    for child in scope.children:
        child.parent = scope
    return scope


def _value_from_json(raw: Any) -> BindingValue:
    if isinstance(raw, list):
        return [
            BindingRange(
                from_=_position_from_list(piece["from"]),
                to=_position_from_list(piece["to"]),
                value=piece.get("value"),
            )
            for piece in raw
        ]
    return raw


def scope_info_from_dict(payload: dict[str, Any]) -> ScopeInfo:
    """Inverse of ``scope_info_to_dict``."""

    scopes = [_scope_from_dict(row) for row in payload.get("scopes", [])]
    by_address = [iter_scopes_preorder(root) for root in scopes]

    def _range_from_dict(row: dict[str, Any]) -> GeneratedRange:
        original_scope = None
        ref = row.get("originalScope")
        if ref is not None:
            source_index, scope_index = int(ref["source"]), int(ref["scope"])
            if not 0 <= source_index < len(by_address) or not 0 <= scope_index < len(by_address[source_index]):
                raise InvalidDefinitionReferenceError(
                    f"originalScope reference {{source: {source_index}, scope: {scope_index}}} does not exist",
                )
            original_scope = by_address[source_index][scope_index]
        callsite = None
        raw_callsite = row.get("callsite")
        if raw_callsite is not None:
            callsite = OriginalPosition(
                source_index=int(raw_callsite["sourceIndex"]),
                line=int(raw_callsite["line"]),
                column=int(raw_callsite["column"]),
            )
        return GeneratedRange(
            start=_position_from_list(row["start"]),
            end=_position_from_list(row["end"]),
            original_scope=original_scope,
            is_stack_frame=bool(row.get("isStackFrame", False)),
            is_hidden=bool(row.get("isHidden", False)),
            callsite=callsite,
            values=[_value_from_json(value) for value in row.get("values", [])],
            children=[_range_from_dict(child) for child in row.get("children", [])],
        )

    return ScopeInfo(
        scopes=scopes,
        ranges=[_range_from_dict(row) for row in payload.get("ranges", [])],
    )
