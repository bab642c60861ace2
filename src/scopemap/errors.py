"""Exception hierarchy for scope encoding and decoding.

Every error is fatal to the single encode/decode call that raised it. There
is no partial result: callers that want resilience catch ``ScopeCodecError``
at the call boundary and drop the document's scope data.

Hierarchy:
  ScopeCodecError                      base, a ``ValueError``
    MissingFieldsError                 map lacks ``names`` or the strategy fields
    MalformedVlqError                  bad base64 digit / unterminated number
    MalformedItemError                 unknown tag, overlong item, misplaced item
    UnbalancedTreeError
      UnbalancedScopeTreeError         original scope start/end nesting broken
      UnbalancedRangeTreeError         generated range start/end nesting broken
    InvalidDefinitionReferenceError    unknown item index or source index
    InvalidNameReferenceError          name index outside the name table
    BindingStartMismatchError          first binding segment not at range start
    InvalidScopeInfoError              encode-side invariant violation
    RoundTripMismatchError             decode(encode(x)) != x in the harness
"""

from __future__ import annotations


class ScopeCodecError(ValueError):
    """Base class for every scope codec failure."""


class MissingFieldsError(ScopeCodecError):
    """Raised when decode is called on a map without the expected fields."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Source map is missing required field(s): {', '.join(self.missing)}")


class MalformedVlqError(ScopeCodecError):
    """Raised on an alphabet violation or an unterminated VLQ number."""


class MalformedItemError(ScopeCodecError):
    """Raised when an item's framing (tag, length, placement) is invalid."""


class UnbalancedTreeError(ScopeCodecError):
    """Raised when start/end items do not nest properly."""


class UnbalancedScopeTreeError(UnbalancedTreeError):
    """Original scope items are not nested properly."""


class UnbalancedRangeTreeError(UnbalancedTreeError):
    """Generated range items are not nested properly."""


class InvalidDefinitionReferenceError(ScopeCodecError):
    """A generated range points at a scope or source that does not exist."""


class InvalidNameReferenceError(ScopeCodecError):
    """A name index lies outside the name table."""


class BindingStartMismatchError(ScopeCodecError):
    """The first binding segment does not start where its range starts."""


class InvalidScopeInfoError(ScopeCodecError):
    """The scope info handed to an encoder violates a structural invariant."""


class RoundTripMismatchError(ScopeCodecError):
    """Decoding an encoded map did not reproduce the input scope info."""

    def __init__(self, codec_name: str, differences: list[str]) -> None:
        self.codec_name = codec_name
        self.differences = list(differences)
        preview = "; ".join(self.differences[:5])
        more = f" (+{len(self.differences) - 5} more)" if len(self.differences) > 5 else ""
        super().__init__(f"{codec_name}: round trip mismatch: {preview}{more}")
