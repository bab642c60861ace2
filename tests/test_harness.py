"""Tests for round-trip verification and size measurement."""
from __future__ import annotations

import pytest

from scopemap.codecs import InlineFlagsCodec, get_codec
from scopemap.errors import RoundTripMismatchError
from scopemap.harness import PayloadSize, diff_scope_info, scope_payload_size, verify_codec
from scopemap.types import OriginalScope, Position, ScopeInfo, SourceMapJson


class _ForgetfulCodec(InlineFlagsCodec):
    """Decodes every map to empty scope info."""

    def decode(self, source_map: SourceMapJson) -> ScopeInfo:
        return ScopeInfo()


class TestVerifyCodec:
    def test_returns_encoded_map(self, nested_info: ScopeInfo) -> None:
        encoded = verify_codec(get_codec("tag-variables-unsigned"), nested_info, {"version": 3})
        assert "scopes" in encoded
        assert encoded["version"] == 3

    def test_mismatch_lists_differences(self, example_info: ScopeInfo) -> None:
        with pytest.raises(RoundTripMismatchError, match="inline-flags: round trip mismatch") as excinfo:
            verify_codec(_ForgetfulCodec(), example_info, {})
        assert excinfo.value.codec_name == "inline-flags"
        assert "scopes: expected 1 item(s), got 0" in excinfo.value.differences


class TestDiffScopeInfo:
    def _info(self, **kwargs) -> ScopeInfo:
        return ScopeInfo(scopes=[OriginalScope(start=Position(0, 0), end=Position(4, 0), **kwargs)])

    def test_equal(self, nested_info: ScopeInfo) -> None:
        assert diff_scope_info(nested_info, nested_info) == []

    def test_changed_value(self) -> None:
        assert diff_scope_info(self._info(name="f"), self._info(name="g")) == [
            "scopes[0].name: expected 'f', got 'g'",
        ]

    def test_missing_and_unexpected_keys(self) -> None:
        differences = diff_scope_info(self._info(kind="block"), self._info(name="g"))
        assert differences == ["scopes[0].kind: missing", "scopes[0].name: unexpected 'g'"]


class TestPayloadSize:
    def test_only_scope_fields_are_measured(self) -> None:
        size = scope_payload_size({"version": 3, "names": ["a"], "scopes": "A"})
        assert size.raw == len(b'{"scopes":"A"}')
        assert size.gzip > 0

    def test_sizes_are_deterministic(self, nested_info: ScopeInfo) -> None:
        encoded = get_codec("proposal").encode(nested_info, {})
        assert scope_payload_size(encoded) == scope_payload_size(dict(encoded))

    def test_delta_against(self) -> None:
        size = PayloadSize(raw=15, gzip=20)
        assert size.delta_against(PayloadSize(raw=20, gzip=0)) == {"raw": -0.25, "gzip": None}
