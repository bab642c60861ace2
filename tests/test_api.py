"""Tests for the encode/decode boundary operations."""
from __future__ import annotations

import copy

from scopemap.api import decode, encode
from scopemap.config import CodecConfig
from scopemap.types import ScopeInfo


class TestEncode:
    def test_returns_shallow_copy_with_host_fields(self, example_info: ScopeInfo) -> None:
        source_map = {"version": 3, "sources": ["a.js"], "mappings": "AAAA"}
        encoded = encode(example_info, source_map)
        assert encoded is not source_map
        assert encoded["version"] == 3
        assert encoded["sources"] is source_map["sources"]
        assert "originalScopes" not in source_map
        assert "names" not in source_map
        assert encoded["names"] == ["f", "function", "x", "a"]

    def test_names_list_extended_in_place(self, example_info: ScopeInfo) -> None:
        names = ["x", "keep"]
        encoded = encode(example_info, {"names": names})
        assert encoded["names"] is names
        assert names == ["x", "keep", "f", "function", "a"]

    def test_stale_scope_fields_are_removed(self, example_info: ScopeInfo) -> None:
        inline_map = encode(example_info, {})
        assert set(inline_map) >= {"originalScopes", "generatedRanges"}
        tagged = encode(example_info, inline_map, codec="tag-split")
        assert "scopes" in tagged
        assert "originalScopes" not in tagged
        assert "generatedRanges" not in tagged
        # the input map still carries its own encoding
        assert "originalScopes" in inline_map

    def test_unsigned_config(self, example_info: ScopeInfo) -> None:
        signed = encode(example_info, {})
        unsigned = encode(example_info, {}, config=CodecConfig(unsigned=True))
        assert unsigned["originalScopes"] == ["AADACBCVB"]
        assert unsigned["originalScopes"] != signed["originalScopes"]
        assert decode(unsigned, config=CodecConfig(unsigned=True)) == example_info


class TestDecode:
    def test_does_not_mutate_the_map(self, nested_info: ScopeInfo) -> None:
        encoded = encode(nested_info, {"version": 3}, codec="proposal")
        before = copy.deepcopy(encoded)
        decoded = decode(encoded, codec="proposal")
        assert encoded == before
        assert decoded == nested_info

    def test_decoded_names_are_not_shared(self, example_info: ScopeInfo) -> None:
        encoded = encode(example_info, {})
        decode(encoded)
        assert encoded["names"] == ["f", "function", "x", "a"]
