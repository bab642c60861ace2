"""Per-call codec configuration.

Configuration is an explicit value handed to a codec (and from there to its
builders and token iterators), never process-wide state, so concurrent
calls with different settings cannot interfere.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from scopemap.io_utils import load_json


DEFAULT_CODEC = "inline-flags"
UNSIGNED_SUFFIX = "-unsigned"


@dataclass(frozen=True, slots=True)
class CodecConfig:
    """Settings for one encode/decode call.

    unsigned: write fields the grammar declares unsigned as plain VLQs
        instead of zig-zag signed VLQs.
    validate: check structural invariants of the input before encoding.
    """

    unsigned: bool = False
    validate: bool = True

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> CodecConfig:
        known = {f.name for f in fields(cls)}
        settings = {key: value for key, value in payload.items() if key in known}
        for key, value in settings.items():
            if not isinstance(value, bool):
                raise ValueError(f"Codec config '{key}' must be true or false, got {value!r}")
        return cls(**settings)

    def with_unsigned(self, unsigned: bool = True) -> CodecConfig:
        return replace(self, unsigned=unsigned)


def load_codec_config(path: Path) -> CodecConfig:
    """Load a ``CodecConfig`` from a JSON object file."""
    payload = load_json(path)
    if not isinstance(payload, dict):
        raise ValueError(f"Codec config in {path} must be a JSON object")
    return CodecConfig.from_dict(payload)


def split_codec_label(label: str) -> tuple[str, bool]:
    """Split a registry label into (strategy name, forced unsigned)."""
    if label.endswith(UNSIGNED_SUFFIX):
        return label[: -len(UNSIGNED_SUFFIX)], True
    return label, False
