"""Framing strategies and the codec registry.

Every strategy is available under its name and, with unsigned framing
forced, under ``<name>-unsigned``.
"""

from scopemap.codecs.base import SCOPE_FIELDS, ScopeCodec
from scopemap.codecs.combined import TagCombinedCodec
from scopemap.codecs.inline import InlineFlagsCodec, LengthPrefixedCodec
from scopemap.codecs.proposal import ProposalCodec
from scopemap.codecs.split_variables import TagVariablesCodec
from scopemap.codecs.tagged import TagSplitCodec
from scopemap.config import DEFAULT_CODEC, UNSIGNED_SUFFIX, CodecConfig, split_codec_label

STRATEGIES: dict[str, type[ScopeCodec]] = {
    codec.name: codec
    for codec in (
        InlineFlagsCodec,
        LengthPrefixedCodec,
        TagSplitCodec,
        TagCombinedCodec,
        TagVariablesCodec,
        ProposalCodec,
    )
}


def available_codecs() -> list[str]:
    """All registry labels, signed variants first."""
    return [*STRATEGIES, *(f"{name}{UNSIGNED_SUFFIX}" for name in STRATEGIES)]


def get_codec(label: str = DEFAULT_CODEC, config: CodecConfig | None = None) -> ScopeCodec:
    """Instantiate the codec registered under ``label``.

    A ``-unsigned`` label forces ``config.unsigned``; other settings of
    ``config`` are kept.
    """
    name, forced_unsigned = split_codec_label(label)
    codec_class = STRATEGIES.get(name)
    if codec_class is None:
        raise ValueError(f"Unknown codec '{label}'. Allowed: {available_codecs()}")
    config = config if config is not None else CodecConfig()
    if forced_unsigned:
        config = config.with_unsigned()
    return codec_class(config)


__all__ = [
    "SCOPE_FIELDS",
    "STRATEGIES",
    "InlineFlagsCodec",
    "LengthPrefixedCodec",
    "ProposalCodec",
    "ScopeCodec",
    "TagCombinedCodec",
    "TagSplitCodec",
    "TagVariablesCodec",
    "available_codecs",
    "get_codec",
]
