#!/usr/bin/env python3
"""Compare scope encodings of source maps by size.

Every map is decoded with a reference codec, re-encoded with each chosen
codec (optionally verified to round-trip) and measured: raw and gzip size
of the scope fields, with relative deltas against the reference encoding.

Usage:
    python3 scripts/compare_scope_codecs.py maps/app.js.map maps/vendor.js.map \
      --all --verify --verbose

Structured JSON output goes to stdout (and to --output-json when given);
human messages go to stderr.
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson

from scopemap.codecs import available_codecs, get_codec
from scopemap.config import CodecConfig, load_codec_config
from scopemap.errors import ScopeCodecError
from scopemap.harness import scope_payload_size, verify_codec
from scopemap.io_utils import load_source_map, save_json
from scopemap.types import SourceMapJson


def dump_json(obj: Any) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


def log(msg: str) -> None:
    print(msg, file=sys.stderr)


def _with_own_names(source_map: SourceMapJson) -> SourceMapJson:
    """Copy whose ``names`` list encoding may extend without touching the input."""
    return {**source_map, "names": list(source_map.get("names", []))}


def compare_file(
    path: Path,
    codec_labels: list[str],
    *,
    reference_label: str,
    config: CodecConfig,
    verify: bool,
) -> dict[str, Any]:
    source_map = load_source_map(path)
    reference_codec = get_codec(reference_label, config)
    info = reference_codec.decode(source_map)
    base = scope_payload_size(source_map)

    rows: list[dict[str, Any]] = [
        {
            "codec": reference_codec.label,
            "reference": True,
            "raw_bytes": base.raw,
            "gzip_bytes": base.gzip,
            "delta": None,
        }
    ]
    for label in codec_labels:
        codec = get_codec(label, config)
        row: dict[str, Any] = {"codec": codec.label, "reference": False}
        try:
            if verify:
                encoded = verify_codec(codec, info, _with_own_names(source_map))
            else:
                encoded = codec.encode(info, _with_own_names(source_map))
        except ScopeCodecError as exc:
            log(f"  {codec.label}: FAILED ({exc})")
            row.update({"status": "error", "error": f"{type(exc).__name__}: {exc}"})
            rows.append(row)
            continue
        size = scope_payload_size(encoded)
        row.update(
            {
                "status": "verified" if verify else "ok",
                "raw_bytes": size.raw,
                "gzip_bytes": size.gzip,
                "delta": size.delta_against(base),
            }
        )
        rows.append(row)
        log(f"  {codec.label}: raw={size.raw} gzip={size.gzip}")

    return {
        "file": str(path),
        "source_count": len(info.scopes),
        "top_level_ranges": len(info.ranges),
        "rows": rows,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compare scope encodings of source maps.")
    parser.add_argument("files", nargs="+", help="Source map JSON files.")
    parser.add_argument(
        "--codec",
        action="append",
        default=[],
        choices=available_codecs(),
        help="Codec to compare (repeatable).",
    )
    parser.add_argument("--all", action="store_true", help="Compare every registered codec.")
    parser.add_argument(
        "--reference",
        default="proposal",
        choices=available_codecs(),
        help="Codec the input maps are encoded with (default: proposal).",
    )
    parser.add_argument("--verify", action="store_true", help="Verify every codec round-trips.")
    parser.add_argument("--config", default=None, help="Optional codec config JSON.")
    parser.add_argument("--output-json", default=None, help="Optional path to also write the report to.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = load_codec_config(Path(args.config)) if args.config else CodecConfig()
    codec_labels = available_codecs() if args.all else list(dict.fromkeys(args.codec))
    if not codec_labels:
        parser.error("choose at least one --codec, or --all")

    results: list[dict[str, Any]] = []
    failures = 0
    for raw_path in args.files:
        path = Path(raw_path)
        log(f"{path}:")
        try:
            result = compare_file(
                path,
                codec_labels,
                reference_label=args.reference,
                config=config,
                verify=args.verify,
            )
        except (OSError, ValueError) as exc:
            log(f"  skipped: {type(exc).__name__}: {exc}")
            results.append({"file": str(path), "error": f"{type(exc).__name__}: {exc}"})
            failures += 1
            continue
        failures += sum(1 for row in result["rows"] if row.get("status") == "error")
        results.append(result)

    report = {
        "generated_at": datetime.now(UTC).isoformat(),
        "reference": args.reference,
        "codecs": codec_labels,
        "verify": args.verify,
        "config": {"unsigned": config.unsigned, "validate": config.validate},
        "results": results,
    }
    dump_json(report)
    if args.output_json:
        save_json(report, Path(args.output_json))
        log(f"Report written to {args.output_json}")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
