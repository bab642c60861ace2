"""Tests for the compare_scope_codecs CLI."""
from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

from scopemap.codecs import available_codecs, get_codec
from scopemap.config import CodecConfig
from scopemap.io_utils import save_json
from scopemap.types import ScopeInfo
from scripts.compare_scope_codecs import compare_file


def _write_map(path: Path, info: ScopeInfo) -> Path:
    save_json(get_codec("proposal").encode(info, {"version": 3, "mappings": ""}), path)
    return path


class TestCompareFile:
    def test_rows_per_codec(self, tmp_path: Path, nested_info: ScopeInfo) -> None:
        path = _write_map(tmp_path / "app.js.map", nested_info)
        result = compare_file(
            path,
            ["inline-flags", "tag-combined-unsigned"],
            reference_label="proposal",
            config=CodecConfig(),
            verify=True,
        )
        assert result["source_count"] == 2
        assert result["top_level_ranges"] == 2
        assert [row["codec"] for row in result["rows"]] == ["proposal", "inline-flags", "tag-combined-unsigned"]
        assert result["rows"][0]["reference"] is True
        for row in result["rows"][1:]:
            assert row["status"] == "verified"
            assert row["raw_bytes"] > 0
            assert set(row["delta"]) == {"raw", "gzip"}

    def test_input_names_untouched(self, tmp_path: Path, nested_info: ScopeInfo) -> None:
        path = _write_map(tmp_path / "app.js.map", nested_info)
        before = path.read_bytes()
        compare_file(path, ["tag-split"], reference_label="proposal", config=CodecConfig(), verify=False)
        assert path.read_bytes() == before


def test_compare_scope_codecs_smoke(tmp_path: Path, nested_info: ScopeInfo) -> None:
    root = Path(__file__).resolve().parents[1]
    good = _write_map(tmp_path / "good.js.map", nested_info)
    broken = tmp_path / "broken.js.map"
    broken.write_text(json.dumps({"version": 3, "names": [], "originalScopes": ["!"], "generatedRanges": ""}))
    report_path = tmp_path / "out" / "report.json"

    env = os.environ.copy()
    env["PYTHONPATH"] = str(root / "src")
    proc = subprocess.run(
        [
            sys.executable,
            str(root / "scripts" / "compare_scope_codecs.py"),
            str(good),
            str(broken),
            "--all",
            "--verify",
            "--output-json",
            str(report_path),
        ],
        cwd=str(root),
        env=env,
        capture_output=True,
        text=True,
    )

    assert proc.returncode == 1
    payload = json.loads(proc.stdout)
    assert payload["reference"] == "proposal"
    assert payload["codecs"] == available_codecs()
    good_result, broken_result = payload["results"]
    assert len(good_result["rows"]) == len(available_codecs()) + 1
    assert all(row.get("status") != "error" for row in good_result["rows"])
    assert broken_result["error"].startswith("MalformedVlqError")
    assert "skipped" in proc.stderr
    assert json.loads(report_path.read_text()) == payload
