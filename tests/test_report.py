"""Tests for comparison reports (full/core/off)."""

import json

import pytest

from qatrack.api import compare
from qatrack.report import generate_markdown_report, run_compare


BASELINE = {
    "c1": {"status": "passed", "title": "Login", "readable_id": "TC-1"},
    "c2": {"status": "failed", "title": "Checkout", "readable_id": "TC-2"},
    "c3": {"status": "passed", "title": "Search", "readable_id": "TC-3"},
}
LATER = {
    "c1": {"status": "failed", "title": "Login", "readable_id": "TC-1"},
    "c2": {"status": "passed", "title": "Checkout", "readable_id": "TC-2"},
    "c3": {"status": "passed", "title": "Search", "readable_id": "TC-3"},
    "c4": {"status": "passed", "title": "Profile"},
}


def test_markdown_report_groups_and_summary():
    md = generate_markdown_report(compare(BASELINE, LATER), "run-41", "run-42")
    assert "# Test Run Comparison" in md
    assert "## [!] 1 Regression(s)" in md
    assert "**Pass Rate**: 66.7% -> 75.0% (+8.3%)" in md
    assert md.index("## Regressed") < md.index("## Improved") < md.index("## New") < md.index("## Unchanged")
    assert "## Removed" not in md
    assert "| `TC-1` | Login | passed | failed |" in md
    assert "| `c4` | Profile | N/A | passed |" in md


def test_markdown_report_no_regressions():
    md = generate_markdown_report(compare({"a": "failed"}, {"a": "passed"}))
    assert "## [OK] No Regressions" in md


def test_markdown_report_empty_runs():
    md = generate_markdown_report(compare({}, {}))
    assert "No test cases in either run." in md


def test_run_compare_full_content():
    exit_code, md, report_json = run_compare(BASELINE, LATER, return_content=True)
    assert exit_code == 1
    assert md.startswith("# Test Run Comparison")
    parsed = json.loads(report_json)
    assert parsed["run_status"] == "regressed"
    assert parsed["summary"]["regressed"] == 1
    assert [e["test_case_id"] for e in parsed["entries"]] == ["c1", "c2", "c4", "c3"]


def test_run_compare_core_report_mode():
    exit_code, md, report_json = run_compare(BASELINE, LATER, return_content=True, report_mode="core")
    assert exit_code == 1
    assert md == ""
    parsed = json.loads(report_json)
    assert "entries" not in parsed
    assert parsed["changed"] == {"regressed": ["c1"], "improved": ["c2"], "new": ["c4"]}


def test_run_compare_off_report_mode():
    assert run_compare({"a": "passed"}, {"a": "passed"}, report_mode="off") == (0, "", "")


def test_run_compare_writes_files(tmp_path):
    out = tmp_path / "out"
    exit_code, md_path, json_path = run_compare(BASELINE, LATER, output_dir=out)
    assert exit_code == 1
    assert (out / "comparison.md").read_text(encoding="utf-8").startswith("# Test Run Comparison")
    assert json.loads((out / "comparison.json").read_text(encoding="utf-8"))["run_status"] == "regressed"
    assert md_path == str(out / "comparison.md")
    assert json_path == str(out / "comparison.json")


def test_run_compare_requires_output_dir():
    with pytest.raises(ValueError):
        run_compare(BASELINE, LATER)


def test_run_compare_rejects_unknown_mode():
    with pytest.raises(ValueError):
        run_compare(BASELINE, LATER, return_content=True, report_mode="verbose")
