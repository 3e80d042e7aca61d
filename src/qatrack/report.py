"""Compare command: wrapper around the run differ with report generation."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

from qatrack.api import CaseComparison, ComparisonResult, compare
from qatrack._internal.io.results import ResultSource

CLASSIFICATION_HEADINGS = {
    "regressed": "Regressed",
    "improved": "Improved",
    "new": "New",
    "removed": "Removed",
    "same": "Unchanged",
}


def group_entries(entries: List[CaseComparison]) -> Dict[str, List[CaseComparison]]:
    """Group comparison entries by classification, keeping entry order."""
    grouped: Dict[str, List[CaseComparison]] = {}
    for entry in entries:
        grouped.setdefault(entry.classification, []).append(entry)
    return grouped


def _status_cell(status: Optional[str]) -> str:
    return status if status else "N/A"


def _format_delta(delta: float) -> str:
    sign = "+" if delta > 0 else ""
    return f"{sign}{delta:.1f}%"


def generate_markdown_report(
    result: ComparisonResult,
    baseline_label: str = "Baseline",
    compare_label: str = "Compare",
) -> str:
    """Generate markdown comparison report."""
    s = result.summary
    lines = []

    lines.append("# Test Run Comparison")
    lines.append("")
    lines.append(f"Generated: {datetime.now(timezone.utc).isoformat()}")
    lines.append("")
    lines.append(f"- **{baseline_label}** vs **{compare_label}**")
    lines.append("")

    if s.regressed:
        lines.append(f"## [!] {s.regressed} Regression(s)")
    else:
        lines.append("## [OK] No Regressions")
    lines.append("")

    lines.append("### Summary")
    lines.append("")
    lines.append(f"- **Pass Rate**: {s.baseline_pass_rate:.1f}% -> {s.compare_pass_rate:.1f}% ({_format_delta(s.pass_rate_delta)})")
    lines.append(f"- **Improved**: {s.improved}")
    lines.append(f"- **Regressed**: {s.regressed}")
    lines.append(f"- **Unchanged**: {s.same}")
    lines.append(f"- **New**: {s.new}")
    lines.append(f"- **Removed**: {s.removed}")
    lines.append(f"- **Total Cases**: {s.total}")
    lines.append("")

    if not result.entries:
        lines.append("No test cases in either run.")
        lines.append("")
        return "\n".join(lines)

    grouped = group_entries(result.entries)
    for classification, heading in CLASSIFICATION_HEADINGS.items():
        entries = grouped.get(classification)
        if not entries:
            continue
        lines.append(f"## {heading}")
        lines.append("")
        lines.append(f"| ID | Title | {baseline_label} | {compare_label} |")
        lines.append("|----|-------|----------|---------|")
        for entry in entries:
            case_ref = entry.readable_id or entry.test_case_id
            lines.append(
                f"| `{case_ref}` | {entry.title} | {_status_cell(entry.baseline_status)} "
                f"| {_status_cell(entry.compare_status)} |"
            )
        lines.append("")

    return "\n".join(lines)


def generate_json_report(result: ComparisonResult) -> Dict:
    """Generate JSON comparison report."""
    return {
        "run_status": "regressed" if result.has_regressions else "ok",
        "summary": result.summary.model_dump(),
        "entries": [entry.model_dump() for entry in result.entries],
    }


def generate_core_json_report(result: ComparisonResult) -> Dict:
    """Generate a minimal JSON report (summary plus ids of changed cases)."""
    changed = group_entries([e for e in result.entries if e.classification != "same"])
    return {
        "run_status": "regressed" if result.has_regressions else "ok",
        "summary": result.summary.model_dump(),
        "changed": {k: [e.test_case_id for e in v] for k, v in changed.items()},
    }


def run_compare(
    baseline: ResultSource,
    compare_to: ResultSource,
    output_dir: Optional[Path] = None,
    return_content: bool = False,
    report_mode: Literal["full", "core", "off"] = "full",
    baseline_label: str = "Baseline",
    compare_label: str = "Compare",
) -> Tuple[int, str, str]:
    """
    Run a comparison and generate reports.

    This is a thin wrapper over qatrack.api.compare() that generates file outputs.

    Returns:
        Tuple of (exit_code, md, json): file paths, or contents when
        return_content is True. Exit codes: 0 = no regressions, 1 = regressions.
    """
    if report_mode not in ("full", "core", "off"):
        raise ValueError("report_mode must be 'full', 'core', or 'off'")

    result = compare(baseline, compare_to)
    exit_code = 1 if result.has_regressions else 0

    if report_mode == "off":
        return exit_code, "", ""

    if report_mode == "core":
        json_content_str = json.dumps(generate_core_json_report(result), indent=2, ensure_ascii=False)
        if return_content:
            return exit_code, "", json_content_str
        if output_dir is None:
            raise ValueError("output_dir must be specified when return_content is False")
        output_dir.mkdir(parents=True, exist_ok=True)
        json_path = output_dir / "comparison.json"
        json_path.write_text(json_content_str, encoding="utf-8")
        return exit_code, "", str(json_path)

    md_content = generate_markdown_report(result, baseline_label, compare_label)
    json_content_str = json.dumps(generate_json_report(result), indent=2, ensure_ascii=False)

    if return_content:
        return exit_code, md_content, json_content_str

    if output_dir is None:
        raise ValueError("output_dir must be specified when return_content is False")

    output_dir.mkdir(parents=True, exist_ok=True)
    md_path = output_dir / "comparison.md"
    json_path = output_dir / "comparison.json"
    md_path.write_text(md_content, encoding="utf-8")
    json_path.write_text(json_content_str, encoding="utf-8")

    return exit_code, str(md_path), str(json_path)
