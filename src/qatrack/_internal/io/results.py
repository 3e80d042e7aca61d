"""Loading run result sets from JSON files, dicts and store rows."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from qatrack.kernel.compare import CaseResult, InvalidArgumentError

logger = logging.getLogger(__name__)

ResultSource = Union[str, os.PathLike, Path, Mapping[str, Any], List[Dict[str, Any]]]


def _case_from_row(row: Mapping[str, Any]) -> CaseResult:
    # Rows from the test_run_cases table nest the case details under test_cases
    details = row.get("test_cases") or {}
    return CaseResult(
        status=row.get("status"),
        title=row.get("title", details.get("title")),
        readable_id=row.get("readable_id", details.get("readable_id")),
    )


def results_from_rows(rows: List[Mapping[str, Any]]) -> Dict[str, CaseResult]:
    """Index ``test_run_cases`` rows by test case id (last row wins)."""
    results: Dict[str, CaseResult] = {}
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping) or "test_case_id" not in row:
            raise InvalidArgumentError(f"row {index} has no test_case_id")
        case_id = str(row["test_case_id"])
        if case_id in results:
            logger.debug("duplicate row for test case %s; keeping the later one", case_id)
        results[case_id] = _case_from_row(row)
    return results


def results_from_mapping(data: Mapping[str, Any]) -> Dict[str, CaseResult]:
    """Accept ``{"cases": [...rows]}`` or ``{case_id: status | {status, title, readable_id}}``."""
    if "cases" in data and isinstance(data["cases"], list):
        return results_from_rows(data["cases"])
    results: Dict[str, CaseResult] = {}
    for case_id, value in data.items():
        if isinstance(value, Mapping):
            results[str(case_id)] = CaseResult(
                status=value.get("status"),
                title=value.get("title"),
                readable_id=value.get("readable_id", value.get("readableId")),
            )
        elif value is None or isinstance(value, str):
            results[str(case_id)] = CaseResult(status=value)
        else:
            raise InvalidArgumentError(f"unsupported result for case '{case_id}': {type(value).__name__}")
    return results


def load_results(source: ResultSource) -> Dict[str, CaseResult]:
    """Load a run result set from a path, a mapping, or a list of rows."""
    if source is None:
        raise InvalidArgumentError("run results are required")
    if isinstance(source, list):
        return results_from_rows(source)
    if isinstance(source, Mapping):
        return results_from_mapping(source)
    path = Path(source)
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, list):
        return results_from_rows(data)
    if isinstance(data, dict):
        return results_from_mapping(data)
    raise InvalidArgumentError(f"{path} must contain a JSON object or array")
