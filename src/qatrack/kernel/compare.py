"""Per-case comparison between a baseline test run and a compare run."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple, Union

from qatrack.codes import ErrorCode


class CaseStatus(str, Enum):
    """Known test-case statuses in a run."""
    PASSED = "passed"
    SKIPPED = "skipped"
    NOT_RUN = "not_run"
    BLOCKED = "blocked"
    FAILED = "failed"


class Classification(str, Enum):
    """Verdict for one test case across the two runs."""
    REGRESSED = "regressed"
    IMPROVED = "improved"
    NEW = "new"
    REMOVED = "removed"
    SAME = "same"


# Higher is healthier
STATUS_PRIORITY: Dict[str, int] = {
    CaseStatus.PASSED.value: 4,
    CaseStatus.SKIPPED.value: 3,
    CaseStatus.NOT_RUN.value: 2,
    CaseStatus.BLOCKED.value: 1,
    CaseStatus.FAILED.value: 0,
}
UNKNOWN_STATUS_PRIORITY = STATUS_PRIORITY[CaseStatus.NOT_RUN.value]

CLASSIFICATION_ORDER: Dict[Classification, int] = {
    Classification.REGRESSED: 0,
    Classification.IMPROVED: 1,
    Classification.NEW: 2,
    Classification.REMOVED: 3,
    Classification.SAME: 4,
}

UNKNOWN_TITLE = "Unknown"


class InvalidArgumentError(ValueError):
    """Raised when a comparison input is absent or malformed."""
    def __init__(self, message: str):
        self.code = ErrorCode.INVALID_ARGUMENT
        self.message = message
        super().__init__(f"[{self.code.value}] {message}")


@dataclass(frozen=True)
class CaseResult:
    """Status of one test case within a single run."""
    status: Optional[str]
    title: Optional[str] = None
    readable_id: Optional[str] = None


@dataclass(frozen=True)
class ComparisonEntry:
    """One row of a run comparison."""
    test_case_id: str
    title: str
    readable_id: str
    baseline_status: Optional[str]
    compare_status: Optional[str]
    classification: Classification


@dataclass(frozen=True)
class ComparisonStats:
    """Aggregate counts and pass rates for a comparison."""
    improved: int = 0
    regressed: int = 0
    same: int = 0
    new: int = 0
    removed: int = 0
    total: int = 0
    baseline_pass_rate: float = 0.0
    compare_pass_rate: float = 0.0
    pass_rate_delta: float = 0.0

    def count(self, classification: Classification) -> int:
        return getattr(self, classification.value)


@dataclass(frozen=True)
class RunComparison:
    """Sorted comparison entries plus their statistics."""
    entries: Tuple[ComparisonEntry, ...] = field(default_factory=tuple)
    stats: ComparisonStats = field(default_factory=ComparisonStats)


CaseResultLike = Union[CaseResult, Mapping, str, None]


def status_priority(status: Optional[str]) -> int:
    """Healthiness rank of a status; unknown or missing statuses rank as not_run."""
    if isinstance(status, CaseStatus):
        status = status.value
    return STATUS_PRIORITY.get(status, UNKNOWN_STATUS_PRIORITY)


def classify(baseline: Optional[CaseResult], compare: Optional[CaseResult]) -> Classification:
    """Classify one case from its (possibly absent) results in both runs.

    Only priorities are compared: two different statuses with the same
    priority are ``same``.
    """
    if baseline is None and compare is None:
        raise InvalidArgumentError("a case must be present in at least one run")
    if baseline is None:
        return Classification.NEW
    if compare is None:
        return Classification.REMOVED
    before = status_priority(baseline.status)
    after = status_priority(compare.status)
    if after > before:
        return Classification.IMPROVED
    if after < before:
        return Classification.REGRESSED
    return Classification.SAME


def _coerce_case(case_id: str, value: CaseResultLike) -> CaseResult:
    if isinstance(value, CaseResult):
        return value
    if value is None or isinstance(value, str):
        return CaseResult(status=value)
    if isinstance(value, Mapping):
        return CaseResult(
            status=value.get("status"),
            title=value.get("title"),
            readable_id=value.get("readable_id", value.get("readableId")),
        )
    raise InvalidArgumentError(f"unsupported result for case '{case_id}': {type(value).__name__}")


def _coerce_results(label: str, results: Optional[Mapping[str, CaseResultLike]]) -> Dict[str, CaseResult]:
    if results is None:
        raise InvalidArgumentError(f"{label} results are required")
    if not isinstance(results, Mapping):
        raise InvalidArgumentError(f"{label} results must be a mapping, got {type(results).__name__}")
    return {str(case_id): _coerce_case(str(case_id), value) for case_id, value in results.items()}


def _status_text(status: Optional[str]) -> Optional[str]:
    if isinstance(status, CaseStatus):
        return status.value
    return status or None


def pass_rate(results: Mapping[str, CaseResult]) -> float:
    """Percentage of cases whose status is passed (0 for an empty run)."""
    if not results:
        return 0.0
    passed = sum(1 for r in results.values() if _status_text(r.status) == CaseStatus.PASSED.value)
    return passed / len(results) * 100


def compare_runs(
    baseline: Optional[Mapping[str, CaseResultLike]],
    compare: Optional[Mapping[str, CaseResultLike]],
) -> RunComparison:
    """Diff two run result sets keyed by test-case id.

    Entries are ordered regressed, improved, new, removed, same; within a
    group they keep union order (baseline ids first, then ids only present
    in the compare run).

    Raises:
        InvalidArgumentError: if either input is None or not a mapping.
    """
    baseline_map = _coerce_results("baseline", baseline)
    compare_map = _coerce_results("compare", compare)

    case_ids: List[str] = list(baseline_map)
    case_ids.extend(case_id for case_id in compare_map if case_id not in baseline_map)

    entries: List[ComparisonEntry] = []
    for case_id in case_ids:
        before = baseline_map.get(case_id)
        after = compare_map.get(case_id)
        title = (after.title if after else None) or (before.title if before else None) or UNKNOWN_TITLE
        readable_id = (after.readable_id if after else None) or (before.readable_id if before else None) or ""
        entries.append(ComparisonEntry(
            test_case_id=case_id,
            title=title,
            readable_id=readable_id,
            baseline_status=_status_text(before.status) if before else None,
            compare_status=_status_text(after.status) if after else None,
            classification=classify(before, after),
        ))

    entries.sort(key=lambda e: CLASSIFICATION_ORDER[e.classification])

    counts = {c: 0 for c in Classification}
    for entry in entries:
        counts[entry.classification] += 1

    baseline_rate = pass_rate(baseline_map)
    compare_rate = pass_rate(compare_map)
    stats = ComparisonStats(
        improved=counts[Classification.IMPROVED],
        regressed=counts[Classification.REGRESSED],
        same=counts[Classification.SAME],
        new=counts[Classification.NEW],
        removed=counts[Classification.REMOVED],
        total=len(entries),
        baseline_pass_rate=baseline_rate,
        compare_pass_rate=compare_rate,
        pass_rate_delta=compare_rate - baseline_rate,
    )
    return RunComparison(entries=tuple(entries), stats=stats)
