"""Public API for qatrack.

High-level functions that return complete, structured results.
Callers should use these instead of importing from _internal.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from qatrack.codes import ErrorCode
from qatrack.contracts import TriggerStore
from qatrack.kernel.compare import RunComparison, compare_runs
from qatrack.kernel.execution import ExecutionRecord, ExecutionSummary, recent_executions, summarize_executions
from qatrack.kernel.schedule import (
    InvalidRecurrenceError,
    RecurrenceKind,
    coerce_recurrence_kind,
    coerce_time_of_day,
    compute_next_occurrence,
)
from qatrack.kernel.trigger import Trigger, TriggerType, describe_schedule, next_occurrence_for
from qatrack._internal.io.results import ResultSource, load_results

TriggerSource = Union[str, os.PathLike, Path, Dict[str, Any], Trigger]


def _normalize_path(path: Union[str, os.PathLike, Path]) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


def _load_trigger_data(trigger: Union[str, os.PathLike, Path, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(trigger, dict):
        return trigger
    with open(_normalize_path(trigger), 'r', encoding='utf-8') as f:
        return json.load(f)


def load_trigger(trigger: TriggerSource) -> Trigger:
    """Load a trigger from a JSON file, a dict, or pass a Trigger through."""
    if isinstance(trigger, Trigger):
        return trigger
    return Trigger(**_load_trigger_data(trigger))


class CaseComparison(BaseModel):
    """Stable result model for one compared test case."""
    test_case_id: str
    title: str
    readable_id: str
    baseline_status: Optional[str] = None
    compare_status: Optional[str] = None
    classification: str  # regressed | improved | new | removed | same


class ComparisonSummary(BaseModel):
    improved: int
    regressed: int
    same: int
    new: int
    removed: int
    total: int
    baseline_pass_rate: float
    compare_pass_rate: float
    pass_rate_delta: float


class ComparisonResult(BaseModel):
    """Stable result model for a run comparison."""
    entries: List[CaseComparison]
    summary: ComparisonSummary

    @property
    def has_regressions(self) -> bool:
        return self.summary.regressed > 0


def _build_comparison_result(comparison: RunComparison) -> ComparisonResult:
    entries = [
        CaseComparison(
            test_case_id=e.test_case_id,
            title=e.title,
            readable_id=e.readable_id,
            baseline_status=e.baseline_status,
            compare_status=e.compare_status,
            classification=e.classification.value,
        )
        for e in comparison.entries
    ]
    s = comparison.stats
    summary = ComparisonSummary(
        improved=s.improved,
        regressed=s.regressed,
        same=s.same,
        new=s.new,
        removed=s.removed,
        total=s.total,
        baseline_pass_rate=s.baseline_pass_rate,
        compare_pass_rate=s.compare_pass_rate,
        pass_rate_delta=s.pass_rate_delta,
    )
    return ComparisonResult(entries=entries, summary=summary)


def compare(baseline: ResultSource, compare_to: ResultSource) -> ComparisonResult:
    """
    Compare a baseline run against a later run.

    Each run may be a path to JSON, a ``{case_id: status | {...}}`` mapping,
    or a list of ``test_run_cases`` rows.

    Raises:
        InvalidArgumentError: if either run is None or malformed.
    """
    return _build_comparison_result(compare_runs(load_results(baseline), load_results(compare_to)))


def next_occurrence(
    trigger: TriggerSource,
    now: Optional[datetime] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Optional[datetime]:
    """
    Next UTC instant at which the trigger fires, or None if it never will.

    ``now`` wins over ``clock``; with neither, the system clock is read once.
    """
    if now is None:
        from qatrack.dispatch import system_clock
        now = (clock or system_clock)()
    return next_occurrence_for(load_trigger(trigger), now)


def next_occurrence_from_rule(
    kind: Union[RecurrenceKind, str],
    time_of_day: str,
    day_of_week: Optional[int],
    now: datetime,
) -> datetime:
    """Thin wrapper over the kernel scheduler for wall-clock ``now`` values."""
    return compute_next_occurrence(kind, time_of_day, day_of_week, now)


class ValidationIssue(BaseModel):
    """A single validation issue (error or warning)."""
    code: str
    message: str
    field: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of a trigger preflight check."""
    ok: bool  # True if no errors (warnings don't block)
    errors: List[ValidationIssue]
    warnings: List[ValidationIssue]
    description: Optional[str] = None


_FIELD_CODES = {
    "timezone": ErrorCode.INVALID_TIMEZONE,
    "recurrence_kind": ErrorCode.INVALID_RECURRENCE,
    "time_of_day": ErrorCode.INVALID_RECURRENCE,
    "day_of_week": ErrorCode.INVALID_RECURRENCE,
}


def validate_trigger(trigger: TriggerSource) -> ValidationResult:
    """
    Read-only preflight for a trigger definition.

    Checks structure, timezone, and the recurrence rule exactly as the
    scheduler will see it. Does NOT compute against the clock or write
    anything.
    """
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    # 1. Structure (ERROR)
    try:
        trigger_obj = load_trigger(trigger)
    except ValidationError as e:
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"]) or None
            code = _FIELD_CODES.get(loc, ErrorCode.INVALID_STRUCTURE)
            errors.append(ValidationIssue(code=code.value, message=err["msg"], field=loc))
        return ValidationResult(ok=False, errors=_sorted(errors), warnings=warnings)
    except (OSError, TypeError, ValueError) as e:
        errors.append(ValidationIssue(
            code=ErrorCode.INVALID_STRUCTURE.value,
            message=f"Failed to load trigger: {e}",
        ))
        return ValidationResult(ok=False, errors=errors, warnings=warnings)

    # 2. Recurrence rule (ERROR for schedule triggers)
    if trigger_obj.trigger_type is TriggerType.SCHEDULE:
        if trigger_obj.recurrence_kind is None:
            errors.append(ValidationIssue(
                code=ErrorCode.INVALID_RECURRENCE.value,
                message="Schedule trigger has no recurrence kind",
                field="recurrence_kind",
            ))
        else:
            # Any fixed instant works: only validation matters here
            checks = (
                ("recurrence_kind", lambda: coerce_recurrence_kind(trigger_obj.recurrence_kind)),
                ("time_of_day", lambda: coerce_time_of_day(trigger_obj.time_of_day)),
                ("day_of_week", lambda: compute_next_occurrence(
                    trigger_obj.recurrence_kind,
                    trigger_obj.time_of_day,
                    trigger_obj.day_of_week,
                    datetime(2000, 1, 1),
                )),
            )
            for field_name, check in checks:
                try:
                    check()
                except InvalidRecurrenceError as e:
                    errors.append(ValidationIssue(code=e.code.value, message=e.message, field=field_name))
                    break
            if trigger_obj.recurrence_kind is not RecurrenceKind.WEEKLY and trigger_obj.day_of_week is not None:
                warnings.append(ValidationIssue(
                    code=ErrorCode.DAY_OF_WEEK_IGNORED.value,
                    message=f"day_of_week is ignored for {trigger_obj.recurrence_kind.value} schedules",
                    field="day_of_week",
                ))
    elif trigger_obj.recurrence_kind is not None:
        warnings.append(ValidationIssue(
            code=ErrorCode.NO_SCHEDULE.value,
            message="Deployment triggers fire on webhooks; the recurrence rule is ignored",
            field="recurrence_kind",
        ))

    # 3. Activity (WARNING)
    if not trigger_obj.is_active:
        warnings.append(ValidationIssue(
            code=ErrorCode.TRIGGER_INACTIVE.value,
            message=f"Trigger '{trigger_obj.id}' is paused and has no next occurrence",
        ))

    return ValidationResult(
        ok=len(errors) == 0,
        errors=_sorted(errors),
        warnings=_sorted(warnings),
        description=describe_schedule(trigger_obj),
    )


def _sorted(issues: List[ValidationIssue]) -> List[ValidationIssue]:
    return sorted(issues, key=lambda i: (i.code, i.field or "", i.message))


def execution_history(
    store: TriggerStore,
    trigger_id: str,
    limit: Optional[int] = 50,
) -> List[ExecutionRecord]:
    """Newest-first execution history of one trigger."""
    return recent_executions(store.list_executions(trigger_id), trigger_id=trigger_id, limit=limit)


def execution_summary(store: TriggerStore, trigger_id: Optional[str] = None) -> ExecutionSummary:
    """Status counts and last firing across a trigger's (or all) executions."""
    return summarize_executions(store.list_executions(trigger_id))
