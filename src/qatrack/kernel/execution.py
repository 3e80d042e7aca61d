"""Execution records: the append-only log of trigger firings."""

from collections import Counter
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from qatrack.codes import ErrorCode


class ExecutionSource(str, Enum):
    MANUAL = "manual"
    SCHEDULE = "schedule"
    WEBHOOK = "webhook"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


# pending -> failed covers targets that disappear before a job is queued
ALLOWED_TRANSITIONS: Dict[ExecutionStatus, FrozenSet[ExecutionStatus]] = {
    ExecutionStatus.PENDING: frozenset({ExecutionStatus.QUEUED, ExecutionStatus.FAILED}),
    ExecutionStatus.QUEUED: frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.FAILED}),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
}


class ExecutionTransitionError(ValueError):
    """Raised on a status change the lifecycle does not allow."""
    def __init__(self, message: str):
        self.code = ErrorCode.INVALID_TRANSITION
        self.message = message
        super().__init__(f"[{self.code.value}] {message}")


class ExecutionRecord(BaseModel):
    """One firing of a trigger (manual, scheduled, or webhook)."""
    id: str
    trigger_id: str
    project_id: Optional[str] = None
    fired_at: datetime
    source: ExecutionSource
    status: ExecutionStatus = ExecutionStatus.PENDING
    job_id: Optional[str] = None
    error_message: Optional[str] = None
    deployment_info: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid", frozen=True)


def transition(
    record: ExecutionRecord,
    status: ExecutionStatus,
    job_id: Optional[str] = None,
    error_message: Optional[str] = None,
) -> ExecutionRecord:
    """Return a copy of ``record`` moved to ``status``.

    The original record is left untouched. Terminal records cannot move.
    """
    status = ExecutionStatus(status)
    if status not in ALLOWED_TRANSITIONS[record.status]:
        raise ExecutionTransitionError(
            f"execution '{record.id}' cannot move from {record.status.value} to {status.value}"
        )
    update: Dict[str, Any] = {"status": status}
    if job_id is not None:
        update["job_id"] = job_id
    if error_message is not None:
        update["error_message"] = error_message
    return record.model_copy(update=update)


def recent_executions(
    records: Iterable[ExecutionRecord],
    trigger_id: Optional[str] = None,
    limit: Optional[int] = 50,
) -> List[ExecutionRecord]:
    """Newest-first history, optionally restricted to one trigger."""
    selected = [r for r in records if trigger_id is None or r.trigger_id == trigger_id]
    selected.sort(key=lambda r: (r.fired_at, r.id), reverse=True)
    if limit is not None:
        selected = selected[:limit]
    return selected


class ExecutionSummary(BaseModel):
    total: int
    by_status: Dict[str, int]
    last_fired_at: Optional[datetime] = None
    last_status: Optional[ExecutionStatus] = None


def summarize_executions(records: Iterable[ExecutionRecord]) -> ExecutionSummary:
    """Counts per status plus the most recent firing."""
    ordered = recent_executions(records, limit=None)
    counts = Counter(r.status.value for r in ordered)
    by_status = {s.value: counts.get(s.value, 0) for s in ExecutionStatus}
    latest = ordered[0] if ordered else None
    return ExecutionSummary(
        total=len(ordered),
        by_status=by_status,
        last_fired_at=latest.fired_at if latest else None,
        last_status=latest.status if latest else None,
    )
