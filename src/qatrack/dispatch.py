"""Firing triggers: execution records, job queueing and rescheduling.

This is the orchestration layer around the pure scheduler. It talks to the
collaborators only through the TriggerStore and JobGateway ports.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from qatrack.codes import ErrorCode
from qatrack.config import Settings
from qatrack.contracts import JobGateway, TriggerStore
from qatrack.kernel.execution import (
    ExecutionRecord,
    ExecutionSource,
    ExecutionStatus,
    transition,
)
from qatrack.kernel.trigger import TargetType, Trigger, TriggerType, as_utc, next_occurrence_for

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


class DispatchError(Exception):
    """Raised when a trigger cannot be dispatched at all."""
    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code.value}] {message}")


@dataclass
class FireOutcome:
    """Result of one firing attempt."""
    trigger_id: str
    name: str
    status: str  # "success" | "failed" | "skipped"
    error_code: Optional[ErrorCode] = None
    execution: Optional[ExecutionRecord] = None
    jobs_created: int = 0
    job_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None
    next_scheduled_at: Optional[datetime] = None


_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


def make_run_id(prefix: str, now: datetime, order: Optional[int] = None) -> str:
    """Run id like ``SCHED-LX2K9P0A`` (epoch milliseconds in base 36)."""
    millis = int(now.timestamp() * 1000)
    run_id = f"{prefix}-{_base36(millis)}"
    if order is not None:
        run_id += f"-{order}"
    return run_id


def _prefix_for(source: ExecutionSource, settings: Settings) -> str:
    return {
        ExecutionSource.SCHEDULE: settings.scheduled_run_prefix,
        ExecutionSource.MANUAL: settings.manual_run_prefix,
        ExecutionSource.WEBHOOK: settings.webhook_run_prefix,
    }[source]


def schedule_trigger(trigger: Trigger, now: datetime) -> Trigger:
    """Recompute next_scheduled_at after a trigger is created or edited."""
    return trigger.model_copy(update={"next_scheduled_at": next_occurrence_for(trigger, now)})


def set_active(trigger: Trigger, active: bool, now: datetime) -> Trigger:
    """Activate or pause a trigger; pausing clears the next occurrence."""
    updated = trigger.model_copy(update={"is_active": active})
    if not active:
        return updated.model_copy(update={"next_scheduled_at": None})
    return schedule_trigger(updated, now)


def _fail(
    store: TriggerStore,
    execution: ExecutionRecord,
    trigger: Trigger,
    code: ErrorCode,
    message: str,
    next_scheduled_at: Optional[datetime],
) -> FireOutcome:
    failed = transition(execution, ExecutionStatus.FAILED, error_message=message)
    store.update_execution(failed)
    # A failed firing still consumes its occurrence
    store.save_trigger(trigger.model_copy(
        update={"last_triggered_at": execution.fired_at, "next_scheduled_at": next_scheduled_at}
    ))
    logger.error("trigger %s (%s) failed: %s", trigger.name, trigger.id, message)
    return FireOutcome(
        trigger_id=trigger.id,
        name=trigger.name,
        status="failed",
        error_code=code,
        execution=failed,
        error=message,
        next_scheduled_at=next_scheduled_at,
    )


def _queue_jobs(
    trigger: Trigger,
    store: TriggerStore,
    gateway: JobGateway,
    prefix: str,
    now: datetime,
) -> List[str]:
    """Queue the trigger's job(s), raising DispatchError when nothing can be queued."""
    if trigger.target_type is TargetType.TEST:
        try:
            test = store.get_test(trigger.target_id)
        except Exception as e:
            raise DispatchError(ErrorCode.TARGET_NOT_FOUND, f"Failed to get target test: {e}") from e
        if not test:
            raise DispatchError(ErrorCode.TARGET_NOT_FOUND, "Target test not found")
        try:
            return [gateway.enqueue_job(trigger, test, make_run_id(prefix, now))]
        except Exception as e:
            raise DispatchError(ErrorCode.ENQUEUE_FAILED, f"Failed to create job: {e}") from e

    try:
        members = store.list_suite_tests(trigger.target_id)
    except Exception as e:
        raise DispatchError(ErrorCode.TARGET_NOT_FOUND, f"Failed to get suite tests: {e}") from e
    job_ids: List[str] = []
    for member in members:
        test = member.get("test")
        if not test:
            continue
        run_id = make_run_id(prefix, now, order=member.get("execution_order"))
        try:
            job_ids.append(gateway.enqueue_job(trigger, test, run_id))
        except Exception as e:
            # One member failing does not fail the suite
            logger.warning("could not queue %s for trigger %s: %s", test.get("id"), trigger.id, e)
    return job_ids


def fire_trigger(
    trigger: Trigger,
    store: TriggerStore,
    gateway: JobGateway,
    source: ExecutionSource,
    now: datetime,
    settings: Optional[Settings] = None,
    deployment_info: Optional[Dict[str, Any]] = None,
) -> FireOutcome:
    """Record one firing of ``trigger`` and queue its job(s).

    Exactly one execution record is created. A single test target queues one
    job; a suite queues one job per member test, in execution order. For
    scheduled firings the next occurrence is computed with the scheduler.
    """
    settings = settings or Settings()
    source = ExecutionSource(source)
    # Reschedule first so a bad recurrence fails before anything is recorded
    next_scheduled_at = trigger.next_scheduled_at
    if source is ExecutionSource.SCHEDULE:
        next_scheduled_at = next_occurrence_for(trigger, now)

    execution = ExecutionRecord(
        id=store.new_id(),
        trigger_id=trigger.id,
        project_id=trigger.project_id,
        fired_at=now,
        source=source,
        deployment_info=deployment_info,
    )
    store.add_execution(execution)

    # From here on the record must end queued or failed
    try:
        job_ids = _queue_jobs(trigger, store, gateway, _prefix_for(source, settings), now)
    except DispatchError as e:
        return _fail(store, execution, trigger, e.code, e.message, next_scheduled_at)

    try:
        queued = transition(
            execution,
            ExecutionStatus.QUEUED,
            job_id=job_ids[0] if trigger.target_type is TargetType.TEST else None,
        )
        store.update_execution(queued)

        updated = trigger.model_copy(update={"last_triggered_at": now, "next_scheduled_at": next_scheduled_at})
        store.save_trigger(updated)
    except Exception as e:
        return _fail(
            store, execution, trigger, ErrorCode.STORE_FAILED, f"Failed to record execution: {e}", next_scheduled_at
        )

    logger.info(
        "trigger %s (%s) fired from %s, %d job(s) queued",
        trigger.name, trigger.id, source.value, len(job_ids),
    )
    return FireOutcome(
        trigger_id=trigger.id,
        name=trigger.name,
        status="success",
        execution=queued,
        jobs_created=len(job_ids),
        job_ids=job_ids,
        next_scheduled_at=updated.next_scheduled_at,
    )


def fire_manual(
    trigger_id: str,
    store: TriggerStore,
    gateway: JobGateway,
    now: datetime,
    settings: Optional[Settings] = None,
) -> FireOutcome:
    """Run a trigger on demand; the schedule is left as it is."""
    trigger = store.get_trigger(trigger_id)
    if trigger is None:
        raise DispatchError(ErrorCode.TRIGGER_NOT_FOUND, f"trigger '{trigger_id}' not found")
    return fire_trigger(trigger, store, gateway, ExecutionSource.MANUAL, now, settings)


def fire_webhook(
    trigger: Trigger,
    store: TriggerStore,
    gateway: JobGateway,
    now: datetime,
    environment: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
    settings: Optional[Settings] = None,
) -> FireOutcome:
    """Fire a deployment trigger from an incoming webhook.

    A webhook reporting a different environment than the trigger's is
    skipped without creating an execution record, as is a webhook for a
    paused trigger. Caller authentication is handled outside this module.
    """
    if not trigger.is_active:
        logger.info("webhook for trigger %s skipped: trigger is paused", trigger.id)
        return FireOutcome(
            trigger_id=trigger.id,
            name=trigger.name,
            status="skipped",
            error_code=ErrorCode.TRIGGER_INACTIVE,
            error="Trigger is not active",
        )
    payload = payload or {}
    requested = environment or payload.get("environment")
    if (
        trigger.trigger_type is TriggerType.DEPLOYMENT
        and trigger.deployment_environment
        and requested
        and requested != trigger.deployment_environment
    ):
        logger.info(
            "webhook for trigger %s skipped: expected %s, got %s",
            trigger.id, trigger.deployment_environment, requested,
        )
        return FireOutcome(
            trigger_id=trigger.id,
            name=trigger.name,
            status="skipped",
            error=f"Environment mismatch: expected {trigger.deployment_environment}, received {requested}",
        )
    return fire_trigger(
        trigger, store, gateway, ExecutionSource.WEBHOOK, now, settings, deployment_info=payload or None
    )


def run_due_triggers(
    store: TriggerStore,
    gateway: JobGateway,
    clock: Clock = system_clock,
    settings: Optional[Settings] = None,
) -> List[FireOutcome]:
    """Fire every due schedule trigger once.

    The clock is read once; all triggers in the pass see the same ``now``.
    A trigger that raises is reported as failed and the pass continues.
    """
    now = clock()
    due = sorted(store.list_due_triggers(now), key=lambda t: (as_utc(t.next_scheduled_at), t.id))
    logger.info("found %d trigger(s) due at %s", len(due), now.isoformat())

    outcomes: List[FireOutcome] = []
    for trigger in due:
        try:
            outcomes.append(fire_trigger(trigger, store, gateway, ExecutionSource.SCHEDULE, now, settings))
        except Exception as e:
            logger.exception("error executing trigger %s", trigger.id)
            outcomes.append(FireOutcome(trigger_id=trigger.id, name=trigger.name, status="failed", error=str(e)))
    return outcomes
