"""Trigger definitions and timezone-aware scheduling on top of the scheduler."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, field_validator

from qatrack.codes import ErrorCode
from qatrack.kernel.schedule import (
    DAY_NAMES,
    InvalidRecurrenceError,
    RecurrenceKind,
    TimeOfDay,
    compute_next_occurrence,
)


class TriggerType(str, Enum):
    SCHEDULE = "schedule"
    DEPLOYMENT = "deployment"


class TargetType(str, Enum):
    TEST = "test"
    SUITE = "suite"


def resolve_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising InvalidRecurrenceError if unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidRecurrenceError(f"unknown timezone {name!r}", code=ErrorCode.INVALID_TIMEZONE) from None


class Trigger(BaseModel):
    """A stored rule describing when to run a test or suite automatically.

    ``day_of_week`` is only range-checked when the schedule is computed, so a
    malformed weekly rule surfaces as InvalidRecurrenceError rather than a
    model validation error.
    """
    id: str
    project_id: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    trigger_type: TriggerType = TriggerType.SCHEDULE
    recurrence_kind: Optional[RecurrenceKind] = None
    time_of_day: str = "09:00"
    day_of_week: Optional[int] = None
    timezone: str = "UTC"
    deployment_environment: Optional[str] = None
    target_type: TargetType = TargetType.TEST
    target_id: str = ""
    agent_id: Optional[str] = None
    is_active: bool = True
    last_triggered_at: Optional[datetime] = None
    next_scheduled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("time_of_day")
    @classmethod
    def validate_time_of_day(cls, v: str) -> str:
        """Normalize to zero-padded 'HH:MM'."""
        return str(TimeOfDay.parse(v))

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        resolve_timezone(v)
        return v

    @property
    def is_scheduled(self) -> bool:
        return self.trigger_type is TriggerType.SCHEDULE


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        # Naive instants are taken as UTC
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def next_occurrence_for(trigger: Trigger, now: datetime) -> Optional[datetime]:
    """Next UTC instant at which ``trigger`` should fire, strictly after ``now``.

    Returns None for inactive triggers and for deployment triggers (they
    fire on webhooks, not on a clock).
    """
    if not trigger.is_active or not trigger.is_scheduled:
        return None
    if trigger.recurrence_kind is None:
        raise InvalidRecurrenceError(f"trigger '{trigger.id}' has no recurrence kind")

    zone = resolve_timezone(trigger.timezone)
    now_utc = as_utc(now)
    local_now = now_utc.astimezone(zone)

    local_next = compute_next_occurrence(
        trigger.recurrence_kind, trigger.time_of_day, trigger.day_of_week, local_now
    )
    result = local_next.astimezone(timezone.utc)
    # A repeated wall-clock hour (DST fall-back) can map back onto or before now
    while result <= now_utc:
        local_next = compute_next_occurrence(
            trigger.recurrence_kind, trigger.time_of_day, trigger.day_of_week, local_next
        )
        result = local_next.astimezone(timezone.utc)
    return result


def describe_schedule(trigger: Trigger) -> str:
    """Human-readable summary of when the trigger fires."""
    if trigger.trigger_type is TriggerType.DEPLOYMENT:
        return f"On {trigger.deployment_environment or 'any'} deployment"

    kind = trigger.recurrence_kind
    if kind is RecurrenceKind.HOURLY:
        return f"Every hour at :{trigger.time_of_day.split(':')[1]}"
    if kind is RecurrenceKind.DAILY:
        return f"Daily at {trigger.time_of_day} {trigger.timezone}"
    if kind is RecurrenceKind.WEEKLY:
        dow = trigger.day_of_week
        day = DAY_NAMES[dow] if isinstance(dow, int) and 0 <= dow <= 6 else "Monday"
        return f"Every {day} at {trigger.time_of_day} {trigger.timezone}"
    return "Unknown schedule"
