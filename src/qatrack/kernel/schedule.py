"""Next-occurrence computation for recurring trigger schedules.

Pure functions only: the caller supplies ``now`` (read once from its clock)
and gets back the first qualifying instant strictly after it. ``now`` is a
wall-clock value in the trigger's timezone; arithmetic is wall-clock
arithmetic (adding a day keeps the hour and minute).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple, Union

from qatrack.codes import ErrorCode


class RecurrenceKind(str, Enum):
    """How often a scheduled trigger repeats."""
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class InvalidRecurrenceError(ValueError):
    """Raised when a recurrence rule is missing fields or out of range."""
    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_RECURRENCE):
        self.code = code
        self.message = message
        super().__init__(f"[{code.value}] {message}")


@dataclass(frozen=True)
class TimeOfDay:
    """Hour and minute of a schedule, interpreted in the trigger's timezone."""
    hour: int
    minute: int

    def __post_init__(self) -> None:
        for label, value, upper in (("hour", self.hour, 23), ("minute", self.minute, 59)):
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= upper:
                raise InvalidRecurrenceError(f"{label} must be an integer in [0, {upper}], got {value!r}")

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        """Parse ``"HH:MM"`` (a trailing ``":SS"`` is accepted and dropped)."""
        parts = value.strip().split(":") if isinstance(value, str) else []
        if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
            raise InvalidRecurrenceError(f"time of day must look like 'HH:MM', got {value!r}")
        return cls(hour=int(parts[0]), minute=int(parts[1]))

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


TimeOfDayLike = Union[TimeOfDay, Tuple[int, int], str]


def coerce_time_of_day(value: TimeOfDayLike) -> TimeOfDay:
    """Accept a TimeOfDay, an (hour, minute) pair, or an 'HH:MM' string."""
    if isinstance(value, TimeOfDay):
        return value
    if isinstance(value, str):
        return TimeOfDay.parse(value)
    if isinstance(value, tuple) and len(value) == 2:
        return TimeOfDay(hour=value[0], minute=value[1])
    raise InvalidRecurrenceError(f"unsupported time of day: {value!r}")


def coerce_recurrence_kind(value: Union[RecurrenceKind, str, None]) -> RecurrenceKind:
    """Resolve a recurrence kind, rejecting unknown values instead of defaulting."""
    if isinstance(value, RecurrenceKind):
        return value
    try:
        return RecurrenceKind(value)
    except ValueError:
        allowed = ", ".join(k.value for k in RecurrenceKind)
        raise InvalidRecurrenceError(f"unknown recurrence kind {value!r} (expected one of: {allowed})") from None


def day_of_week(moment: datetime) -> int:
    """Day of week with Sunday = 0 (datetime.weekday() has Monday = 0)."""
    return (moment.weekday() + 1) % 7


def _check_day_of_week(value: Optional[int]) -> int:
    if value is None:
        raise InvalidRecurrenceError(
            "weekly recurrence requires day_of_week", code=ErrorCode.MISSING_DAY_OF_WEEK
        )
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
        raise InvalidRecurrenceError(f"day_of_week must be an integer in [0, 6], got {value!r}")
    return value


def compute_next_occurrence(
    kind: Union[RecurrenceKind, str],
    time_of_day: TimeOfDayLike,
    dow: Optional[int],
    now: datetime,
) -> datetime:
    """First occurrence of the rule strictly after ``now``.

    Args:
        kind: hourly, daily or weekly.
        time_of_day: schedule time; hourly rules only use the minute.
        dow: day of week (0 = Sunday); required for weekly, ignored otherwise.
        now: current wall-clock instant in the trigger's timezone.

    Raises:
        InvalidRecurrenceError: unknown kind, bad time of day, or a weekly
            rule without a valid day of week. Validation happens before any
            arithmetic.
    """
    kind = coerce_recurrence_kind(kind)
    tod = coerce_time_of_day(time_of_day)
    if kind is RecurrenceKind.WEEKLY:
        dow = _check_day_of_week(dow)

    candidate = now.replace(second=0, microsecond=0)

    if kind is RecurrenceKind.HOURLY:
        candidate = candidate.replace(minute=tod.minute)
        if candidate <= now:
            candidate += timedelta(hours=1)
        return candidate

    candidate = candidate.replace(hour=tod.hour, minute=tod.minute)

    if kind is RecurrenceKind.DAILY:
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    # Weekly: raw difference, pushed a week ahead when negative or already past today
    delta = dow - day_of_week(now)
    if delta < 0 or (delta == 0 and candidate <= now):
        delta += 7
    return candidate + timedelta(days=delta)
