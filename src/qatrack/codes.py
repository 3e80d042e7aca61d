"""Error and warning code constants for qatrack.

These constants prevent stringly-typed error codes and ensure
client code matches on the correct codes.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error and warning codes."""

    # Errors (blocking)
    INVALID_RECURRENCE = "INVALID_RECURRENCE"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INVALID_STRUCTURE = "INVALID_STRUCTURE"
    INVALID_TIMEZONE = "INVALID_TIMEZONE"
    MISSING_DAY_OF_WEEK = "MISSING_DAY_OF_WEEK"
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Dispatch failures (recorded on execution records)
    TRIGGER_NOT_FOUND = "TRIGGER_NOT_FOUND"
    TARGET_NOT_FOUND = "TARGET_NOT_FOUND"
    ENQUEUE_FAILED = "ENQUEUE_FAILED"
    STORE_FAILED = "STORE_FAILED"

    # Warnings (non-blocking)
    DAY_OF_WEEK_IGNORED = "DAY_OF_WEEK_IGNORED"
    TRIGGER_INACTIVE = "TRIGGER_INACTIVE"
    NO_SCHEDULE = "NO_SCHEDULE"
