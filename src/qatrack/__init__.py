"""qatrack: test-run comparison + scheduled trigger tooling."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("qatrack")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
# Note: compare is exported from qatrack.api, not from root
# This avoids name conflicts with qatrack.kernel.compare
from qatrack.api import ComparisonResult, ValidationResult, validate_trigger
from qatrack.codes import ErrorCode
from qatrack.kernel.compare import InvalidArgumentError
from qatrack.kernel.schedule import InvalidRecurrenceError

__all__ = [
    "__version__",
    "validate_trigger",
    "ComparisonResult",
    "ValidationResult",
    "ErrorCode",
    "InvalidArgumentError",
    "InvalidRecurrenceError",
]
