"""ShieldPool error handling.

Exception hierarchy for the tree mirror, statements and ledger, plus the
retry policy used for recoverable (stale root) failures.
"""

from .exceptions import (
    CapacityExceededError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    IndexOutOfRangeError,
    InvalidProofError,
    LeafIndexMismatchError,
    NoteNotFoundError,
    NullifierReusedError,
    ShieldPoolError,
    StalePathError,
    StaleRootError,
    TreeDivergenceError,
    UnsatisfiableWitnessError,
    ValidationError,
    is_transient,
)
from .recovery import RetryPolicy

__all__ = [
    # Exceptions
    "ShieldPoolError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "ValidationError",
    "ConfigurationError",
    "CapacityExceededError",
    "LeafIndexMismatchError",
    "StaleRootError",
    "NullifierReusedError",
    "InvalidProofError",
    "IndexOutOfRangeError",
    "UnsatisfiableWitnessError",
    "StalePathError",
    "TreeDivergenceError",
    "NoteNotFoundError",
    "is_transient",
    # Recovery
    "RetryPolicy",
]
