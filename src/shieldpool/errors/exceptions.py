"""Exception hierarchy for ShieldPool.

This module defines the error taxonomy shared by the Merkle tree mirror, the
statement builders and the ledger state machine. Every error carries a
category, a severity and a ``retryable`` flag so callers can tell a transient
condition (refetch the root and rebuild the proof) from a permanent one.
"""

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    CRYPTOGRAPHIC = "cryptographic"
    CAPACITY = "capacity"
    WITNESS = "witness"
    LEDGER = "ledger"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "metadata": self.metadata,
        }


class ShieldPoolError(Exception):
    """Base exception for all ShieldPool errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        retryable: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
        self.retryable = retryable
        self.metadata = metadata or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        if self.category != ErrorCategory.SYSTEM:
            parts.append(f"Category: {self.category.value}")

        if self.retryable:
            parts.append("Retryable: Yes")

        return " | ".join(parts)


class ValidationError(ShieldPoolError):
    """Validation error."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "INVALID_VALUE")
        super().__init__(message, category=ErrorCategory.VALIDATION, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class ConfigurationError(ShieldPoolError):
    """Configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "INVALID_CONFIG")
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "config_key": self.config_key,
                "config_value": str(self.config_value)
                if self.config_value is not None
                else None,
            }
        )
        return data


class CapacityExceededError(ShieldPoolError):
    """The tree or the ledger has no free leaf left. Not recoverable."""

    def __init__(
        self,
        message: str,
        capacity: Optional[int] = None,
        next_index: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "CAPACITY_EXCEEDED")
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(
            message, category=ErrorCategory.CAPACITY, retryable=False, **kwargs
        )
        self.capacity = capacity
        self.next_index = next_index

    def to_dict(self) -> Dict[str, Any]:
        """Convert capacity error to dictionary."""
        data = super().to_dict()
        data.update({"capacity": self.capacity, "next_index": self.next_index})
        return data


class LeafIndexMismatchError(CapacityExceededError):
    """A deposit claimed a leaf other than the ledger's next free index."""

    def __init__(
        self,
        message: str,
        claimed_index: Optional[int] = None,
        next_index: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "LEAF_INDEX_MISMATCH")
        kwargs.setdefault("severity", ErrorSeverity.MEDIUM)
        super().__init__(message, next_index=next_index, **kwargs)
        self.claimed_index = claimed_index

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["claimed_index"] = self.claimed_index
        return data


class StaleRootError(ShieldPoolError):
    """The caller's view of the root is outdated.

    Recoverable: refetch the current root, rebuild the witness and the proof
    against it, and submit again.
    """

    def __init__(
        self,
        message: str,
        claimed_root: Optional[int] = None,
        current_root: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "STALE_ROOT")
        super().__init__(
            message, category=ErrorCategory.LEDGER, retryable=True, **kwargs
        )
        self.claimed_root = claimed_root
        self.current_root = current_root

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "claimed_root": hex(self.claimed_root)
                if self.claimed_root is not None
                else None,
                "current_root": hex(self.current_root)
                if self.current_root is not None
                else None,
            }
        )
        return data


class NullifierReusedError(ShieldPoolError):
    """The nullifier is already in the spent set (double-spend attempt)."""

    def __init__(self, message: str, nullifier: Optional[int] = None, **kwargs):
        kwargs.setdefault("error_code", "NULLIFIER_REUSED")
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(
            message, category=ErrorCategory.LEDGER, retryable=False, **kwargs
        )
        self.nullifier = nullifier

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["nullifier"] = hex(self.nullifier) if self.nullifier is not None else None
        return data


class InvalidProofError(ShieldPoolError):
    """A proof failed verification against the stated public inputs."""

    def __init__(
        self,
        message: str,
        circuit_id: Optional[str] = None,
        status: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "INVALID_PROOF")
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(
            message, category=ErrorCategory.CRYPTOGRAPHIC, retryable=False, **kwargs
        )
        self.circuit_id = circuit_id
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"circuit_id": self.circuit_id, "status": self.status})
        return data


class IndexOutOfRangeError(ShieldPoolError):
    """A leaf index outside the tree's capacity or its filled prefix."""

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        limit: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "INDEX_OUT_OF_RANGE")
        super().__init__(
            message, category=ErrorCategory.VALIDATION, retryable=False, **kwargs
        )
        self.index = index
        self.limit = limit

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"index": self.index, "limit": self.limit})
        return data


class UnsatisfiableWitnessError(ShieldPoolError):
    """The private data does not satisfy the statement; no proof exists."""

    def __init__(
        self,
        message: str,
        circuit_id: Optional[str] = None,
        failed_constraints: Optional[list] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "UNSATISFIABLE_WITNESS")
        super().__init__(
            message, category=ErrorCategory.WITNESS, retryable=False, **kwargs
        )
        self.circuit_id = circuit_id
        self.failed_constraints = failed_constraints or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "circuit_id": self.circuit_id,
                "failed_constraints": self.failed_constraints,
            }
        )
        return data


class StalePathError(ShieldPoolError):
    """An authentication path was computed against an older tree version."""

    def __init__(
        self,
        message: str,
        path_version: Optional[int] = None,
        tree_version: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "STALE_PATH")
        super().__init__(
            message, category=ErrorCategory.WITNESS, retryable=False, **kwargs
        )
        self.path_version = path_version
        self.tree_version = tree_version

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {"path_version": self.path_version, "tree_version": self.tree_version}
        )
        return data


class TreeDivergenceError(ShieldPoolError):
    """The local tree mirror no longer matches the ledger's root."""

    def __init__(
        self,
        message: str,
        local_root: Optional[int] = None,
        ledger_root: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "TREE_DIVERGENCE")
        kwargs.setdefault("severity", ErrorSeverity.CRITICAL)
        super().__init__(
            message, category=ErrorCategory.LEDGER, retryable=False, **kwargs
        )
        self.local_root = local_root
        self.ledger_root = ledger_root


class NoteNotFoundError(ShieldPoolError):
    """No deposit record is held for the given secret."""

    def __init__(self, message: str, commitment: Optional[int] = None, **kwargs):
        kwargs.setdefault("error_code", "NOTE_NOT_FOUND")
        super().__init__(
            message, category=ErrorCategory.WITNESS, retryable=False, **kwargs
        )
        self.commitment = commitment


def is_transient(error: Exception) -> bool:
    """Return True when the failed operation may succeed if rebuilt and resent."""
    return isinstance(error, ShieldPoolError) and error.retryable
