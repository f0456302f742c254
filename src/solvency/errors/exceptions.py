"""Exception hierarchy for the solvency pipeline.

Every failure surfaced by the commitment tree, the proof circuits, the
ownership registry and the solvency ledger is one of the classes below, so
callers can tell a malformed submission from an unauthorized one, a replayed
snapshot, a failed proof, or a lookup miss.
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
    DUPLICATE = "duplicate"
    AUTHORIZATION = "authorization"
    PROOF = "proof"
    NOT_FOUND = "not_found"
    STATE = "state"
    CRYPTOGRAPHIC = "cryptographic"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    caller: Optional[str] = None
    snapshot_timestamp: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "caller": self.caller,
            "snapshot_timestamp": self.snapshot_timestamp,
            "metadata": self.metadata,
        }


class SolvencyError(Exception):
    """Base exception for all solvency pipeline errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
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
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        return " | ".join(parts)


class ValidationError(SolvencyError):
    """An input field is empty, zero, negative or otherwise malformed."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "VALIDATION")
        super().__init__(message, category=ErrorCategory.VALIDATION, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class EmptyInputError(ValidationError):
    """A sequence that must be non-empty was empty."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "EMPTY_INPUT")
        super().__init__(message, field=field, expected="non-empty", **kwargs)


class DuplicateError(SolvencyError):
    """A unique key (address, timestamp, user id, asset) was seen twice."""

    def __init__(self, message: str, key: Optional[Any] = None, **kwargs):
        kwargs.setdefault("error_code", "DUPLICATE")
        super().__init__(message, category=ErrorCategory.DUPLICATE, **kwargs)
        self.key = key

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"key": str(self.key) if self.key is not None else None})
        return data


class AuthorizationError(SolvencyError):
    """A caller attempted a write it is not entitled to."""

    def __init__(
        self,
        message: str,
        caller: Optional[str] = None,
        action: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "UNAUTHORIZED")
        super().__init__(
            message,
            category=ErrorCategory.AUTHORIZATION,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.caller = caller
        self.action = action

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"caller": self.caller, "action": self.action})
        return data


class ProofVerificationError(SolvencyError):
    """A proof did not satisfy its circuit relation."""

    def __init__(
        self,
        message: str,
        proof_kind: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "PROOF_INVALID")
        super().__init__(
            message,
            category=ErrorCategory.PROOF,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.proof_kind = proof_kind
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"proof_kind": self.proof_kind, "reason": self.reason})
        return data


class NotFoundError(SolvencyError):
    """A lookup by key found nothing."""

    def __init__(self, message: str, key: Optional[Any] = None, **kwargs):
        kwargs.setdefault("error_code", "NOT_FOUND")
        super().__init__(
            message, category=ErrorCategory.NOT_FOUND, severity=ErrorSeverity.LOW, **kwargs
        )
        self.key = key

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"key": str(self.key) if self.key is not None else None})
        return data


class InvalidStateError(SolvencyError):
    """A state transition was requested from a state that does not allow it."""

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        requested_state: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "INVALID_STATE")
        super().__init__(message, category=ErrorCategory.STATE, **kwargs)
        self.current_state = current_state
        self.requested_state = requested_state

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "current_state": self.current_state,
                "requested_state": self.requested_state,
            }
        )
        return data


class CryptographicError(SolvencyError):
    """An internal cryptographic invariant was broken."""

    def __init__(self, message: str, algorithm: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "CRYPTO")
        super().__init__(
            message,
            category=ErrorCategory.CRYPTOGRAPHIC,
            severity=ErrorSeverity.CRITICAL,
            **kwargs,
        )
        self.algorithm = algorithm


class StorageError(SolvencyError):
    """The backing record store failed."""

    def __init__(
        self,
        message: str,
        storage_type: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "STORAGE")
        super().__init__(
            message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.storage_type = storage_type
        self.operation = operation

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"storage_type": self.storage_type, "operation": self.operation})
        return data


class ConfigurationError(SolvencyError):
    """Configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "CONFIG")
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
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

