"""Solvency error handling.

This module exposes the exception hierarchy shared by the commitment tree,
the proof circuits, the ownership registry and the solvency ledger.
"""

from .exceptions import (
    AuthorizationError,
    ConfigurationError,
    CryptographicError,
    DuplicateError,
    EmptyInputError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidStateError,
    NotFoundError,
    ProofVerificationError,
    SolvencyError,
    StorageError,
    ValidationError,
)

__all__ = [
    "SolvencyError",
    "ValidationError",
    "EmptyInputError",
    "DuplicateError",
    "AuthorizationError",
    "ProofVerificationError",
    "NotFoundError",
    "InvalidStateError",
    "CryptographicError",
    "StorageError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
]
