"""
Unit tests for the error hierarchy.
"""

import pytest

from solvency.errors import (
    AuthorizationError,
    ConfigurationError,
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


class TestSolvencyError:
    """Test the base error."""

    def test_defaults(self):
        error = SolvencyError("boom")
        assert error.message == "boom"
        assert error.severity == ErrorSeverity.MEDIUM
        assert error.category == ErrorCategory.SYSTEM
        assert isinstance(error.context, ErrorContext)

    def test_to_dict(self):
        context = ErrorContext(component="ledger", operation="submit", caller="op")
        data = SolvencyError("boom", error_code="X", context=context).to_dict()
        assert data["type"] == "SolvencyError"
        assert data["error_code"] == "X"
        assert data["context"]["operation"] == "submit"
        assert data["context"]["caller"] == "op"

    def test_str(self):
        text = str(AuthorizationError("denied"))
        assert "AuthorizationError: denied" in text
        assert "UNAUTHORIZED" in text
        assert "high" in text


class TestSubclasses:
    """Test the specific error kinds."""

    @pytest.mark.parametrize(
        "error,category,code",
        [
            (ValidationError("x"), ErrorCategory.VALIDATION, "VALIDATION"),
            (EmptyInputError("x"), ErrorCategory.VALIDATION, "EMPTY_INPUT"),
            (DuplicateError("x"), ErrorCategory.DUPLICATE, "DUPLICATE"),
            (AuthorizationError("x"), ErrorCategory.AUTHORIZATION, "UNAUTHORIZED"),
            (ProofVerificationError("x"), ErrorCategory.PROOF, "PROOF_INVALID"),
            (NotFoundError("x"), ErrorCategory.NOT_FOUND, "NOT_FOUND"),
            (InvalidStateError("x"), ErrorCategory.STATE, "INVALID_STATE"),
            (StorageError("x"), ErrorCategory.STORAGE, "STORAGE"),
            (ConfigurationError("x"), ErrorCategory.CONFIGURATION, "CONFIG"),
        ],
    )
    def test_category_and_code(self, error, category, code):
        assert isinstance(error, SolvencyError)
        assert error.category == category
        assert error.error_code == code

    def test_empty_input_is_validation(self):
        error = EmptyInputError("no proofs", field="proofs")
        assert isinstance(error, ValidationError)
        assert error.field == "proofs"
        assert error.expected == "non-empty"

    def test_validation_to_dict(self):
        data = ValidationError("bad", field="amount", value=0, expected="> 0").to_dict()
        assert data["field"] == "amount"
        assert data["value"] == "0"
        assert data["expected"] == "> 0"

    def test_duplicate_key(self):
        assert DuplicateError("dup", key=1000).to_dict()["key"] == "1000"

    def test_authorization_fields(self):
        error = AuthorizationError("no", caller="mallory", action="submit_solvency")
        assert error.to_dict()["caller"] == "mallory"
        assert error.action == "submit_solvency"

    def test_proof_verification_fields(self):
        error = ProofVerificationError("bad proof", proof_kind="solvency", reason="digest")
        assert error.to_dict()["reason"] == "digest"

    def test_invalid_state_fields(self):
        error = InvalidStateError("final", current_state="disputed", requested_state="disputed")
        assert error.to_dict()["current_state"] == "disputed"

    def test_raise_and_catch_as_base(self):
        with pytest.raises(SolvencyError):
            raise NotFoundError("missing", key="0xabc")
