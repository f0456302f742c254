"""
Unit tests for write-path access control.
"""

import pytest

from solvency.errors import AuthorizationError
from solvency.ledger.access import Action, AllowAllAccessController, OperatorAccessController


class TestOperatorAccessController:
    """Test the operator controller."""

    def test_operator_may_do_everything(self):
        access = OperatorAccessController("op")
        for action in Action:
            assert access.is_authorized("op", action)

    def test_other_callers_rejected(self):
        access = OperatorAccessController("op")
        assert not access.is_authorized("mallory", Action.SUBMIT_SOLVENCY)
        assert not access.is_authorized(None, Action.SUBMIT_OWNERSHIP)
        assert not access.is_authorized("", Action.SUBMIT_OWNERSHIP)

    def test_verifier_may_only_finalize(self):
        access = OperatorAccessController("op", verifiers=["auditor"])
        assert access.is_authorized("auditor", Action.FINALIZE_OWNERSHIP)
        assert not access.is_authorized("auditor", Action.SUBMIT_SOLVENCY)
        assert not access.is_authorized("auditor", Action.SUBMIT_OWNERSHIP)

    def test_add_remove_verifier(self):
        access = OperatorAccessController("op")
        access.add_verifier("auditor")
        assert access.is_authorized("auditor", Action.FINALIZE_OWNERSHIP)
        access.remove_verifier("auditor")
        assert not access.is_authorized("auditor", Action.FINALIZE_OWNERSHIP)

    def test_require_raises(self):
        access = OperatorAccessController("op")
        with pytest.raises(AuthorizationError) as exc_info:
            access.require("mallory", Action.SUBMIT_SOLVENCY)
        assert exc_info.value.caller == "mallory"
        assert exc_info.value.action == "submit_solvency"

    def test_empty_operator(self):
        with pytest.raises(ValueError):
            OperatorAccessController("")


def test_allow_all():
    access = AllowAllAccessController()
    access.require(None, Action.SUBMIT_SOLVENCY)
    assert access.is_authorized("anyone", Action.FINALIZE_OWNERSHIP)
