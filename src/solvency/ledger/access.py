"""
Write-path access control for the registry and the ledger.

Reads never consult the controller; only ``Action`` values below are
checked.
"""

import logging

logger = logging.getLogger(__name__)
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, Optional, Set

from ..errors.exceptions import AuthorizationError


class Action(Enum):
    """Write actions guarded by access control."""

    SUBMIT_OWNERSHIP = "submit_ownership"
    FINALIZE_OWNERSHIP = "finalize_ownership"
    SUBMIT_SOLVENCY = "submit_solvency"


class AccessController(ABC):
    """Decides whether a caller may perform a write action."""

    @abstractmethod
    def is_authorized(self, caller: Optional[str], action: Action) -> bool:
        pass

    def require(self, caller: Optional[str], action: Action) -> None:
        """Raise ``AuthorizationError`` unless ``caller`` may perform ``action``."""
        if not self.is_authorized(caller, action):
            logger.warning(f"Rejected {action.value} by unauthorized caller {caller!r}")
            raise AuthorizationError(
                f"Caller {caller!r} is not authorized to {action.value}",
                caller=caller,
                action=action.value,
            )


class OperatorAccessController(AccessController):
    """A single operator identity owns the submit actions.

    Finalizing ownership entries is open to the operator and to any
    registered external verifier.
    """

    def __init__(self, operator: str, verifiers: Optional[Iterable[str]] = None):
        if not operator:
            raise ValueError("operator cannot be empty")
        self.operator = operator
        self.verifiers: Set[str] = set(verifiers or ())

    def add_verifier(self, verifier_id: str) -> None:
        self.verifiers.add(verifier_id)
        logger.info(f"Registered external verifier {verifier_id}")

    def remove_verifier(self, verifier_id: str) -> None:
        self.verifiers.discard(verifier_id)

    def is_authorized(self, caller: Optional[str], action: Action) -> bool:
        if not caller:
            return False
        if caller == self.operator:
            return True
        return action == Action.FINALIZE_OWNERSHIP and caller in self.verifiers


class AllowAllAccessController(AccessController):
    """Permits every caller; for embedding where the host enforces access."""

    def is_authorized(self, caller: Optional[str], action: Action) -> bool:
        return True
