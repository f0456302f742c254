"""
Ledger layer: the ownership registry, the solvency ledger, their event log
and write-path access control.
"""

from ..core.records import OwnershipEntry, OwnershipStatus, SolvencyRecord
from .access import AccessController, Action, AllowAllAccessController, OperatorAccessController
from .events import EventLog, EventType, LedgerEvent
from .ledger import SolvencyLedger
from .registry import OwnershipRegistry
from .verifier import ExternalOwnershipVerifier, Secp256k1KeyringVerifier, SignatureVerifier

__all__ = [
    "SolvencyLedger",
    "SolvencyRecord",
    "OwnershipRegistry",
    "OwnershipEntry",
    "OwnershipStatus",
    "ExternalOwnershipVerifier",
    "SignatureVerifier",
    "Secp256k1KeyringVerifier",
    "EventLog",
    "EventType",
    "LedgerEvent",
    "AccessController",
    "OperatorAccessController",
    "AllowAllAccessController",
    "Action",
]
