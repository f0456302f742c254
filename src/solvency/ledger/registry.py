"""
Registry of exchange-owned addresses.

Ownership attestations are accepted optimistically: the registry only checks
that each proof is well-formed and new, records it as ``SUBMITTED`` and leaves
signature checking to an external verifier, which later moves the entry to
``EXTERNALLY_VERIFIED`` or ``DISPUTED`` through ``finalize``.
"""

import logging

logger = logging.getLogger(__name__)
import threading
from typing import Iterable, List, Optional, Set

from ..core.records import OwnershipEntry, OwnershipStatus
from ..core.types import AddressOwnershipProof
from ..errors.exceptions import (
    DuplicateError,
    EmptyInputError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..storage.database import InMemoryRecordStore, RecordStore
from .access import AccessController, Action, AllowAllAccessController
from .events import EventLog, EventType


class OwnershipRegistry:
    """Accepts and deduplicates address-ownership proofs."""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        access: Optional[AccessController] = None,
        events: Optional[EventLog] = None,
    ):
        self.store = store if store is not None else InMemoryRecordStore()
        self.access = access if access is not None else AllowAllAccessController()
        self.events = events if events is not None else EventLog()
        self._lock = threading.RLock()

    def submit(
        self, proofs: Iterable[AddressOwnershipProof], caller: Optional[str] = None
    ) -> List[OwnershipEntry]:
        """
        Accept a batch of ownership proofs.

        Either every proof is recorded as ``SUBMITTED`` and one event is
        emitted for the batch, or nothing changes.

        Raises:
            AuthorizationError: caller may not submit
            EmptyInputError: no proofs
            ValidationError: a proof has an empty field
            DuplicateError: an address is already owned or repeats in the batch
        """
        with self._lock:
            self.access.require(caller, Action.SUBMIT_OWNERSHIP)

            batch = list(proofs)
            if not batch:
                raise EmptyInputError("Ownership proof list cannot be empty", field="proofs")

            seen: Set[str] = set()
            for proof in batch:
                if not isinstance(proof, AddressOwnershipProof):
                    raise ValidationError(
                        f"Expected an AddressOwnershipProof, got {type(proof).__name__}",
                        field="proofs",
                    )
                proof.validate()
                if proof.address in seen:
                    raise DuplicateError(
                        f"Address {proof.address} appears twice in the batch", key=proof.address
                    )
                if self.store.get_ownership(proof.address) is not None:
                    raise DuplicateError(
                        f"Address {proof.address} is already owned", key=proof.address
                    )
                seen.add(proof.address)

            entries = [OwnershipEntry(proof=proof) for proof in batch]
            self.store.insert_ownership(entries)

            logger.info(f"Accepted {len(entries)} address ownership proof(s) from {caller}")
            self.events.emit(
                EventType.ADDRESS_OWNERSHIP_PROOF_SUBMITTED,
                {"proofs": [proof.to_dict() for proof in batch]},
            )
            return entries

    def finalize(
        self,
        address: str,
        verified: bool,
        verifier_id: str,
        reason: Optional[str] = None,
        caller: Optional[str] = None,
    ) -> OwnershipEntry:
        """
        Record the external verifier's verdict for a ``SUBMITTED`` entry.

        ``caller`` defaults to ``verifier_id``.

        Raises:
            AuthorizationError: caller may not finalize
            NotFoundError: unknown address
            InvalidStateError: the entry was already finalized
        """
        with self._lock:
            self.access.require(caller or verifier_id, Action.FINALIZE_OWNERSHIP)

            entry = self.get(address)
            if entry.status.is_final:
                raise InvalidStateError(
                    f"Ownership of {address} is already {entry.status.value}",
                    current_state=entry.status.value,
                    requested_state=(
                        OwnershipStatus.EXTERNALLY_VERIFIED.value
                        if verified
                        else OwnershipStatus.DISPUTED.value
                    ),
                )

            updated = entry.finalized(verified, verifier_id, reason)
            self.store.update_ownership(updated)

            if verified:
                logger.info(f"Ownership of {address} verified by {verifier_id}")
            else:
                logger.warning(f"Ownership of {address} disputed by {verifier_id}: {reason}")

            self.events.emit(
                EventType.ADDRESS_OWNERSHIP_FINALIZED,
                {
                    "address": updated.address,
                    "chain_id": updated.chain_id,
                    "status": updated.status.value,
                    "verifier_id": verifier_id,
                    "reason": reason,
                },
            )
            return updated

    def get(self, address: str) -> OwnershipEntry:
        entry = self.store.get_ownership(address)
        if entry is None:
            raise NotFoundError(f"No ownership proof for address {address}", key=address)
        return entry

    def list(self, status: Optional[OwnershipStatus] = None) -> List[OwnershipEntry]:
        return self.store.list_ownership(status)

    def is_owned(self, address: str) -> bool:
        """True while an accepted proof for ``address`` has not been disputed."""
        entry = self.store.get_ownership(address)
        return entry is not None and entry.status != OwnershipStatus.DISPUTED

    def is_verified(self, address: str) -> bool:
        entry = self.store.get_ownership(address)
        return entry is not None and entry.status == OwnershipStatus.EXTERNALLY_VERIFIED

    def pending(self) -> List[OwnershipEntry]:
        return self.list(OwnershipStatus.SUBMITTED)

    def __contains__(self, address: str) -> bool:
        return self.store.get_ownership(address) is not None

    def __len__(self) -> int:
        return len(self.store.list_ownership())
