"""
Off-ledger verification of address-ownership signatures.

Signature schemes differ per chain, so checks are delegated to one
``SignatureVerifier`` per chain id. Entries on chains without a verifier, or
whose verifier cannot decide, stay ``SUBMITTED``.
"""

import logging

logger = logging.getLogger(__name__)
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from ..core.records import OwnershipEntry
from ..core.types import AddressOwnershipProof
from ..crypto.signatures import ECDSASigner, PublicKey
from .events import EventLog, EventType, LedgerEvent
from .registry import OwnershipRegistry

# (verdict, reason); a verdict of None means "cannot decide"
Verdict = Tuple[Optional[bool], Optional[str]]


class SignatureVerifier(ABC):
    """Checks one chain's ownership signatures."""

    @abstractmethod
    def check(self, proof: AddressOwnershipProof) -> Verdict:
        pass


class Secp256k1KeyringVerifier(SignatureVerifier):
    """ECDSA/secp256k1 check against public keys registered per address."""

    def __init__(self):
        self._keys: Dict[str, PublicKey] = {}

    def register(self, public_key: PublicKey, address: Optional[str] = None) -> str:
        """Register a key; the address defaults to the key's derived address."""
        address = address or public_key.to_address()
        self._keys[address] = public_key
        return address

    def check(self, proof: AddressOwnershipProof) -> Verdict:
        public_key = self._keys.get(proof.address)
        if public_key is None:
            return None, f"No public key registered for {proof.address}"

        if ECDSASigner.verify_raw(public_key, bytes(proof.signature), bytes(proof.message)):
            return True, None
        return False, "Signature does not match the registered key"


class ExternalOwnershipVerifier:
    """Drains ``SUBMITTED`` registry entries through per-chain verifiers."""

    def __init__(
        self,
        registry: OwnershipRegistry,
        verifier_id: str,
        verifiers: Optional[Dict[str, SignatureVerifier]] = None,
    ):
        if not verifier_id:
            raise ValueError("verifier_id cannot be empty")
        self.registry = registry
        self.verifier_id = verifier_id
        self.verifiers: Dict[str, SignatureVerifier] = dict(verifiers or {})

    def register(self, chain_id: str, verifier: SignatureVerifier) -> None:
        self.verifiers[chain_id] = verifier

    def verify_entry(self, entry: OwnershipEntry) -> Optional[OwnershipEntry]:
        """Finalize one entry; None when no verdict could be reached."""
        verifier = self.verifiers.get(entry.chain_id)
        if verifier is None:
            logger.debug(f"No signature verifier for chain {entry.chain_id}")
            return None

        verdict, reason = verifier.check(entry.proof)
        if verdict is None:
            logger.debug(f"Left {entry.address} pending: {reason}")
            return None

        return self.registry.finalize(entry.address, verdict, self.verifier_id, reason)

    def process_pending(self) -> List[OwnershipEntry]:
        """Finalize every pending entry a verifier can decide."""
        finalized = []
        for entry in self.registry.pending():
            result = self.verify_entry(entry)
            if result is not None:
                finalized.append(result)
        return finalized

    def attach(self, events: Optional[EventLog] = None) -> None:
        """Verify new submissions as soon as they are accepted."""
        if events is None:
            events = self.registry.events
        events.subscribe(self._on_submitted, EventType.ADDRESS_OWNERSHIP_PROOF_SUBMITTED)

    def _on_submitted(self, event: LedgerEvent) -> None:
        for item in event.payload.get("proofs", []):
            entry = self.registry.get(item["address"])
            if not entry.status.is_final:
                self.verify_entry(entry)
