"""
Unit tests for the ownership registry and the external verifier.
"""

import pytest

from solvency.core.records import OwnershipStatus
from solvency.core.types import AddressOwnershipProof
from solvency.crypto.signatures import ECDSASigner
from solvency.errors import (
    AuthorizationError,
    DuplicateError,
    EmptyInputError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from solvency.ledger.access import OperatorAccessController
from solvency.ledger.events import EventLog, EventType
from solvency.ledger.registry import OwnershipRegistry
from solvency.ledger.verifier import (
    ExternalOwnershipVerifier,
    Secp256k1KeyringVerifier,
    SignatureVerifier,
)


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def registry(events):
    return OwnershipRegistry(access=OperatorAccessController("op", ["auditor"]), events=events)


class TestSubmit:
    """Test ownership submission."""

    def test_submit_batch(self, registry, events, ownership_proof):
        entries = registry.submit([ownership_proof("0x1"), ownership_proof("0x2")], caller="op")
        assert [e.status for e in entries] == [OwnershipStatus.SUBMITTED] * 2
        assert "0x1" in registry
        assert len(registry) == 2
        assert registry.is_owned("0x1")
        assert not registry.is_verified("0x1")

        submitted = events.get_events(EventType.ADDRESS_OWNERSHIP_PROOF_SUBMITTED)
        assert len(submitted) == 1
        assert [p["address"] for p in submitted[0].payload["proofs"]] == ["0x1", "0x2"]

    def test_unauthorized(self, registry, events, ownership_proof):
        with pytest.raises(AuthorizationError):
            registry.submit([ownership_proof()], caller="mallory")
        with pytest.raises(AuthorizationError):
            registry.submit([ownership_proof()], caller="auditor")
        assert len(registry) == 0
        assert len(events) == 0

    def test_authorization_checked_before_validation(self, registry):
        with pytest.raises(AuthorizationError):
            registry.submit([], caller="mallory")

    def test_empty_batch(self, registry):
        with pytest.raises(EmptyInputError):
            registry.submit([], caller="op")

    def test_invalid_proof_rejects_whole_batch(self, registry, events, ownership_proof):
        bad = AddressOwnershipProof("0x2", "ethereum", b"", b"msg")
        with pytest.raises(ValidationError):
            registry.submit([ownership_proof("0x1"), bad], caller="op")
        assert "0x1" not in registry
        assert len(events) == 0

    def test_not_a_proof(self, registry):
        with pytest.raises(ValidationError):
            registry.submit([{"address": "0x1"}], caller="op")

    def test_duplicate_in_batch(self, registry, ownership_proof):
        with pytest.raises(DuplicateError):
            registry.submit([ownership_proof("0x1"), ownership_proof("0x1")], caller="op")
        assert len(registry) == 0

    def test_duplicate_across_batches(self, registry, events, ownership_proof):
        registry.submit([ownership_proof("0x1")], caller="op")
        with pytest.raises(DuplicateError):
            registry.submit([ownership_proof("0x2"), ownership_proof("0x1")], caller="op")
        assert "0x2" not in registry
        assert len(events) == 1

    def test_duplicate_even_after_dispute(self, registry, ownership_proof):
        registry.submit([ownership_proof("0x1")], caller="op")
        registry.finalize("0x1", False, "auditor", "bad signature")
        with pytest.raises(DuplicateError):
            registry.submit([ownership_proof("0x1")], caller="op")


class TestFinalize:
    """Test the two-phase trust model."""

    def test_verify(self, registry, events, ownership_proof):
        registry.submit([ownership_proof("0x1")], caller="op")
        entry = registry.finalize("0x1", True, "auditor")
        assert entry.status == OwnershipStatus.EXTERNALLY_VERIFIED
        assert registry.is_verified("0x1")
        assert registry.get("0x1").verifier_id == "auditor"

        finalized = events.get_events(EventType.ADDRESS_OWNERSHIP_FINALIZED)
        assert finalized[0].payload["status"] == "externally_verified"

    def test_dispute(self, registry, ownership_proof):
        registry.submit([ownership_proof("0x1")], caller="op")
        entry = registry.finalize("0x1", False, "auditor", "signature mismatch")
        assert entry.status == OwnershipStatus.DISPUTED
        assert not registry.is_owned("0x1")
        assert registry.list(OwnershipStatus.DISPUTED) == [entry]

    def test_cannot_finalize_twice(self, registry, ownership_proof):
        registry.submit([ownership_proof("0x1")], caller="op")
        registry.finalize("0x1", True, "auditor")
        with pytest.raises(InvalidStateError):
            registry.finalize("0x1", False, "auditor")

    def test_unknown_address(self, registry):
        with pytest.raises(NotFoundError):
            registry.finalize("0x9", True, "auditor")

    def test_unregistered_verifier(self, registry, ownership_proof):
        registry.submit([ownership_proof("0x1")], caller="op")
        with pytest.raises(AuthorizationError):
            registry.finalize("0x1", True, "stranger")
        assert registry.pending()[0].address == "0x1"

    def test_get_unknown(self, registry):
        with pytest.raises(NotFoundError):
            registry.get("0x9")


class TestExternalOwnershipVerifier:
    """Test off-ledger signature verification."""

    @pytest.fixture
    def keyring(self):
        return Secp256k1KeyringVerifier()

    def _signed(self, keyring, message=b"exchange owns this"):
        private_key, public_key = ECDSASigner.generate_keypair()
        address = keyring.register(public_key)
        signature = private_key.sign(message).to_bytes()
        return AddressOwnershipProof(address, "ethereum", signature, message)

    def test_process_pending(self, registry, keyring):
        good = self._signed(keyring)
        forged = self._signed(keyring)
        forged = AddressOwnershipProof(forged.address, "ethereum", good.signature, forged.message)
        registry.submit([good, forged], caller="op")

        verifier = ExternalOwnershipVerifier(registry, "auditor", {"ethereum": keyring})
        finalized = verifier.process_pending()
        assert len(finalized) == 2
        assert registry.is_verified(good.address)
        assert registry.get(forged.address).status == OwnershipStatus.DISPUTED
        assert registry.pending() == []

    def test_unknown_chain_left_pending(self, registry, keyring, ownership_proof):
        registry.submit([ownership_proof("0x1", chain_id="solana")], caller="op")
        verifier = ExternalOwnershipVerifier(registry, "auditor", {"ethereum": keyring})
        assert verifier.process_pending() == []
        assert registry.get("0x1").status == OwnershipStatus.SUBMITTED

    def test_unknown_key_left_pending(self, registry, keyring, ownership_proof):
        registry.submit([ownership_proof("0x1")], caller="op")
        verifier = ExternalOwnershipVerifier(registry, "auditor")
        verifier.register("ethereum", keyring)
        assert verifier.process_pending() == []

    def test_attach_verifies_on_submit(self, registry, events, keyring):
        verifier = ExternalOwnershipVerifier(registry, "auditor", {"ethereum": keyring})
        verifier.attach()
        proof = self._signed(keyring)
        registry.submit([proof], caller="op")
        assert registry.is_verified(proof.address)

    def test_attach_to_explicit_log(self, registry, events, keyring):
        assert registry.events is events
        verifier = ExternalOwnershipVerifier(registry, "auditor", {"ethereum": keyring})
        verifier.attach(events)
        proof = self._signed(keyring)
        registry.submit([proof], caller="op")
        assert registry.is_verified(proof.address)
        assert len(events.get_events(EventType.ADDRESS_OWNERSHIP_FINALIZED)) == 1

    def test_custom_verifier(self, registry, ownership_proof):
        class RejectAll(SignatureVerifier):
            def check(self, proof):
                return False, "rejected"

        registry.submit([ownership_proof("0x1")], caller="op")
        ExternalOwnershipVerifier(registry, "auditor", {"ethereum": RejectAll()}).process_pending()
        assert registry.get("0x1").reason == "rejected"

    def test_requires_id(self, registry):
        with pytest.raises(ValueError):
            ExternalOwnershipVerifier(registry, "")
