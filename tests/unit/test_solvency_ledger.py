"""
Unit tests for the solvency ledger.
"""

import dataclasses
from unittest.mock import patch

import pytest

from solvency.core.types import Asset
from solvency.crypto.hashing import Hash
from solvency.crypto.merkle_sum import LiabilityTree, MerkleSumNode
from solvency.crypto.zkp import (
    ProofGenerator,
    ProofKind,
    SolvencyPrivateInputs,
    SolvencyPublicInputs,
)
from solvency.crypto.zkp.backends import build_transparent_proof
from solvency.errors import (
    AuthorizationError,
    DuplicateError,
    EmptyInputError,
    NotFoundError,
    ProofVerificationError,
    ValidationError,
)
from solvency.ledger.access import OperatorAccessController
from solvency.ledger.events import EventLog, EventType
from solvency.ledger.ledger import SolvencyLedger, coerce_root, validate_timestamp


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def ledger(zkp_manager, events):
    return SolvencyLedger(zkp_manager, access=OperatorAccessController("op"), events=events)


@pytest.fixture
def prover(zkp_manager):
    return ProofGenerator(zkp_manager)


@pytest.fixture
def solvency_proof(prover, tree, assets):
    return prover.prove_solvency(tree, assets, 1000)


class TestHelpers:
    """Test input coercion."""

    @pytest.mark.parametrize("value", [0, -1, "1000", 1.5, True, None, 2**63, 2**64])
    def test_invalid_timestamp(self, value):
        with pytest.raises(ValidationError):
            validate_timestamp(value)

    def test_valid_timestamp(self):
        assert validate_timestamp(1) == 1
        assert validate_timestamp(2**63 - 1) == 2**63 - 1

    def test_coerce_root(self, tree):
        assert coerce_root(tree.root) is tree.root
        assert coerce_root(tree.root.to_dict()) == tree.root

    def test_zero_root_rejected(self):
        with pytest.raises(ValidationError):
            coerce_root(MerkleSumNode(Hash.zero(), 5))
        with pytest.raises(ValidationError):
            coerce_root("root")


class TestSubmit:
    """Test solvency submission."""

    def test_accepts_valid_proof(self, ledger, events, tree, assets, solvency_proof):
        record = ledger.submit(1000, tree.root, assets, solvency_proof, caller="op")
        assert record.timestamp == 1000
        assert record.mst_root == tree.root
        assert record.total_assets == 400
        assert record.proof_hash == solvency_proof.get_hash()
        assert ledger.lookup_root(1000) == tree.root
        assert 1000 in ledger
        assert len(ledger) == 1

        submitted = events.get_events(EventType.SOLVENCY_PROOF_SUBMITTED)
        assert len(submitted) == 1
        assert submitted[0].payload["timestamp"] == 1000
        assert submitted[0].payload["mst_root"] == tree.root.to_dict()

    def test_accepts_serialized_proof(self, ledger, tree, assets, solvency_proof):
        ledger.submit(1000, tree.root, assets, solvency_proof.to_bytes(), caller="op")
        assert ledger.get_record(1000).mst_root == tree.root

    def test_unauthorized(self, ledger, events, tree, assets, solvency_proof):
        with pytest.raises(AuthorizationError):
            ledger.submit(1000, tree.root, assets, solvency_proof, caller="mallory")
        assert 1000 not in ledger
        assert len(events) == 0

    def test_unauthorized_wins_over_invalid_input(self, ledger, tree):
        with pytest.raises(AuthorizationError):
            ledger.submit(0, tree.root, [], b"", caller=None)

    def test_zero_timestamp(self, ledger, tree, assets, solvency_proof):
        with pytest.raises(ValidationError):
            ledger.submit(0, tree.root, assets, solvency_proof, caller="op")

    @pytest.mark.parametrize("timestamp", [2**63, 2**64])
    def test_timestamp_beyond_range(self, ledger, tree, assets, solvency_proof, timestamp):
        with pytest.raises(ValidationError):
            ledger.submit(timestamp, tree.root, assets, solvency_proof, caller="op")
        assert len(ledger) == 0

    def test_empty_event_log_kept(self, ledger, events):
        assert len(events) == 0
        assert ledger.events is events

    def test_empty_assets(self, ledger, tree, solvency_proof):
        with pytest.raises(EmptyInputError):
            ledger.submit(1000, tree.root, [], solvency_proof, caller="op")

    def test_zero_amount_asset(self, ledger, tree, solvency_proof):
        with pytest.raises(ValidationError):
            ledger.submit(1000, tree.root, [("ETH", "mainnet", 0)], solvency_proof, caller="op")

    def test_duplicate_asset(self, ledger, tree, solvency_proof):
        assets = [("ETH", "mainnet", 200), ("ETH", "mainnet", 200)]
        with pytest.raises(DuplicateError):
            ledger.submit(1000, tree.root, assets, solvency_proof, caller="op")

    def test_zero_root(self, ledger, assets, solvency_proof):
        with pytest.raises(ValidationError):
            ledger.submit(1000, MerkleSumNode(Hash.zero(), 0), assets, solvency_proof, caller="op")

    def test_duplicate_timestamp(self, ledger, events, tree, assets, solvency_proof):
        ledger.submit(1000, tree.root, assets, solvency_proof, caller="op")
        with pytest.raises(DuplicateError):
            ledger.submit(1000, tree.root, assets, solvency_proof, caller="op")
        assert len(events) == 1

    def test_proof_for_other_timestamp(self, ledger, tree, assets, solvency_proof):
        with pytest.raises(ProofVerificationError):
            ledger.submit(2000, tree.root, assets, solvency_proof, caller="op")
        assert 2000 not in ledger

    def test_proof_for_other_assets(self, ledger, tree, solvency_proof):
        with pytest.raises(ProofVerificationError):
            ledger.submit(1000, tree.root, [Asset("ETH", "mainnet", 500)], solvency_proof, caller="op")

    def test_proof_for_other_root(self, ledger, assets, solvency_proof):
        other = LiabilityTree([("u1", 100), ("u2", 150), ("u3", 51)])
        with pytest.raises(ProofVerificationError):
            ledger.submit(1000, other.root, assets, solvency_proof, caller="op")

    def test_insolvent_forgery_rejected(self, ledger, events, tree):
        assets = (Asset("ETH", "mainnet", 100),)
        public = SolvencyPublicInputs(mst_root=tree.root, assets=assets, timestamp=1000)
        forged = build_transparent_proof(public, SolvencyPrivateInputs(tree.leaves), "solvency_v1")
        with pytest.raises(ProofVerificationError) as exc_info:
            ledger.submit(1000, tree.root, assets, forged, caller="op")
        assert exc_info.value.proof_kind == "solvency"
        assert 1000 not in ledger
        assert len(events) == 0

    def test_inclusion_proof_is_not_a_solvency_proof(self, ledger, prover, tree, assets):
        inclusion = prover.prove_inclusion(tree, "u1")
        with pytest.raises(ProofVerificationError):
            ledger.submit(1000, tree.root, assets, inclusion, caller="op")

    def test_undecodable_proof(self, ledger, tree, assets):
        with pytest.raises(ProofVerificationError):
            ledger.submit(1000, tree.root, assets, b"\x00garbage", caller="op")

    def test_missing_proof(self, ledger, tree, assets):
        with pytest.raises(ValidationError):
            ledger.submit(1000, tree.root, assets, b"", caller="op")

    def test_latest_and_timestamps(self, ledger, prover, tree, assets):
        for timestamp in (2000, 1000):
            proof = prover.prove_solvency(tree, assets, timestamp)
            ledger.submit(timestamp, tree.root, assets, proof, caller="op")
        assert ledger.timestamps() == [1000, 2000]
        assert ledger.latest().timestamp == 2000


class TestVerifyInclusion:
    """Test user inclusion checks."""

    @pytest.fixture
    def anchored(self, ledger, tree, assets, solvency_proof):
        ledger.submit(1000, tree.root, assets, solvency_proof, caller="op")
        return ledger

    def test_witness(self, anchored, tree):
        for user_id in ("u1", "u2", "u3"):
            assert anchored.verify_inclusion(tree.witness(user_id), 1000)

    def test_tampered_witness(self, anchored, tree):
        witness = dataclasses.replace(tree.witness("u2"), balance=151)
        assert anchored.verify_inclusion(witness, 1000) is False

    def test_proof(self, anchored, prover, tree):
        assert anchored.verify_inclusion(prover.prove_inclusion(tree, "u2"), 1000)

    def test_proof_with_disclosed_balance(self, anchored, prover, tree):
        proof = prover.prove_inclusion(tree, "u2", disclose_balance=True)
        assert anchored.verify_inclusion(proof, 1000)
        assert anchored.verify_inclusion(proof.to_bytes(), 1000)

    def test_claimed_balance_tampered(self, anchored, prover, tree):
        proof = prover.prove_inclusion(tree, "u2", disclose_balance=True)
        proof.public_inputs["balance"] = 151
        assert not anchored.verify_inclusion(proof, 1000)

    def test_non_integer_claimed_balance(self, anchored, prover, tree):
        proof = prover.prove_inclusion(tree, "u2", disclose_balance=True)
        proof.public_inputs["balance"] = "150"
        assert not anchored.verify_inclusion(proof, 1000)

    @pytest.mark.parametrize("balance", [-1, 2**256, True])
    def test_out_of_range_claimed_balance(self, anchored, prover, tree, balance):
        proof = prover.prove_inclusion(tree, "u2", disclose_balance=True)
        proof.public_inputs["balance"] = balance
        assert anchored.verify_inclusion(proof, 1000) is False
        assert anchored.verify_inclusion_batch([(proof, 1000)]) == [False]

    def test_witness_checked_by_manager(self, anchored, zkp_manager, tree):
        with patch.object(zkp_manager, "check_witness", wraps=zkp_manager.check_witness) as check:
            assert anchored.verify_inclusion(tree.witness("u1"), 1000)
            assert anchored.verify_inclusion_batch([(tree.witness("u2"), 1000)]) == [True]
        assert check.call_count == 2
        assert check.call_args[0][0].kind == ProofKind.INCLUSION

    def test_timestamp_beyond_range(self, anchored, tree):
        with pytest.raises(ValidationError):
            anchored.verify_inclusion(tree.witness("u1"), 2**64)
        with pytest.raises(ValidationError):
            anchored.lookup_root(2**64)
        assert 2**64 not in anchored

    def test_proof_for_other_tree(self, anchored, prover):
        other = LiabilityTree([("u1", 100), ("u2", 150), ("u3", 51)])
        assert not anchored.verify_inclusion(prover.prove_inclusion(other, "u2"), 1000)

    def test_solvency_proof_is_not_inclusion(self, anchored, solvency_proof):
        assert not anchored.verify_inclusion(solvency_proof, 1000)

    def test_garbage_bytes(self, anchored):
        assert not anchored.verify_inclusion(b"not a proof", 1000)

    def test_unknown_timestamp(self, anchored, tree):
        with pytest.raises(NotFoundError):
            anchored.verify_inclusion(tree.witness("u1"), 999)

    def test_zero_timestamp(self, anchored, tree):
        with pytest.raises(ValidationError):
            anchored.verify_inclusion(tree.witness("u1"), 0)

    def test_reads_need_no_caller(self, zkp_manager, tree, assets, solvency_proof):
        ledger = SolvencyLedger(zkp_manager, access=OperatorAccessController("op"))
        ledger.submit(1000, tree.root, assets, solvency_proof, caller="op")
        assert ledger.get_record(1000).timestamp == 1000

    def test_batch(self, anchored, prover, tree):
        items = [
            (tree.witness("u1"), 1000),
            (prover.prove_inclusion(tree, "u2"), 1000),
            (dataclasses.replace(tree.witness("u3"), balance=1), 1000),
            (b"junk", 1000),
            (prover.prove_inclusion(tree, "u3", disclose_balance=True).to_bytes(), 1000),
        ]
        assert anchored.verify_inclusion_batch(items) == [True, True, False, False, True]

    def test_batch_unknown_timestamp(self, anchored, tree):
        with pytest.raises(NotFoundError):
            anchored.verify_inclusion_batch([(tree.witness("u1"), 1000), (tree.witness("u1"), 5)])
