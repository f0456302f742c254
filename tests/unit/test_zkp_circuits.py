"""
Unit tests for the solvency and inclusion circuits.
"""

import dataclasses

import pytest

from solvency.core.types import MAX_TIMESTAMP, Asset
from solvency.crypto.merkle_sum import LiabilityTree, MerkleSumNode
from solvency.crypto.zkp.circuits import (
    BalanceDisclosure,
    Constraint,
    ConstraintSystem,
    ConstraintType,
    InclusionCircuit,
    InclusionPrivateInputs,
    InclusionPublicInputs,
    SolvencyCircuit,
    SolvencyPrivateInputs,
    SolvencyPublicInputs,
    circuit_for,
    solvency_inputs,
)
from solvency.crypto.zkp.core import ProofKind
from solvency.errors import ValidationError


def _solvency(tree, amount=400, timestamp=1000, mst_root=None):
    public = SolvencyPublicInputs(
        mst_root=mst_root or tree.root,
        assets=(Asset("ETH", "mainnet", amount),),
        timestamp=timestamp,
    )
    return public, SolvencyPrivateInputs(tree.leaves)


class TestConstraintSystem:
    """Test constraint system bookkeeping."""

    def test_add_variable_and_constraint(self):
        cs = ConstraintSystem()
        cs.add_variable("a", "uint256", is_public=True)
        cs.add_variable("b", "uint256")
        cs.add_constraint(Constraint("a_ge_b", ConstraintType.INEQUALITY, ["a", "b"]))
        assert cs.get_variable_count() == 2
        assert cs.get_constraint_count() == 1
        assert cs.validate()

    def test_duplicate_variable(self):
        cs = ConstraintSystem()
        cs.add_variable("a", "uint256")
        with pytest.raises(ValueError, match="already exists"):
            cs.add_variable("a", "uint256")

    def test_undefined_variable(self):
        cs = ConstraintSystem()
        with pytest.raises(ValueError, match="not defined"):
            cs.add_constraint(Constraint("c", ConstraintType.EQUALITY, ["missing"]))

    def test_constraint_requires_variables(self):
        with pytest.raises(ValueError):
            Constraint("c", ConstraintType.EQUALITY, [])


class TestPublicInputs:
    """Test public input digests."""

    def test_solvency_digest_binds_every_field(self, tree):
        base, _ = _solvency(tree)
        assert base.digest() == _solvency(tree)[0].digest()
        assert base.digest() != _solvency(tree, amount=401)[0].digest()
        assert base.digest() != _solvency(tree, timestamp=1001)[0].digest()
        other_root = LiabilityTree([("u1", 1)]).root
        assert base.digest() != _solvency(tree, mst_root=other_root)[0].digest()

    def test_solvency_claims_round_trip(self, tree):
        public, _ = _solvency(tree)
        assert SolvencyPublicInputs.from_claims(public.to_claims()) == public

    def test_solvency_from_invalid_claims(self):
        with pytest.raises(ValidationError):
            SolvencyPublicInputs.from_claims({"assets": []})

    def test_solvency_inputs_helper(self, tree):
        public = solvency_inputs(tree.root, [("ETH", "mainnet", 400)], 1000)
        assert public == _solvency(tree)[0]
        assert public.total_assets() == 400

    def test_inclusion_disclosure(self, tree):
        assert InclusionPublicInputs(tree.root).disclosure == BalanceDisclosure.PRIVATE
        assert InclusionPublicInputs(tree.root, 100).disclosure == BalanceDisclosure.PUBLIC

    def test_inclusion_digest_depends_on_disclosure(self, tree):
        hidden = InclusionPublicInputs(tree.root).digest()
        assert hidden != InclusionPublicInputs(tree.root, 0).digest()
        assert InclusionPublicInputs(tree.root, 1).digest() != InclusionPublicInputs(tree.root, 2).digest()

    def test_private_inputs_round_trip(self, tree):
        private = SolvencyPrivateInputs(tree.leaves)
        assert SolvencyPrivateInputs.from_dict(private.to_dict()) == private
        inclusion = InclusionPrivateInputs(tree.witness("u1"))
        assert InclusionPrivateInputs.from_dict(inclusion.to_dict()) == inclusion


class TestSolvencyCircuit:
    """Test the solvency relation."""

    @pytest.fixture
    def circuit(self):
        return circuit_for(ProofKind.SOLVENCY)

    def test_built(self, circuit):
        assert isinstance(circuit, SolvencyCircuit)
        assert circuit.is_built
        assert circuit.validate()
        info = circuit.get_circuit_info()
        assert info["circuit_id"] == "solvency_v1"
        assert info["kind"] == "solvency"
        assert "asset_total" in info["public_variables"]
        assert "leaves" in info["private_variables"]

    def test_solvent(self, circuit, tree):
        assert circuit.verify(*_solvency(tree))

    def test_exactly_solvent(self, circuit, tree):
        assert circuit.verify(*_solvency(tree, amount=300))

    def test_insolvent(self, circuit, tree):
        assert not circuit.verify(*_solvency(tree, amount=299))

    def test_root_mismatch(self, circuit, tree):
        other = LiabilityTree([("u1", 100), ("u2", 150), ("u3", 49)])
        public, _ = _solvency(tree, mst_root=other.root)
        assert not circuit.verify(public, SolvencyPrivateInputs(tree.leaves))

    def test_sum_mismatch(self, circuit, tree):
        forged_root = MerkleSumNode(tree.root.hash, 10)
        assert not circuit.verify(*_solvency(tree, mst_root=forged_root))

    def test_zero_timestamp(self, circuit, tree):
        assert not circuit.verify(*_solvency(tree, timestamp=0))

    def test_timestamp_bound(self, circuit, tree):
        assert circuit.verify(*_solvency(tree, timestamp=MAX_TIMESTAMP))
        assert not circuit.verify(*_solvency(tree, timestamp=MAX_TIMESTAMP + 1))

    def test_duplicate_leaves_rejected(self, circuit, tree):
        public, private = _solvency(tree)
        doubled = SolvencyPrivateInputs(private.leaves + private.leaves[:1])
        assert not circuit.verify(public, doubled)

    def test_wrong_kind(self, circuit, tree):
        public, _ = _solvency(tree)
        assert not circuit.verify(public, InclusionPrivateInputs(tree.witness("u1")))


class TestInclusionCircuit:
    """Test the inclusion relation."""

    @pytest.fixture
    def circuit(self):
        return circuit_for(ProofKind.INCLUSION)

    def test_built(self, circuit):
        assert isinstance(circuit, InclusionCircuit)
        assert circuit.get_circuit_info()["circuit_id"] == "inclusion_v1"

    def test_member(self, circuit, tree):
        private = InclusionPrivateInputs(tree.witness("u2"))
        assert circuit.verify(InclusionPublicInputs(tree.root), private)

    def test_disclosed_balance(self, circuit, tree):
        private = InclusionPrivateInputs(tree.witness("u2"))
        assert circuit.verify(InclusionPublicInputs(tree.root, 150), private)
        assert not circuit.verify(InclusionPublicInputs(tree.root, 151), private)

    def test_tampered_witness(self, circuit, tree):
        witness = dataclasses.replace(tree.witness("u2"), balance=151)
        assert not circuit.verify(InclusionPublicInputs(tree.root), InclusionPrivateInputs(witness))

    def test_wrong_kind(self, circuit, tree):
        public, private = _solvency(tree)
        assert not circuit.verify(InclusionPublicInputs(tree.root), private)


def test_circuit_for_passes_options():
    circuit = circuit_for(ProofKind.SOLVENCY, circuit_id="solvency_custom")
    assert circuit.circuit_id == "solvency_custom"
