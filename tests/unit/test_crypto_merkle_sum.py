"""
Unit tests for the Merkle sum tree.
"""

import dataclasses

import pytest

from solvency.crypto.hashing import Hash, SHA256Hasher, encode_bytes, encode_uint
from solvency.crypto.merkle_sum import (
    LEAF_DOMAIN,
    NODE_DOMAIN,
    InclusionWitness,
    LiabilityLeaf,
    LiabilityTree,
    MerkleSumNode,
    TreeConfig,
    expected_path_length,
)
from solvency.errors import (
    DuplicateError,
    EmptyInputError,
    NotFoundError,
    ValidationError,
)


class TestMerkleSumNode:
    """Test the MerkleSumNode value type."""

    def test_zero_node(self):
        zero = MerkleSumNode.zero()
        assert zero.hash.is_zero()
        assert zero.sum == 0
        assert zero.is_zero()

    def test_combine_adds_sums(self):
        left = LiabilityLeaf("a", 10).commitment()
        right = LiabilityLeaf("b", 32).commitment()
        parent = MerkleSumNode.combine(left, right)
        assert parent.sum == 42

    def test_combine_binds_both_children(self):
        left = LiabilityLeaf("a", 10).commitment()
        right = LiabilityLeaf("b", 32).commitment()
        expected = SHA256Hasher.domain_hash(
            NODE_DOMAIN,
            left.hash.value,
            encode_uint(left.sum),
            right.hash.value,
            encode_uint(right.sum),
        )
        assert MerkleSumNode.combine(left, right).hash == expected
        assert MerkleSumNode.combine(right, left).hash != expected

    def test_negative_sum_rejected(self):
        with pytest.raises(ValidationError):
            MerkleSumNode(Hash.zero(), -1)

    def test_bytes_encoding(self):
        node = LiabilityLeaf("a", 7).commitment()
        data = node.to_bytes()
        assert len(data) == 64
        assert MerkleSumNode.from_bytes(data) == node

    def test_dict_encoding(self):
        node = LiabilityLeaf("a", 7).commitment()
        assert MerkleSumNode.from_dict(node.to_dict()) == node

    def test_from_dict_invalid(self):
        with pytest.raises(ValidationError):
            MerkleSumNode.from_dict({"hash": "zz", "sum": 1})
        with pytest.raises(ValidationError):
            MerkleSumNode.from_dict({"sum": 1})


class TestLiabilityLeaf:
    """Test liability leaves."""

    def test_commitment(self):
        leaf = LiabilityLeaf("u1", 100)
        expected = SHA256Hasher.domain_hash(
            LEAF_DOMAIN,
            encode_bytes(b"u1"),
            encode_uint(100),
            encode_bytes(b""),
        )
        node = leaf.commitment()
        assert node.hash == expected
        assert node.sum == 100

    def test_salt_changes_commitment(self):
        assert (
            LiabilityLeaf("u1", 100).commitment().hash
            != LiabilityLeaf("u1", 100, b"salt").commitment().hash
        )

    def test_empty_user_id_rejected(self):
        with pytest.raises(ValidationError):
            LiabilityLeaf("", 1)

    def test_negative_balance_rejected(self):
        with pytest.raises(ValidationError):
            LiabilityLeaf("u1", -5)

    def test_bool_balance_rejected(self):
        with pytest.raises(ValidationError):
            LiabilityLeaf("u1", True)

    def test_zero_balance_allowed(self):
        assert LiabilityLeaf("u1", 0).commitment().sum == 0

    def test_coerce(self):
        assert LiabilityLeaf.coerce(("u1", 5)) == LiabilityLeaf("u1", 5)
        assert LiabilityLeaf.coerce({"user_id": "u1", "balance": 5, "salt": "ab"}) == (
            LiabilityLeaf("u1", 5, b"\xab")
        )
        with pytest.raises(ValidationError):
            LiabilityLeaf.coerce("u1")


class TestExpectedPathLength:
    """Test path length computation."""

    @pytest.mark.parametrize(
        "leaf_count,length", [(1, 1), (2, 1), (3, 2), (4, 2), (5, 3), (8, 3), (9, 4)]
    )
    def test_lengths(self, leaf_count, length):
        assert expected_path_length(leaf_count) == length

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            expected_path_length(0)


class TestLiabilityTree:
    """Test the LiabilityTree class."""

    def test_root_sum_is_total(self, tree):
        assert tree.root.sum == 300
        assert tree.total_sum() == 300
        assert tree.get_root() == tree.root

    def test_empty_tree_rejected(self):
        with pytest.raises(EmptyInputError, match="cannot be empty"):
            LiabilityTree([])

    def test_duplicate_user_rejected(self):
        with pytest.raises(DuplicateError):
            LiabilityTree([("u1", 1), ("u2", 2), ("u1", 3)])

    def test_order_independent(self, liabilities):
        forward = LiabilityTree(liabilities)
        backward = LiabilityTree(list(reversed(liabilities)))
        assert forward.root == backward.root

    def test_leaves_sorted(self):
        tree = LiabilityTree([("c", 1), ("a", 2), ("b", 3)])
        assert [leaf.user_id for leaf in tree.leaves] == ["a", "b", "c"]

    def test_single_leaf_padded(self):
        tree = LiabilityTree([("solo", 9)])
        leaf = LiabilityLeaf("solo", 9).commitment()
        assert tree.root == MerkleSumNode.combine(leaf, MerkleSumNode.zero())
        assert tree.get_depth() == 1

    def test_three_leaf_structure(self):
        tree = LiabilityTree([("u1", 100), ("u2", 150), ("u3", 50)])
        a, b, c = (LiabilityLeaf(u, v).commitment() for u, v in [("u1", 100), ("u2", 150), ("u3", 50)])
        left = MerkleSumNode.combine(a, b)
        right = MerkleSumNode.combine(c, MerkleSumNode.zero())
        assert tree.root == MerkleSumNode.combine(left, right)

    def test_different_balances_different_roots(self):
        assert LiabilityTree([("u1", 1)]).root != LiabilityTree([("u1", 2)]).root

    def test_witness_verifies(self, tree):
        for user_id in ("u1", "u2", "u3"):
            witness = tree.witness(user_id)
            assert witness.verify(tree.root)
            assert len(witness.siblings) == expected_path_length(3)

    def test_witness_unknown_user(self, tree):
        with pytest.raises(NotFoundError):
            tree.witness("nobody")

    def test_contains_and_get_leaf(self, tree):
        assert tree.contains("u2")
        assert not tree.contains("u9")
        assert tree.get_leaf("u2").balance == 150
        with pytest.raises(NotFoundError):
            tree.get_leaf("u9")

    def test_len(self, tree):
        assert len(tree) == 3
        assert tree.get_leaf_count() == 3

    def test_parallel_build_matches_sequential(self):
        leaves = [(f"user{i:04d}", i) for i in range(257)]
        sequential = LiabilityTree(leaves)
        parallel = LiabilityTree(leaves, TreeConfig(parallel_threshold=8, max_workers=3))
        assert parallel.root == sequential.root
        assert parallel.witness("user0100").verify(sequential.root)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            LiabilityTree([("u1", 1)], TreeConfig(parallel_threshold=0))


class TestInclusionWitness:
    """Test inclusion witnesses."""

    def test_tampered_balance_fails(self, tree):
        witness = tree.witness("u2")
        assert not dataclasses.replace(witness, balance=151).verify(tree.root)

    def test_tampered_user_fails(self, tree):
        witness = tree.witness("u2")
        assert not dataclasses.replace(witness, user_id="u4").verify(tree.root)

    def test_wrong_index_fails(self, tree):
        witness = tree.witness("u1")
        assert not dataclasses.replace(witness, leaf_index=1).verify(tree.root)

    def test_index_out_of_range_fails(self, tree):
        witness = tree.witness("u1")
        assert not dataclasses.replace(witness, leaf_index=3).verify(tree.root)

    def test_truncated_path_fails(self, tree):
        witness = tree.witness("u1")
        assert not dataclasses.replace(witness, siblings=witness.siblings[:-1]).verify(tree.root)

    def test_other_root_fails(self, tree):
        other = LiabilityTree([("u1", 100), ("u2", 150), ("u3", 51)])
        assert not tree.witness("u1").verify(other.root)

    def test_dict_encoding(self, tree):
        witness = tree.witness("u3")
        restored = InclusionWitness.from_dict(witness.to_dict())
        assert restored == witness
        assert restored.verify(tree.root)

    def test_bytes_encoding(self, tree):
        witness = tree.witness("u3")
        assert InclusionWitness.from_bytes(witness.to_bytes()) == witness

    def test_invalid_encoding(self):
        with pytest.raises(ValidationError):
            InclusionWitness.from_bytes(b"not json")
        with pytest.raises(ValidationError):
            InclusionWitness.from_dict({"user_id": "u1"})
