"""
Merkle sum tree over user liabilities.

Each node carries a digest and the sum of every balance below it, so a
single root commits both to the membership of each (user, balance) pair and
to the exchange's total liabilities. Internal nodes bind their children as
``H(node_tag || L.hash || L.sum || R.hash || R.sum)``; leaves bind
``H(leaf_tag || user_id || balance || salt)``. Sums are encoded as 32-byte
big-endian integers.

Leaves are sorted by ``user_id`` before hashing, and every level with an odd
number of nodes (including a single-leaf bottom level) is padded on the right
with the canonical zero leaf ``(32 zero bytes, 0)``, so the same leaf set
always yields the same root.
"""

import logging

logger = logging.getLogger(__name__)
import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..errors.exceptions import (
    CryptographicError,
    DuplicateError,
    EmptyInputError,
    NotFoundError,
    ValidationError,
)
from .hashing import Hash, SHA256Hasher, encode_bytes, encode_uint

LEAF_DOMAIN = b"solvency.mst.leaf"
NODE_DOMAIN = b"solvency.mst.node"
SUM_WIDTH = 32
MAX_SUM = (1 << (8 * SUM_WIDTH)) - 1


def _encode_sum(value: int) -> bytes:
    if value > MAX_SUM:
        raise ValidationError(
            "Sum does not fit in 32 bytes", field="sum", value=value, expected=f"<= {MAX_SUM}"
        )
    return encode_uint(value, SUM_WIDTH)


@dataclass(frozen=True)
class MerkleSumNode:
    """A digest plus the total balance committed beneath it."""

    hash: Hash
    sum: int

    def __post_init__(self) -> None:
        if not isinstance(self.hash, Hash):
            raise TypeError("hash must be a Hash")
        if isinstance(self.sum, bool) or not isinstance(self.sum, int) or self.sum < 0:
            raise ValidationError(
                "Node sum must be a non-negative integer",
                field="sum",
                value=self.sum,
                expected=">= 0",
            )

    @classmethod
    def zero(cls) -> "MerkleSumNode":
        """The canonical padding leaf."""
        return cls(Hash.zero(), 0)

    @staticmethod
    def combine(left: "MerkleSumNode", right: "MerkleSumNode") -> "MerkleSumNode":
        """Compute the parent of two sibling nodes."""
        digest = SHA256Hasher.domain_hash(
            NODE_DOMAIN,
            left.hash.value,
            _encode_sum(left.sum),
            right.hash.value,
            _encode_sum(right.sum),
        )
        return MerkleSumNode(digest, left.sum + right.sum)

    def is_zero(self) -> bool:
        return self.sum == 0 and self.hash.is_zero()

    def to_bytes(self) -> bytes:
        """64-byte encoding: digest followed by the 32-byte sum."""
        return self.hash.value + _encode_sum(self.sum)

    @classmethod
    def from_bytes(cls, data: bytes) -> "MerkleSumNode":
        if len(data) != 32 + SUM_WIDTH:
            raise ValidationError(
                "Encoded node must be 64 bytes", field="node", value=len(data), expected=64
            )
        return cls(Hash(data[:32]), int.from_bytes(data[32:], "big"))

    def to_dict(self) -> Dict[str, Any]:
        return {"hash": self.hash.to_hex(), "sum": self.sum}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MerkleSumNode":
        try:
            return cls(Hash.from_hex(data["hash"]), int(data["sum"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid node encoding: {e}", field="node")

    def __str__(self) -> str:
        return f"MerkleSumNode(hash={self.hash.to_hex()[:16]}..., sum={self.sum})"


@dataclass(frozen=True)
class LiabilityLeaf:
    """A single user's liability: an opaque id, a balance and an optional salt."""

    user_id: str
    balance: int
    salt: bytes = b""

    def __post_init__(self) -> None:
        if not isinstance(self.user_id, str) or not self.user_id:
            raise ValidationError(
                "user_id must be a non-empty string", field="user_id", value=self.user_id
            )
        if (
            isinstance(self.balance, bool)
            or not isinstance(self.balance, int)
            or self.balance < 0
        ):
            raise ValidationError(
                "balance must be a non-negative integer",
                field="balance",
                value=self.balance,
                expected=">= 0",
            )
        if not isinstance(self.salt, (bytes, bytearray)):
            raise ValidationError("salt must be bytes", field="salt", value=self.salt)

    @classmethod
    def coerce(
        cls, item: Union["LiabilityLeaf", Tuple[Any, ...], Dict[str, Any]]
    ) -> "LiabilityLeaf":
        """Accept a leaf, a ``(user_id, balance[, salt])`` tuple or a mapping."""
        if isinstance(item, LiabilityLeaf):
            return item
        if isinstance(item, dict):
            salt = item.get("salt", b"")
            if isinstance(salt, str):
                salt = bytes.fromhex(salt)
            return cls(item.get("user_id"), item.get("balance"), salt)
        if isinstance(item, (tuple, list)) and len(item) in (2, 3):
            return cls(*item)
        raise ValidationError(f"Cannot interpret {item!r} as a liability leaf", field="leaf")

    def commitment(self) -> MerkleSumNode:
        """Leaf node: digest of (user_id, balance, salt) with sum = balance."""
        digest = SHA256Hasher.domain_hash(
            LEAF_DOMAIN,
            encode_bytes(self.user_id.encode("utf-8")),
            _encode_sum(self.balance),
            encode_bytes(bytes(self.salt)),
        )
        return MerkleSumNode(digest, self.balance)

    def to_dict(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "balance": self.balance, "salt": self.salt.hex()}


def expected_path_length(leaf_count: int) -> int:
    """Number of siblings on the path of any leaf in a tree of ``leaf_count`` leaves."""
    if leaf_count <= 0:
        raise ValidationError("leaf_count must be positive", field="leaf_count", value=leaf_count)
    depth = 0
    width = leaf_count
    while True:
        width = (width + 1) // 2
        depth += 1
        if width == 1:
            return depth


@dataclass(frozen=True)
class InclusionWitness:
    """Everything a user needs to recompute the root from their own leaf."""

    user_id: str
    balance: int
    leaf_index: int
    siblings: Tuple[MerkleSumNode, ...]
    leaf_count: int
    salt: bytes = b""

    def leaf(self) -> LiabilityLeaf:
        return LiabilityLeaf(self.user_id, self.balance, self.salt)

    def compute_root(self) -> MerkleSumNode:
        """Fold the path bottom-up; bit ``i`` of ``leaf_index`` picks the side at level ``i``."""
        if not 0 <= self.leaf_index < self.leaf_count:
            raise ValidationError(
                "leaf_index out of range",
                field="leaf_index",
                value=self.leaf_index,
                expected=f"[0, {self.leaf_count})",
            )
        if len(self.siblings) != expected_path_length(self.leaf_count):
            raise ValidationError(
                "Path length does not match leaf count",
                field="siblings",
                value=len(self.siblings),
                expected=expected_path_length(self.leaf_count),
            )

        node = self.leaf().commitment()
        index = self.leaf_index
        for sibling in self.siblings:
            if index & 1:
                node = MerkleSumNode.combine(sibling, node)
            else:
                node = MerkleSumNode.combine(node, sibling)
            index >>= 1
        return node

    def verify(self, root: MerkleSumNode) -> bool:
        """True iff this path leads to exactly ``root`` (digest and sum)."""
        try:
            return self.compute_root() == root
        except ValidationError as e:
            logger.debug(f"Inclusion witness rejected: {e}")
            return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "balance": self.balance,
            "salt": self.salt.hex(),
            "leaf_index": self.leaf_index,
            "leaf_count": self.leaf_count,
            "siblings": [s.to_dict() for s in self.siblings],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InclusionWitness":
        try:
            return cls(
                user_id=data["user_id"],
                balance=int(data["balance"]),
                salt=bytes.fromhex(data.get("salt", "")),
                leaf_index=int(data["leaf_index"]),
                leaf_count=int(data["leaf_count"]),
                siblings=tuple(MerkleSumNode.from_dict(s) for s in data["siblings"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid witness encoding: {e}", field="witness")

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "InclusionWitness":
        try:
            return cls.from_dict(json.loads(data.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Invalid witness encoding: {e}", field="witness")


@dataclass
class TreeConfig:
    """Configuration for tree construction."""

    # Levels wider than this are hashed in parallel chunks
    parallel_threshold: int = 4096
    max_workers: int = 4

    def validate(self) -> None:
        if self.parallel_threshold <= 0:
            raise ValueError("parallel_threshold must be positive")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")


def _combine_pairs(nodes: Sequence[MerkleSumNode]) -> List[MerkleSumNode]:
    return [MerkleSumNode.combine(nodes[i], nodes[i + 1]) for i in range(0, len(nodes), 2)]


class LiabilityTree:
    """Sum-preserving Merkle tree built from a snapshot of user liabilities."""

    def __init__(
        self,
        leaves: Iterable[Union[LiabilityLeaf, Tuple[Any, ...], Dict[str, Any]]],
        config: Optional[TreeConfig] = None,
    ):
        """
        Build the tree.

        Args:
            leaves: Liability leaves, or ``(user_id, balance[, salt])`` tuples
            config: Optional construction settings

        Raises:
            EmptyInputError: if ``leaves`` is empty
            DuplicateError: if a user id appears twice
            CryptographicError: if the root sum disagrees with the leaf balances
        """
        self.config = config or TreeConfig()
        self.config.validate()

        coerced = [LiabilityLeaf.coerce(item) for item in leaves]
        if not coerced:
            raise EmptyInputError("Liability tree cannot be empty", field="leaves")

        self._leaves: List[LiabilityLeaf] = sorted(coerced, key=lambda leaf: leaf.user_id)
        self._index: Dict[str, int] = {}
        for position, leaf in enumerate(self._leaves):
            if leaf.user_id in self._index:
                raise DuplicateError(
                    f"Duplicate user id in liability set: {leaf.user_id}", key=leaf.user_id
                )
            self._index[leaf.user_id] = position

        self._total = sum(leaf.balance for leaf in self._leaves)
        self.levels = self._build_levels()
        self.root: MerkleSumNode = self.levels[-1][0]

        if self.root.sum != self._total:
            raise CryptographicError(
                f"Root sum {self.root.sum} does not match total liabilities {self._total}",
                algorithm="merkle-sum",
            )

        logger.debug(
            f"Built liability tree: {len(self._leaves)} leaves, depth {self.get_depth()}, "
            f"total {self._total}"
        )

    @classmethod
    def build(
        cls,
        leaves: Iterable[Union[LiabilityLeaf, Tuple[Any, ...], Dict[str, Any]]],
        config: Optional[TreeConfig] = None,
    ) -> "LiabilityTree":
        return cls(leaves, config)

    def _build_levels(self) -> List[List[MerkleSumNode]]:
        current = self._hash_leaves()
        levels = []

        # The bottom level is always combined at least once, so a single
        # leaf still gets a sibling and the root is always an internal node.
        while True:
            if len(current) % 2 == 1:
                current.append(MerkleSumNode.zero())
            levels.append(current)
            current = self._combine_level(current)
            if len(current) == 1:
                levels.append(current)
                return levels

    def _hash_leaves(self) -> List[MerkleSumNode]:
        if len(self._leaves) <= self.config.parallel_threshold:
            return [leaf.commitment() for leaf in self._leaves]
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(executor.map(LiabilityLeaf.commitment, self._leaves))

    def _combine_level(self, nodes: List[MerkleSumNode]) -> List[MerkleSumNode]:
        if len(nodes) <= self.config.parallel_threshold:
            return _combine_pairs(nodes)

        # Chunks keep an even length so no pair straddles two workers
        chunk = max(2, (len(nodes) // self.config.max_workers) & ~1)
        chunks = [nodes[i : i + chunk] for i in range(0, len(nodes), chunk)]
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            results = executor.map(_combine_pairs, chunks)
        combined: List[MerkleSumNode] = []
        for part in results:
            combined.extend(part)
        return combined

    def get_root(self) -> MerkleSumNode:
        return self.root

    def total_sum(self) -> int:
        """Sum of all leaf balances; equal to ``root.sum``."""
        return self._total

    def witness(self, user_id: str) -> InclusionWitness:
        """
        Build the inclusion path for ``user_id``.

        Raises:
            NotFoundError: if the user is not part of this snapshot
        """
        if user_id not in self._index:
            raise NotFoundError(f"User {user_id!r} is not in the liability tree", key=user_id)

        leaf_index = self._index[user_id]
        leaf = self._leaves[leaf_index]
        siblings = []
        index = leaf_index
        for level in self.levels[:-1]:
            siblings.append(level[index ^ 1])
            index >>= 1

        return InclusionWitness(
            user_id=leaf.user_id,
            balance=leaf.balance,
            salt=bytes(leaf.salt),
            leaf_index=leaf_index,
            siblings=tuple(siblings),
            leaf_count=len(self._leaves),
        )

    def contains(self, user_id: str) -> bool:
        return user_id in self._index

    def get_leaf(self, user_id: str) -> LiabilityLeaf:
        if user_id not in self._index:
            raise NotFoundError(f"User {user_id!r} is not in the liability tree", key=user_id)
        return self._leaves[self._index[user_id]]

    @property
    def leaves(self) -> Tuple[LiabilityLeaf, ...]:
        """Leaves in canonical (sorted) order."""
        return tuple(self._leaves)

    def get_leaf_count(self) -> int:
        return len(self._leaves)

    def get_depth(self) -> int:
        return len(self.levels) - 1

    def __len__(self) -> int:
        return len(self._leaves)

    def __str__(self) -> str:
        return f"LiabilityTree(root={self.root.hash.to_hex()[:16]}..., leaves={len(self._leaves)})"

    def __repr__(self) -> str:
        return f"LiabilityTree({len(self._leaves)} leaves, total={self._total})"
