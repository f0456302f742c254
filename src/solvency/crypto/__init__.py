"""
Cryptographic primitives for the solvency pipeline.

This module provides the digest type, the Merkle sum tree over user
liabilities, secp256k1 signatures for address-ownership attestations and the
proof layer.
"""

from .hashing import Hash, SHA256Hasher
from .merkle_sum import (
    InclusionWitness,
    LiabilityLeaf,
    LiabilityTree,
    MerkleSumNode,
    TreeConfig,
)
from .signatures import ECDSASigner, PrivateKey, PublicKey, Signature

__all__ = [
    "Hash",
    "SHA256Hasher",
    "MerkleSumNode",
    "LiabilityLeaf",
    "LiabilityTree",
    "InclusionWitness",
    "TreeConfig",
    "PrivateKey",
    "PublicKey",
    "Signature",
    "ECDSASigner",
]
