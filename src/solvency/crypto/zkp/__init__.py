"""
Proof layer for the solvency pipeline.

Two relations are proven: aggregate solvency of a committed liability
snapshot and a single user's inclusion in it. Each ``ProofKind`` maps to one
circuit, and every backend implements both with the same
``verify(proof, public_inputs)`` contract.
"""

from .backends import TransparentBackend, build_transparent_proof, decode_transparent_proof
from .circuits import (
    BalanceDisclosure,
    CircuitPrivateInputs,
    CircuitPublicInputs,
    Constraint,
    ConstraintSystem,
    ConstraintType,
    InclusionCircuit,
    InclusionPrivateInputs,
    InclusionPublicInputs,
    SolvencyCircuit,
    SolvencyPrivateInputs,
    SolvencyPublicInputs,
    ZKCircuit,
    circuit_for,
)
from .core import (
    Proof,
    ProofKind,
    ProofResult,
    VerificationResult,
    ZKPBackend,
    ZKPConfig,
    ZKPError,
    ZKPManager,
    ZKPStatus,
    ZKPType,
    register_backend,
)
from .generation import ProofGenerator
from .verification import BatchVerifier, ProofVerifier, VerificationCache

__all__ = [
    # Core types
    "ZKPBackend",
    "ZKPConfig",
    "ZKPError",
    "ZKPManager",
    "Proof",
    "ProofKind",
    "ProofResult",
    "VerificationResult",
    "ZKPType",
    "ZKPStatus",
    "register_backend",
    # Backends
    "TransparentBackend",
    "build_transparent_proof",
    "decode_transparent_proof",
    # Circuits
    "ZKCircuit",
    "SolvencyCircuit",
    "InclusionCircuit",
    "circuit_for",
    "ConstraintSystem",
    "Constraint",
    "ConstraintType",
    "BalanceDisclosure",
    "CircuitPublicInputs",
    "CircuitPrivateInputs",
    "SolvencyPublicInputs",
    "SolvencyPrivateInputs",
    "InclusionPublicInputs",
    "InclusionPrivateInputs",
    # Verification
    "ProofVerifier",
    "BatchVerifier",
    "VerificationCache",
    # Generation
    "ProofGenerator",
]
