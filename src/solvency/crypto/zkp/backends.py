"""
ZKP backend implementations.

``TransparentBackend`` is the reference backend: its proof blob carries the
witness bound to a digest of the public inputs, and verification re-evaluates
the circuit relation. It reveals the witness, so it is not zero-knowledge;
it is the executable definition every succinct backend has to agree with.

Blob layout::

    magic (4 bytes, b"TPF1") | kind tag (1 byte) | public-input digest (32 bytes) | witness JSON
"""

import logging

logger = logging.getLogger(__name__)
import json
import time
from typing import Any, Dict, Optional, Tuple

from ...errors.exceptions import SolvencyError
from ..hashing import DIGEST_SIZE, Hash
from .circuits import CircuitPrivateInputs, CircuitPublicInputs, ZKCircuit, circuit_for
from .core import (
    Proof,
    ProofKind,
    ProofResult,
    VerificationResult,
    ZKPBackend,
    ZKPConfig,
    ZKPStatus,
    ZKPType,
    register_backend,
)
from .verification import ProofVerifier

TRANSPARENT_MAGIC = b"TPF1"
_KIND_TAGS = {ProofKind.SOLVENCY: 1, ProofKind.INCLUSION: 2}
_TAG_KINDS = {tag: kind for kind, tag in _KIND_TAGS.items()}
_HEADER_SIZE = len(TRANSPARENT_MAGIC) + 1 + DIGEST_SIZE


def encode_transparent_proof(
    kind: ProofKind, inputs_digest: Hash, witness: Dict[str, Any]
) -> bytes:
    body = json.dumps(witness, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return TRANSPARENT_MAGIC + bytes([_KIND_TAGS[kind]]) + inputs_digest.value + body


def decode_transparent_proof(data: bytes) -> Tuple[ProofKind, Hash, Dict[str, Any]]:
    """Split a blob into (kind, public-input digest, witness); ``ValueError`` if malformed."""
    if len(data) <= _HEADER_SIZE or not data.startswith(TRANSPARENT_MAGIC):
        raise ValueError("Not a transparent proof")

    tag = data[len(TRANSPARENT_MAGIC)]
    if tag not in _TAG_KINDS:
        raise ValueError(f"Unknown proof kind tag {tag}")

    digest = Hash(data[len(TRANSPARENT_MAGIC) + 1 : _HEADER_SIZE])
    try:
        witness = json.loads(data[_HEADER_SIZE:].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid witness encoding: {e}")
    if not isinstance(witness, dict):
        raise ValueError("Witness must be an object")
    return _TAG_KINDS[tag], digest, witness


def build_transparent_proof(
    public_inputs: CircuitPublicInputs,
    private_inputs: CircuitPrivateInputs,
    circuit_id: str,
) -> Proof:
    """Package a witness as a transparent proof without evaluating the relation."""
    return Proof(
        proof_data=encode_transparent_proof(
            public_inputs.kind, public_inputs.digest(), private_inputs.to_dict()
        ),
        kind=public_inputs.kind,
        proof_type=ZKPType.TRANSPARENT,
        circuit_id=circuit_id,
        public_inputs=public_inputs.to_claims(),
        metadata={"generator": "transparent"},
    )


class TransparentBackend(ZKPBackend):
    """Reference backend that re-checks each relation from its witness."""

    proof_type = ZKPType.TRANSPARENT

    def __init__(
        self,
        config: ZKPConfig,
        circuit_options: Optional[Dict[ProofKind, Dict[str, Any]]] = None,
    ):
        super().__init__(config)
        self._circuit_options = circuit_options or {}
        self._circuits: Dict[ProofKind, ZKCircuit] = {}
        self._verifier = ProofVerifier(config)

    def initialize(self) -> None:
        for kind in ProofKind:
            self._circuits[kind] = circuit_for(kind, **self._circuit_options.get(kind, {}))
        self._initialized = True

    def circuit(self, kind: ProofKind) -> ZKCircuit:
        return self._circuits[kind]

    def generate_proof(
        self,
        kind: ProofKind,
        public_inputs: CircuitPublicInputs,
        private_inputs: CircuitPrivateInputs,
    ) -> ProofResult:
        if not self._initialized:
            return ProofResult(
                status=ZKPStatus.BACKEND_ERROR, error_message="Backend not initialized"
            )

        start_time = time.time()

        if public_inputs.kind != kind or private_inputs.kind != kind:
            return ProofResult(
                status=ZKPStatus.INVALID_INPUT,
                error_message=f"Inputs do not belong to a {kind.value} proof",
            )

        circuit = self._circuits[kind]
        try:
            holds = circuit.verify(public_inputs, private_inputs)
            proof = build_transparent_proof(public_inputs, private_inputs, circuit.circuit_id)
        except (SolvencyError, ValueError, OverflowError) as e:
            return ProofResult(
                status=ZKPStatus.INVALID_INPUT,
                error_message=f"Invalid inputs: {e}",
                generation_time=time.time() - start_time,
            )

        if not holds:
            return ProofResult(
                status=ZKPStatus.GENERATION_FAILED,
                error_message=f"The {kind.value} relation does not hold for these inputs",
                generation_time=time.time() - start_time,
            )

        return ProofResult(
            status=ZKPStatus.SUCCESS,
            proof=proof,
            generation_time=time.time() - start_time,
        )

    def verify_proof(self, proof: Proof, public_inputs: CircuitPublicInputs) -> VerificationResult:
        if not self._initialized:
            return VerificationResult(
                status=ZKPStatus.BACKEND_ERROR, error_message="Backend not initialized"
            )

        start_time = time.time()

        is_valid, error_msg = self._verifier.validate_proof_format(proof, public_inputs.kind)
        if not is_valid:
            return VerificationResult(status=ZKPStatus.MALFORMED_DATA, error_message=error_msg)

        if proof.proof_type != self.proof_type:
            return VerificationResult(
                status=ZKPStatus.INVALID_INPUT,
                error_message=f"Backend cannot verify {proof.proof_type.value} proofs",
            )

        try:
            kind, digest, witness_data = decode_transparent_proof(proof.proof_data)
            circuit = self._circuits[kind]
            private_inputs = circuit.decode_witness(witness_data)
            expected_digest = public_inputs.digest()
        except (SolvencyError, ValueError, OverflowError) as e:
            return VerificationResult(
                status=ZKPStatus.MALFORMED_DATA,
                error_message=f"Malformed proof: {e}",
                verification_time=time.time() - start_time,
            )

        if kind != public_inputs.kind:
            return VerificationResult(
                status=ZKPStatus.INVALID_PROOF,
                error_message="Proof kind does not match its header",
                verification_time=time.time() - start_time,
            )

        if digest != expected_digest:
            return VerificationResult(
                status=ZKPStatus.INVALID_PROOF,
                error_message="Proof was produced for different public inputs",
                verification_time=time.time() - start_time,
            )

        if not circuit.verify(public_inputs, private_inputs):
            return VerificationResult(
                status=ZKPStatus.INVALID_PROOF,
                error_message=f"The {kind.value} relation does not hold",
                verification_time=time.time() - start_time,
            )

        return VerificationResult(
            status=ZKPStatus.SUCCESS,
            is_valid=True,
            verification_time=time.time() - start_time,
            metadata={"circuit_id": circuit.circuit_id},
        )

    def get_circuit_info(self, kind: ProofKind) -> Dict[str, Any]:
        if kind not in self._circuits:
            return {"kind": kind.value, "exists": False}
        info = self._circuits[kind].get_circuit_info()
        info["exists"] = True
        info["backend"] = self.proof_type.value
        return info

    def cleanup(self) -> None:
        self._circuits.clear()
        self._initialized = False


register_backend(ZKPType.TRANSPARENT, TransparentBackend)
