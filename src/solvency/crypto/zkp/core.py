"""
Core ZKP types and interfaces.

This module defines the proof kinds, the proof envelope, the backend
abstraction and the manager that routes proofs of each kind to the circuit
that defines its relation.
"""

import logging

logger = logging.getLogger(__name__)
import hashlib
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .circuits import CircuitPrivateInputs, CircuitPublicInputs, ZKCircuit
    from .verification import BatchVerifier, VerificationCache


class ZKPType(Enum):
    """Proving systems a backend can implement."""

    # Re-evaluates each relation from a witness carried in the proof blob.
    TRANSPARENT = "transparent"


class ProofKind(Enum):
    """The two relations proven by the pipeline."""

    SOLVENCY = "solvency"
    INCLUSION = "inclusion"


class ZKPStatus(IntEnum):
    """Status codes for ZKP operations."""

    SUCCESS = 0
    INVALID_PROOF = 1
    INVALID_INPUT = 2
    VERIFICATION_FAILED = 3
    GENERATION_FAILED = 4
    BACKEND_ERROR = 5
    MALFORMED_DATA = 6


@dataclass
class ZKPConfig:
    """Configuration for ZKP operations."""

    backend_type: ZKPType = ZKPType.TRANSPARENT

    # A solvency witness grows with the number of users
    max_proof_size: int = 64 * 1024 * 1024
    max_public_input_size: int = 64 * 1024

    enable_verification_cache: bool = True
    cache_size: int = 1000
    cache_ttl: float = 3600.0

    enable_batch_verification: bool = True
    max_batch_size: int = 256
    batch_workers: int = 4

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.max_proof_size <= 0:
            raise ValueError("max_proof_size must be positive")
        if self.max_public_input_size <= 0:
            raise ValueError("max_public_input_size must be positive")
        if self.cache_size <= 0:
            raise ValueError("cache_size must be positive")
        if self.cache_ttl <= 0:
            raise ValueError("cache_ttl must be positive")
        if self.max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        if self.batch_workers <= 0:
            raise ValueError("batch_workers must be positive")


@dataclass
class Proof:
    """A proof of one relation together with the public inputs it claims."""

    proof_data: bytes
    kind: ProofKind
    proof_type: ZKPType
    circuit_id: str
    public_inputs: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.proof_data:
            raise ValueError("proof_data cannot be empty")
        if not self.circuit_id:
            raise ValueError("circuit_id cannot be empty")

    def claimed(self, name: str, default: Any = None) -> Any:
        """A public input value as claimed by the prover."""
        return self.public_inputs.get(name, default)

    def to_bytes(self) -> bytes:
        """Serialize proof to bytes."""
        data = {
            "proof_data": self.proof_data.hex(),
            "kind": self.kind.value,
            "proof_type": self.proof_type.value,
            "circuit_id": self.circuit_id,
            "public_inputs": self.public_inputs,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }
        return json.dumps(data, sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        """Deserialize proof from bytes."""
        try:
            parsed = json.loads(data.decode("utf-8"))
            return cls(
                proof_data=bytes.fromhex(parsed["proof_data"]),
                kind=ProofKind(parsed["kind"]),
                proof_type=ZKPType(parsed["proof_type"]),
                circuit_id=parsed["circuit_id"],
                public_inputs=dict(parsed.get("public_inputs") or {}),
                created_at=float(parsed.get("created_at", 0.0)),
                metadata=dict(parsed.get("metadata") or {}),
            )
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid proof data: {e}")

    def get_hash(self) -> str:
        """Digest of the proof blob and its claimed public inputs."""
        hasher = hashlib.sha256()
        hasher.update(self.kind.value.encode("utf-8"))
        hasher.update(self.proof_data)
        hasher.update(json.dumps(self.public_inputs, sort_keys=True).encode("utf-8"))
        return hasher.hexdigest()


@dataclass
class ProofResult:
    """Result of proof generation."""

    status: ZKPStatus
    proof: Optional[Proof] = None
    error_message: Optional[str] = None
    generation_time: float = 0.0

    @property
    def is_success(self) -> bool:
        return self.status == ZKPStatus.SUCCESS and self.proof is not None


@dataclass
class VerificationResult:
    """Result of proof verification.

    ``status`` says whether the check ran; ``is_valid`` says whether the
    relation holds. A proof that decodes fine but fails its relation has
    status ``INVALID_PROOF``.
    """

    status: ZKPStatus
    is_valid: bool = False
    error_message: Optional[str] = None
    verification_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == ZKPStatus.SUCCESS


class ZKPError(Exception):
    """Base exception for ZKP operations."""

    def __init__(
        self,
        message: str,
        status: ZKPStatus = ZKPStatus.BACKEND_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status = status
        self.details = details or {}


class ZKPBackend(ABC):
    """Abstract base class for proving backends.

    A backend must implement both relations: ``generate_proof`` refuses to
    produce a proof for a false statement and ``verify_proof`` accepts only
    proofs whose relation holds for the supplied public inputs.
    """

    proof_type: ZKPType

    def __init__(self, config: ZKPConfig):
        self.config = config
        self.config.validate()
        self._initialized = False

    @abstractmethod
    def initialize(self) -> None:
        pass

    @abstractmethod
    def generate_proof(
        self,
        kind: ProofKind,
        public_inputs: "CircuitPublicInputs",
        private_inputs: "CircuitPrivateInputs",
    ) -> ProofResult:
        pass

    @abstractmethod
    def verify_proof(
        self, proof: Proof, public_inputs: "CircuitPublicInputs"
    ) -> VerificationResult:
        pass

    @abstractmethod
    def circuit(self, kind: ProofKind) -> "ZKCircuit":
        """The relation this backend proves for ``kind``."""
        pass

    @abstractmethod
    def get_circuit_info(self, kind: ProofKind) -> Dict[str, Any]:
        pass

    def cleanup(self) -> None:
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized


_BACKENDS: Dict[ZKPType, type] = {}


def register_backend(proof_type: ZKPType, backend_cls: type) -> None:
    """Make ``backend_cls`` available to ``ZKPManager`` under ``proof_type``."""
    if not issubclass(backend_cls, ZKPBackend):
        raise TypeError("backend must subclass ZKPBackend")
    _BACKENDS[proof_type] = backend_cls


class ZKPManager:
    """Owns the backend, the verification cache and the batch verifier."""

    def __init__(
        self,
        config: Optional[ZKPConfig] = None,
        circuit_options: Optional[Dict[ProofKind, Dict[str, Any]]] = None,
    ):
        self.config = config or ZKPConfig()
        self.config.validate()
        self._circuit_options = circuit_options or {}
        self.backend: Optional[ZKPBackend] = None
        self._verification_cache: Optional["VerificationCache"] = None
        self._batch_verifier: Optional["BatchVerifier"] = None
        self._initialized = False

    def initialize(self) -> None:
        if self._initialized:
            return

        self.backend = self._create_backend()
        self.backend.initialize()

        if self.config.enable_verification_cache:
            from .verification import VerificationCache

            self._verification_cache = VerificationCache(
                self.config.cache_size, self.config.cache_ttl
            )

        if self.config.enable_batch_verification:
            from .verification import BatchVerifier

            self._batch_verifier = BatchVerifier(
                self.config.max_batch_size, self.config.batch_workers
            )

        self._initialized = True
        logger.info(f"ZKP manager initialized with {self.config.backend_type.value} backend")

    def _require_initialized(self) -> ZKPBackend:
        if not self._initialized or self.backend is None:
            raise ZKPError("ZKP manager not initialized")
        return self.backend

    def generate_proof(
        self,
        kind: ProofKind,
        public_inputs: "CircuitPublicInputs",
        private_inputs: "CircuitPrivateInputs",
    ) -> ProofResult:
        backend = self._require_initialized()

        start_time = time.time()
        result = backend.generate_proof(kind, public_inputs, private_inputs)
        result.generation_time = time.time() - start_time
        if not result.is_success:
            logger.warning(f"{kind.value} proof generation failed: {result.error_message}")
        return result

    def verify_proof(
        self, proof: Proof, public_inputs: "CircuitPublicInputs"
    ) -> VerificationResult:
        backend = self._require_initialized()

        cache_key = None
        if self._verification_cache is not None:
            try:
                cache_key = self._get_cache_key(proof, public_inputs)
            except (ValueError, OverflowError) as e:
                return VerificationResult(
                    status=ZKPStatus.MALFORMED_DATA,
                    error_message=f"Public inputs cannot be encoded: {e}",
                )
            cached_result = self._verification_cache.get(cache_key)
            if cached_result is not None:
                return cached_result

        start_time = time.time()
        result = backend.verify_proof(proof, public_inputs)
        result.verification_time = time.time() - start_time

        # Verdicts are deterministic in (proof, public inputs); backend
        # failures are not cached.
        if cache_key is not None and result.status in (
            ZKPStatus.SUCCESS,
            ZKPStatus.INVALID_PROOF,
        ):
            self._verification_cache.set(cache_key, result)

        return result

    def batch_verify_proofs(
        self, items: Sequence[Tuple[Proof, "CircuitPublicInputs"]]
    ) -> List[VerificationResult]:
        """Verify many proofs; results keep the order of ``items``."""
        self._require_initialized()

        if self._batch_verifier is not None:
            return self._batch_verifier.verify_batch(self.verify_proof, items)
        return [self.verify_proof(proof, public_inputs) for proof, public_inputs in items]

    def get_circuit_info(self, kind: ProofKind) -> Dict[str, Any]:
        return self._require_initialized().get_circuit_info(kind)

    def check_witness(
        self, public_inputs: "CircuitPublicInputs", private_inputs: "CircuitPrivateInputs"
    ) -> bool:
        """Evaluate the relation of ``public_inputs.kind`` directly on a witness."""
        circuit = self._require_initialized().circuit(public_inputs.kind)
        return circuit.verify(public_inputs, private_inputs)

    def get_cache_stats(self) -> Dict[str, Any]:
        if self._verification_cache is None:
            return {}
        return self._verification_cache.get_stats()

    def cleanup(self) -> None:
        if self.backend:
            self.backend.cleanup()
        if self._verification_cache is not None:
            self._verification_cache.clear()
        self._initialized = False

    def _create_backend(self) -> ZKPBackend:
        # Importing the module registers the built-in backends
        from . import backends  # noqa: F401

        backend_cls = _BACKENDS.get(self.config.backend_type)
        if backend_cls is None:
            raise ValueError(f"Unsupported backend type: {self.config.backend_type}")
        return backend_cls(self.config, self._circuit_options)

    def _get_cache_key(self, proof: Proof, public_inputs: "CircuitPublicInputs") -> str:
        data = proof.get_hash() + "|" + public_inputs.digest().to_hex()
        return hashlib.sha256(data.encode()).hexdigest()

    @property
    def is_initialized(self) -> bool:
        return self._initialized
