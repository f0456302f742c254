"""
Circuit definitions for the solvency and inclusion relations.

Each circuit declares its variables and constraints in a ``ConstraintSystem``
and implements ``verify(public_inputs, private_inputs)``, the executable
definition of its relation. Backends prove and check exactly this relation.
"""

import logging

logger = logging.getLogger(__name__)
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from ...core.types import MAX_TIMESTAMP, Asset, normalize_assets, total_assets
from ...errors.exceptions import SolvencyError, ValidationError
from ..hashing import Hash, SHA256Hasher, encode_bytes, encode_uint
from ..merkle_sum import (
    InclusionWitness,
    LiabilityLeaf,
    LiabilityTree,
    MerkleSumNode,
    TreeConfig,
)
from .core import ProofKind

SOLVENCY_INPUTS_DOMAIN = b"solvency.inputs.solvency"
INCLUSION_INPUTS_DOMAIN = b"solvency.inputs.inclusion"


class ConstraintType(Enum):
    """Types of constraints in a circuit."""

    EQUALITY = "equality"
    INEQUALITY = "inequality"
    RANGE = "range"
    HASH = "hash"
    MEMBERSHIP = "membership"


class BalanceDisclosure(Enum):
    """Whether an inclusion proof reveals the user's balance."""

    PUBLIC = "public"
    PRIVATE = "private"


@dataclass
class Constraint:
    """Represents a constraint in a circuit."""

    constraint_id: str
    constraint_type: ConstraintType
    variables: List[str]
    parameters: Dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self):
        if not self.constraint_id:
            raise ValueError("constraint_id cannot be empty")
        if not self.variables:
            raise ValueError("constraint must have at least one variable")


@dataclass
class ConstraintSystem:
    """Represents a system of constraints for a circuit."""

    constraints: List[Constraint] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)  # variable_name -> type
    public_variables: List[str] = field(default_factory=list)
    private_variables: List[str] = field(default_factory=list)

    def add_constraint(self, constraint: Constraint) -> None:
        for var in constraint.variables:
            if var not in self.variables:
                raise ValueError(f"Variable {var} not defined in constraint system")

        self.constraints.append(constraint)

    def add_variable(self, name: str, var_type: str, is_public: bool = False) -> None:
        if name in self.variables:
            raise ValueError(f"Variable {name} already exists")

        self.variables[name] = var_type
        if is_public:
            self.public_variables.append(name)
        else:
            self.private_variables.append(name)

    def validate(self) -> bool:
        """Validate the constraint system."""
        for constraint in self.constraints:
            for var in constraint.variables:
                if var not in self.variables:
                    return False

        return not (set(self.public_variables) & set(self.private_variables))

    def get_constraint_count(self) -> int:
        return len(self.constraints)

    def get_variable_count(self) -> int:
        return len(self.variables)


class CircuitPublicInputs(ABC):
    """Public inputs of one relation.

    ``digest()`` binds a proof to the exact statement it was produced for;
    ``to_claims()`` is the JSON form carried alongside a proof.
    """

    kind: ProofKind

    @abstractmethod
    def digest(self) -> Hash:
        pass

    @abstractmethod
    def to_claims(self) -> Dict[str, Any]:
        pass


class CircuitPrivateInputs(ABC):
    """Witness of one relation."""

    kind: ProofKind

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        pass


@dataclass(frozen=True)
class SolvencyPublicInputs(CircuitPublicInputs):
    """Committed root, asset list and snapshot time."""

    mst_root: MerkleSumNode
    assets: Tuple[Asset, ...]
    timestamp: int

    kind = ProofKind.SOLVENCY

    def total_assets(self) -> int:
        return total_assets(self.assets)

    def digest(self) -> Hash:
        parts = [self.mst_root.to_bytes(), encode_uint(self.timestamp, 8)]
        for asset in self.assets:
            parts.append(encode_bytes(asset.name.encode("utf-8")))
            parts.append(encode_bytes(asset.chain_id.encode("utf-8")))
            parts.append(encode_uint(asset.amount))
        return SHA256Hasher.domain_hash(SOLVENCY_INPUTS_DOMAIN, *parts)

    def to_claims(self) -> Dict[str, Any]:
        return {
            "mst_root": self.mst_root.to_dict(),
            "assets": [asset.to_dict() for asset in self.assets],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "SolvencyPublicInputs":
        try:
            return cls(
                mst_root=MerkleSumNode.from_dict(claims["mst_root"]),
                assets=tuple(Asset.coerce(a) for a in claims["assets"]),
                timestamp=int(claims["timestamp"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid solvency public inputs: {e}", field="public_inputs")


@dataclass(frozen=True)
class SolvencyPrivateInputs(CircuitPrivateInputs):
    """The full liability leaf set behind a root."""

    leaves: Tuple[LiabilityLeaf, ...]

    kind = ProofKind.SOLVENCY

    def to_dict(self) -> Dict[str, Any]:
        return {"leaves": [leaf.to_dict() for leaf in self.leaves]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolvencyPrivateInputs":
        try:
            return cls(tuple(LiabilityLeaf.coerce(item) for item in data["leaves"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid solvency witness: {e}", field="witness")


@dataclass(frozen=True)
class InclusionPublicInputs(CircuitPublicInputs):
    """Root the user checks against and, when disclosed, their balance."""

    mst_root: MerkleSumNode
    balance: Optional[int] = None

    kind = ProofKind.INCLUSION

    @property
    def disclosure(self) -> BalanceDisclosure:
        if self.balance is None:
            return BalanceDisclosure.PRIVATE
        return BalanceDisclosure.PUBLIC

    def digest(self) -> Hash:
        if self.balance is None:
            return SHA256Hasher.domain_hash(
                INCLUSION_INPUTS_DOMAIN, self.mst_root.to_bytes(), b"\x00"
            )
        return SHA256Hasher.domain_hash(
            INCLUSION_INPUTS_DOMAIN, self.mst_root.to_bytes(), b"\x01", encode_uint(self.balance)
        )

    def to_claims(self) -> Dict[str, Any]:
        return {"mst_root": self.mst_root.to_dict(), "balance": self.balance}


@dataclass(frozen=True)
class InclusionPrivateInputs(CircuitPrivateInputs):
    """A user's leaf and its path to the root."""

    witness: InclusionWitness

    kind = ProofKind.INCLUSION

    def to_dict(self) -> Dict[str, Any]:
        return self.witness.to_dict()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InclusionPrivateInputs":
        return cls(InclusionWitness.from_dict(data))


class ZKCircuit(ABC):
    """Abstract base class for the relations proven by a backend."""

    kind: ProofKind
    private_inputs_type: Type[CircuitPrivateInputs]

    def __init__(self, circuit_id: str):
        self.circuit_id = circuit_id
        self.constraint_system = ConstraintSystem()
        self._built = False

    @abstractmethod
    def build(self) -> None:
        """Declare the circuit's variables and constraints."""
        pass

    @abstractmethod
    def verify(
        self, public_inputs: CircuitPublicInputs, private_inputs: CircuitPrivateInputs
    ) -> bool:
        """True iff the relation holds for these inputs."""
        pass

    def decode_witness(self, data: Dict[str, Any]) -> CircuitPrivateInputs:
        return self.private_inputs_type.from_dict(data)

    def _check_kinds(
        self, public_inputs: CircuitPublicInputs, private_inputs: CircuitPrivateInputs
    ) -> bool:
        return public_inputs.kind == self.kind and private_inputs.kind == self.kind

    def get_circuit_info(self) -> Dict[str, Any]:
        if not self._built:
            self.build()

        return {
            "circuit_id": self.circuit_id,
            "kind": self.kind.value,
            "constraint_count": self.constraint_system.get_constraint_count(),
            "variable_count": self.constraint_system.get_variable_count(),
            "public_variables": list(self.constraint_system.public_variables),
            "private_variables": list(self.constraint_system.private_variables),
            "constraints": [
                {
                    "id": c.constraint_id,
                    "type": c.constraint_type.value,
                    "variables": c.variables,
                    "description": c.description,
                }
                for c in self.constraint_system.constraints
            ],
        }

    def validate(self) -> bool:
        if not self._built:
            self.build()

        return self.constraint_system.validate()

    @property
    def is_built(self) -> bool:
        return self._built


class SolvencyCircuit(ZKCircuit):
    """
    Aggregate solvency.

    Public: ``mst_root``, ``assets``, ``timestamp``. Private: the liability
    leaves. Holds iff the tree rebuilt from the leaves has exactly
    ``mst_root`` (digest and sum) and the asset total covers the liability
    total. Asset custody is not part of the relation.
    """

    kind = ProofKind.SOLVENCY
    private_inputs_type = SolvencyPrivateInputs

    def __init__(self, circuit_id: str = "solvency_v1", tree_config: Optional[TreeConfig] = None):
        super().__init__(circuit_id)
        self.tree_config = tree_config

    def build(self) -> None:
        cs = self.constraint_system
        cs.add_variable("mst_root_hash", "digest", is_public=True)
        cs.add_variable("mst_root_sum", "uint256", is_public=True)
        cs.add_variable("asset_total", "uint256", is_public=True)
        cs.add_variable("timestamp", "uint64", is_public=True)
        cs.add_variable("leaves", "leaf[]", is_public=False)
        cs.add_variable("liability_total", "uint256", is_public=False)

        cs.add_constraint(
            Constraint(
                "tree_root",
                ConstraintType.HASH,
                ["leaves", "mst_root_hash"],
                parameters={"algorithm": "sha256-merkle-sum"},
                description="Merkle sum tree over the leaves has root mst_root_hash",
            )
        )
        cs.add_constraint(
            Constraint(
                "root_sum",
                ConstraintType.EQUALITY,
                ["liability_total", "mst_root_sum"],
                description="Liability total equals the root sum",
            )
        )
        cs.add_constraint(
            Constraint(
                "solvent",
                ConstraintType.INEQUALITY,
                ["asset_total", "liability_total"],
                parameters={"relation": ">="},
                description="Assets cover liabilities",
            )
        )
        cs.add_constraint(
            Constraint(
                "timestamp_range",
                ConstraintType.RANGE,
                ["timestamp"],
                parameters={"min": 1, "max": MAX_TIMESTAMP},
            )
        )
        self._built = True

    def verify(
        self, public_inputs: CircuitPublicInputs, private_inputs: CircuitPrivateInputs
    ) -> bool:
        if not self._check_kinds(public_inputs, private_inputs):
            return False
        if not 0 < public_inputs.timestamp <= MAX_TIMESTAMP:
            return False

        try:
            normalize_assets(public_inputs.assets)
            tree = LiabilityTree(private_inputs.leaves, self.tree_config)
        except SolvencyError as e:
            logger.debug(f"Solvency witness rejected: {e}")
            return False

        if tree.root != public_inputs.mst_root:
            return False
        return public_inputs.total_assets() >= tree.total_sum()


class InclusionCircuit(ZKCircuit):
    """
    Membership of one (user_id, balance) leaf.

    Public: ``mst_root`` and, under ``BalanceDisclosure.PUBLIC``, the balance.
    Private: user id, balance, salt and the inclusion path. Holds iff the path
    recomputes exactly ``mst_root``.
    """

    kind = ProofKind.INCLUSION
    private_inputs_type = InclusionPrivateInputs

    def __init__(self, circuit_id: str = "inclusion_v1"):
        super().__init__(circuit_id)

    def build(self) -> None:
        cs = self.constraint_system
        cs.add_variable("mst_root_hash", "digest", is_public=True)
        cs.add_variable("mst_root_sum", "uint256", is_public=True)
        cs.add_variable("claimed_balance", "uint256", is_public=True)
        cs.add_variable("user_id", "bytes", is_public=False)
        cs.add_variable("balance", "uint256", is_public=False)
        cs.add_variable("salt", "bytes", is_public=False)
        cs.add_variable("path", "node[]", is_public=False)

        cs.add_constraint(
            Constraint(
                "membership",
                ConstraintType.MEMBERSHIP,
                ["user_id", "balance", "salt", "path", "mst_root_hash", "mst_root_sum"],
                description="Path from the leaf recomputes the root",
            )
        )
        cs.add_constraint(
            Constraint(
                "disclosed_balance",
                ConstraintType.EQUALITY,
                ["balance", "claimed_balance"],
                parameters={"only_when": BalanceDisclosure.PUBLIC.value},
                description="Disclosed balance matches the leaf",
            )
        )
        self._built = True

    def verify(
        self, public_inputs: CircuitPublicInputs, private_inputs: CircuitPrivateInputs
    ) -> bool:
        if not self._check_kinds(public_inputs, private_inputs):
            return False

        witness = private_inputs.witness
        if public_inputs.balance is not None and public_inputs.balance != witness.balance:
            return False
        return witness.verify(public_inputs.mst_root)


_CIRCUITS: Dict[ProofKind, Type[ZKCircuit]] = {
    ProofKind.SOLVENCY: SolvencyCircuit,
    ProofKind.INCLUSION: InclusionCircuit,
}


def circuit_for(kind: ProofKind, **kwargs: Any) -> ZKCircuit:
    """Instantiate and build the circuit that defines ``kind``."""
    try:
        circuit = _CIRCUITS[kind](**kwargs)
    except KeyError:
        raise ValueError(f"No circuit for proof kind {kind}")
    circuit.build()
    return circuit


def solvency_inputs(
    mst_root: MerkleSumNode, assets: Sequence[Any], timestamp: int
) -> SolvencyPublicInputs:
    """Public inputs of a solvency proof from loosely typed values."""
    return SolvencyPublicInputs(
        mst_root=mst_root,
        assets=tuple(Asset.coerce(a) for a in assets),
        timestamp=timestamp,
    )
