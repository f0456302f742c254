"""
Records owned by the ledger and the ownership registry.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..crypto.merkle_sum import MerkleSumNode
from ..errors.exceptions import ValidationError
from .types import AddressOwnershipProof, Asset, total_assets


@dataclass(frozen=True)
class SolvencyRecord:
    """The anchored commitment of one snapshot; keyed by ``timestamp``."""

    timestamp: int
    mst_root: MerkleSumNode
    assets: Tuple[Asset, ...]
    proof_hash: str = ""
    recorded_at: float = field(default_factory=time.time)

    @property
    def total_assets(self) -> int:
        return total_assets(self.assets)

    @property
    def total_liabilities(self) -> int:
        return self.mst_root.sum

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "mst_root": self.mst_root.to_dict(),
            "assets": [asset.to_dict() for asset in self.assets],
            "proof_hash": self.proof_hash,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolvencyRecord":
        try:
            return cls(
                timestamp=int(data["timestamp"]),
                mst_root=MerkleSumNode.from_dict(data["mst_root"]),
                assets=tuple(Asset.from_dict(a) for a in data["assets"]),
                proof_hash=data.get("proof_hash", ""),
                recorded_at=float(data.get("recorded_at", 0.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid solvency record: {e}", field="record")


class OwnershipStatus(Enum):
    """Trust state of an ownership attestation."""

    SUBMITTED = "submitted"
    EXTERNALLY_VERIFIED = "externally_verified"
    DISPUTED = "disputed"

    @property
    def is_final(self) -> bool:
        return self is not OwnershipStatus.SUBMITTED


@dataclass(frozen=True)
class OwnershipEntry:
    """An accepted ownership proof together with its trust state."""

    proof: AddressOwnershipProof
    status: OwnershipStatus = OwnershipStatus.SUBMITTED
    submitted_at: float = field(default_factory=time.time)
    finalized_at: Optional[float] = None
    verifier_id: Optional[str] = None
    reason: Optional[str] = None

    @property
    def address(self) -> str:
        return self.proof.address

    @property
    def chain_id(self) -> str:
        return self.proof.chain_id

    def finalized(
        self, verified: bool, verifier_id: str, reason: Optional[str] = None
    ) -> "OwnershipEntry":
        status = OwnershipStatus.EXTERNALLY_VERIFIED if verified else OwnershipStatus.DISPUTED
        return replace(
            self,
            status=status,
            finalized_at=time.time(),
            verifier_id=verifier_id,
            reason=reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.proof.to_dict()
        data.update(
            {
                "status": self.status.value,
                "submitted_at": self.submitted_at,
                "finalized_at": self.finalized_at,
                "verifier_id": self.verifier_id,
                "reason": self.reason,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OwnershipEntry":
        try:
            return cls(
                proof=AddressOwnershipProof.from_dict(data),
                status=OwnershipStatus(data.get("status", OwnershipStatus.SUBMITTED.value)),
                submitted_at=float(data.get("submitted_at", 0.0)),
                finalized_at=data.get("finalized_at"),
                verifier_id=data.get("verifier_id"),
                reason=data.get("reason"),
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid ownership entry: {e}", field="entry")
