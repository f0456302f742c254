"""
The solvency ledger.

Anchors one ``SolvencyRecord`` (root and asset list) per snapshot timestamp
and checks user inclusion proofs against the anchored roots. Writes are
serialized by a single lock and are all-or-nothing: every check runs before
the record is stored or the event is emitted. Reads take no caller identity.
"""

import logging

logger = logging.getLogger(__name__)
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..core.records import SolvencyRecord
from ..core.types import Asset, normalize_assets, validate_timestamp
from ..crypto.merkle_sum import MAX_SUM, InclusionWitness, MerkleSumNode
from ..crypto.zkp.circuits import (
    InclusionPrivateInputs,
    InclusionPublicInputs,
    SolvencyPublicInputs,
)
from ..crypto.zkp.core import Proof, ProofKind, ZKPManager
from ..errors.exceptions import (
    DuplicateError,
    NotFoundError,
    ProofVerificationError,
    ValidationError,
)
from ..storage.database import InMemoryRecordStore, RecordStore
from .access import AccessController, Action, AllowAllAccessController
from .events import EventLog, EventType

ProofInput = Union[Proof, bytes]
InclusionInput = Union[Proof, bytes, InclusionWitness]


def coerce_root(mst_root: Any) -> MerkleSumNode:
    """Accept a node or its dict form; reject an empty or all-zero digest."""
    if isinstance(mst_root, dict):
        mst_root = MerkleSumNode.from_dict(mst_root)
    if not isinstance(mst_root, MerkleSumNode):
        raise ValidationError(
            "mst_root must be a Merkle sum node", field="mst_root", value=mst_root
        )
    if mst_root.hash.is_zero():
        raise ValidationError(
            "mst_root cannot be the zero digest", field="mst_root", value=mst_root.hash.to_hex()
        )
    return mst_root


class SolvencyLedger:
    """Timestamp-keyed, append-only store of solvency commitments."""

    def __init__(
        self,
        zkp_manager: ZKPManager,
        store: Optional[RecordStore] = None,
        access: Optional[AccessController] = None,
        events: Optional[EventLog] = None,
    ):
        self.zkp_manager = zkp_manager
        self.zkp_manager.initialize()
        self.store = store if store is not None else InMemoryRecordStore()
        self.access = access if access is not None else AllowAllAccessController()
        self.events = events if events is not None else EventLog()
        self._lock = threading.RLock()

    def submit(
        self,
        timestamp: int,
        mst_root: Union[MerkleSumNode, Dict[str, Any]],
        assets: Sequence[Union[Asset, Tuple[Any, ...], Dict[str, Any]]],
        proof: ProofInput,
        caller: Optional[str] = None,
    ) -> SolvencyRecord:
        """
        Anchor a snapshot after checking its solvency proof.

        Raises:
            AuthorizationError: caller may not submit
            ValidationError: zero timestamp, zero root, empty asset list, or
                an asset with an empty name/chain or a zero amount
            DuplicateError: repeated asset key, or a record already exists at
                ``timestamp``
            ProofVerificationError: the proof does not establish solvency for
                exactly these public inputs
        """
        with self._lock:
            self.access.require(caller, Action.SUBMIT_SOLVENCY)

            timestamp = validate_timestamp(timestamp)
            root = coerce_root(mst_root)
            snapshot_assets = normalize_assets(assets)

            if self.store.get_record(timestamp) is not None:
                raise DuplicateError(
                    f"A solvency record already exists at timestamp {timestamp}",
                    key=timestamp,
                )

            solvency_proof = self._coerce_solvency_proof(proof)
            public_inputs = SolvencyPublicInputs(
                mst_root=root, assets=snapshot_assets, timestamp=timestamp
            )
            result = self.zkp_manager.verify_proof(solvency_proof, public_inputs)
            if not result.is_valid:
                logger.warning(
                    f"Rejected solvency proof for timestamp {timestamp}: {result.error_message}"
                )
                raise ProofVerificationError(
                    f"Solvency proof for timestamp {timestamp} failed verification",
                    proof_kind=ProofKind.SOLVENCY.value,
                    reason=result.error_message,
                )

            record = SolvencyRecord(
                timestamp=timestamp,
                mst_root=root,
                assets=snapshot_assets,
                proof_hash=solvency_proof.get_hash(),
            )
            self.store.insert_record(record)

            logger.info(
                f"Anchored solvency record at {timestamp}: root {root.hash.to_hex()[:16]}..., "
                f"liabilities {root.sum}, assets {record.total_assets}"
            )
            self.events.emit(
                EventType.SOLVENCY_PROOF_SUBMITTED,
                {
                    "timestamp": timestamp,
                    "mst_root": root.to_dict(),
                    "assets": [asset.to_dict() for asset in snapshot_assets],
                },
            )
            return record

    def _coerce_solvency_proof(self, proof: ProofInput) -> Proof:
        if isinstance(proof, Proof):
            return proof
        if isinstance(proof, (bytes, bytearray)) and proof:
            try:
                return Proof.from_bytes(bytes(proof))
            except ValueError as e:
                raise ProofVerificationError(
                    "Solvency proof could not be decoded",
                    proof_kind=ProofKind.SOLVENCY.value,
                    reason=str(e),
                )
        raise ValidationError("proof must be a non-empty Proof or bytes", field="proof")

    def get_record(self, timestamp: int) -> SolvencyRecord:
        record = self.store.get_record(validate_timestamp(timestamp))
        if record is None:
            raise NotFoundError(f"No solvency record at timestamp {timestamp}", key=timestamp)
        return record

    def lookup_root(self, timestamp: int) -> MerkleSumNode:
        """Root anchored at ``timestamp``; ``NotFoundError`` if none."""
        return self.get_record(timestamp).mst_root

    def verify_inclusion(self, proof: InclusionInput, timestamp: int) -> bool:
        """
        Check an inclusion proof against the root anchored at ``timestamp``.

        ``proof`` may be a ``Proof``, its serialized bytes, or a raw
        ``InclusionWitness``. Malformed or mismatched proofs verify as False.

        Raises:
            ValidationError: ``timestamp`` is not a positive 63-bit integer
            NotFoundError: nothing is anchored at ``timestamp``
        """
        validate_timestamp(timestamp)
        root = self.lookup_root(timestamp)

        if isinstance(proof, InclusionWitness):
            return self.zkp_manager.check_witness(
                InclusionPublicInputs(mst_root=root), InclusionPrivateInputs(proof)
            )

        inclusion = self._prepare_inclusion(proof, root)
        if inclusion is None:
            return False
        return self.zkp_manager.verify_proof(*inclusion).is_valid

    def verify_inclusion_batch(
        self, items: Sequence[Tuple[InclusionInput, int]]
    ) -> List[bool]:
        """Verify many (proof, timestamp) pairs; every timestamp is checked first."""
        roots = [self.lookup_root(validate_timestamp(timestamp)) for _, timestamp in items]

        results: List[Optional[bool]] = [None] * len(items)
        pending = []
        pending_index = []
        for i, ((proof, _), root) in enumerate(zip(items, roots)):
            if isinstance(proof, InclusionWitness):
                results[i] = self.zkp_manager.check_witness(
                    InclusionPublicInputs(mst_root=root), InclusionPrivateInputs(proof)
                )
                continue
            inclusion = self._prepare_inclusion(proof, root)
            if inclusion is None:
                results[i] = False
            else:
                pending.append(inclusion)
                pending_index.append(i)

        if pending:
            for i, result in zip(pending_index, self.zkp_manager.batch_verify_proofs(pending)):
                results[i] = result.is_valid
        return results

    def _prepare_inclusion(
        self, proof: ProofInput, root: MerkleSumNode
    ) -> Optional[Tuple[Proof, InclusionPublicInputs]]:
        if isinstance(proof, (bytes, bytearray)):
            try:
                proof = Proof.from_bytes(bytes(proof))
            except ValueError as e:
                logger.debug(f"Undecodable inclusion proof: {e}")
                return None
        if not isinstance(proof, Proof) or proof.kind != ProofKind.INCLUSION:
            return None

        balance = proof.claimed("balance")
        if balance is not None and (
            isinstance(balance, bool)
            or not isinstance(balance, int)
            or not 0 <= balance <= MAX_SUM
        ):
            return None
        return proof, InclusionPublicInputs(mst_root=root, balance=balance)

    def latest(self) -> Optional[SolvencyRecord]:
        timestamps = self.store.list_timestamps()
        if not timestamps:
            return None
        return self.store.get_record(timestamps[-1])

    def timestamps(self) -> List[int]:
        return self.store.list_timestamps()

    def __contains__(self, timestamp: int) -> bool:
        return self.store.get_record(timestamp) is not None

    def __len__(self) -> int:
        return len(self.store.list_timestamps())
