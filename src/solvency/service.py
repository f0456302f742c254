"""
Service surface of the solvency pipeline.

``SolvencyService`` wires the record store, the proof manager, the ownership
registry, the solvency ledger and the event log together and exposes the
three operations of the anchoring contract plus prover-side helpers. Every
write is written to the audit log whether it is accepted or rejected.
"""

import logging

logger = logging.getLogger(__name__)
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import SolvencyConfig
from .core.records import OwnershipEntry, SolvencyRecord
from .core.types import AddressOwnershipProof
from .crypto.merkle_sum import LiabilityTree, MerkleSumNode
from .crypto.zkp.core import Proof, ProofKind, ZKPManager
from .crypto.zkp.generation import ProofGenerator
from .errors.exceptions import SolvencyError
from .ledger.access import OperatorAccessController
from .ledger.events import EventLog
from .ledger.ledger import InclusionInput, ProofInput, SolvencyLedger
from .ledger.registry import OwnershipRegistry
from .logging.core import LogContext, LogManager
from .storage.database import InMemoryRecordStore, RecordStore, SQLiteRecordStore


class SolvencyService:
    """Registry, ledger and prover behind one object."""

    def __init__(self, config: Optional[SolvencyConfig] = None, store: Optional[RecordStore] = None):
        self.config = config or SolvencyConfig()
        self.config.validate()

        self.log_manager = LogManager(self.config.log)
        self.audit = self.log_manager.get_logger("solvency.audit")

        self.store = store if store is not None else self._create_store()
        self.access = OperatorAccessController(self.config.operator, self.config.verifiers)
        self.events = EventLog()

        self.zkp_manager = ZKPManager(
            self.config.zkp, circuit_options={ProofKind.SOLVENCY: {"tree_config": self.config.tree}}
        )
        self.zkp_manager.initialize()

        self.registry = OwnershipRegistry(self.store, self.access, self.events)
        self.ledger = SolvencyLedger(self.zkp_manager, self.store, self.access, self.events)
        self.prover = ProofGenerator(self.zkp_manager, self.config.tree)

        logger.info(
            f"Solvency service ready (storage={self.config.storage_backend}, "
            f"backend={self.config.zkp.backend_type.value})"
        )

    def _create_store(self) -> RecordStore:
        if self.config.storage_backend == "sqlite":
            return SQLiteRecordStore(self.config.database)
        return InMemoryRecordStore()

    def _audit(
        self,
        operation: str,
        caller: Optional[str],
        error: Optional[SolvencyError] = None,
        snapshot_timestamp: Optional[int] = None,
        **extra: Any,
    ) -> None:
        context = LogContext(
            component="service",
            operation=operation,
            caller=caller,
            snapshot_timestamp=snapshot_timestamp,
        )
        if error is None:
            self.audit.info(f"{operation} accepted", context=context, extra=extra)
        else:
            extra["error_code"] = error.error_code
            self.audit.warning(
                f"{operation} rejected: {error.message}", context=context, extra=extra
            )

    # Writes

    def submit_proof_of_address_ownership(
        self, proofs: Iterable[AddressOwnershipProof], caller: Optional[str] = None
    ) -> List[OwnershipEntry]:
        """Record ownership attestations as ``SUBMITTED``; operator only."""
        batch = list(proofs)
        try:
            entries = self.registry.submit(batch, caller)
        except SolvencyError as e:
            self._audit("submit_ownership", caller, e, count=len(batch))
            raise
        self._audit(
            "submit_ownership", caller, addresses=[entry.address for entry in entries]
        )
        return entries

    def finalize_ownership(
        self,
        address: str,
        verified: bool,
        verifier_id: str,
        reason: Optional[str] = None,
    ) -> OwnershipEntry:
        try:
            entry = self.registry.finalize(address, verified, verifier_id, reason)
        except SolvencyError as e:
            self._audit("finalize_ownership", verifier_id, e, address=address)
            raise
        self._audit("finalize_ownership", verifier_id, address=address, status=entry.status.value)
        return entry

    def submit_proof_of_solvency(
        self,
        mst_root: Any,
        assets: Sequence[Any],
        proof: ProofInput,
        timestamp: int,
        caller: Optional[str] = None,
    ) -> SolvencyRecord:
        """Anchor a snapshot after verifying its solvency proof; operator only."""
        try:
            record = self.ledger.submit(timestamp, mst_root, assets, proof, caller)
        except SolvencyError as e:
            snapshot = timestamp if isinstance(timestamp, int) else None
            self._audit("submit_solvency", caller, e, snapshot_timestamp=snapshot)
            raise
        self._audit(
            "submit_solvency",
            caller,
            snapshot_timestamp=timestamp,
            root=record.mst_root.hash.to_hex(),
        )
        return record

    # Reads

    def verify_proof_of_inclusion(self, proof: InclusionInput, timestamp: int) -> bool:
        """Check an inclusion proof against the root anchored at ``timestamp``; open to anyone."""
        return self.ledger.verify_inclusion(proof, timestamp)

    def verify_proofs_of_inclusion(self, items: Sequence[Tuple[InclusionInput, int]]) -> List[bool]:
        return self.ledger.verify_inclusion_batch(items)

    def lookup_root(self, timestamp: int) -> MerkleSumNode:
        return self.ledger.lookup_root(timestamp)

    def get_record(self, timestamp: int) -> SolvencyRecord:
        return self.ledger.get_record(timestamp)

    def get_ownership(self, address: str) -> OwnershipEntry:
        return self.registry.get(address)

    # Prover side

    def build_liability_tree(self, leaves: Iterable[Any]) -> LiabilityTree:
        return LiabilityTree.build(leaves, self.config.tree)

    def prove_solvency(self, leaves: Any, assets: Sequence[Any], timestamp: int) -> Proof:
        return self.prover.prove_solvency(leaves, assets, timestamp)

    def prove_inclusion(
        self, tree: LiabilityTree, user_id: str, disclose_balance: bool = False
    ) -> Proof:
        return self.prover.prove_inclusion(tree, user_id, disclose_balance)

    def publish_snapshot(
        self,
        leaves: Iterable[Any],
        assets: Sequence[Any],
        timestamp: int,
        caller: Optional[str] = None,
    ) -> Tuple[LiabilityTree, SolvencyRecord]:
        """Build the tree, prove solvency and anchor the result in one call."""
        tree = self.build_liability_tree(leaves)
        proof = self.prove_solvency(tree, assets, timestamp)
        record = self.submit_proof_of_solvency(tree.root, assets, proof, timestamp, caller)
        return tree, record

    def get_stats(self) -> Dict[str, Any]:
        return {
            "records": len(self.ledger),
            "owned_addresses": len(self.registry),
            "events": len(self.events),
            "event_log_intact": self.events.verify_integrity(),
            "verification_cache": self.zkp_manager.get_cache_stats(),
        }

    def close(self) -> None:
        self.zkp_manager.cleanup()
        self.store.close()
        self.log_manager.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
