"""
Prover-side helpers.

``ProofGenerator`` turns the exchange's private state (a liability tree and
its leaves) into the public inputs and witnesses each circuit expects and
asks the configured backend for a proof.
"""

import logging

logger = logging.getLogger(__name__)
from typing import Any, Iterable, Optional, Sequence, Union

from ...core.types import normalize_assets, validate_timestamp
from ..merkle_sum import LiabilityTree, TreeConfig
from .circuits import (
    InclusionPrivateInputs,
    InclusionPublicInputs,
    SolvencyPrivateInputs,
    SolvencyPublicInputs,
)
from .core import Proof, ProofKind, ZKPError, ZKPManager

LeafSource = Union[LiabilityTree, Iterable[Any]]


class ProofGenerator:
    """Generate solvency and inclusion proofs through a ``ZKPManager``."""

    def __init__(self, manager: ZKPManager, tree_config: Optional[TreeConfig] = None):
        self.manager = manager
        self.tree_config = tree_config

    def _tree(self, leaves: LeafSource) -> LiabilityTree:
        if isinstance(leaves, LiabilityTree):
            return leaves
        return LiabilityTree.build(leaves, self.tree_config)

    def prove_solvency(self, leaves: LeafSource, assets: Sequence[Any], timestamp: int) -> Proof:
        """
        Prove that ``assets`` cover the liabilities committed by the tree.

        Raises:
            EmptyInputError, ValidationError, DuplicateError: invalid leaves or assets,
                or a timestamp outside 1..MAX_TIMESTAMP
            ZKPError: the relation does not hold (the exchange is insolvent) or
                the backend failed
        """
        validate_timestamp(timestamp)
        tree = self._tree(leaves)
        public_inputs = SolvencyPublicInputs(
            mst_root=tree.root, assets=normalize_assets(assets), timestamp=timestamp
        )
        private_inputs = SolvencyPrivateInputs(tuple(tree.leaves))

        result = self.manager.generate_proof(ProofKind.SOLVENCY, public_inputs, private_inputs)
        if not result.is_success:
            raise ZKPError(
                result.error_message or "Solvency proof generation failed",
                status=result.status,
                details={"timestamp": timestamp, "liabilities": tree.total_sum()},
            )

        logger.info(
            f"Generated solvency proof for timestamp {timestamp}: "
            f"assets {public_inputs.total_assets()} >= liabilities {tree.total_sum()}"
        )
        return result.proof

    def prove_inclusion(
        self, tree: LiabilityTree, user_id: str, disclose_balance: bool = False
    ) -> Proof:
        """
        Prove that ``user_id`` is a leaf of ``tree``.

        With ``disclose_balance`` the balance becomes a public input; otherwise
        only the root is public.

        Raises:
            NotFoundError: the user is not in the tree
            ZKPError: the backend failed
        """
        witness = tree.witness(user_id)
        public_inputs = InclusionPublicInputs(
            mst_root=tree.root, balance=witness.balance if disclose_balance else None
        )

        result = self.manager.generate_proof(
            ProofKind.INCLUSION, public_inputs, InclusionPrivateInputs(witness)
        )
        if not result.is_success:
            raise ZKPError(
                result.error_message or "Inclusion proof generation failed",
                status=result.status,
                details={"user_id": user_id},
            )
        return result.proof

