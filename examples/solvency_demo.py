#!/usr/bin/env python3
"""
Proof-of-Solvency Demo

This script walks one exchange snapshot through the full pipeline:
- Attesting ownership of reserve addresses
- Building the liability Merkle sum tree
- Proving and anchoring solvency
- Letting users check their own inclusion
"""

import dataclasses
import logging

from solvency import SolvencyConfig, SolvencyService
from solvency.core.types import AddressOwnershipProof, Asset
from solvency.crypto.signatures import PrivateKey
from solvency.errors import ProofVerificationError
from solvency.ledger.verifier import ExternalOwnershipVerifier, Secp256k1KeyringVerifier
from solvency.logging.core import LogConfig

logger = logging.getLogger(__name__)

OPERATOR = "exchange-operator"
AUDITOR = "auditor"


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    logger.info("🏦 Proof-of-Solvency Demo")
    logger.info("=" * 50)

    config = SolvencyConfig(
        operator=OPERATOR,
        verifiers=[AUDITOR],
        log=LogConfig(handlers=["memory"]),
    )

    with SolvencyService(config) as service:
        # Reserve addresses
        logger.info("\n🔑 Attesting reserve address ownership...")
        keyring = Secp256k1KeyringVerifier()
        message = b"exchange controls this address"
        proofs = []
        for _ in range(2):
            key = PrivateKey.generate()
            address = keyring.register(key.get_public_key())
            proofs.append(
                AddressOwnershipProof(
                    address=address,
                    chain_id="ethereum",
                    signature=key.sign(message).to_bytes(),
                    message=message,
                )
            )
        service.submit_proof_of_address_ownership(proofs, caller=OPERATOR)

        verifier = ExternalOwnershipVerifier(service.registry, AUDITOR, {"ethereum": keyring})
        for entry in verifier.process_pending():
            logger.info(f"   {entry.address[:16]}... -> {entry.status.value}")

        # Snapshot
        logger.info("\n🌳 Building liability tree...")
        liabilities = [("u1", 100), ("u2", 150), ("u3", 50)]
        assets = [Asset("ETH", "mainnet", 400)]
        tree, record = service.publish_snapshot(liabilities, assets, 1000, caller=OPERATOR)
        logger.info(f"   Root: {tree.root.hash.to_hex()[:16]}...")
        logger.info(f"   Liabilities: {record.total_liabilities}")
        logger.info(f"   Assets: {record.total_assets}")

        # Users
        logger.info("\n🔍 Checking user inclusion...")
        for user_id, _ in liabilities:
            included = service.verify_proof_of_inclusion(tree.witness(user_id), 1000)
            logger.info(f"   {user_id}: {'✅ included' if included else '❌ missing'}")

        tampered = dataclasses.replace(tree.witness("u2"), balance=151)
        result = service.verify_proof_of_inclusion(tampered, 1000)
        logger.info(f"   u2 claiming 151: {'✅ included' if result else '❌ rejected'}")

        # Replay
        logger.info("\n🚫 Replaying the proof at another timestamp...")
        proof = service.prove_solvency(tree, assets, 1000)
        try:
            service.submit_proof_of_solvency(tree.root, assets, proof, 2000, caller=OPERATOR)
        except ProofVerificationError as e:
            logger.info(f"   Rejected: {e.message}")

        stats = service.get_stats()
        logger.info("\n📊 Ledger stats")
        logger.info(f"   Records: {stats['records']}")
        logger.info(f"   Owned addresses: {stats['owned_addresses']}")
        logger.info(f"   Events: {stats['events']} (intact: {stats['event_log_intact']})")

    logger.info("\n🎉 Demo completed")


if __name__ == "__main__":
    main()
