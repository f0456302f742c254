"""
Shared fixtures for the solvency test suite.
"""

import pytest

from solvency.config import SolvencyConfig
from solvency.core.types import AddressOwnershipProof, Asset
from solvency.crypto.merkle_sum import LiabilityTree
from solvency.crypto.zkp import ZKPManager
from solvency.logging.core import LogConfig
from solvency.service import SolvencyService

OPERATOR = "exchange-operator"
VERIFIER = "auditor"


@pytest.fixture
def liabilities():
    return [("u1", 100), ("u2", 150), ("u3", 50)]


@pytest.fixture
def assets():
    return [Asset("ETH", "mainnet", 400)]


@pytest.fixture
def tree(liabilities):
    return LiabilityTree(liabilities)


@pytest.fixture
def zkp_manager():
    manager = ZKPManager()
    manager.initialize()
    yield manager
    manager.cleanup()


@pytest.fixture
def ownership_proof():
    def make(address="0xabc", chain_id="ethereum"):
        return AddressOwnershipProof(
            address=address, chain_id=chain_id, signature=b"\x01" * 64, message=b"owned"
        )

    return make


@pytest.fixture
def config():
    return SolvencyConfig(
        operator=OPERATOR,
        verifiers=[VERIFIER],
        log=LogConfig(handlers=["memory"]),
    )


@pytest.fixture
def service(config):
    svc = SolvencyService(config)
    yield svc
    svc.close()
