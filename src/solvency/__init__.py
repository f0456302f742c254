"""
Proof-of-solvency ledger for custodial exchanges.

An exchange commits to its user liabilities with a Merkle sum tree, proves
that declared assets cover the committed total, and anchors the root and
asset list per snapshot timestamp. Users check their inclusion against the
anchored root.
"""

from .config import SolvencyConfig
from .service import SolvencyService

__version__ = "0.1.0"

__all__ = ["SolvencyConfig", "SolvencyService", "__version__"]
