"""Core value types and records for the solvency pipeline."""

from .records import OwnershipEntry, OwnershipStatus, SolvencyRecord
from .types import (
    AddressOwnershipProof,
    Asset,
    assets_to_list,
    normalize_assets,
    total_assets,
)

__all__ = [
    "Asset",
    "AddressOwnershipProof",
    "normalize_assets",
    "total_assets",
    "assets_to_list",
    "SolvencyRecord",
    "OwnershipStatus",
    "OwnershipEntry",
]
