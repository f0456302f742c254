"""
Value types shared by the circuits, the registry and the ledger.

The types are plain frozen dataclasses; ``validate()`` raises the first
problem found so that submissions can be rejected before any state change.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Set, Tuple, Union

from ..errors.exceptions import DuplicateError, EmptyInputError, ValidationError

# Amounts share the 32-byte encoding of tree sums
MAX_AMOUNT = (1 << 256) - 1
# Timestamps are keys of a signed 64-bit SQLite column
MAX_TIMESTAMP = (1 << 63) - 1


def _require_text(value: Any, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field=field_name,
            value=value,
            expected="non-empty string",
        )


def _require_bytes(value: Any, field_name: str) -> None:
    if not isinstance(value, (bytes, bytearray)) or len(value) == 0:
        raise ValidationError(
            f"{field_name} must be non-empty bytes",
            field=field_name,
            value=value,
            expected="non-empty bytes",
        )


@dataclass(frozen=True)
class Asset:
    """An asset balance held by the exchange on one chain."""

    name: str
    chain_id: str
    amount: int

    @property
    def key(self) -> Tuple[str, str]:
        return (self.name, self.chain_id)

    def validate(self) -> None:
        _require_text(self.name, "asset.name")
        _require_text(self.chain_id, "asset.chain_id")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValidationError(
                "asset.amount must be an integer",
                field="asset.amount",
                value=self.amount,
                expected="int > 0",
            )
        if self.amount <= 0:
            raise ValidationError(
                f"Asset {self.name}/{self.chain_id} must have a non-zero amount",
                field="asset.amount",
                value=self.amount,
                expected="int > 0",
            )
        if self.amount > MAX_AMOUNT:
            raise ValidationError(
                f"Asset {self.name}/{self.chain_id} amount does not fit in 32 bytes",
                field="asset.amount",
                value=self.amount,
                expected=f"<= {MAX_AMOUNT}",
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "chain_id": self.chain_id, "amount": self.amount}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        try:
            return cls(name=data["name"], chain_id=data["chain_id"], amount=data["amount"])
        except KeyError as e:
            raise ValidationError(f"Asset is missing field {e}", field=str(e))

    @classmethod
    def coerce(cls, item: Union["Asset", Tuple[Any, ...], Dict[str, Any]]) -> "Asset":
        """Accept an asset, a ``(name, chain_id, amount)`` tuple or a mapping."""
        if isinstance(item, Asset):
            return item
        if isinstance(item, dict):
            return cls.from_dict(item)
        if isinstance(item, (tuple, list)) and len(item) == 3:
            return cls(*item)
        raise ValidationError(f"Cannot interpret {item!r} as an asset", field="asset")


def validate_timestamp(timestamp: Any) -> int:
    """Return ``timestamp`` if it is an int in ``1..MAX_TIMESTAMP``."""
    if (
        isinstance(timestamp, bool)
        or not isinstance(timestamp, int)
        or not 0 < timestamp <= MAX_TIMESTAMP
    ):
        raise ValidationError(
            "timestamp must be a positive 63-bit integer",
            field="timestamp",
            value=timestamp,
            expected=f"0 < int <= {MAX_TIMESTAMP}",
        )
    return timestamp


def normalize_assets(
    assets: Iterable[Union[Asset, Tuple[Any, ...], Dict[str, Any]]]
) -> Tuple[Asset, ...]:
    """
    Coerce and validate a snapshot's asset list, keeping its order.

    Raises:
        EmptyInputError: no assets
        ValidationError: an asset has an empty name/chain or a zero amount
        DuplicateError: two entries share the same (name, chain_id)
    """
    coerced = tuple(Asset.coerce(item) for item in assets)
    if not coerced:
        raise EmptyInputError("Asset list cannot be empty", field="assets")

    seen: Set[Tuple[str, str]] = set()
    for asset in coerced:
        asset.validate()
        if asset.key in seen:
            raise DuplicateError(
                f"Asset {asset.name}/{asset.chain_id} appears twice in the snapshot",
                key=asset.key,
            )
        seen.add(asset.key)
    return coerced


def total_assets(assets: Sequence[Asset]) -> int:
    return sum(asset.amount for asset in assets)


@dataclass(frozen=True)
class AddressOwnershipProof:
    """A signed statement that the exchange controls ``address`` on ``chain_id``."""

    address: str
    chain_id: str
    signature: bytes
    message: bytes

    def validate(self) -> None:
        _require_text(self.address, "address")
        _require_text(self.chain_id, "chain_id")
        _require_bytes(self.signature, "signature")
        _require_bytes(self.message, "message")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "chain_id": self.chain_id,
            "signature": bytes(self.signature).hex(),
            "message": bytes(self.message).hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AddressOwnershipProof":
        try:
            return cls(
                address=data["address"],
                chain_id=data["chain_id"],
                signature=bytes.fromhex(data["signature"]),
                message=bytes.fromhex(data["message"]),
            )
        except KeyError as e:
            raise ValidationError(f"Ownership proof is missing field {e}", field=str(e))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid ownership proof encoding: {e}")


def assets_to_list(assets: Sequence[Asset]) -> List[Dict[str, Any]]:
    return [asset.to_dict() for asset in assets]
