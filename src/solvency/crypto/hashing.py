"""
Hash functions and digest utilities.

Implements the SHA-256 digest type used for every commitment in the
pipeline: liability leaves, internal Merkle-sum nodes, public-input bindings
and the event log chain.
"""

import logging

logger = logging.getLogger(__name__)
import hashlib
from dataclasses import dataclass
from typing import Iterable, Union

DIGEST_SIZE = 32


@dataclass(frozen=True)
class Hash:
    """Immutable 32-byte digest with comparison and string representation."""

    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, (bytes, bytearray)):
            raise TypeError("Hash value must be bytes")
        if len(self.value) != DIGEST_SIZE:
            raise ValueError("Hash must be exactly 32 bytes")

    def __str__(self) -> str:
        return self.value.hex()

    def __repr__(self) -> str:
        return f"Hash('{self.value.hex()}')"

    def __lt__(self, other: "Hash") -> bool:
        return self.value < other.value

    @classmethod
    def from_hex(cls, hex_string: str) -> "Hash":
        """Create a Hash from a hexadecimal string (``0x`` prefix allowed)."""
        if hex_string.startswith(("0x", "0X")):
            hex_string = hex_string[2:]
        return cls(bytes.fromhex(hex_string))

    @classmethod
    def zero(cls) -> "Hash":
        """Create a zero hash (all zeros)."""
        return cls(b"\x00" * DIGEST_SIZE)

    def is_zero(self) -> bool:
        return self.value == b"\x00" * DIGEST_SIZE

    def to_hex(self) -> str:
        return self.value.hex()

    def to_int(self) -> int:
        """Convert hash to integer (big-endian)."""
        return int.from_bytes(self.value, byteorder="big")


class SHA256Hasher:
    """SHA-256 hasher with commitment-specific helpers."""

    @staticmethod
    def hash(data: Union[bytes, str]) -> Hash:
        """
        Hash data using SHA-256.

        Args:
            data: Data to hash (bytes or string)

        Returns:
            Hash object containing the SHA-256 hash
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        return Hash(hashlib.sha256(data).digest())

    @staticmethod
    def hash_list(items: Iterable[Union[bytes, str]]) -> Hash:
        """Hash the concatenation of ``items``."""
        hasher = hashlib.sha256()
        for item in items:
            if isinstance(item, str):
                item = item.encode("utf-8")
            hasher.update(item)
        return Hash(hasher.digest())

    @staticmethod
    def domain_hash(domain: bytes, *parts: bytes) -> Hash:
        """
        Hash ``parts`` under a one-byte-length-prefixed domain tag.

        Distinct domains can never produce the same preimage, so a leaf
        commitment cannot be replayed as an internal node and vice versa.
        """
        if not domain or len(domain) > 255:
            raise ValueError("domain must be 1..255 bytes")
        hasher = hashlib.sha256()
        hasher.update(bytes([len(domain)]))
        hasher.update(domain)
        for part in parts:
            hasher.update(part)
        return Hash(hasher.digest())


def encode_uint(value: int, width: int = 32) -> bytes:
    """Big-endian fixed-width encoding of a non-negative integer."""
    if value < 0:
        raise ValueError("value must be non-negative")
    return value.to_bytes(width, byteorder="big")


def encode_bytes(data: bytes) -> bytes:
    """Length-prefixed (4-byte big-endian) encoding of ``data``."""
    return len(data).to_bytes(4, byteorder="big") + data
