"""
ECDSA signatures over secp256k1.

Used off-chain to check address-ownership attestations for chains whose
addresses are backed by secp256k1 keys. Signatures travel as raw 64-byte
``r || s`` values.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from typing import Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .hashing import Hash, SHA256Hasher

SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def _message_bytes(message: Union[bytes, str, Hash]) -> bytes:
    if isinstance(message, str):
        return message.encode("utf-8")
    if isinstance(message, Hash):
        return message.value
    return bytes(message)


@dataclass(frozen=True)
class Signature:
    """Immutable raw ECDSA signature."""

    r: int
    s: int

    def __post_init__(self) -> None:
        if self.r <= 0 or self.s <= 0:
            raise ValueError("Signature components must be positive")
        if self.r >= SECP256K1_ORDER or self.s >= SECP256K1_ORDER:
            raise ValueError("Signature components must be less than curve order")

    @classmethod
    def from_bytes(cls, signature_bytes: bytes) -> "Signature":
        """Create a signature from 64 raw bytes (``r || s``)."""
        if len(signature_bytes) != 64:
            raise ValueError("Signature must be exactly 64 bytes")

        r = int.from_bytes(signature_bytes[:32], byteorder="big")
        s = int.from_bytes(signature_bytes[32:], byteorder="big")
        return cls(r, s)

    def to_bytes(self) -> bytes:
        return self.r.to_bytes(32, byteorder="big") + self.s.to_bytes(32, byteorder="big")

    def to_der(self) -> bytes:
        return encode_dss_signature(self.r, self.s)

    def __str__(self) -> str:
        return f"Signature('{self.to_bytes().hex()[:16]}...')"


@dataclass(frozen=True)
class PublicKey:
    """Immutable secp256k1 public key."""

    _key: ec.EllipticCurvePublicKey

    def __post_init__(self) -> None:
        if not isinstance(self._key.curve, ec.SECP256K1):
            raise ValueError("Public key must use secp256k1 curve")

    @classmethod
    def from_bytes(cls, key_bytes: bytes) -> "PublicKey":
        """Create a public key from compressed (33) or uncompressed (65) bytes."""
        if len(key_bytes) not in (33, 65):
            raise ValueError("Public key must be 33 (compressed) or 65 (uncompressed) bytes")

        try:
            key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), key_bytes)
        except ValueError as e:
            raise ValueError(f"Invalid public key: {e}")
        return cls(key)

    @classmethod
    def from_hex(cls, hex_string: str) -> "PublicKey":
        return cls.from_bytes(bytes.fromhex(hex_string))

    def to_bytes(self, compressed: bool = True) -> bytes:
        encoding = PublicFormat.CompressedPoint if compressed else PublicFormat.UncompressedPoint
        return self._key.public_bytes(Encoding.X962, encoding)

    def to_hex(self, compressed: bool = True) -> str:
        return self.to_bytes(compressed).hex()

    def to_address(self) -> str:
        """Address: first 20 bytes of the double SHA-256 of the compressed key."""
        pub_key_hash = SHA256Hasher.hash(self.to_bytes(compressed=True))
        address_hash = SHA256Hasher.hash(pub_key_hash.value)
        return address_hash.value[:20].hex()

    def verify(self, signature: Signature, message: Union[bytes, str, Hash]) -> bool:
        """Verify a signature against a message."""
        try:
            self._key.verify(
                signature.to_der(), _message_bytes(message), ec.ECDSA(hashes.SHA256())
            )
            return True
        except InvalidSignature:
            return False

    def __str__(self) -> str:
        return f"PublicKey('{self.to_hex()[:8]}...')"


@dataclass(frozen=True)
class PrivateKey:
    """Immutable secp256k1 private key."""

    _key: ec.EllipticCurvePrivateKey

    @classmethod
    def generate(cls) -> "PrivateKey":
        return cls(ec.generate_private_key(ec.SECP256K1()))

    @classmethod
    def from_bytes(cls, key_bytes: bytes) -> "PrivateKey":
        if len(key_bytes) != 32:
            raise ValueError("Private key must be exactly 32 bytes")
        key = ec.derive_private_key(int.from_bytes(key_bytes, byteorder="big"), ec.SECP256K1())
        return cls(key)

    def to_bytes(self) -> bytes:
        return self._key.private_numbers().private_value.to_bytes(32, byteorder="big")

    def get_public_key(self) -> PublicKey:
        return PublicKey(self._key.public_key())

    def sign(self, message: Union[bytes, str, Hash]) -> Signature:
        der_signature = self._key.sign(_message_bytes(message), ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der_signature)
        return Signature(r, s)

    def __str__(self) -> str:
        return "PrivateKey(<redacted>)"

    __repr__ = __str__


class ECDSASigner:
    """ECDSA signature operations with the secp256k1 curve."""

    @staticmethod
    def generate_keypair() -> Tuple[PrivateKey, PublicKey]:
        private_key = PrivateKey.generate()
        return private_key, private_key.get_public_key()

    @staticmethod
    def verify_raw(public_key: PublicKey, signature_bytes: bytes, message: bytes) -> bool:
        """Verify a raw 64-byte signature; malformed signatures verify as False."""
        try:
            signature = Signature.from_bytes(signature_bytes)
        except ValueError:
            return False
        return public_key.verify(signature, message)
