"""
Key pairs and recoverable ECDSA signatures on the secp256k1 curve.

Point arithmetic comes from ``cryptography``; Ethereum-style recoverable
signatures over a 32-byte message hash come from ``eth_keys``.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from typing import Union

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_keys import keys
from eth_utils import to_checksum_address

from .hashing import Hash, Keccak256Hasher

PRIVATE_KEY_SIZE = 32

# secp256k1 group order
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@dataclass(frozen=True)
class PrivateKey:
    """Immutable private key with cryptographic operations."""

    _key: ec.EllipticCurvePrivateKey

    def __post_init__(self) -> None:
        if not isinstance(self._key.curve, ec.SECP256K1):
            raise ValueError("Private key must use secp256k1 curve")

    @classmethod
    def generate(cls) -> "PrivateKey":
        """Generate a new random private key."""
        return cls(ec.generate_private_key(ec.SECP256K1()))

    @classmethod
    def from_bytes(cls, key_bytes: Union[bytes, bytearray]) -> "PrivateKey":
        """Create a private key from raw bytes."""
        if len(key_bytes) != PRIVATE_KEY_SIZE:
            raise ValueError("Private key must be exactly 32 bytes")

        value = int.from_bytes(key_bytes, byteorder="big")
        if not 0 < value < CURVE_ORDER:
            raise ValueError("Private key is out of range for secp256k1")

        return cls(ec.derive_private_key(value, ec.SECP256K1()))

    @classmethod
    def from_hex(cls, hex_string: str) -> "PrivateKey":
        """Create a private key from hexadecimal string."""
        return cls.from_bytes(bytes.fromhex(hex_string.removeprefix("0x")))

    def to_bytes(self) -> bytes:
        """Convert private key to raw bytes."""
        private_numbers = self._key.private_numbers()
        return private_numbers.private_value.to_bytes(PRIVATE_KEY_SIZE, byteorder="big")

    def to_hex(self) -> str:
        """Convert private key to hexadecimal string."""
        return self.to_bytes().hex()

    def add_scalar(self, scalar: Union[int, bytes]) -> "PrivateKey":
        """Add a scalar to the private key (mod n)."""
        current_value = int.from_bytes(self.to_bytes(), byteorder="big")

        if isinstance(scalar, bytes):
            scalar = int.from_bytes(scalar, byteorder="big")

        new_value = (current_value + scalar) % CURVE_ORDER
        return self.from_bytes(new_value.to_bytes(PRIVATE_KEY_SIZE, byteorder="big"))

    def get_public_key(self) -> "PublicKey":
        """Get the corresponding public key."""
        return PublicKey(self._key.public_key())

    def to_address(self) -> str:
        """Checksummed address of the corresponding public key."""
        return self.get_public_key().to_address()

    def sign_hash(self, message_hash: Union[bytes, Hash]) -> "Signature":
        """Produce a recoverable signature over a 32-byte hash."""
        if isinstance(message_hash, Hash):
            message_hash = message_hash.value

        if len(message_hash) != 32:
            raise ValueError("Message hash must be exactly 32 bytes")

        signature = keys.PrivateKey(self.to_bytes()).sign_msg_hash(bytes(message_hash))
        return Signature(v=signature.v, r=signature.r, s=signature.s)

    def __str__(self) -> str:
        return f"PrivateKey('{self.to_hex()[:8]}...')"

    def __repr__(self) -> str:
        return "PrivateKey(<redacted>)"


@dataclass(frozen=True)
class PublicKey:
    """Immutable public key."""

    _key: ec.EllipticCurvePublicKey

    def __post_init__(self) -> None:
        if not isinstance(self._key.curve, ec.SECP256K1):
            raise ValueError("Public key must use secp256k1 curve")

    @classmethod
    def from_bytes(cls, key_bytes: bytes) -> "PublicKey":
        """Create a public key from SEC1 bytes (compressed or uncompressed)."""
        if len(key_bytes) == 33:
            if key_bytes[0] not in (0x02, 0x03):
                raise ValueError("Invalid compressed public key format")
        elif len(key_bytes) == 65:
            if key_bytes[0] != 0x04:
                raise ValueError("Invalid uncompressed public key format")
        else:
            raise ValueError(
                "Public key must be 33 (compressed) or 65 (uncompressed) bytes"
            )

        try:
            key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), key_bytes)
        except ValueError as e:
            raise ValueError(f"Invalid public key: {e}") from e
        return cls(key)

    @classmethod
    def from_hex(cls, hex_string: str) -> "PublicKey":
        """Create a public key from hexadecimal string."""
        return cls.from_bytes(bytes.fromhex(hex_string.removeprefix("0x")))

    def to_bytes(self, compressed: bool = True) -> bytes:
        """Convert public key to SEC1 bytes."""
        encoding = (
            PublicFormat.CompressedPoint if compressed else PublicFormat.UncompressedPoint
        )
        return self._key.public_bytes(Encoding.X962, encoding)

    def to_hex(self, compressed: bool = True) -> str:
        """Convert public key to hexadecimal string."""
        return self.to_bytes(compressed).hex()

    def to_address(self) -> str:
        """Ethereum address: last 20 bytes of Keccak-256 of the raw point."""
        raw_point = self.to_bytes(compressed=False)[1:]
        address_hash = Keccak256Hasher.hash(raw_point)
        return to_checksum_address("0x" + address_hash.value[-20:].hex())

    def __str__(self) -> str:
        return f"PublicKey('{self.to_hex()[:8]}...')"

    def __repr__(self) -> str:
        return f"PublicKey.from_hex('{self.to_hex()}')"


@dataclass(frozen=True)
class Signature:
    """Immutable recoverable signature (``v`` is the 0/1 recovery id)."""

    v: int
    r: int
    s: int

    def __post_init__(self) -> None:
        if self.v not in (0, 1):
            raise ValueError("Recovery id must be 0 or 1")

        if not (0 < self.r < CURVE_ORDER and 0 < self.s < CURVE_ORDER):
            raise ValueError("Signature components must be in [1, n)")

    @classmethod
    def from_bytes(cls, signature_bytes: bytes) -> "Signature":
        """Create a signature from its 65-byte ``r || s || v`` encoding."""
        if len(signature_bytes) != 65:
            raise ValueError("Signature must be exactly 65 bytes")

        r = int.from_bytes(signature_bytes[:32], byteorder="big")
        s = int.from_bytes(signature_bytes[32:64], byteorder="big")
        return cls(v=signature_bytes[64], r=r, s=s)

    def to_bytes(self) -> bytes:
        """Convert signature to its 65-byte ``r || s || v`` encoding."""
        return (
            self.r.to_bytes(32, byteorder="big")
            + self.s.to_bytes(32, byteorder="big")
            + bytes([self.v])
        )

    def to_hex(self) -> str:
        """Convert signature to hexadecimal string."""
        return self.to_bytes().hex()

    def recover_address(self, message_hash: Union[bytes, Hash]) -> str:
        """Recover the checksummed signer address for ``message_hash``."""
        if isinstance(message_hash, Hash):
            message_hash = message_hash.value

        signature = keys.Signature(vrs=(self.v, self.r, self.s))
        public_key = signature.recover_public_key_from_msg_hash(bytes(message_hash))
        return public_key.to_checksum_address()

    def __str__(self) -> str:
        return f"Signature('{self.to_hex()[:16]}...')"
