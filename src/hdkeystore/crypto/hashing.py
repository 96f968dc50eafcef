"""
Hash functions and utilities for hdkeystore.

Implements Keccak-256 (the pre-standard SHA-3 variant used by Ethereum) for
container MACs and address computation.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from typing import Union

from eth_utils import keccak


@dataclass(frozen=True)
class Hash:
    """Immutable 32-byte hash value."""

    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != 32:
            raise ValueError("Hash must be exactly 32 bytes")

    def __str__(self) -> str:
        return self.value.hex()

    def __repr__(self) -> str:
        return f"Hash('{self.value.hex()}')"

    @classmethod
    def from_hex(cls, hex_string: str) -> "Hash":
        """Create a Hash from a hexadecimal string."""
        return cls(bytes.fromhex(hex_string.removeprefix("0x")))

    def to_hex(self) -> str:
        """Convert hash to hexadecimal string."""
        return self.value.hex()


class Keccak256Hasher:
    """Keccak-256 hasher."""

    @staticmethod
    def hash(data: Union[bytes, bytearray, str]) -> Hash:
        """
        Hash data using Keccak-256.

        Args:
            data: Data to hash (bytes or string)

        Returns:
            Hash object containing the Keccak-256 digest
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        return Hash(keccak(bytes(data)))

    @staticmethod
    def hash_concat(*parts: Union[bytes, bytearray]) -> Hash:
        """Hash the concatenation of several byte strings."""
        return Keccak256Hasher.hash(b"".join(bytes(part) for part in parts))
