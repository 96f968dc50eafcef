"""
Hierarchical deterministic key derivation for hdkeystore wallets.

This module implements BIP32 private child key derivation and the derivation
path type used to select child keys. Paths are arbitrary-depth sequences of
indices; the BIP44 five-level shape is offered as a convenience.
"""

import logging

logger = logging.getLogger(__name__)
import hashlib
import hmac
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from ..crypto.signatures import PrivateKey
from ..errors import MalformedPathError

HARDENED_OFFSET = 0x80000000
MAX_INDEX = 0x7FFFFFFF
HARDENED_MARKERS = ("'", "h", "H")


@dataclass(frozen=True)
class Index:
    """One derivation step: a 31-bit value and its hardened flag."""

    value: int
    hardened: bool = False

    def __post_init__(self):
        """Validate index range."""
        if self.value < 0 or self.value > MAX_INDEX:
            raise ValueError("Index must be between 0 and 0x7FFFFFFF")

    @property
    def child_number(self) -> int:
        """BIP32 child number (hardened indices are offset by 2**31)."""
        return self.value | HARDENED_OFFSET if self.hardened else self.value

    def __str__(self) -> str:
        return f"{self.value}'" if self.hardened else str(self.value)


class DerivationPath:
    """Hierarchical derivation path for HD wallets."""

    def __init__(self, indices: Iterable[Index]):
        self._indices: Tuple[Index, ...] = tuple(indices)

    @property
    def indices(self) -> Tuple[Index, ...]:
        return self._indices

    def _component(self, position: int) -> Optional[int]:
        if position < len(self._indices):
            return self._indices[position].value
        return None

    @property
    def purpose(self) -> Optional[int]:
        return self._component(0)

    @property
    def coin_type(self) -> Optional[int]:
        return self._component(1)

    @property
    def account(self) -> Optional[int]:
        return self._component(2)

    @property
    def change(self) -> Optional[int]:
        return self._component(3)

    @property
    def address_index(self) -> Optional[int]:
        return self._component(4)

    @classmethod
    def parse(cls, path_string: str) -> "DerivationPath":
        """
        Parse a path such as ``m/44'/60'/0'/0/0``.

        The leading ``m`` is optional; a trailing ``'``, ``h`` or ``H`` marks a
        hardened index.
        """
        if not isinstance(path_string, str):
            raise MalformedPathError(repr(path_string), "not a string")

        segments = path_string.strip().split("/")
        if segments and segments[0] == "m":
            segments = segments[1:]

        indices = []
        for segment in segments:
            hardened = segment.endswith(HARDENED_MARKERS)
            digits = segment[:-1] if hardened else segment
            if not (digits.isascii() and digits.isdigit()):
                raise MalformedPathError(path_string, f"invalid component {segment!r}")

            value = int(digits)
            if value > MAX_INDEX:
                raise MalformedPathError(path_string, f"component {segment!r} out of range")

            indices.append(Index(value, hardened))

        return cls(indices)

    @classmethod
    def from_string(cls, path_string: str) -> "DerivationPath":
        """Alias of :meth:`parse`."""
        return cls.parse(path_string)

    @classmethod
    def coerce(cls, path: Union["DerivationPath", str]) -> "DerivationPath":
        """Accept either a path object or a path string."""
        if isinstance(path, DerivationPath):
            return path
        return cls.parse(path)

    @classmethod
    def bip44(
        cls, coin_type: int, account: int = 0, change: int = 0, address_index: int = 0
    ) -> "DerivationPath":
        """Create BIP44 derivation path ``m/44'/coin'/account'/change/index``."""
        return cls.from_components(44, coin_type, account, change, address_index)

    @classmethod
    def from_components(
        cls, purpose: int, coin_type: int, account: int, change: int, address_index: int
    ) -> "DerivationPath":
        """Create the standard five-level path with BIP44 hardening."""
        try:
            return cls(
                [
                    Index(purpose, hardened=True),
                    Index(coin_type, hardened=True),
                    Index(account, hardened=True),
                    Index(change),
                    Index(address_index),
                ]
            )
        except ValueError as e:
            raise MalformedPathError(
                f"{purpose}/{coin_type}/{account}/{change}/{address_index}", str(e)
            ) from e

    def to_string(self) -> str:
        """Convert derivation path to string format."""
        return "/".join(["m"] + [str(index) for index in self._indices])

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"DerivationPath('{self.to_string()}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DerivationPath):
            return NotImplemented
        return self._indices == other._indices

    def __hash__(self) -> int:
        return hash(self._indices)

    def __len__(self) -> int:
        return len(self._indices)


class HDKeyDerivation:
    """BIP32 compliant HD key derivation."""

    def __init__(self, seed: bytes):
        """Initialize HD key derivation."""
        if len(seed) < 16:
            raise ValueError("Seed must be at least 16 bytes")
        self.master_key, self.master_chain_code = self._derive_master_key(seed)

    @staticmethod
    def _derive_master_key(seed: bytes) -> Tuple[bytes, bytes]:
        """Derive master key and chain code from seed."""
        hmac_result = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        return hmac_result[:32], hmac_result[32:]

    @staticmethod
    def _derive_child_key(
        parent_key: bytes, parent_chain_code: bytes, child_number: int
    ) -> Tuple[bytes, bytes]:
        """Derive child key from parent."""
        parent_private_key = PrivateKey.from_bytes(parent_key)

        if child_number >= HARDENED_OFFSET:
            key_data = b"\x00" + parent_key + child_number.to_bytes(4, "big")
        else:
            parent_public_key = parent_private_key.get_public_key()
            key_data = parent_public_key.to_bytes() + child_number.to_bytes(4, "big")

        hmac_result = hmac.new(parent_chain_code, key_data, hashlib.sha512).digest()

        child_private_key = parent_private_key.add_scalar(hmac_result[:32])
        return child_private_key.to_bytes(), hmac_result[32:]

    def derive_key(self, path: DerivationPath) -> PrivateKey:
        """Derive private key from derivation path."""
        current_key = self.master_key
        current_chain_code = self.master_chain_code

        for index in path.indices:
            current_key, current_chain_code = self._derive_child_key(
                current_key, current_chain_code, index.child_number
            )

        return PrivateKey.from_bytes(current_key)

    def derive_keys(self, paths: Iterable[DerivationPath]) -> List[PrivateKey]:
        """Derive one private key per path."""
        return [self.derive_key(path) for path in paths]
