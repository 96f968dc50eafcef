"""
Cryptographic primitives for hdkeystore.

This module provides Keccak-256 hashing and secp256k1 key pairs with
recoverable signatures.
"""

from .hashing import Hash, Keccak256Hasher
from .signatures import CURVE_ORDER, PRIVATE_KEY_SIZE, PrivateKey, PublicKey, Signature

__all__ = [
    "Hash",
    "Keccak256Hasher",
    "PrivateKey",
    "PublicKey",
    "Signature",
    "PRIVATE_KEY_SIZE",
    "CURVE_ORDER",
]
