"""hdkeystore error handling.

This module exposes the exception hierarchy shared by every keystore
component.
"""

from .exceptions import (
    AccountMismatchError,
    CryptographicError,
    ErrorCategory,
    ErrorSeverity,
    InvalidContainerError,
    InvalidKeyTypeError,
    InvalidMnemonicError,
    InvalidPasswordError,
    KeystoreError,
    MalformedPathError,
    MissingWalletError,
    StorageError,
    UnsupportedCipherError,
    UnsupportedKdfError,
    ValidationError,
    WalletGoneError,
)

__all__ = [
    "KeystoreError",
    "ErrorSeverity",
    "ErrorCategory",
    "ValidationError",
    "CryptographicError",
    "StorageError",
    "InvalidPasswordError",
    "UnsupportedKdfError",
    "UnsupportedCipherError",
    "InvalidKeyTypeError",
    "WalletGoneError",
    "MalformedPathError",
    "InvalidMnemonicError",
    "MissingWalletError",
    "InvalidContainerError",
    "AccountMismatchError",
]
