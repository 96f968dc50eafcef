"""Exception hierarchy for hdkeystore.

This module defines the structured exceptions raised by the keystore: every
failure is local, synchronous and final for the call that produced it.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    CRYPTOGRAPHIC = "cryptographic"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


class KeystoreError(Exception):
    """Base exception for all keystore errors."""

    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        cause: Optional[Exception] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.severity = severity
        self.category = category
        self.cause = cause
        self.retryable = False
        self.metadata = metadata or {}
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "cause": str(self.cause) if self.cause else None,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return self.message


class ValidationError(KeystoreError):
    """Input or state validation error."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.VALIDATION, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
            }
        )
        return data


class CryptographicError(KeystoreError):
    """Cryptographic error."""

    def __init__(self, message: str, algorithm: Optional[str] = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        super().__init__(message, category=ErrorCategory.CRYPTOGRAPHIC, **kwargs)
        self.algorithm = algorithm

    def to_dict(self) -> Dict[str, Any]:
        """Convert cryptographic error to dictionary."""
        data = super().to_dict()
        data["algorithm"] = self.algorithm
        return data


class StorageError(KeystoreError):
    """Error related to the on-disk wallet directory."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.STORAGE, **kwargs)
        self.path = path
        self.operation = operation

    def to_dict(self) -> Dict[str, Any]:
        """Convert storage error to dictionary."""
        data = super().to_dict()
        data.update({"path": self.path, "operation": self.operation})
        return data


class InvalidPasswordError(CryptographicError):
    """MAC mismatch while decrypting a container."""

    default_code = "invalid_password"

    def __init__(self, message: str = "Invalid password", **kwargs):
        super().__init__(message, algorithm="keccak256-mac", **kwargs)


class UnsupportedKdfError(CryptographicError):
    """The container names a key derivation function other than scrypt."""

    default_code = "unsupported_kdf"

    def __init__(self, kdf: str, **kwargs):
        super().__init__(f"Unsupported KDF: {kdf}", algorithm=kdf, **kwargs)


class UnsupportedCipherError(CryptographicError):
    """The container names a cipher other than aes-128-ctr."""

    default_code = "unsupported_cipher"

    def __init__(self, cipher: str, **kwargs):
        super().__init__(f"Unsupported cipher: {cipher}", algorithm=cipher, **kwargs)


class InvalidKeyTypeError(ValidationError):
    """Operation requested against the wrong kind of container."""

    default_code = "invalid_key_type"

    def __init__(self, message: str = "Invalid key type", **kwargs):
        super().__init__(message, field="type", **kwargs)


class WalletGoneError(KeystoreError):
    """The account's owning wallet no longer exists."""

    default_code = "wallet_gone"

    def __init__(self, message: str = "Wallet no longer exists", **kwargs):
        super().__init__(message, **kwargs)


class MalformedPathError(ValidationError, ValueError):
    """A derivation path string could not be parsed."""

    default_code = "malformed_path"

    def __init__(self, path: str, reason: str = "", **kwargs):
        message = f"Malformed derivation path: {path!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, field="derivation_path", value=path, **kwargs)


class InvalidMnemonicError(ValidationError):
    """Mnemonic failed wordlist validation or is not available."""

    default_code = "invalid_mnemonic"

    def __init__(self, message: str = "Invalid mnemonic", **kwargs):
        super().__init__(message, field="mnemonic", **kwargs)


class MissingWalletError(StorageError, LookupError):
    """Wallet is not registered with the keystore."""

    default_code = "missing_wallet"

    def __init__(self, identifier: Optional[str] = None, **kwargs):
        message = "Missing wallet"
        if identifier:
            message = f"{message}: {identifier}"
        super().__init__(message, path=identifier, **kwargs)


class InvalidContainerError(StorageError):
    """A wallet document could not be parsed as a v3 container."""

    default_code = "invalid_container"


class AccountMismatchError(CryptographicError):
    """A re-derived key does not belong to the account it was derived for."""

    default_code = "account_mismatch"

    def __init__(self, address: str, **kwargs):
        super().__init__(
            f"Derived key does not match account {address}; "
            "the wallet passphrase may be missing",
            algorithm="bip32",
            **kwargs,
        )
        self.address = address
