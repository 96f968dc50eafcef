"""
Keystore v3 encryption for hdkeystore wallets.

This module implements the Web3 Secret Storage container: scrypt key
derivation, AES-128-CTR encryption and a Keccak-256 MAC over the second half
of the derived key and the ciphertext. The MAC is always checked before any
decryption takes place.
"""

import hmac
import logging

logger = logging.getLogger(__name__)
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Union

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..crypto.hashing import Keccak256Hasher
from ..errors import (
    InvalidContainerError,
    InvalidPasswordError,
    UnsupportedCipherError,
    UnsupportedKdfError,
)

CIPHER_AES_128_CTR = "aes-128-ctr"
KDF_SCRYPT = "scrypt"

# Light profile: fast enough for interactive unlocks on mobile-class hardware.
LIGHT_SCRYPT_N = 1 << 12
LIGHT_SCRYPT_P = 6
STANDARD_SCRYPT_N = 1 << 18
STANDARD_SCRYPT_P = 1
SCRYPT_R = 8
SCRYPT_DKLEN = 32
# Upper bound on scrypt working memory (128 * r * n bytes).
MAX_SCRYPT_MEMORY = 1 << 30


def _from_hex(value: str) -> bytes:
    return bytes.fromhex(value.removeprefix("0x"))


def _wipe(buffer: bytearray) -> None:
    for i in range(len(buffer)):
        buffer[i] = 0


@dataclass
class EncryptionConfig:
    """Configuration for container encryption."""

    n: int = LIGHT_SCRYPT_N
    r: int = SCRYPT_R
    p: int = LIGHT_SCRYPT_P
    dklen: int = SCRYPT_DKLEN
    salt_length: int = 32
    iv_length: int = 16

    def __post_init__(self):
        """Validate configuration."""
        if self.n <= 1 or self.n & (self.n - 1):
            raise ValueError("Scrypt n must be a power of two greater than 1")

        if self.r <= 0:
            raise ValueError("Scrypt r must be positive")

        if self.p <= 0:
            raise ValueError("Scrypt p must be positive")

        if 128 * self.r * self.n > MAX_SCRYPT_MEMORY:
            raise ValueError("Scrypt memory cost exceeds 1 GiB")

        if self.dklen != SCRYPT_DKLEN:
            raise ValueError("Derived key length must be 32 bytes")

        if self.salt_length <= 0:
            raise ValueError("Salt length must be positive")

        if self.iv_length != 16:
            raise ValueError("AES-CTR requires a 16-byte IV")

    @classmethod
    def light(cls) -> "EncryptionConfig":
        """Low-latency cost profile (n=4096, p=6)."""
        return cls(n=LIGHT_SCRYPT_N, p=LIGHT_SCRYPT_P)

    @classmethod
    def standard(cls) -> "EncryptionConfig":
        """Full-strength cost profile (n=262144, p=1)."""
        return cls(n=STANDARD_SCRYPT_N, p=STANDARD_SCRYPT_P)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "n": self.n,
            "r": self.r,
            "p": self.p,
            "dklen": self.dklen,
            "salt_length": self.salt_length,
            "iv_length": self.iv_length,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptionConfig":
        """Create config from dictionary."""
        return cls(
            n=data.get("n", LIGHT_SCRYPT_N),
            r=data.get("r", SCRYPT_R),
            p=data.get("p", LIGHT_SCRYPT_P),
            dklen=data.get("dklen", SCRYPT_DKLEN),
            salt_length=data.get("salt_length", 32),
            iv_length=data.get("iv_length", 16),
        )


@dataclass
class ScryptParams:
    """Scrypt parameters as stored in ``kdfparams``."""

    n: int
    r: int
    p: int
    dklen: int
    salt: bytes

    def __post_init__(self):
        """Refuse parameters that scrypt rejects or that would exhaust memory."""
        if self.n <= 1 or self.n & (self.n - 1):
            raise InvalidContainerError(f"Invalid scrypt n: {self.n}")

        if self.r <= 0 or self.p <= 0:
            raise InvalidContainerError(f"Invalid scrypt r/p: {self.r}/{self.p}")

        if 128 * self.r * self.n > MAX_SCRYPT_MEMORY:
            raise InvalidContainerError("Scrypt memory cost exceeds 1 GiB")

        if self.dklen != SCRYPT_DKLEN:
            raise InvalidContainerError(f"Invalid scrypt dklen: {self.dklen}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the ``kdfparams`` JSON object."""
        return {
            "dklen": self.dklen,
            "n": self.n,
            "p": self.p,
            "r": self.r,
            "salt": self.salt.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScryptParams":
        """Create from the ``kdfparams`` JSON object."""
        return cls(
            n=int(data["n"]),
            r=int(data["r"]),
            p=int(data["p"]),
            dklen=int(data.get("dklen", SCRYPT_DKLEN)),
            salt=_from_hex(data["salt"]),
        )


@dataclass
class EncryptionRecord:
    """The ``crypto`` section of a v3 container."""

    cipher_text: bytes
    iv: bytes
    kdf_params: Union[ScryptParams, Dict[str, Any]]
    mac: bytes
    cipher: str = CIPHER_AES_128_CTR
    kdf: str = KDF_SCRYPT

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the ``crypto`` JSON object."""
        if isinstance(self.kdf_params, ScryptParams):
            kdf_params = self.kdf_params.to_dict()
        else:
            kdf_params = dict(self.kdf_params)

        return {
            "cipher": self.cipher,
            "cipherparams": {"iv": self.iv.hex()},
            "ciphertext": self.cipher_text.hex(),
            "kdf": self.kdf,
            "kdfparams": kdf_params,
            "mac": self.mac.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptionRecord":
        """Create from the ``crypto`` JSON object."""
        try:
            kdf = data["kdf"]
            raw_params = data["kdfparams"]
            kdf_params = (
                ScryptParams.from_dict(raw_params) if kdf == KDF_SCRYPT else dict(raw_params)
            )
            return cls(
                cipher_text=_from_hex(data["ciphertext"]),
                iv=_from_hex(data["cipherparams"]["iv"]),
                kdf_params=kdf_params,
                mac=_from_hex(data["mac"]),
                cipher=data["cipher"],
                kdf=kdf,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidContainerError(f"Malformed crypto section: {e}", cause=e) from e


class WalletEncryption:
    """Password-based encryption of wallet secrets."""

    def __init__(self, config: EncryptionConfig = None):
        """Initialize encryption with configuration."""
        self.config = config or EncryptionConfig()

    @staticmethod
    def _derive_key(password: str, params: ScryptParams) -> bytearray:
        """Derive the scrypt key for ``password`` with the stored parameters."""
        kdf = Scrypt(
            salt=params.salt,
            length=params.dklen,
            n=params.n,
            r=params.r,
            p=params.p,
        )
        return bytearray(kdf.derive(password.encode("utf-8")))

    @staticmethod
    def _aes_ctr(key: bytes, iv: bytes, data: bytes, encrypt: bool) -> bytes:
        cipher = Cipher(algorithms.AES(key), modes.CTR(iv))
        context = cipher.encryptor() if encrypt else cipher.decryptor()
        return context.update(data) + context.finalize()

    @staticmethod
    def _mac(derived_key: bytearray, cipher_text: bytes) -> bytes:
        return Keccak256Hasher.hash_concat(derived_key[16:32], cipher_text).value

    def encrypt(self, data: bytes, password: str) -> EncryptionRecord:
        """Encrypt ``data`` under ``password``."""
        params = ScryptParams(
            n=self.config.n,
            r=self.config.r,
            p=self.config.p,
            dklen=self.config.dklen,
            salt=secrets.token_bytes(self.config.salt_length),
        )
        iv = secrets.token_bytes(self.config.iv_length)

        derived_key = self._derive_key(password, params)
        try:
            cipher_text = self._aes_ctr(bytes(derived_key[:16]), iv, data, encrypt=True)
            mac = self._mac(derived_key, cipher_text)
        finally:
            _wipe(derived_key)

        return EncryptionRecord(
            cipher_text=cipher_text,
            iv=iv,
            kdf_params=params,
            mac=mac,
        )

    def decrypt(self, record: EncryptionRecord, password: str) -> bytes:
        """Verify the MAC for ``password`` and return the plaintext."""
        if record.kdf != KDF_SCRYPT or not isinstance(record.kdf_params, ScryptParams):
            raise UnsupportedKdfError(record.kdf)

        if record.cipher != CIPHER_AES_128_CTR:
            raise UnsupportedCipherError(record.cipher)

        derived_key = self._derive_key(password, record.kdf_params)
        try:
            mac = self._mac(derived_key, record.cipher_text)
            if not hmac.compare_digest(mac, record.mac):
                logger.warning("MAC mismatch while decrypting container")
                raise InvalidPasswordError()

            return self._aes_ctr(
                bytes(derived_key[:16]), record.iv, record.cipher_text, encrypt=False
            )
        finally:
            _wipe(derived_key)

    def verify_password(self, record: EncryptionRecord, password: str) -> bool:
        """Check ``password`` against the record's MAC without decrypting."""
        if record.kdf != KDF_SCRYPT or not isinstance(record.kdf_params, ScryptParams):
            raise UnsupportedKdfError(record.kdf)

        derived_key = self._derive_key(password, record.kdf_params)
        try:
            return hmac.compare_digest(self._mac(derived_key, record.cipher_text), record.mac)
        finally:
            _wipe(derived_key)

    def change_password(
        self, record: EncryptionRecord, old_password: str, new_password: str
    ) -> EncryptionRecord:
        """Re-encrypt a record under a new password with fresh salt and IV."""
        return self.encrypt(self.decrypt(record, old_password), new_password)
