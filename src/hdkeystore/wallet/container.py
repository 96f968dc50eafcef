"""
Encrypted secret containers for hdkeystore.

A container is the persisted unit of the keystore: one raw private key or one
BIP39 mnemonic, encrypted with :class:`WalletEncryption`, plus the metadata
of the Web3 Secret Storage v3 document (id, cached address, coin and the
accounts derived so far).
"""

import logging

logger = logging.getLogger(__name__)
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..crypto.signatures import PRIVATE_KEY_SIZE, PrivateKey
from ..errors import InvalidContainerError, InvalidKeyTypeError, InvalidMnemonicError
from .encryption import EncryptionRecord, WalletEncryption
from .key_derivation import DerivationPath
from .mnemonic import (
    MnemonicConfig,
    MnemonicGenerator,
    mnemonic_to_seed,
    normalize_phrase,
)

CONTAINER_VERSION = 3


class WalletType(Enum):
    """Kind of secret held by a container."""

    PRIVATE_KEY = "private-key"
    HD_WALLET = "mnemonic"


class CoinType(Enum):
    """Supported coins with their BIP44 coin index."""

    ETHEREUM = 60
    DEXON = 237

    @property
    def index(self) -> int:
        return self.value

    def to_json(self) -> str:
        return str(self.value)

    @classmethod
    def from_json(cls, value: Union[str, int]) -> "CoinType":
        """Parse the string-encoded coin index stored in containers."""
        try:
            return cls(int(value))
        except (TypeError, ValueError) as e:
            raise InvalidContainerError(f"Unknown coin: {value!r}", cause=e) from e


@dataclass(frozen=True)
class AccountEntry:
    """Persisted descriptor of a derived account."""

    address: str
    derivation_path: DerivationPath

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "derivation_path": self.derivation_path.to_string(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountEntry":
        return cls(
            address=data["address"],
            derivation_path=DerivationPath.parse(data["derivation_path"]),
        )


def _normalize_address(address: Optional[str]) -> Optional[str]:
    if not address:
        return None
    if address[:2].lower() == "0x":
        return "0x" + address[2:]
    return "0x" + address


@dataclass
class SecretContainer:
    """A v3 keystore document holding one encrypted secret."""

    type: WalletType
    crypto: EncryptionRecord
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    address: Optional[str] = None
    version: int = CONTAINER_VERSION
    coin: Optional[CoinType] = None
    passphrase: str = field(default="", repr=False)
    active_accounts: List[AccountEntry] = field(default_factory=list)

    def __post_init__(self):
        """Validate container data."""
        if self.version != CONTAINER_VERSION:
            raise InvalidContainerError(f"Unsupported container version: {self.version}")

    @classmethod
    def create_private_key(
        cls,
        private_key: bytes,
        password: str,
        coin: Optional[CoinType] = None,
        encryption: Optional[WalletEncryption] = None,
    ) -> "SecretContainer":
        """Wrap a raw 32-byte private key."""
        if len(private_key) != PRIVATE_KEY_SIZE:
            raise ValueError("Private key must be exactly 32 bytes")

        address = PrivateKey.from_bytes(private_key).to_address()
        encryption = encryption or WalletEncryption()
        return cls(
            type=WalletType.PRIVATE_KEY,
            crypto=encryption.encrypt(bytes(private_key), password),
            address=address,
            coin=coin,
        )

    @classmethod
    def create_mnemonic(
        cls,
        mnemonic: str,
        password: str,
        passphrase: str = "",
        coin: Optional[CoinType] = None,
        encryption: Optional[WalletEncryption] = None,
    ) -> "SecretContainer":
        """Wrap a mnemonic phrase; the phrase is stored normalized."""
        phrase = normalize_phrase(mnemonic)
        if not phrase:
            raise InvalidMnemonicError()

        encryption = encryption or WalletEncryption()
        return cls(
            type=WalletType.HD_WALLET,
            crypto=encryption.encrypt(phrase.encode("utf-8"), password),
            coin=coin,
            passphrase=passphrase,
        )

    @classmethod
    def create_random(
        cls,
        password: str,
        mnemonic_config: Optional[MnemonicConfig] = None,
        encryption: Optional[WalletEncryption] = None,
    ) -> "SecretContainer":
        """Create a container around a freshly generated mnemonic."""
        phrase = MnemonicGenerator(mnemonic_config).generate()
        return cls.create_mnemonic(phrase, password, encryption=encryption)

    def decrypt(self, password: str) -> bytes:
        """Return the raw payload after password verification."""
        return WalletEncryption().decrypt(self.crypto, password)

    def decrypt_private_key(self, password: str) -> bytes:
        """Return the 32-byte private key of a raw-key container."""
        if self.type is not WalletType.PRIVATE_KEY:
            raise InvalidKeyTypeError()

        data = self.decrypt(password)
        if len(data) != PRIVATE_KEY_SIZE:
            raise InvalidContainerError("Decrypted private key has the wrong length")
        return data

    def decrypt_mnemonic(self, password: str) -> str:
        """Return the normalized phrase of a mnemonic container."""
        if self.type is not WalletType.HD_WALLET:
            raise InvalidMnemonicError()

        try:
            return normalize_phrase(self.decrypt(password).decode("utf-8"))
        except UnicodeDecodeError as e:
            raise InvalidContainerError("Decrypted mnemonic is not valid text", cause=e) from e

    def decrypt_seed(self, password: str) -> bytes:
        """Return the BIP39 seed for the stored mnemonic and passphrase."""
        return mnemonic_to_seed(self.decrypt_mnemonic(password), self.passphrase)

    def rewrap(
        self,
        password: str,
        new_password: str,
        encryption: Optional[WalletEncryption] = None,
    ) -> "SecretContainer":
        """
        Create a brand-new container for the same secret under ``new_password``.

        The copy gets a fresh id, salt and IV, keeps the coin, cached address
        and in-memory passphrase, and starts with no derived accounts.
        """
        encryption = encryption or WalletEncryption()
        return SecretContainer(
            type=self.type,
            crypto=encryption.change_password(self.crypto, password, new_password),
            address=self.address,
            coin=self.coin,
            passphrase=self.passphrase,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the v3 JSON object (the passphrase is never included)."""
        data: Dict[str, Any] = {"type": self.type.value, "id": self.id}
        if self.address:
            data["address"] = self.address
        data["crypto"] = self.crypto.to_dict()
        data["version"] = self.version
        if self.coin is not None:
            data["coin"] = self.coin.to_json()
        data["activeAccounts"] = [entry.to_dict() for entry in self.active_accounts]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SecretContainer":
        """Create from a v3 JSON object, filling defaults for optional fields."""
        if not isinstance(data, dict):
            raise InvalidContainerError("Container must be a JSON object")

        crypto_data = data.get("crypto", data.get("Crypto"))
        if crypto_data is None:
            raise InvalidContainerError("Container has no crypto section")

        container_id = data.get("id")
        if not isinstance(container_id, str) or not container_id:
            raise InvalidContainerError("Container has no id")

        try:
            wallet_type = WalletType(data.get("type") or WalletType.PRIVATE_KEY.value)
        except ValueError as e:
            raise InvalidContainerError(f"Unknown container type: {data.get('type')!r}") from e

        coin = data.get("coin")
        try:
            active_accounts = [
                AccountEntry.from_dict(entry) for entry in data.get("activeAccounts") or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidContainerError(f"Malformed activeAccounts: {e}", cause=e) from e

        return cls(
            type=wallet_type,
            crypto=EncryptionRecord.from_dict(crypto_data),
            id=container_id,
            address=_normalize_address(data.get("address")),
            version=data.get("version"),
            coin=CoinType.from_json(coin) if coin is not None else None,
            active_accounts=active_accounts,
        )

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_text: str) -> "SecretContainer":
        try:
            data = json.loads(json_text)
        except ValueError as e:
            raise InvalidContainerError(f"Invalid JSON: {e}", cause=e) from e
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "SecretContainer":
        """Read and parse a container file; ``OSError`` propagates unchanged."""
        path = Path(path)
        try:
            return cls.from_json(path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as e:
            raise InvalidContainerError(
                f"Invalid container file {path.name}: not UTF-8 text",
                path=str(path),
                operation="load",
                cause=e,
            ) from e
        except InvalidContainerError as e:
            raise InvalidContainerError(
                f"Invalid container file {path.name}: {e.message}",
                path=str(path),
                operation="load",
                cause=e,
            ) from e

