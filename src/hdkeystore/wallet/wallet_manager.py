"""
Directory-backed keystore manager for hdkeystore.

The manager owns every wallet stored in one directory and keeps the directory
and its in-memory registry consistent across create, import, export, account
and delete operations. Each wallet is one v3 JSON file named
``UTC--<timestamp>--<uuid>``.
"""

import logging

logger = logging.getLogger(__name__)
import contextlib
import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..errors import MissingWalletError
from .container import CoinType, SecretContainer, WalletType
from .encryption import EncryptionConfig, WalletEncryption
from .hd_wallet import Account, PathLike, Wallet
from .key_derivation import DerivationPath
from .mnemonic import VALID_STRENGTHS, Language, MnemonicConfig, MnemonicValidator


def generate_file_name(now: Optional[datetime] = None) -> str:
    """Interoperable keystore file name ``UTC--YYYY-MM-DDTHH-MM-SS.mmm--<uuid4>``."""
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    return f"UTC--{timestamp}.{now.microsecond // 1000:03d}--{uuid.uuid4()}"


@dataclass
class KeystoreConfig:
    """Configuration for the keystore manager."""

    storage_path: str
    encryption_config: Optional[EncryptionConfig] = None
    default_coin: CoinType = CoinType.ETHEREUM
    mnemonic_strength: int = 128
    mnemonic_language: Language = Language.ENGLISH
    file_mode: int = 0o600

    def __post_init__(self):
        """Validate configuration."""
        if not self.storage_path:
            raise ValueError("Storage path cannot be empty")

        if self.mnemonic_strength not in VALID_STRENGTHS:
            raise ValueError("Strength must be 128, 160, 192, 224, or 256 bits")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "storage_path": str(self.storage_path),
            "encryption_config": self.encryption_config.to_dict()
            if self.encryption_config
            else None,
            "default_coin": self.default_coin.to_json(),
            "mnemonic_strength": self.mnemonic_strength,
            "mnemonic_language": self.mnemonic_language.value,
            "file_mode": self.file_mode,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeystoreConfig":
        """Create from dictionary."""
        encryption_config = None
        if data.get("encryption_config"):
            encryption_config = EncryptionConfig.from_dict(data["encryption_config"])

        return cls(
            storage_path=data["storage_path"],
            encryption_config=encryption_config,
            default_coin=CoinType.from_json(data.get("default_coin", "60")),
            mnemonic_strength=data.get("mnemonic_strength", 128),
            mnemonic_language=Language(data.get("mnemonic_language", "english")),
            file_mode=data.get("file_mode", 0o600),
        )


class KeystoreManager:
    """Owns the wallets stored in one keystore directory."""

    def __init__(self, config: Union[KeystoreConfig, str, Path]):
        """Initialize the manager and load every wallet in the directory."""
        if not isinstance(config, KeystoreConfig):
            config = KeystoreConfig(storage_path=str(config))

        self.config = config
        self.directory = Path(config.storage_path)
        self.encryption = WalletEncryption(config.encryption_config)

        self.mnemonic_config = MnemonicConfig(
            language=config.mnemonic_language, strength=config.mnemonic_strength
        )
        self.mnemonic_validator = MnemonicValidator(self.mnemonic_config)

        self._wallets: List[Wallet] = []
        self.load()

    def load(self) -> None:
        """(Re)build the registry from the directory contents."""
        if not self.directory.exists():
            self.directory.mkdir(parents=True)
            logger.info(f"Created keystore directory {self.directory}")
            self._wallets = []
            return

        wallets = []
        for entry in sorted(self.directory.iterdir()):
            if entry.name.startswith(".") or not entry.is_file():
                continue
            wallets.append(Wallet(entry, SecretContainer.load(entry)))

        self._wallets = wallets
        logger.info(f"Loaded {len(wallets)} wallets from {self.directory}")

    @property
    def wallets(self) -> List[Wallet]:
        return list(self._wallets)

    def get_wallet(self, identifier: str) -> Wallet:
        """Return the registered wallet with the given file name."""
        for wallet in self._wallets:
            if wallet.identifier == identifier:
                return wallet
        raise MissingWalletError(identifier)

    def find_wallet_by_address(self, address: str) -> Optional[Wallet]:
        """Find a wallet by a cached account address or its container address."""
        needle = address.lower().removeprefix("0x")
        for wallet in self._wallets:
            addresses = [account.address for account in wallet.accounts]
            if wallet.container.address:
                addresses.append(wallet.container.address)
            if any(candidate.lower().removeprefix("0x") == needle for candidate in addresses):
                return wallet
        return None

    def _new_wallet(self, container: SecretContainer) -> Wallet:
        return Wallet(self.directory / generate_file_name(), container)

    def _require_registered(self, wallet: Wallet) -> Wallet:
        try:
            return self._wallets[self._wallets.index(wallet)]
        except ValueError:
            raise MissingWalletError(wallet.identifier) from None

    def _persist(self, wallet: Wallet) -> None:
        """Write the wallet file atomically with restricted permissions."""
        wallet.container.active_accounts = wallet.account_entries()
        payload = wallet.container.to_json(indent=2)

        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{wallet.identifier}.", suffix=".tmp", dir=self.directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, self.config.file_mode)
            os.replace(tmp_path, wallet.path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise

        logger.info(f"Saved wallet {wallet.identifier}")

    def _register(self, wallet: Wallet) -> Wallet:
        self._persist(wallet)
        self._wallets.append(wallet)
        return wallet

    def create_wallet(
        self, password: str, paths: Optional[Iterable[PathLike]] = None
    ) -> Wallet:
        """Create a wallet around a fresh mnemonic and derive ``paths``."""
        container = SecretContainer.create_random(
            password, self.mnemonic_config, encryption=self.encryption
        )
        wallet = self._new_wallet(container)
        wallet.get_accounts(paths or [], password)

        self._register(wallet)
        logger.info(f"Created wallet {wallet.identifier} with {len(wallet.accounts)} accounts")
        return wallet

    def import_json(
        self,
        json_text: str,
        password: str,
        new_password: str,
        coin: Optional[CoinType] = None,
    ) -> Wallet:
        """Import a v3 document, re-encrypting its secret under ``new_password``."""
        container = SecretContainer.from_json(json_text)
        coin = container.coin or coin or self.config.default_coin

        if container.type is WalletType.PRIVATE_KEY:
            private_key = container.decrypt_private_key(password)
            return self.import_private_key(private_key, new_password, coin)

        phrase = container.decrypt_mnemonic(password)
        return self.import_mnemonic(
            phrase, new_password, DerivationPath.bip44(coin.index), coin=coin
        )

    def import_private_key(
        self, private_key: bytes, password: str, coin: Optional[CoinType] = None
    ) -> Wallet:
        """Import a raw 32-byte private key."""
        coin = coin or self.config.default_coin
        container = SecretContainer.create_private_key(
            private_key, password, coin=coin, encryption=self.encryption
        )
        wallet = self._new_wallet(container)
        wallet.get_account(password, coin)

        self._register(wallet)
        logger.info(f"Imported private key wallet {wallet.identifier}")
        return wallet

    def import_mnemonic(
        self,
        mnemonic: str,
        password: str,
        paths: Union[PathLike, Iterable[PathLike]],
        passphrase: str = "",
        coin: Optional[CoinType] = None,
    ) -> Wallet:
        """Import a mnemonic phrase and derive the account(s) at ``paths``."""
        phrase = self.mnemonic_validator.ensure_valid(mnemonic)
        if isinstance(paths, (str, DerivationPath)):
            paths = [paths]
        paths = [DerivationPath.coerce(path) for path in paths]

        container = SecretContainer.create_mnemonic(
            phrase, password, passphrase=passphrase, coin=coin, encryption=self.encryption
        )
        wallet = self._new_wallet(container)
        wallet.get_accounts(paths, password)

        self._register(wallet)
        logger.info(f"Imported mnemonic wallet {wallet.identifier}")
        return wallet

    def add_accounts(
        self, wallet: Wallet, paths: Iterable[PathLike], password: str
    ) -> List[Account]:
        """Derive accounts into a registered wallet and rewrite its file."""
        wallet = self._require_registered(wallet)
        accounts = wallet.get_accounts(paths, password)
        self._persist(wallet)
        return accounts

    def export(self, wallet: Wallet, password: str, new_password: str) -> str:
        """Return the wallet's secret as a new v3 document under ``new_password``."""
        container = wallet.container.rewrap(password, new_password, encryption=self.encryption)
        return container.to_json()

    def export_private_key(self, wallet: Wallet, password: str) -> bytes:
        return wallet.container.decrypt_private_key(password)

    def export_mnemonic(self, wallet: Wallet, password: str) -> str:
        return wallet.container.decrypt_mnemonic(password)

    def delete(self, wallet: Wallet) -> None:
        """
        Delete a wallet's file and remove it from the registry.

        The file goes first; a file that is already gone counts as deleted.
        Any other failure leaves the registry untouched.
        """
        registered = self._require_registered(wallet)

        with contextlib.suppress(FileNotFoundError):
            registered.path.unlink()

        self._wallets.remove(registered)
        registered.detach_accounts()
        if wallet is not registered:
            wallet.detach_accounts()

        logger.info(f"Deleted wallet {registered.identifier}")

    def __len__(self) -> int:
        return len(self._wallets)

    def __contains__(self, wallet: object) -> bool:
        return wallet in self._wallets

    def __str__(self) -> str:
        return f"KeystoreManager(directory={self.directory}, wallets={len(self._wallets)})"
