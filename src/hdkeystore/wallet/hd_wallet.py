"""
Wallets and derived accounts for hdkeystore.

A :class:`Wallet` wraps one :class:`SecretContainer` and its file location and
caches the accounts derived from it. An :class:`Account` keeps only a weak
reference to its wallet; private keys are never stored and are recomputed
from the container whenever a password is supplied.
"""

import logging

logger = logging.getLogger(__name__)
import weakref
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..crypto.hashing import Hash
from ..crypto.signatures import PrivateKey, Signature
from ..errors import AccountMismatchError, InvalidKeyTypeError, WalletGoneError
from .container import AccountEntry, CoinType, SecretContainer, WalletType
from .key_derivation import DerivationPath, HDKeyDerivation

PathLike = Union[DerivationPath, str]


def _verify_account(account: "Account", derivation: HDKeyDerivation) -> PrivateKey:
    """Re-derive the account's key and check it still yields the account's address."""
    key = derivation.derive_key(account.derivation_path)
    if key.to_address().lower() != account.address.lower():
        raise AccountMismatchError(account.address)
    return key


class Account:
    """A derived signing identity: an address and the path that produced it."""

    def __init__(
        self,
        wallet: Optional["Wallet"],
        address: str,
        derivation_path: DerivationPath,
    ):
        self._wallet_ref = weakref.ref(wallet) if wallet is not None else None
        self.address = address
        self.derivation_path = derivation_path

    @property
    def wallet(self) -> Optional["Wallet"]:
        """The owning wallet, or None once it is detached or collected."""
        if self._wallet_ref is None:
            return None
        return self._wallet_ref()

    def detach(self) -> None:
        self._wallet_ref = None

    def _require_wallet(self) -> "Wallet":
        wallet = self.wallet
        if wallet is None:
            raise WalletGoneError()
        return wallet

    def private_key(self, password: str) -> bytes:
        """Recover this account's 32-byte private key."""
        container = self._require_wallet().container

        if container.type is WalletType.PRIVATE_KEY:
            return container.decrypt_private_key(password)

        derivation = HDKeyDerivation(container.decrypt_seed(password))
        return _verify_account(self, derivation).to_bytes()

    def private_key_at(self, path: PathLike, password: str) -> bytes:
        """Derive the private key at ``path`` from the owning mnemonic wallet."""
        return self.private_keys([path], password)[0]

    def private_keys(self, paths: Iterable[PathLike], password: str) -> List[bytes]:
        """Derive one private key per path from a single decryption."""
        container = self._require_wallet().container
        if container.type is not WalletType.HD_WALLET:
            raise InvalidKeyTypeError()

        paths = [DerivationPath.coerce(path) for path in paths]
        derivation = HDKeyDerivation(container.decrypt_seed(password))
        _verify_account(self, derivation)
        return [derivation.derive_key(path).to_bytes() for path in paths]

    def sign(self, message_hash: Union[bytes, Hash], password: str) -> Signature:
        """Sign a 32-byte hash with this account's key."""
        if isinstance(message_hash, Hash):
            message_hash = message_hash.value

        if len(message_hash) != 32:
            raise ValueError("Message hash must be exactly 32 bytes")

        return PrivateKey.from_bytes(self.private_key(password)).sign_hash(message_hash)

    def to_entry(self) -> AccountEntry:
        return AccountEntry(address=self.address, derivation_path=self.derivation_path)

    def __repr__(self) -> str:
        return f"Account(address='{self.address}', derivation_path='{self.derivation_path}')"


class Wallet:
    """A container, its file location and the accounts derived from it."""

    def __init__(self, path: Union[str, Path], container: SecretContainer):
        """Initialize wallet, restoring accounts persisted in the container."""
        self.path = Path(path)
        self.container = container
        self.accounts: List[Account] = [
            Account(self, entry.address, entry.derivation_path)
            for entry in container.active_accounts
        ]

    @property
    def identifier(self) -> str:
        return self.path.name

    @property
    def type(self) -> WalletType:
        return self.container.type

    def find_account(self, path: PathLike) -> Optional[Account]:
        """Return the cached account for ``path``, if any."""
        path = DerivationPath.coerce(path)
        for account in self.accounts:
            if account.derivation_path == path:
                return account
        return None

    def get_account(self, password: str, coin: Optional[CoinType] = None) -> Account:
        """
        Return the single account of a raw-key wallet.

        The first call decrypts the key and caches the account at
        ``m/44'/<coin>'/0'/0/0``; later calls return the cached account.
        """
        if self.container.type is not WalletType.PRIVATE_KEY:
            raise InvalidKeyTypeError()

        if self.accounts:
            return self.accounts[0]

        coin = coin or self.container.coin or CoinType.ETHEREUM
        private_key = PrivateKey.from_bytes(self.container.decrypt_private_key(password))
        address = private_key.to_address()

        account = Account(self, address, DerivationPath.bip44(coin.index))
        self.accounts.append(account)
        if not self.container.address:
            self.container.address = address

        logger.debug(f"Cached account {address} for wallet {self.identifier}")
        return account

    def get_accounts(self, paths: Iterable[PathLike], password: str) -> List[Account]:
        """
        Return one account per requested path of a mnemonic wallet.

        Cached paths are served without decryption. The mnemonic is decrypted
        at most once per call and only when some path has not been derived.
        New paths are only derived once the first cached account re-derives to
        its own address; a reloaded wallet whose BIP39 passphrase has not been
        restored on ``container.passphrase`` raises :class:`AccountMismatchError`.
        """
        if self.container.type is not WalletType.HD_WALLET:
            raise InvalidKeyTypeError()

        requested = [DerivationPath.coerce(path) for path in paths]
        cache: Dict[DerivationPath, Account] = {
            account.derivation_path: account for account in self.accounts
        }

        missing = [path for path in dict.fromkeys(requested) if path not in cache]
        if missing:
            derivation = HDKeyDerivation(self.container.decrypt_seed(password))
            if self.accounts:
                _verify_account(self.accounts[0], derivation)
            for path in missing:
                address = derivation.derive_key(path).to_address()
                account = Account(self, address, path)
                self.accounts.append(account)
                cache[path] = account
                logger.debug(f"Derived account {address} at {path}")

        return [cache[path] for path in requested]

    def account_entries(self) -> List[AccountEntry]:
        return [account.to_entry() for account in self.accounts]

    def detach_accounts(self) -> None:
        """Sever every account's link to this wallet."""
        for account in self.accounts:
            account.detach()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return self.identifier == other.identifier

    def __hash__(self) -> int:
        return hash(self.identifier)

    def __repr__(self) -> str:
        return f"Wallet(identifier='{self.identifier}', type={self.type.value})"
