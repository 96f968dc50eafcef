"""
hdkeystore wallet system.

This package provides password-protected keystore containers for raw private
keys and BIP39 mnemonics, BIP32 account derivation and a directory-backed
keystore manager compatible with Ethereum keystore v3 files.
"""

import logging

logger = logging.getLogger(__name__)
from .container import AccountEntry, CoinType, SecretContainer, WalletType
from .encryption import EncryptionConfig, EncryptionRecord, ScryptParams, WalletEncryption
from .hd_wallet import Account, Wallet
from .key_derivation import DerivationPath, HDKeyDerivation, Index
from .mnemonic import (
    Language,
    MnemonicConfig,
    MnemonicGenerator,
    MnemonicValidator,
    mnemonic_to_seed,
    normalize_phrase,
)
from .wallet_manager import KeystoreConfig, KeystoreManager, generate_file_name

__all__ = [
    # Encryption
    "EncryptionConfig",
    "EncryptionRecord",
    "ScryptParams",
    "WalletEncryption",
    # Key derivation
    "DerivationPath",
    "HDKeyDerivation",
    "Index",
    # Mnemonic
    "Language",
    "MnemonicConfig",
    "MnemonicGenerator",
    "MnemonicValidator",
    "mnemonic_to_seed",
    "normalize_phrase",
    # Containers
    "AccountEntry",
    "CoinType",
    "SecretContainer",
    "WalletType",
    # Wallets
    "Account",
    "Wallet",
    # Manager
    "KeystoreConfig",
    "KeystoreManager",
    "generate_file_name",
]
