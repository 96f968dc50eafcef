"""
Shared fixtures for hdkeystore tests.
"""

import shutil
from pathlib import Path

import pytest

from hdkeystore.wallet import (
    EncryptionConfig,
    KeystoreConfig,
    KeystoreManager,
    WalletEncryption,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fast_config():
    """Scrypt parameters cheap enough for unit tests."""
    return EncryptionConfig(n=16, r=8, p=1)


@pytest.fixture
def fast_encryption(fast_config):
    return WalletEncryption(fast_config)


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def private_key_fixture_json():
    return (FIXTURES_DIR / "wallet_private_key.json").read_text()


@pytest.fixture
def mnemonic_fixture_json():
    return (FIXTURES_DIR / "wallet_mnemonic.json").read_text()


@pytest.fixture
def keystore_dir(tmp_path):
    """Keystore directory seeded with the mnemonic fixture."""
    directory = tmp_path / "keystore"
    directory.mkdir()
    shutil.copy(FIXTURES_DIR / "wallet_mnemonic.json", directory / "wallet_mnemonic.json")
    return directory


@pytest.fixture
def keystore(keystore_dir, fast_config):
    config = KeystoreConfig(storage_path=str(keystore_dir), encryption_config=fast_config)
    return KeystoreManager(config)
