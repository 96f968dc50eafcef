"""
Unit tests for encrypted secret containers.
"""

import json

import pytest

from hdkeystore.errors import (
    InvalidContainerError,
    InvalidKeyTypeError,
    InvalidMnemonicError,
    InvalidPasswordError,
    MalformedPathError,
)
from hdkeystore.wallet.container import AccountEntry, CoinType, SecretContainer, WalletType
from hdkeystore.wallet.key_derivation import DerivationPath
from hdkeystore.wallet.mnemonic import MnemonicConfig

PASSWORD = "password"
FIXTURE_PRIVATE_KEY = bytes.fromhex(
    "d6ddd607fb6508cb48cbb0492495be247a3476f4b140473e23a829e722fd4968"
)
FIXTURE_MNEMONIC = (
    "ripple scissors kick mammal hire column oak again sun offer wealth tomorrow wagon turn back"
)
TEST_MNEMONIC = "often tobacco bread scare imitate song kind common bar forest yard wisdom"
ETH_PATH = "m/44'/60'/0'/0/0"


class TestCoinType:
    """Test CoinType functionality."""

    def test_coin_indices(self):
        """Test BIP44 coin indices."""
        assert CoinType.ETHEREUM.index == 60
        assert CoinType.DEXON.index == 237

    def test_json_encoding(self):
        """Test the string-encoded coin index."""
        assert CoinType.DEXON.to_json() == "237"
        assert CoinType.from_json("60") is CoinType.ETHEREUM
        assert CoinType.from_json(237) is CoinType.DEXON

    def test_unknown_coin(self):
        """Test that unknown coins are refused."""
        with pytest.raises(InvalidContainerError, match="Unknown coin"):
            CoinType.from_json("0")


class TestLoadFixtures:
    """Test reading stored v3 documents."""

    def test_read_mnemonic_container(self, fixtures_dir):
        """Test reading a mnemonic container."""
        container = SecretContainer.load(fixtures_dir / "wallet_mnemonic.json")

        assert container.id == "e0fe53d0-7a3d-4f65-88b1-9bb4e245a169"
        assert container.version == 3
        assert container.type == WalletType.HD_WALLET
        assert container.coin == CoinType.ETHEREUM
        assert container.address == "0x32dd55E0BCF509a35A3F5eEb8593fbEb244796b1"
        assert container.passphrase == ""
        assert container.active_accounts == []
        assert container.crypto.kdf_params.n == 4096
        assert container.crypto.kdf_params.p == 6

    def test_read_private_key_container(self, fixtures_dir):
        """Test reading a raw-key container."""
        container = SecretContainer.load(fixtures_dir / "wallet_private_key.json")

        assert container.id == "2ea9acf7-17ac-48f7-b2fb-c16e10036f06"
        assert container.type == WalletType.PRIVATE_KEY
        assert container.coin is None
        assert container.address == "0x80ef37236418320c0f7a55a84ccaa7e080cdfb17"

    def test_decrypt_private_key_fixture(self, fixtures_dir):
        """Test decrypting the raw-key fixture."""
        container = SecretContainer.load(fixtures_dir / "wallet_private_key.json")
        assert container.decrypt_private_key(PASSWORD) == FIXTURE_PRIVATE_KEY

    def test_decrypt_mnemonic_fixture(self, fixtures_dir):
        """Test decrypting the mnemonic fixture, whose payload carries a NUL pad."""
        container = SecretContainer.load(fixtures_dir / "wallet_mnemonic.json")

        assert container.decrypt(PASSWORD).endswith(b"\x00")
        assert container.decrypt_mnemonic(PASSWORD) == FIXTURE_MNEMONIC

    def test_wrong_password(self, fixtures_dir):
        """Test decrypting with a wrong password."""
        container = SecretContainer.load(fixtures_dir / "wallet_private_key.json")

        with pytest.raises(InvalidPasswordError, match="Invalid password"):
            container.decrypt(password="password123")

    def test_invalid_file_names_the_file(self, tmp_path):
        """Test that parse failures name the offending file."""
        path = tmp_path / "broken"
        path.write_text("{not json")

        with pytest.raises(InvalidContainerError, match="broken") as exc_info:
            SecretContainer.load(path)
        assert exc_info.value.path == str(path)

    def test_missing_file(self, tmp_path):
        """Test that I/O errors propagate unchanged."""
        with pytest.raises(FileNotFoundError):
            SecretContainer.load(tmp_path / "absent")


class TestDefaults:
    """Test default filling when parsing documents."""

    @pytest.fixture
    def document(self, private_key_fixture_json):
        return json.loads(private_key_fixture_json)

    def test_missing_type_defaults_to_private_key(self, document):
        """Test that a missing type means a raw key."""
        del document["type"]
        assert SecretContainer.from_dict(document).type == WalletType.PRIVATE_KEY

    def test_null_active_accounts(self, document):
        """Test that null activeAccounts becomes an empty list."""
        document["activeAccounts"] = None
        assert SecretContainer.from_dict(document).active_accounts == []

    def test_legacy_crypto_key(self, document):
        """Test the capitalized Crypto key used by some exporters."""
        document["Crypto"] = document.pop("crypto")
        container = SecretContainer.from_dict(document)
        assert container.decrypt_private_key(PASSWORD) == FIXTURE_PRIVATE_KEY

    def test_address_without_prefix(self, document):
        """Test that bare hex addresses gain a 0x prefix."""
        document["address"] = "80ef37236418320c0f7a55a84ccaa7e080cdfb17"
        container = SecretContainer.from_dict(document)
        assert container.address == "0x80ef37236418320c0f7a55a84ccaa7e080cdfb17"

    def test_wrong_version(self, document):
        """Test that only version 3 is accepted."""
        document["version"] = 1
        with pytest.raises(InvalidContainerError, match="Unsupported container version"):
            SecretContainer.from_dict(document)

    def test_missing_crypto(self, document):
        """Test that a document without a crypto section is refused."""
        del document["crypto"]
        with pytest.raises(InvalidContainerError, match="no crypto section"):
            SecretContainer.from_dict(document)

    def test_unknown_type(self, document):
        """Test that unknown container types are refused."""
        document["type"] = "watch-only"
        with pytest.raises(InvalidContainerError, match="Unknown container type"):
            SecretContainer.from_dict(document)

    def test_malformed_account_path(self, document):
        """Test that a bad stored derivation path is a container error."""
        document["activeAccounts"] = [{"address": "0x00", "derivation_path": "a/b/c"}]
        with pytest.raises(InvalidContainerError, match="Malformed activeAccounts"):
            SecretContainer.from_dict(document)

    def test_non_object_document(self):
        """Test that only JSON objects are containers."""
        with pytest.raises(InvalidContainerError):
            SecretContainer.from_json("[1, 2, 3]")


class TestCreate:
    """Test creating containers."""

    def test_create_private_key(self, fast_encryption):
        """Test wrapping a raw key."""
        container = SecretContainer.create_private_key(
            FIXTURE_PRIVATE_KEY, PASSWORD, coin=CoinType.ETHEREUM, encryption=fast_encryption
        )

        assert container.type == WalletType.PRIVATE_KEY
        assert container.coin == CoinType.ETHEREUM
        assert container.address == "0x80Ef37236418320C0f7a55A84cCaa7e080cDFb17"
        assert container.decrypt_private_key(PASSWORD) == FIXTURE_PRIVATE_KEY

    def test_create_private_key_wrong_length(self, fast_encryption):
        """Test that raw keys must be 32 bytes."""
        with pytest.raises(ValueError, match="exactly 32 bytes"):
            SecretContainer.create_private_key(b"\x01" * 31, PASSWORD, encryption=fast_encryption)

    def test_create_mnemonic(self, fast_encryption):
        """Test wrapping a mnemonic."""
        container = SecretContainer.create_mnemonic(
            TEST_MNEMONIC, PASSWORD, passphrase="TREZOR", encryption=fast_encryption
        )

        assert container.type == WalletType.HD_WALLET
        assert container.passphrase == "TREZOR"
        assert container.decrypt(PASSWORD) == TEST_MNEMONIC.encode("ascii")

    def test_create_random(self, fast_encryption):
        """Test creating a container around a fresh mnemonic."""
        container = SecretContainer.create_random(
            PASSWORD, MnemonicConfig(strength=160), encryption=fast_encryption
        )

        assert container.type == WalletType.HD_WALLET
        assert len(container.decrypt_mnemonic(PASSWORD).split()) == 15

    def test_ids_are_unique(self, fast_encryption):
        """Test that each container gets its own UUID."""
        first = SecretContainer.create_random(PASSWORD, encryption=fast_encryption)
        second = SecretContainer.create_random(PASSWORD, encryption=fast_encryption)
        assert first.id != second.id

    def test_type_specific_decryption(self, fast_encryption):
        """Test that payload accessors check the container type."""
        raw = SecretContainer.create_private_key(
            FIXTURE_PRIVATE_KEY, PASSWORD, encryption=fast_encryption
        )
        hd = SecretContainer.create_mnemonic(TEST_MNEMONIC, PASSWORD, encryption=fast_encryption)

        with pytest.raises(InvalidMnemonicError):
            raw.decrypt_mnemonic(PASSWORD)

        with pytest.raises(InvalidKeyTypeError):
            hd.decrypt_private_key(PASSWORD)


class TestSerialization:
    """Test writing v3 documents."""

    def test_passphrase_is_never_serialized(self, fast_encryption):
        """Test that the BIP39 passphrase stays in memory."""
        container = SecretContainer.create_mnemonic(
            TEST_MNEMONIC, PASSWORD, passphrase="TREZOR", encryption=fast_encryption
        )
        document = container.to_json()

        assert "TREZOR" not in document
        assert "passphrase" not in document
        assert SecretContainer.from_json(document).passphrase == ""

    def test_optional_fields_omitted(self, fast_encryption):
        """Test that absent address and coin are not written."""
        container = SecretContainer.create_mnemonic(
            TEST_MNEMONIC, PASSWORD, encryption=fast_encryption
        )
        data = container.to_dict()

        assert "address" not in data
        assert "coin" not in data
        assert data["version"] == 3
        assert data["type"] == "mnemonic"

    def test_round_trip_with_accounts(self, fast_encryption):
        """Test that accounts and coin survive serialization."""
        container = SecretContainer.create_mnemonic(
            TEST_MNEMONIC, PASSWORD, coin=CoinType.DEXON, encryption=fast_encryption
        )
        container.active_accounts = [
            AccountEntry("0x5BbA2fd958e3a30cf84dd92853D7C194989b3DdA", DerivationPath.parse(ETH_PATH))
        ]

        data = json.loads(container.to_json())
        assert data["coin"] == "237"
        assert data["activeAccounts"] == [
            {
                "address": "0x5BbA2fd958e3a30cf84dd92853D7C194989b3DdA",
                "derivation_path": ETH_PATH,
            }
        ]

        restored = SecretContainer.from_dict(data)
        assert restored.id == container.id
        assert restored.coin == CoinType.DEXON
        assert restored.active_accounts == container.active_accounts
        assert restored.decrypt_mnemonic(PASSWORD) == TEST_MNEMONIC

    def test_account_entry_path_validation(self):
        """Test that account entries parse their paths."""
        with pytest.raises(MalformedPathError):
            AccountEntry.from_dict({"address": "0x00", "derivation_path": "x"})


class TestRewrap:
    """Test re-encrypting containers."""

    def test_rewrap_private_key(self, fast_encryption):
        """Test moving a raw key under a new password."""
        container = SecretContainer.create_private_key(
            FIXTURE_PRIVATE_KEY, PASSWORD, coin=CoinType.ETHEREUM, encryption=fast_encryption
        )
        rewrapped = container.rewrap(PASSWORD, "newPassword", encryption=fast_encryption)

        assert rewrapped.id != container.id
        assert rewrapped.crypto.iv != container.crypto.iv
        assert rewrapped.coin == CoinType.ETHEREUM
        assert rewrapped.decrypt_private_key("newPassword") == FIXTURE_PRIVATE_KEY

    def test_rewrap_keeps_passphrase(self, fast_encryption):
        """Test that the in-memory passphrase travels with the secret."""
        container = SecretContainer.create_mnemonic(
            TEST_MNEMONIC, PASSWORD, passphrase="TREZOR", encryption=fast_encryption
        )
        container.active_accounts = [
            AccountEntry("0x5BbA2fd958e3a30cf84dd92853D7C194989b3DdA", DerivationPath.parse(ETH_PATH))
        ]
        rewrapped = container.rewrap(PASSWORD, "newPassword", encryption=fast_encryption)

        assert rewrapped.passphrase == "TREZOR"
        assert rewrapped.active_accounts == []
        assert rewrapped.decrypt_seed("newPassword") == container.decrypt_seed(PASSWORD)

    def test_rewrap_wrong_password(self, fast_encryption):
        """Test that rewrapping requires the current password."""
        container = SecretContainer.create_mnemonic(
            TEST_MNEMONIC, PASSWORD, encryption=fast_encryption
        )
        with pytest.raises(InvalidPasswordError):
            container.rewrap("wrong", "newPassword", encryption=fast_encryption)
