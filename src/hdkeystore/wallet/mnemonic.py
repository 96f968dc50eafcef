"""
BIP39 mnemonic generation and validation for hdkeystore wallets.

Wordlists, checksums and seed stretching come from the ``mnemonic`` reference
implementation; this module adds configuration and normalization of phrases
recovered from encrypted containers.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mnemonic import Mnemonic

from ..errors import InvalidMnemonicError

VALID_STRENGTHS = (128, 160, 192, 224, 256)


class Language(Enum):
    """Supported mnemonic languages."""

    ENGLISH = "english"
    JAPANESE = "japanese"
    CHINESE_SIMPLIFIED = "chinese_simplified"
    CHINESE_TRADITIONAL = "chinese_traditional"
    FRENCH = "french"
    ITALIAN = "italian"
    KOREAN = "korean"
    SPANISH = "spanish"
    CZECH = "czech"
    PORTUGUESE = "portuguese"


@dataclass
class MnemonicConfig:
    """Configuration for mnemonic generation."""

    language: Language = Language.ENGLISH
    strength: int = 128

    def __post_init__(self):
        """Validate configuration."""
        if self.strength not in VALID_STRENGTHS:
            raise ValueError("Strength must be 128, 160, 192, 224, or 256 bits")

    @property
    def word_count(self) -> int:
        return (self.strength + self.strength // 32) // 11


def normalize_phrase(phrase: str) -> str:
    """
    Clean up a phrase read from storage or user input.

    NUL padding is dropped and runs of whitespace collapse to single spaces.
    """
    return " ".join(phrase.replace("\x00", " ").split())


def mnemonic_to_seed(phrase: str, passphrase: str = "") -> bytes:
    """Stretch a phrase and optional passphrase into a 64-byte BIP39 seed."""
    return Mnemonic.to_seed(normalize_phrase(phrase), passphrase=passphrase)


class MnemonicGenerator:
    """Generates BIP39 compliant mnemonics."""

    def __init__(self, config: Optional[MnemonicConfig] = None):
        """Initialize mnemonic generator."""
        self.config = config or MnemonicConfig()
        self._mnemonic = Mnemonic(self.config.language.value)

    def generate(self, entropy: Optional[bytes] = None) -> str:
        """Generate a phrase from fresh (or the given) entropy."""
        if entropy is None:
            return self._mnemonic.generate(strength=self.config.strength)

        if len(entropy) * 8 != self.config.strength:
            raise ValueError(f"Entropy must be {self.config.strength // 8} bytes")
        return self._mnemonic.to_mnemonic(entropy)


class MnemonicValidator:
    """Validates mnemonics against a wordlist and checksum."""

    def __init__(self, config: Optional[MnemonicConfig] = None):
        """Initialize mnemonic validator."""
        self.config = config or MnemonicConfig()
        self._mnemonic = Mnemonic(self.config.language.value)

    def validate(self, phrase: str) -> bool:
        """Return True when every word is known and the checksum matches."""
        return self._mnemonic.check(normalize_phrase(phrase))

    def ensure_valid(self, phrase: str) -> str:
        """Return the normalized phrase or raise :class:`InvalidMnemonicError`."""
        normalized = normalize_phrase(phrase)
        if not self._mnemonic.check(normalized):
            raise InvalidMnemonicError()
        return normalized
