"""Envelope encryption package."""

from flowledger.services.crypto.envelope import (
    CryptoError,
    DecryptionError,
    EncryptionError,
    EnvelopeCipher,
    decrypt,
    encrypt,
)

__all__ = [
    "CryptoError",
    "DecryptionError",
    "EncryptionError",
    "EnvelopeCipher",
    "decrypt",
    "encrypt",
]
