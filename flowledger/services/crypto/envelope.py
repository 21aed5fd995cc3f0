"""
Envelope Encryption

Turns a password plus a plaintext string into a tamper-evident
EncryptedEnvelope, and back.

Scheme:
- PBKDF2-HMAC-SHA256, 100,000 iterations, fresh 128-bit salt per encryption
- AES-256-GCM, fresh 96-bit nonce per encryption, 128-bit tag appended to
  the ciphertext
- iv, data and salt are Base64 (standard alphabet)

These parameters match the browser client's Web Crypto implementation, so
envelopes written by either side decrypt on the other.

Decryption fails closed: a wrong password, a flipped bit, a truncated
ciphertext or malformed Base64 all raise DecryptionError and never return
partial output. There are no retries; crypto failures are not transient.
"""

import base64
import binascii
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from flowledger.config import CryptoSettings, get_settings
from flowledger.models.storage import EncryptedEnvelope


GCM_TAG_LENGTH = 16


class CryptoError(Exception):
    """Base exception for envelope encryption."""
    pass


class EncryptionError(CryptoError):
    """Could not produce an envelope."""
    pass


class DecryptionError(CryptoError):
    """
    Could not open an envelope.

    Raised for wrong passwords, tampered or truncated ciphertext and
    malformed Base64 alike. The cases are deliberately not distinguished.
    """
    pass


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(value: str, field: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise DecryptionError(f"Malformed Base64 in envelope field '{field}'") from e


class EnvelopeCipher:
    """
    Password-based AEAD encryption of strings.

    Stateless apart from its settings; one instance can be shared.
    """

    def __init__(self, settings: Optional[CryptoSettings] = None):
        """
        Initialize cipher.

        Args:
            settings: KDF and nonce parameters. Defaults to the
                     application's CryptoSettings. Decryption must use the
                     same iteration count and key length as encryption.
        """
        self._settings = settings or get_settings().crypto

    @property
    def settings(self) -> CryptoSettings:
        return self._settings

    def derive_key(self, password: str, salt: bytes) -> bytes:
        """
        Stretch a password into a symmetric key.

        Deliberately slow: cost is set by `pbkdf2_iterations`.
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self._settings.key_length,
            salt=salt,
            iterations=self._settings.pbkdf2_iterations,
        )
        return kdf.derive(password.encode("utf-8"))

    def encrypt(self, plaintext: str, password: str) -> EncryptedEnvelope:
        """
        Encrypt a string under a password.

        Args:
            plaintext: Text to protect (typically serialized JSON)
            password: Secret the key is derived from. Never stored.

        Returns:
            A new envelope with its own salt and nonce

        Raises:
            EncryptionError: If the password is empty or the cipher fails
        """
        if not password:
            raise EncryptionError("A password is required to encrypt")
        if not isinstance(plaintext, str):
            raise EncryptionError(
                f"Plaintext must be a string, got {type(plaintext).__name__}"
            )

        salt = secrets.token_bytes(self._settings.salt_length)
        iv = secrets.token_bytes(self._settings.iv_length)

        try:
            key = self.derive_key(password, salt)
            ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        except (ValueError, TypeError, UnicodeEncodeError) as e:
            raise EncryptionError(f"Encryption failed: {e}") from e

        return EncryptedEnvelope(
            iv=_b64encode(iv),
            data=_b64encode(ciphertext),
            salt=_b64encode(salt),
        )

    def decrypt(self, envelope: EncryptedEnvelope, password: str) -> str:
        """
        Decrypt an envelope.

        Args:
            envelope: Envelope produced by encrypt()
            password: The password it was encrypted under

        Returns:
            The original plaintext

        Raises:
            DecryptionError: On any failure. No partial output is returned.
        """
        if not password:
            raise DecryptionError("A password is required to decrypt")

        salt = _b64decode(envelope.salt, "salt")
        iv = _b64decode(envelope.iv, "iv")
        data = _b64decode(envelope.data, "data")

        if not salt or not iv:
            raise DecryptionError("Envelope is missing its salt or nonce")
        if len(data) < GCM_TAG_LENGTH:
            raise DecryptionError("Envelope ciphertext is truncated")

        try:
            key = self.derive_key(password, salt)
            decrypted = AESGCM(key).decrypt(iv, data, None)
        except InvalidTag as e:
            raise DecryptionError(
                "Authentication failed: wrong password or tampered envelope"
            ) from e
        except (ValueError, TypeError) as e:
            raise DecryptionError(f"Envelope could not be decrypted: {e}") from e

        try:
            return decrypted.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted payload is not valid UTF-8") from e


_default_cipher: Optional[EnvelopeCipher] = None


def _get_default_cipher() -> EnvelopeCipher:
    global _default_cipher
    if _default_cipher is None:
        _default_cipher = EnvelopeCipher()
    return _default_cipher


def encrypt(plaintext: str, password: str) -> EncryptedEnvelope:
    """Encrypt with the application's default crypto settings."""
    return _get_default_cipher().encrypt(plaintext, password)


def decrypt(envelope: EncryptedEnvelope, password: str) -> str:
    """Decrypt with the application's default crypto settings."""
    return _get_default_cipher().decrypt(envelope, password)
