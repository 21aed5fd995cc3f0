"""
Encrypted Store

Transparent encryption on top of any KeyValueStore.

Writes are always envelopes. Reads accept both envelopes and legacy
plaintext JSON written before encryption existed, so old data keeps
loading until it is next saved (which encrypts it).

FAILURE SEMANTICS:
- load_and_decrypt never raises for bad data: a wrong password, a tampered
  envelope or unparseable JSON is logged and returned as None
- has_record lets callers tell "never written" apart from "could not read"
- encrypt_and_save raises EncryptionError unless plaintext fallback is
  enabled in StorageSettings
"""

import json
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ValidationError
from pydantic_core import to_jsonable_python

from flowledger.audit import AuditLogger
from flowledger.config import StorageSettings, get_settings
from flowledger.models.storage import (
    EncryptedEnvelope,
    EnvelopeRecord,
    LegacyRecord,
    StoredRecord,
)
from flowledger.services.crypto import (
    DecryptionError,
    EncryptionError,
    EnvelopeCipher,
)
from flowledger.services.storage.interface import KeyValueStore, StorageError


logger = structlog.get_logger(__name__)


def _to_jsonable(value: Any) -> Any:
    """Convert models (by alias) and containers of models to plain JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    return to_jsonable_python(value)


def serialize_value(value: Any) -> str:
    """Serialize a value to the JSON text that gets encrypted."""
    return json.dumps(_to_jsonable(value), ensure_ascii=False, separators=(",", ":"))


def decode_stored_value(raw: str) -> StoredRecord:
    """
    Decode a raw stored string into a tagged record.

    JSON carrying all of iv, data and salt is an envelope. Any other valid
    JSON is legacy plaintext.

    Raises:
        StorageError: If the value is not JSON, or is envelope-shaped but
                      its fields are not strings
    """
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise StorageError("Stored value is not valid JSON") from e

    if not EncryptedEnvelope.looks_like_envelope(parsed):
        return LegacyRecord(value=parsed)

    try:
        return EnvelopeRecord(envelope=EncryptedEnvelope.model_validate(parsed))
    except ValidationError as e:
        raise StorageError("Stored envelope is malformed") from e


class EncryptedStore:
    """
    Password-based encryption of JSON values in a key-value store.

    Example:
        store = EncryptedStore(InMemoryKeyValueStore())
        store.encrypt_and_save("flow_settings_u1", {"language": "tr"}, secret)
        store.load_and_decrypt("flow_settings_u1", secret)
    """

    def __init__(
        self,
        backend: KeyValueStore,
        cipher: Optional[EnvelopeCipher] = None,
        settings: Optional[StorageSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize encrypted store.

        Args:
            backend: Raw string store the envelopes are written to
            cipher: Envelope cipher (defaults to application crypto settings)
            settings: Storage settings (fallback policy)
            audit_logger: Audit sink for saves, loads and failures
        """
        self._backend = backend
        self._cipher = cipher or EnvelopeCipher()
        self._settings = settings or get_settings().storage
        self._audit = audit_logger or AuditLogger()

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    @property
    def cipher(self) -> EnvelopeCipher:
        return self._cipher

    def _read_raw(self, key: str) -> Optional[str]:
        raw = self._backend.get(key)
        # An empty string is treated as never written
        return raw or None

    def has_record(self, key: str) -> bool:
        """Check whether anything at all is stored under `key`."""
        return self._read_raw(key) is not None

    def load_record(self, key: str) -> Optional[StoredRecord]:
        """
        Read and classify the value under `key` without decrypting it.

        Returns:
            LegacyRecord, EnvelopeRecord, or None if nothing is stored

        Raises:
            StorageError: If the stored value cannot be decoded
        """
        raw = self._read_raw(key)
        if raw is None:
            return None
        return decode_stored_value(raw)

    def encrypt_and_save(self, key: str, value: Any, password: str) -> None:
        """
        Serialize, encrypt and store a value. Last write wins.

        Args:
            key: Storage key
            value: Any JSON-serializable value or pydantic model(s)
            password: Secret the envelope key is derived from

        Raises:
            EncryptionError: If encryption fails and plaintext fallback
                             is disabled
            StorageError: If the backend write fails
        """
        payload = serialize_value(value)

        try:
            envelope = self._cipher.encrypt(payload, password)
        except EncryptionError as e:
            logger.error("encryption_failed", key=key, error=str(e))
            if not self._settings.allow_plaintext_fallback:
                raise
            self._audit.log_plaintext_fallback(key, str(e))
            self._backend.set(key, payload)
            self._audit.log_record_saved(key, encrypted=False)
            return

        self._backend.set(key, envelope.model_dump_json())
        self._audit.log_record_saved(key, encrypted=True)

    def load_and_decrypt(self, key: str, password: str) -> Optional[Any]:
        """
        Load and decrypt the value stored under `key`.

        Returns:
            The decoded JSON value, legacy plaintext as-is, or None when
            nothing is stored or the record cannot be read
        """
        try:
            record = self.load_record(key)
        except StorageError as e:
            self._audit.log_decryption_failed(key, str(e))
            return None

        self._audit.log_record_loaded(key, found=record is not None)

        if record is None:
            return None

        if isinstance(record, LegacyRecord):
            self._audit.log_legacy_record(key)
            return record.value

        try:
            plaintext = self._cipher.decrypt(record.envelope, password)
            return json.loads(plaintext)
        except DecryptionError as e:
            self._audit.log_decryption_failed(key, str(e))
            return None
        except json.JSONDecodeError:
            self._audit.log_decryption_failed(key, "Decrypted payload is not valid JSON")
            return None

    def verify_password(self, key: str, password: str) -> bool:
        """
        Check a password against the record under `key`.

        True when nothing is stored, when the record is still plaintext,
        or when the envelope decrypts.
        """
        try:
            record = self.load_record(key)
        except StorageError:
            return False

        if record is None or isinstance(record, LegacyRecord):
            return True

        try:
            self._cipher.decrypt(record.envelope, password)
        except DecryptionError:
            return False
        return True

    def delete(self, key: str) -> bool:
        """Remove the record under `key`. Returns False if there was none."""
        removed = self._backend.delete(key)
        if removed:
            self._audit.log_record_deleted(key)
        return removed
