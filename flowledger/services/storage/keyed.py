"""
Keyed Store

Maps (collection, user) pairs onto storage keys and encrypts each user's
collections under the secret handed over by the authentication layer.

Key layout: <namespace>_<collection>_<userId>, or <namespace>_<collection>
for data not tied to a user. Collection names are letters only and user
ids are never empty, so the two forms cannot collide.
"""

import json
import re
from typing import Any, Optional, Union

import structlog

from flowledger.audit import AuditLogger, create_correlation_id
from flowledger.config import StorageSettings, get_settings
from flowledger.models.storage import AuthIdentity, Collection, EnvelopeRecord
from flowledger.services.crypto import DecryptionError, EncryptionError
from flowledger.services.storage.encrypted import (
    EncryptedStore,
    decode_stored_value,
    serialize_value,
)
from flowledger.services.storage.interface import RekeyError, StorageError


logger = structlog.get_logger(__name__)

_COLLECTION_NAME = re.compile(r"^[a-z]+$")


def _collection_name(collection: Union[Collection, str]) -> str:
    name = collection.value if isinstance(collection, Collection) else collection
    if not isinstance(name, str) or not _COLLECTION_NAME.match(name):
        raise ValueError(
            f"Collection names must be lowercase letters only, got {name!r}"
        )
    return name


class KeyedStore:
    """
    Per-user encrypted collections.

    Every read and write goes through an EncryptedStore using the
    identity's password-derived secret.
    """

    def __init__(
        self,
        store: EncryptedStore,
        settings: Optional[StorageSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().storage
        self._audit = audit_logger or AuditLogger()

    @property
    def store(self) -> EncryptedStore:
        return self._store

    @property
    def namespace(self) -> str:
        return self._settings.namespace

    def key_for(
        self,
        collection: Union[Collection, str],
        user_id: Optional[str] = None,
    ) -> str:
        """
        Build the storage key for a collection.

        Raises:
            ValueError: For an invalid collection name or an empty user id
        """
        name = _collection_name(collection)
        if user_id is None:
            return f"{self.namespace}_{name}"
        if not user_id:
            raise ValueError("user_id must not be empty")
        return f"{self.namespace}_{name}_{user_id}"

    def derive_storage_secret(self, password_hash: str) -> str:
        """
        Derive the encryption secret from a stored password hash.

        The secret is a fixed-length prefix of the hash, so it stays stable
        for as long as the password does.

        Raises:
            ValueError: If the hash is shorter than the prefix length
        """
        length = self._settings.secret_prefix_length
        if not password_hash or len(password_hash) < length:
            raise ValueError(
                f"Password hash must be at least {length} characters long"
            )
        return password_hash[:length]

    def load(
        self,
        collection: Union[Collection, str],
        identity: AuthIdentity,
    ) -> Optional[Any]:
        """Load and decrypt a user's collection. None if absent or unreadable."""
        key = self.key_for(collection, identity.user_id)
        return self._store.load_and_decrypt(key, identity.password_derived_secret)

    def save(
        self,
        collection: Union[Collection, str],
        value: Any,
        identity: AuthIdentity,
    ) -> None:
        """Encrypt and store a user's collection."""
        key = self.key_for(collection, identity.user_id)
        self._store.encrypt_and_save(key, value, identity.password_derived_secret)

    def has_data(
        self,
        collection: Union[Collection, str],
        identity: AuthIdentity,
    ) -> bool:
        """True if anything is stored for this collection, readable or not."""
        return self._store.has_record(self.key_for(collection, identity.user_id))

    def delete(
        self,
        collection: Union[Collection, str],
        identity: AuthIdentity,
    ) -> bool:
        return self._store.delete(self.key_for(collection, identity.user_id))

    def user_keys(self, identity: AuthIdentity) -> list[str]:
        """Every storage key belonging to the user, across all collections."""
        suffix = f"_{identity.user_id}"
        prefix = f"{self.namespace}_"
        keys = []
        for key in self._store.backend.keys(prefix):
            if not key.endswith(suffix):
                continue
            collection = key[len(prefix):-len(suffix)]
            if _COLLECTION_NAME.match(collection):
                keys.append(key)
        return keys

    def rekey(self, identity: AuthIdentity, new_secret: str) -> list[str]:
        """
        Re-encrypt every collection of a user under a new secret.

        Every collection is decrypted with the old secret and encrypted
        under the new one before anything is written. If reading or
        encrypting fails, nothing is written. If a write fails, the
        collections already rewritten are restored to their previous
        stored values, so the old secret still opens all of them.

        Args:
            identity: The user, carrying the current secret
            new_secret: Secret derived from the new password hash

        Returns:
            The keys that were re-encrypted

        Raises:
            RekeyError: If a collection cannot be read with the current
                        secret, encrypted under the new one, or written
        """
        if not new_secret:
            raise ValueError("new_secret must not be empty")

        correlation_id = create_correlation_id()
        backend = self._store.backend
        cipher = self._store.cipher
        originals: dict[str, str] = {}
        plaintexts: dict[str, Any] = {}

        for key in self.user_keys(identity):
            raw = backend.get(key)
            if not raw:
                continue
            try:
                record = decode_stored_value(raw)
                if isinstance(record, EnvelopeRecord):
                    plaintexts[key] = json.loads(cipher.decrypt(
                        record.envelope, identity.password_derived_secret
                    ))
                else:
                    plaintexts[key] = record.value
            except (DecryptionError, StorageError, json.JSONDecodeError) as e:
                logger.warning("rekey_aborted", key=key, user_id=identity.user_id)
                raise RekeyError(f"Cannot read {key} with the current secret") from e
            originals[key] = raw

        envelopes: dict[str, str] = {}
        for key, value in plaintexts.items():
            try:
                envelope = cipher.encrypt(serialize_value(value), new_secret)
            except EncryptionError as e:
                logger.warning("rekey_aborted", key=key, user_id=identity.user_id)
                raise RekeyError(f"Cannot encrypt {key} under the new secret") from e
            envelopes[key] = envelope.model_dump_json()

        written: list[str] = []
        try:
            for key, payload in envelopes.items():
                backend.set(key, payload)
                written.append(key)
        except StorageError as e:
            failed_key = key
            for done in written:
                backend.set(done, originals[done])
            logger.warning(
                "rekey_rolled_back",
                key=failed_key,
                restored=written,
                user_id=identity.user_id,
            )
            raise RekeyError(f"Cannot write {failed_key}; previous secret kept") from e

        self._audit.log_rekeyed(identity.user_id, written, correlation_id)
        return written
