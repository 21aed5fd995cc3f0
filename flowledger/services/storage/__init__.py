"""
Storage package.

Raw key-value backends, the encryption layer on top of them and the
per-user key mapping.
"""

from flowledger.services.storage.interface import (
    KeyValueStore,
    RekeyError,
    StorageConnectionError,
    StorageError,
)
from flowledger.services.storage.memory import InMemoryKeyValueStore
from flowledger.services.storage.file_store import FileKeyValueStore
from flowledger.services.storage.encrypted import (
    EncryptedStore,
    decode_stored_value,
    serialize_value,
)
from flowledger.services.storage.keyed import KeyedStore

__all__ = [
    "KeyValueStore",
    "RekeyError",
    "StorageConnectionError",
    "StorageError",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "EncryptedStore",
    "decode_stored_value",
    "serialize_value",
    "KeyedStore",
]
