"""
Shared fixtures.

Key derivation runs at the minimum iteration count so the suite stays
fast. Nothing here touches the network.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from flowledger.audit import AuditLogger
from flowledger.config import CryptoSettings, StorageSettings
from flowledger.models import AuditEvent, AuthIdentity, Recurrence, Transaction, TransactionType
from flowledger.orchestrator import LedgerSession
from flowledger.services.crypto import EnvelopeCipher
from flowledger.services.storage import (
    EncryptedStore,
    InMemoryKeyValueStore,
    KeyedStore,
    StorageError,
)


class RecordingAuditLogger(AuditLogger):
    """Audit logger that keeps every event for assertions."""

    def __init__(self):
        super().__init__("flowledger.tests.audit")
        self.events: list[AuditEvent] = []

    def log(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def of_type(self, event_type) -> list[AuditEvent]:
        return [e for e in self.events if e.event_type == event_type]


class FailingWriteStore(InMemoryKeyValueStore):
    """In-memory store whose Nth write after `fail_on_set` raises once."""

    def __init__(self):
        super().__init__()
        self._writes_left: Optional[int] = None

    def fail_on_set(self, n: int) -> None:
        self._writes_left = n

    def set(self, key: str, value: str) -> None:
        if self._writes_left is not None:
            self._writes_left -= 1
            if self._writes_left == 0:
                self._writes_left = None
                raise StorageError(f"write to {key} failed")
        super().set(key, value)


@pytest.fixture
def crypto_settings() -> CryptoSettings:
    return CryptoSettings(pbkdf2_iterations=1000)


@pytest.fixture
def cipher(crypto_settings) -> EnvelopeCipher:
    return EnvelopeCipher(crypto_settings)


@pytest.fixture
def storage_settings() -> StorageSettings:
    return StorageSettings(namespace="flow", allow_plaintext_fallback=False)


@pytest.fixture
def audit_logger() -> RecordingAuditLogger:
    return RecordingAuditLogger()


@pytest.fixture
def backend() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def failing_backend() -> FailingWriteStore:
    return FailingWriteStore()


@pytest.fixture
def encrypted_store(backend, cipher, storage_settings, audit_logger) -> EncryptedStore:
    return EncryptedStore(
        backend,
        cipher=cipher,
        settings=storage_settings,
        audit_logger=audit_logger,
    )


@pytest.fixture
def keyed_store(encrypted_store, storage_settings, audit_logger) -> KeyedStore:
    return KeyedStore(
        encrypted_store,
        settings=storage_settings,
        audit_logger=audit_logger,
    )


@pytest.fixture
def identity() -> AuthIdentity:
    return AuthIdentity(
        user_id="user1",
        password_derived_secret="a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6",
    )


@pytest.fixture
def session(identity, keyed_store, audit_logger) -> LedgerSession:
    return LedgerSession(identity, keyed_store, audit_logger)


@pytest.fixture
def monthly_subscription() -> Transaction:
    """Monthly expense started Jan 1 2025, next renewal Feb 1 2025."""
    return Transaction(
        id="sub-1",
        name="Streaming",
        category="entertainment",
        amount=Decimal("10.00"),
        type=TransactionType.EXPENSE,
        date="Jan 1, 2025",
        recurrence=Recurrence.MONTHLY,
        current_period=1,
        next_billing_date="2025-02-01",
    )


@pytest.fixture
def one_time_expense() -> Transaction:
    return Transaction(
        id="once-1",
        name="Groceries",
        category="food",
        amount=Decimal("42.50"),
        type=TransactionType.EXPENSE,
        date="Mar 3, 2025",
    )


@pytest.fixture
def today() -> date:
    return date(2025, 3, 15)
