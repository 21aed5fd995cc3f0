"""
Main Orchestrator for Flow Ledger

This module ties the components together for one signed-in user:
1. Load (key -> decrypt -> parse transactions)
2. Refresh (advance due subscriptions -> persist only on change)
3. Project (upcoming list, never persisted)
4. Edit (add / update / delete -> encrypt -> save)

DESIGN DECISION: The session enforces the boundaries:
- Data that exists but cannot be decrypted is never overwritten
- Nothing is written unless something actually changed
- Every automatic subscription change is audited

Key derivation is deliberately slow, so the async variants run the
blocking work in a worker thread.
"""

import asyncio
from datetime import date
from typing import Any, Optional, Sequence

import structlog
from pydantic import ValidationError

from flowledger.audit import AuditLogger, create_correlation_id
from flowledger.config import Settings, get_settings
from flowledger.models.audit import AuditEventType
from flowledger.models.storage import AuthIdentity, Collection
from flowledger.models.transaction import ProcessResult, Transaction
from flowledger.services import transactions as book
from flowledger.services.crypto import EnvelopeCipher
from flowledger.services.projection import get_upcoming
from flowledger.services.recurrence import process_all
from flowledger.services.storage import (
    EncryptedStore,
    FileKeyValueStore,
    InMemoryKeyValueStore,
    KeyedStore,
    KeyValueStore,
    StorageError,
)


logger = structlog.get_logger(__name__)


class LedgerSession:
    """
    One user's view of their encrypted ledger.

    Flow on app load:
    1. refresh() loads transactions and advances due subscriptions by one step
    2. upcoming() projects what is due next from the refreshed list
    3. Edits go through add/update/delete_transaction and are saved at once
    """

    def __init__(
        self,
        identity: AuthIdentity,
        keyed_store: KeyedStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._identity = identity
        self._keyed_store = keyed_store
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def identity(self) -> AuthIdentity:
        return self._identity

    @property
    def user_id(self) -> str:
        return self._identity.user_id

    # =========================================================================
    # GENERIC COLLECTIONS
    # =========================================================================

    def _load_collection(self, collection: Collection) -> Optional[Any]:
        """
        Load a collection, refusing to treat unreadable data as empty.

        Raises:
            StorageError: If data exists but cannot be decrypted
        """
        value = self._keyed_store.load(collection, self._identity)
        if value is None and self._keyed_store.has_data(collection, self._identity):
            raise StorageError(
                f"{collection.value} exist for user {self.user_id} "
                "but could not be decrypted"
            )
        return value

    def save_collection(self, collection: Collection, value: Any) -> None:
        """Encrypt and store any collection for this user."""
        self._keyed_store.save(Collection(collection), value, self._identity)

    def load_categories(self) -> list:
        value = self._load_collection(Collection.CATEGORIES)
        return value if isinstance(value, list) else []

    def load_settings(self) -> dict:
        value = self._load_collection(Collection.SETTINGS)
        return value if isinstance(value, dict) else {}

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def load_transactions(self) -> list[Transaction]:
        """
        Load and validate this user's transactions.

        Records written before subscriptions existed load with default
        recurrence fields.

        Raises:
            StorageError: If the stored data is unreadable or not a valid
                          transaction list
        """
        raw = self._load_collection(Collection.TRANSACTIONS)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StorageError("Stored transactions are not a list")

        try:
            return [Transaction.model_validate(item) for item in raw]
        except ValidationError as e:
            self._audit_logger.log_error(
                error_type="invalid_transaction_record",
                error_message=f"{e.error_count()} validation error(s)",
                details={"user_id": self.user_id},
            )
            raise StorageError("Stored transactions failed validation") from e

    def save_transactions(self, transactions: Sequence[Transaction]) -> None:
        self.save_collection(Collection.TRANSACTIONS, list(transactions))

    def refresh(self, today: Optional[date] = None) -> ProcessResult:
        """
        Load transactions and advance due subscriptions by one step.

        The list is written back only when something changed.
        """
        correlation_id = create_correlation_id()
        transactions = self.load_transactions()
        result = process_all(transactions, today)

        if not result.has_changes:
            return result

        self.save_transactions(result.updated)

        by_id = {tx.id: tx for tx in result.updated}
        for tx_id in result.advanced_ids:
            tx = by_id[tx_id]
            self._audit_logger.log_subscription_advanced(
                transaction_id=tx_id,
                current_period=tx.current_period,
                next_billing_date=tx.next_billing_date,
                correlation_id=correlation_id,
            )
        for tx_id in result.ended_ids:
            self._audit_logger.log_subscription_ended(
                transaction_id=tx_id,
                end_date=by_id[tx_id].end_date,
                correlation_id=correlation_id,
            )

        logger.info(
            "ledger_refreshed",
            user_id=self.user_id,
            advanced=len(result.advanced_ids),
            ended=len(result.ended_ids),
        )
        return result

    def upcoming(
        self,
        today: Optional[date] = None,
        until: Optional[date] = None,
    ) -> list[Transaction]:
        """Project upcoming transactions. The result is display-only."""
        return get_upcoming(self.load_transactions(), today=today, until=until)

    def add_transaction(self, transaction: Transaction) -> list[Transaction]:
        updated = book.add_transaction(self.load_transactions(), transaction)
        self.save_transactions(updated)
        self._audit_logger.log_transaction_changed(
            AuditEventType.TRANSACTION_ADDED, transaction.id
        )
        return updated

    def update_transaction(
        self,
        transaction_id: str,
        changes: dict[str, Any],
    ) -> list[Transaction]:
        """
        Edit a stored transaction.

        Raises:
            KeyError: If the id is unknown
        """
        updated = book.update_transaction(
            self.load_transactions(), transaction_id, changes
        )
        self.save_transactions(updated)
        self._audit_logger.log_transaction_changed(
            AuditEventType.TRANSACTION_UPDATED, transaction_id
        )
        return updated

    def delete_transaction(self, transaction_id: str) -> list[Transaction]:
        """Remove a transaction. Unknown ids are ignored."""
        updated = book.delete_transaction(self.load_transactions(), transaction_id)
        self.save_transactions(updated)
        self._audit_logger.log_transaction_changed(
            AuditEventType.TRANSACTION_DELETED, transaction_id
        )
        return updated

    # =========================================================================
    # PASSWORD CHANGE
    # =========================================================================

    def change_secret(self, new_secret: str) -> list[str]:
        """
        Re-encrypt every collection of this user under a new secret.

        The session switches to the new secret only after all collections
        were rewritten.

        Raises:
            RekeyError: If any collection cannot be read with the old secret
                        or rewritten; the old secret stays valid for all of them
        """
        keys = self._keyed_store.rekey(self._identity, new_secret)
        self._identity = self._identity.model_copy(
            update={"password_derived_secret": new_secret}
        )
        return keys

    # =========================================================================
    # ASYNC VARIANTS
    # =========================================================================

    async def load_transactions_async(self) -> list[Transaction]:
        return await asyncio.to_thread(self.load_transactions)

    async def save_transactions_async(self, transactions: Sequence[Transaction]) -> None:
        await asyncio.to_thread(self.save_transactions, transactions)

    async def refresh_async(self, today: Optional[date] = None) -> ProcessResult:
        return await asyncio.to_thread(self.refresh, today)


def create_session(
    identity: AuthIdentity,
    store: Optional[KeyValueStore] = None,
    settings: Optional[Settings] = None,
) -> LedgerSession:
    """
    Factory function to wire a session from settings.

    Args:
        identity: Signed-in user and their derived secret
        store: Backing key-value store. When omitted, a FileKeyValueStore
               is used if a data file is configured, else an in-memory store.
        settings: Application settings (defaults to get_settings())

    Returns:
        A ready LedgerSession
    """
    settings = settings or get_settings()

    if store is None:
        data_file = settings.storage.data_file
        store = FileKeyValueStore(data_file) if data_file else InMemoryKeyValueStore()

    audit_logger = AuditLogger()
    encrypted_store = EncryptedStore(
        store,
        cipher=EnvelopeCipher(settings.crypto),
        settings=settings.storage,
        audit_logger=audit_logger,
    )
    keyed_store = KeyedStore(
        encrypted_store,
        settings=settings.storage,
        audit_logger=audit_logger,
    )
    return LedgerSession(identity, keyed_store, audit_logger)
