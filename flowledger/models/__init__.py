"""
Data Models Package

This package contains all Pydantic models used by Flow Ledger.
All data flowing through storage and the recurrence engine must conform
to these schemas.
"""

from flowledger.models.transaction import (
    PriceTier,
    ProcessResult,
    ReceiptScan,
    Recurrence,
    ScanConfidence,
    SubscriptionInfo,
    SubscriptionState,
    Transaction,
    TransactionType,
    UpcomingSummary,
    new_transaction_id,
)
from flowledger.models.storage import (
    ENVELOPE_FIELDS,
    AuthIdentity,
    Collection,
    EncryptedEnvelope,
    EnvelopeRecord,
    LegacyRecord,
    StoredRecord,
)
from flowledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "PriceTier",
    "ProcessResult",
    "ReceiptScan",
    "Recurrence",
    "ScanConfidence",
    "SubscriptionInfo",
    "SubscriptionState",
    "Transaction",
    "TransactionType",
    "UpcomingSummary",
    "new_transaction_id",
    # Storage models
    "ENVELOPE_FIELDS",
    "AuthIdentity",
    "Collection",
    "EncryptedEnvelope",
    "EnvelopeRecord",
    "LegacyRecord",
    "StoredRecord",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
