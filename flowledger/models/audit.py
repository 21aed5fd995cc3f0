"""
Audit Models for Flow Ledger

Every significant storage and subscription action is recorded as a
structured audit event. This provides:
1. Traceability of every save, load and re-key
2. Debugging information when decryption fails
3. A history of automatic subscription changes

IMPORTANT: Events never carry passwords, derived secrets, keys or decrypted
payloads. Only storage keys, ids and counts.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Storage
    RECORD_SAVED = "record_saved"
    RECORD_LOADED = "record_loaded"
    RECORD_DELETED = "record_deleted"
    LEGACY_RECORD_READ = "legacy_record_read"
    DECRYPTION_FAILED = "decryption_failed"
    PLAINTEXT_FALLBACK = "plaintext_fallback"
    COLLECTIONS_REKEYED = "collections_rekeyed"

    # Subscriptions
    SUBSCRIPTION_ADVANCED = "subscription_advanced"
    SUBSCRIPTION_ENDED = "subscription_ended"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'record', 'transaction')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Storage key or transaction id"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one session refresh)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_saved("flow_transactions_u1", encrypted=True)
        event = AuditEventBuilder.subscription_advanced(tx_id, 3, "2025-04-01")
    """

    @staticmethod
    def record_saved(
        key: str,
        encrypted: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            entity_type="record",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Record saved: {key}",
            details={"encrypted": encrypted},
        )

    @staticmethod
    def record_loaded(
        key: str,
        found: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_LOADED,
            severity=AuditSeverity.DEBUG,
            entity_type="record",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Record loaded: {key}" if found else f"No record at {key}",
            details={"found": found},
        )

    @staticmethod
    def record_deleted(
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type="record",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Record deleted: {key}",
        )

    @staticmethod
    def legacy_record_read(
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEGACY_RECORD_READ,
            severity=AuditSeverity.WARNING,
            entity_type="record",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Unencrypted legacy record read at {key}",
        )

    @staticmethod
    def decryption_failed(
        key: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DECRYPTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="record",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Could not decrypt record at {key}",
            error_message=reason,
        )

    @staticmethod
    def plaintext_fallback(
        key: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAINTEXT_FALLBACK,
            severity=AuditSeverity.ERROR,
            entity_type="record",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Encryption failed, record written unencrypted at {key}",
            error_message=reason,
        )

    @staticmethod
    def collections_rekeyed(
        user_id: str,
        keys: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTIONS_REKEYED,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Re-encrypted {len(keys)} collections",
            details={"keys": keys},
        )

    @staticmethod
    def subscription_advanced(
        transaction_id: str,
        current_period: int,
        next_billing_date: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_ADVANCED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Subscription advanced to period {current_period}",
            details={
                "current_period": current_period,
                "next_billing_date": next_billing_date,
            },
        )

    @staticmethod
    def subscription_ended(
        transaction_id: str,
        end_date: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_ENDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Subscription ended after its end date",
            details={"end_date": end_date},
        )

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.TRANSACTION_ADDED: "added",
            AuditEventType.TRANSACTION_UPDATED: "updated",
            AuditEventType.TRANSACTION_DELETED: "deleted",
        }.get(event_type)
        if verb is None:
            raise ValueError(f"Not a transaction event: {event_type}")
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction {verb}",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
