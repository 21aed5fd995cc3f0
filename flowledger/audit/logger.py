"""
Audit Logger

Every save, load, re-key and automatic subscription change is logged as a
structured event through structlog.

The audit logger:
- Never raises into the caller (logging must not break a save)
- Supports correlation IDs to trace related events
- Never receives secrets; AuditEventBuilder only accepts keys and ids
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from flowledger.config import AppSettings, get_settings
from flowledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def _configure_structlog(renderer) -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Configure structlog for local logging
_configure_structlog(structlog.processors.JSONRenderer())


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """
    Set up logging for an application that has not configured it itself.

    Picks the structlog renderer from settings. A stderr handler and the
    configured level are installed on the root logger only when it has no
    handlers yet; a host application's own setup is left alone.

    Safe to call more than once; the last renderer wins.
    """
    settings = settings or get_settings().app
    level = logging.DEBUG if settings.debug_mode else getattr(logging, settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    _configure_structlog(renderer)


class AuditLogger:
    """
    Central audit logging service.

    Routes each AuditEvent to the structured log at the level matching
    its severity.
    """

    _LEVELS = {
        AuditSeverity.DEBUG: "debug",
        AuditSeverity.INFO: "info",
        AuditSeverity.WARNING: "warning",
        AuditSeverity.ERROR: "error",
        AuditSeverity.CRITICAL: "critical",
    }

    def __init__(self, logger_name: str = "flowledger.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written.
        """
        method = getattr(self._logger, self._LEVELS[event.severity])
        try:
            method("audit_event", **event.to_log_dict())
            return True
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger(__name__).error(
                "audit_logging_failed event_id=%s error=%s", event.event_id, e
            )
            return False

    def log_record_saved(
        self,
        key: str,
        encrypted: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful write."""
        self.log(AuditEventBuilder.record_saved(key, encrypted, correlation_id))

    def log_record_loaded(
        self,
        key: str,
        found: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a read attempt."""
        self.log(AuditEventBuilder.record_loaded(key, found, correlation_id))

    def log_record_deleted(
        self,
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_deleted(key, correlation_id))

    def log_legacy_record(
        self,
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log that unencrypted legacy data was served."""
        self.log(AuditEventBuilder.legacy_record_read(key, correlation_id))

    def log_decryption_failed(
        self,
        key: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a decryption failure. `reason` must not contain secrets."""
        self.log(AuditEventBuilder.decryption_failed(key, reason, correlation_id))

    def log_plaintext_fallback(
        self,
        key: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.plaintext_fallback(key, reason, correlation_id))

    def log_rekeyed(
        self,
        user_id: str,
        keys: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.collections_rekeyed(user_id, keys, correlation_id))

    def log_subscription_advanced(
        self,
        transaction_id: str,
        current_period: int,
        next_billing_date: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a period advance."""
        self.log(AuditEventBuilder.subscription_advanced(
            transaction_id=transaction_id,
            current_period=current_period,
            next_billing_date=next_billing_date,
            correlation_id=correlation_id,
        ))

    def log_subscription_ended(
        self,
        transaction_id: str,
        end_date: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an end-date deactivation."""
        self.log(AuditEventBuilder.subscription_ended(
            transaction_id=transaction_id,
            end_date=end_date,
            correlation_id=correlation_id,
        ))

    def log_transaction_changed(
        self,
        event_type: AuditEventType,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_changed(
            event_type, transaction_id, correlation_id
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a session refresh)
    and pass it through all subsequent operations.
    """
    return uuid4()
