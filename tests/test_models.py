"""
Tests for Flow Ledger models

Test strategy:
1. Unit tests for the pydantic models and their validators
2. Web client compatibility of the persisted JSON shape
3. No storage or crypto involved here
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from flowledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    AuthIdentity,
    EncryptedEnvelope,
    PriceTier,
    ReceiptScan,
    Recurrence,
    Transaction,
    TransactionType,
    UpcomingSummary,
)


class TestTransactionModel:
    """Tests for the Transaction model."""

    def test_minimal_transaction_gets_defaults(self):
        """Legacy records without recurrence fields load with defaults."""
        tx = Transaction.model_validate({
            "id": "abc",
            "name": "Coffee",
            "category": "food",
            "amount": 3.5,
            "type": "expense",
            "date": "Dec 8, 2025",
        })
        assert tx.recurrence == Recurrence.ONCE
        assert tx.current_period == 1
        assert tx.is_active is True
        assert tx.price_tiers == []
        assert tx.next_billing_date is None
        assert tx.end_date is None
        assert tx.amount == Decimal("3.5")

    def test_id_is_generated(self):
        """Test that each new transaction gets a distinct id."""
        a = Transaction(name="A", category="x", amount=1, type="income", date="2025-01-01")
        b = Transaction(name="A", category="x", amount=1, type="income", date="2025-01-01")
        assert a.id and b.id
        assert a.id != b.id

    def test_camel_case_keys_accepted(self):
        """Test that records written by the web client load unchanged."""
        tx = Transaction.model_validate({
            "id": "sub",
            "name": "Gym",
            "category": "health",
            "amount": 30,
            "type": "expense",
            "date": "8 Ara 2025",
            "recurrence": "monthly",
            "currentPeriod": 4,
            "nextBillingDate": "2026-01-08",
            "isActive": True,
            "endDate": "2026-12-31",
            "priceTiers": [{"periodNumber": 6, "amount": 35}],
        })
        assert tx.current_period == 4
        assert tx.next_billing_date == "2026-01-08"
        assert tx.end_date == "2026-12-31"
        assert tx.price_tiers[0].period_number == 6

    def test_storage_dict_uses_camel_case_and_numbers(self):
        """Test the persisted shape matches what the web client reads."""
        tx = Transaction(
            id="t1",
            name="Gym",
            category="health",
            amount=Decimal("30.50"),
            type=TransactionType.EXPENSE,
            date="Dec 8, 2025",
            recurrence=Recurrence.MONTHLY,
            next_billing_date="2026-01-08",
            price_tiers=[PriceTier(period_number=3, amount=Decimal("35"))],
        )
        data = tx.to_storage_dict()
        assert data["nextBillingDate"] == "2026-01-08"
        assert data["currentPeriod"] == 1
        assert data["isActive"] is True
        assert data["amount"] == 30.5
        assert data["priceTiers"] == [{"periodNumber": 3, "amount": 35.0}]
        assert "endDate" not in data

    def test_transaction_is_immutable(self):
        """Test that transactions cannot be modified in place."""
        tx = Transaction(name="A", category="x", amount=1, type="income", date="2025-01-01")
        with pytest.raises(ValidationError):
            tx.amount = Decimal("2")

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            Transaction(name="A", category="x", amount=-1, type="expense", date="2025-01-01")

    def test_rejects_unparseable_date(self):
        """Test that the origination date must be readable."""
        with pytest.raises(ValidationError):
            Transaction(name="A", category="x", amount=1, type="expense", date="someday")

    def test_billing_date_must_be_iso(self):
        """Test that next billing date only accepts YYYY-MM-DD."""
        with pytest.raises(ValidationError):
            Transaction(
                name="A", category="x", amount=1, type="expense",
                date="2025-01-01", recurrence="monthly",
                next_billing_date="Feb 1, 2025",
            )

    def test_billing_date_rejects_impossible_day(self):
        with pytest.raises(ValidationError):
            Transaction(
                name="A", category="x", amount=1, type="expense",
                date="2025-01-01", next_billing_date="2025-02-30",
            )

    def test_blank_billing_date_means_unset(self):
        """Test that an empty string from the web form is treated as None."""
        tx = Transaction(
            name="A", category="x", amount=1, type="expense",
            date="2025-01-01", next_billing_date="", end_date="",
        )
        assert tx.next_billing_date is None
        assert tx.end_date is None

    def test_date_objects_become_iso_strings(self):
        tx = Transaction(
            name="A", category="x", amount=1, type="expense",
            date="2025-01-01", next_billing_date=date(2025, 2, 1),
        )
        assert tx.next_billing_date == "2025-02-01"
        assert tx.next_billing_day == date(2025, 2, 1)

    def test_duplicate_price_tiers_rejected(self):
        """Test that two tiers for the same period are a validation error."""
        with pytest.raises(ValidationError):
            Transaction(
                name="A", category="x", amount=1, type="expense",
                date="2025-01-01",
                price_tiers=[
                    PriceTier(period_number=2, amount=Decimal("5")),
                    PriceTier(period_number=2, amount=Decimal("6")),
                ],
            )

    def test_price_tiers_sorted_by_period(self):
        tx = Transaction(
            name="A", category="x", amount=1, type="expense",
            date="2025-01-01",
            price_tiers=[
                PriceTier(period_number=5, amount=Decimal("7")),
                PriceTier(period_number=2, amount=Decimal("5")),
            ],
        )
        assert [t.period_number for t in tx.price_tiers] == [2, 5]
        assert tx.tier_for_period(5).amount == Decimal("7")
        assert tx.tier_for_period(3) is None

    def test_parsed_date_reads_localized_dates(self):
        tx = Transaction(name="A", category="x", amount=1, type="expense", date="8 Ara 2025")
        assert tx.parsed_date == date(2025, 12, 8)


class TestStorageModels:
    """Tests for envelopes and identities."""

    def test_envelope_detection(self):
        """Test that only values carrying iv, data and salt are envelopes."""
        assert EncryptedEnvelope.looks_like_envelope({"iv": "a", "data": "b", "salt": "c"})
        assert not EncryptedEnvelope.looks_like_envelope({"iv": "a", "data": "b"})
        assert not EncryptedEnvelope.looks_like_envelope([{"iv": "a"}])
        assert not EncryptedEnvelope.looks_like_envelope("iv data salt")

    def test_identity_hides_secret_in_repr(self):
        """Test that the derived secret never appears in repr output."""
        identity = AuthIdentity(user_id="u1", password_derived_secret="supersecretvalue")
        assert "supersecretvalue" not in repr(identity)

    def test_identity_requires_user_id(self):
        with pytest.raises(ValidationError):
            AuthIdentity(user_id="", password_derived_secret="x")


class TestDerivedModels:

    def test_upcoming_summary_net(self):
        summary = UpcomingSummary(
            expected_income=Decimal("100"),
            expected_expense=Decimal("40"),
            count=3,
        )
        assert summary.net == Decimal("60")

    def test_receipt_scan_accepts_camel_case(self):
        """Test that scanner output loads with its own key names."""
        scan = ReceiptScan.model_validate({
            "amount": 125.4,
            "date": "2025-03-02",
            "companyName": "MIGROS",
            "confidence": {"amount": 80, "date": 90, "overall": 85},
        })
        assert scan.company_name == "MIGROS"
        assert scan.confidence.overall == 85

    def test_receipt_scan_rejects_confidence_over_100(self):
        with pytest.raises(ValidationError):
            ReceiptScan(confidence={"amount": 101})


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            description="Test event",
            entity_type="record",
            entity_id="flow_transactions_u1",
        )
        assert event.event_type == AuditEventType.RECORD_SAVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_ADVANCED,
            description="Advanced",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "subscription_advanced"
        assert log_dict["correlation_id"] == str(correlation_id)
        assert "timestamp" in log_dict

    def test_builder_decryption_failed_is_warning(self):
        """Test that decryption failures are logged at warning level."""
        event = AuditEventBuilder.decryption_failed("flow_settings_u1", "bad tag")
        assert event.event_type == AuditEventType.DECRYPTION_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "flow_settings_u1"

    def test_builder_subscription_advanced(self):
        event = AuditEventBuilder.subscription_advanced("sub-1", 3, "2025-04-01")
        assert event.entity_id == "sub-1"
        assert event.details["current_period"] == 3
        assert event.details["next_billing_date"] == "2025-04-01"

    def test_builder_rejects_non_transaction_event(self):
        with pytest.raises(ValueError):
            AuditEventBuilder.transaction_changed(AuditEventType.RECORD_SAVED, "t1")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
