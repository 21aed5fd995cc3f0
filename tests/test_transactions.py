"""Tests for transaction list helpers and receipt drafts."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from flowledger.models import (
    PriceTier,
    ReceiptScan,
    Recurrence,
    TransactionType,
)
from flowledger.services.dates import Language
from flowledger.services.transactions import (
    add_transaction,
    delete_transaction,
    draft_from_receipt,
    new_transaction,
    update_transaction,
)


class TestNewTransaction:

    def test_one_time(self):
        tx = new_transaction(
            name="Groceries",
            amount="42.50",
            type=TransactionType.EXPENSE,
            category="food",
            start=date(2025, 3, 3),
        )
        assert tx.date == "Mar 3, 2025"
        assert tx.amount == Decimal("42.50")
        assert tx.recurrence == Recurrence.ONCE
        assert tx.next_billing_date is None
        assert tx.id

    def test_recurring_schedules_first_renewal(self):
        """Test that a subscription starts in period 1 with its renewal one interval out."""
        tx = new_transaction(
            name="Netflix",
            amount=Decimal("15.99"),
            type=TransactionType.EXPENSE,
            category="entertainment",
            start=date(2025, 1, 31),
            recurrence=Recurrence.MONTHLY,
            price_tiers=[PriceTier(period_number=4, amount=Decimal("17.99"))],
            end_date="2025-12-31",
            language=Language.TR,
        )
        assert tx.date == "31 Oca 2025"
        assert tx.current_period == 1
        assert tx.next_billing_date == "2025-02-28"
        assert tx.end_date == "2025-12-31"
        assert tx.tier_for_period(4).amount == Decimal("17.99")

    def test_start_as_localized_string(self):
        tx = new_transaction(
            name="Salary",
            amount=5000,
            type="income",
            category="salary",
            start="Dec 8, 2025",
            recurrence="yearly",
        )
        assert tx.next_billing_date == "2026-12-08"

    def test_unreadable_start_rejected(self):
        with pytest.raises(ValueError):
            new_transaction("X", 1, "expense", "misc", start="soon")


class TestListHelpers:

    def test_add(self, one_time_expense, monthly_subscription):
        original = [one_time_expense]
        result = add_transaction(original, monthly_subscription)
        assert result == [one_time_expense, monthly_subscription]
        assert original == [one_time_expense]

    def test_add_duplicate_id_rejected(self, one_time_expense):
        with pytest.raises(ValueError):
            add_transaction([one_time_expense], one_time_expense)

    def test_update(self, one_time_expense, monthly_subscription):
        result = update_transaction(
            [one_time_expense, monthly_subscription],
            "once-1",
            {"amount": Decimal("50"), "name": "Market"},
        )
        assert result[0].amount == Decimal("50")
        assert result[0].name == "Market"
        assert result[0].id == "once-1"
        assert result[1] is monthly_subscription
        assert one_time_expense.amount == Decimal("42.50")

    def test_update_revalidates(self, one_time_expense):
        with pytest.raises(ValidationError):
            update_transaction([one_time_expense], "once-1", {"amount": Decimal("-1")})

    def test_update_ignores_id_change(self, one_time_expense):
        result = update_transaction([one_time_expense], "once-1", {"id": "hijack"})
        assert result[0].id == "once-1"

    def test_update_unknown_id(self, one_time_expense):
        with pytest.raises(KeyError):
            update_transaction([one_time_expense], "missing", {"name": "x"})

    def test_delete(self, one_time_expense, monthly_subscription):
        result = delete_transaction([one_time_expense, monthly_subscription], "once-1")
        assert result == [monthly_subscription]

    def test_delete_unknown_id_is_noop(self, one_time_expense):
        assert delete_transaction([one_time_expense], "missing") == [one_time_expense]


class TestDraftFromReceipt:

    def test_prefills_expense(self):
        scan = ReceiptScan(
            amount=Decimal("125.40"),
            date="2025-03-02",
            company_name="MIGROS",
            confidence={"amount": 90, "date": 80, "overall": 85},
        )
        draft = draft_from_receipt(scan, Language.TR, category="food")
        assert draft.type == TransactionType.EXPENSE
        assert draft.amount == Decimal("125.40")
        assert draft.date == "2 Mar 2025"
        assert draft.name == "MIGROS"
        assert draft.category == "food"
        assert draft.recurrence == Recurrence.ONCE

    def test_empty_scan_uses_fallbacks(self):
        """Test that a scan with nothing recognized still produces an editable draft."""
        draft = draft_from_receipt(ReceiptScan(), Language.EN, today=date(2025, 4, 9))
        assert draft.amount == Decimal("0")
        assert draft.date == "Apr 9, 2025"
        assert draft.name == "Receipt"

    def test_explicit_name_wins(self):
        scan = ReceiptScan(company_name="SHOP")
        draft = draft_from_receipt(scan, name="Lunch", today=date(2025, 4, 9))
        assert draft.name == "Lunch"

    def test_turkish_default_name(self):
        draft = draft_from_receipt(ReceiptScan(), "tr", today=date(2025, 4, 9))
        assert draft.name == "Fiş"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
