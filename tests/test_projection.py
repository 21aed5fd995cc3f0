"""Tests for the upcoming-transaction projection."""

from datetime import date
from decimal import Decimal

import pytest

from flowledger.models import Recurrence, Transaction, TransactionType
from flowledger.services.projection import end_of_month, get_upcoming, summarize_upcoming


TODAY = date(2025, 3, 15)


def _tx(**overrides) -> Transaction:
    fields = dict(
        name="Item",
        category="misc",
        amount=Decimal("10"),
        type=TransactionType.EXPENSE,
        date="Mar 1, 2025",
    )
    fields.update(overrides)
    return Transaction(**fields)


class TestGetUpcoming:

    def test_future_one_time_included(self):
        tx = _tx(date="Mar 20, 2025")
        assert get_upcoming([tx], TODAY) == [tx]

    def test_past_one_time_excluded(self):
        assert get_upcoming([_tx(date="Mar 10, 2025")], TODAY) == []

    def test_today_is_not_upcoming(self):
        assert get_upcoming([_tx(date="Mar 15, 2025")], TODAY) == []

    def test_recurring_projected_on_next_billing_date(self):
        """Test that the copy carries the ISO billing date and the original is untouched."""
        tx = _tx(recurrence=Recurrence.MONTHLY, next_billing_date="2025-04-01")
        upcoming = get_upcoming([tx], TODAY)

        assert len(upcoming) == 1
        assert upcoming[0].date == "2025-04-01"
        assert upcoming[0].id == tx.id
        assert tx.date == "Mar 1, 2025"

    def test_same_day_listed_once(self):
        """Test de-duplication when origination and billing fall on one day."""
        tx = _tx(
            date="Apr 1, 2025",
            recurrence=Recurrence.MONTHLY,
            next_billing_date="2025-04-01",
        )
        assert len(get_upcoming([tx], TODAY)) == 1

    def test_future_start_and_later_billing_both_listed(self):
        tx = _tx(
            date="Mar 20, 2025",
            recurrence=Recurrence.MONTHLY,
            next_billing_date="2025-04-20",
        )
        upcoming = get_upcoming([tx], TODAY)
        assert [u.date for u in upcoming] == ["Mar 20, 2025", "2025-04-20"]

    def test_inactive_never_listed(self):
        """Test that inactive transactions are excluded even with future dates."""
        tx = _tx(
            date="Dec 1, 2025",
            recurrence=Recurrence.MONTHLY,
            next_billing_date="2025-12-01",
            is_active=False,
        )
        assert get_upcoming([tx], TODAY) == []

    def test_past_end_date_excluded(self):
        tx = _tx(
            recurrence=Recurrence.MONTHLY,
            next_billing_date="2025-04-01",
            end_date="2025-03-10",
        )
        assert get_upcoming([tx], TODAY) == []

    def test_billing_after_end_date_excluded(self):
        tx = _tx(
            recurrence=Recurrence.MONTHLY,
            next_billing_date="2025-04-01",
            end_date="2025-03-31",
        )
        assert get_upcoming([tx], TODAY) == []

    def test_billing_on_end_date_included(self):
        tx = _tx(
            recurrence=Recurrence.MONTHLY,
            next_billing_date="2025-04-01",
            end_date="2025-04-01",
        )
        assert len(get_upcoming([tx], TODAY)) == 1

    def test_sorted_across_formats(self):
        """Test that localized and ISO dates sort by their calendar value."""
        a = _tx(name="a", date="5 Nis 2025")
        b = _tx(name="b", date="Mar 30, 2025")
        c = _tx(name="c", recurrence=Recurrence.MONTHLY, next_billing_date="2025-04-02")
        upcoming = get_upcoming([a, b, c], TODAY)
        assert [u.name for u in upcoming] == ["b", "c", "a"]

    def test_until_limits_window(self):
        this_month = _tx(name="march", date="Mar 28, 2025")
        next_month = _tx(name="april", date="Apr 2, 2025")
        upcoming = get_upcoming([this_month, next_month], TODAY, until=end_of_month(TODAY))
        assert [u.name for u in upcoming] == ["march"]

    def test_input_not_modified(self):
        tx = _tx(recurrence=Recurrence.MONTHLY, next_billing_date="2025-04-01")
        transactions = [tx]
        get_upcoming(transactions, TODAY)
        assert transactions == [tx]
        assert transactions[0].date == "Mar 1, 2025"


class TestEndOfMonth:

    def test_end_of_month(self):
        assert end_of_month(date(2025, 2, 10)) == date(2025, 2, 28)
        assert end_of_month(date(2024, 2, 10)) == date(2024, 2, 29)
        assert end_of_month(date(2025, 12, 31)) == date(2025, 12, 31)


class TestSummary:

    def test_totals(self):
        upcoming = [
            _tx(amount=Decimal("100"), type=TransactionType.INCOME),
            _tx(amount=Decimal("30.25")),
            _tx(amount=Decimal("19.75")),
        ]
        summary = summarize_upcoming(upcoming)
        assert summary.expected_income == Decimal("100")
        assert summary.expected_expense == Decimal("50.00")
        assert summary.count == 3
        assert summary.net == Decimal("50.00")

    def test_empty(self):
        summary = summarize_upcoming([])
        assert summary.count == 0
        assert summary.net == Decimal("0")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
