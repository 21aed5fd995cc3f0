"""
Upcoming Projection

Builds the read-only "what is coming up" list from the already advanced
transaction list.

The projection is display data. Entries for recurring transactions are
copies whose `date` is the next billing date, so the list must never be
written back to storage.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from flowledger.models.transaction import Transaction, TransactionType, UpcomingSummary


def end_of_month(today: Optional[date] = None) -> date:
    """Last calendar day of the month containing `today`."""
    today = today or date.today()
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=last_day)


def _sort_key(transaction: Transaction) -> tuple[int, str]:
    parsed = transaction.parsed_date
    # Unparseable dates sort after every real date
    if parsed is None:
        return (1, "")
    return (0, parsed.isoformat())


def get_upcoming(
    transactions: Sequence[Transaction],
    today: Optional[date] = None,
    until: Optional[date] = None,
) -> list[Transaction]:
    """
    Project future occurrences of transactions.

    Args:
        transactions: Current (already advanced) transactions
        today: Reference day, defaults to date.today()
        until: Optional inclusive upper bound, e.g. end_of_month(today)

    Returns:
        Upcoming entries sorted by date, earliest first. A transaction
        appears at most once for its own date and once for its next
        billing date, and only once when both fall on the same day.
    """
    today = today or date.today()
    upcoming: list[Transaction] = []

    for tx in transactions:
        if not tx.is_active:
            continue

        own_day = tx.parsed_date
        added_own = own_day is not None and own_day > today
        if added_own:
            upcoming.append(tx)

        if not tx.is_recurring:
            continue
        next_day = tx.next_billing_day
        if next_day is None:
            continue

        end_day = tx.end_day
        if end_day is not None and (end_day < today or next_day > end_day):
            continue

        if next_day > today and not (added_own and next_day == own_day):
            upcoming.append(tx.model_copy(update={"date": next_day.isoformat()}))

    if until is not None:
        upcoming = [
            tx for tx in upcoming
            if tx.parsed_date is not None and tx.parsed_date <= until
        ]

    return sorted(upcoming, key=_sort_key)


def summarize_upcoming(upcoming: Sequence[Transaction]) -> UpcomingSummary:
    """Total expected income and expense over a projected list."""
    income = Decimal("0")
    expense = Decimal("0")

    for tx in upcoming:
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        else:
            expense += tx.amount

    return UpcomingSummary(
        expected_income=income,
        expected_expense=expense,
        count=len(upcoming),
    )
