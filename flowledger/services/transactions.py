"""
Transaction Book Helpers

Pure list operations over transactions, plus pre-filling a draft from a
receipt scan.

All functions return new lists; the input list is never modified.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence, Union

from flowledger.models.transaction import (
    PriceTier,
    ReceiptScan,
    Recurrence,
    Transaction,
    TransactionType,
)
from flowledger.services.dates import Language, format_date, parse_date
from flowledger.services.recurrence import next_billing_after


DEFAULT_RECEIPT_NAMES = {
    Language.EN: "Receipt",
    Language.TR: "Fiş",
}


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Unrecognized date: {value!r}")
    return parsed


def new_transaction(
    name: str,
    amount: Union[Decimal, int, float, str],
    type: TransactionType,
    category: str,
    start: Union[date, str],
    recurrence: Recurrence = Recurrence.ONCE,
    price_tiers: Optional[Sequence[PriceTier]] = None,
    end_date: Optional[Union[date, str]] = None,
    language: Language = Language.EN,
) -> Transaction:
    """
    Create a transaction with a fresh id.

    The origination date is stored in the user's display format. Recurring
    transactions start in period 1 with their first renewal one interval
    after `start`.

    Raises:
        ValueError: If a date cannot be read
        pydantic.ValidationError: If any field is invalid
    """
    start_day = _as_date(start)
    recurrence = Recurrence(recurrence)

    fields: dict[str, Any] = {
        "name": name,
        "amount": Decimal(str(amount)),
        "type": TransactionType(type),
        "category": category,
        "date": format_date(start_day, Language(language)),
        "recurrence": recurrence,
        "price_tiers": list(price_tiers or []),
    }

    if recurrence != Recurrence.ONCE:
        fields["current_period"] = 1
        fields["next_billing_date"] = next_billing_after(start_day, recurrence)
        if end_date is not None:
            fields["end_date"] = _as_date(end_date)

    return Transaction(**fields)


def add_transaction(
    transactions: Sequence[Transaction],
    transaction: Transaction,
) -> list[Transaction]:
    """
    Append a transaction.

    Raises:
        ValueError: If a transaction with the same id already exists
    """
    if any(tx.id == transaction.id for tx in transactions):
        raise ValueError(f"Duplicate transaction id: {transaction.id}")
    return [*transactions, transaction]


def update_transaction(
    transactions: Sequence[Transaction],
    transaction_id: str,
    changes: dict[str, Any],
) -> list[Transaction]:
    """
    Replace a transaction with an edited copy.

    The edited copy is re-validated. The id cannot be changed.

    Raises:
        KeyError: If no transaction has `transaction_id`
        pydantic.ValidationError: If the edit produces an invalid transaction
    """
    changes = {k: v for k, v in changes.items() if k != "id"}
    result = []
    found = False

    for tx in transactions:
        if tx.id == transaction_id:
            tx = Transaction.model_validate({**tx.model_dump(), **changes})
            found = True
        result.append(tx)

    if not found:
        raise KeyError(transaction_id)
    return result


def delete_transaction(
    transactions: Sequence[Transaction],
    transaction_id: str,
) -> list[Transaction]:
    """Remove a transaction. Removing an unknown id is not an error."""
    return [tx for tx in transactions if tx.id != transaction_id]


def draft_from_receipt(
    scan: ReceiptScan,
    language: Language = Language.EN,
    category: str = "other",
    name: Optional[str] = None,
    today: Optional[date] = None,
) -> Transaction:
    """
    Pre-fill a one-time expense from a receipt scan.

    The scan is only a guess: missing fields fall back to zero, today's
    date and a generic name, and the user is expected to review the draft
    before saving it. Confidence scores are not checked.
    """
    language = Language(language)
    day = parse_date(scan.date) if scan.date else None

    return new_transaction(
        name=name or scan.company_name or DEFAULT_RECEIPT_NAMES[language],
        amount=scan.amount if scan.amount is not None else Decimal("0"),
        type=TransactionType.EXPENSE,
        category=category,
        start=day or today or date.today(),
        language=language,
    )
