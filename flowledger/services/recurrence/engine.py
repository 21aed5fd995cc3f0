"""
Recurrence Engine

Advances subscription transactions through their billing periods.

STATE MACHINE (per recurring transaction):
    ACTIVE_WAITING --(today > next billing date)--> ACTIVE_DUE
    ACTIVE_DUE --advance()--> ACTIVE_WAITING (period + 1, next date moved on)
    any active state --(today > end date)--> INACTIVE (terminal)

advance() moves at most one period per call. A subscription that is several
periods behind is caught up over successive calls (one per app load in the
web client), or all at once with catch_up().

Every function here is pure: transactions are immutable and a changed
transaction is always a new object.
"""

from datetime import date
from typing import Optional, Sequence

import structlog
from dateutil.relativedelta import relativedelta

from flowledger.models.transaction import (
    ProcessResult,
    Recurrence,
    SubscriptionInfo,
    SubscriptionState,
    Transaction,
)
from flowledger.services.dates import Language


logger = structlog.get_logger(__name__)

DEFAULT_MAX_ROUNDS = 3660

_INTERVALS = {
    Recurrence.DAILY: relativedelta(days=1),
    Recurrence.MONTHLY: relativedelta(months=1),
    Recurrence.YEARLY: relativedelta(years=1),
}

RECURRENCE_LABELS = {
    Language.EN: {
        Recurrence.DAILY: "Daily",
        Recurrence.MONTHLY: "Monthly",
        Recurrence.YEARLY: "Yearly",
        Recurrence.ONCE: "One Time",
    },
    Language.TR: {
        Recurrence.DAILY: "Günlük",
        Recurrence.MONTHLY: "Aylık",
        Recurrence.YEARLY: "Yıllık",
        Recurrence.ONCE: "Tek Seferlik",
    },
}


def next_billing_after(current: date, recurrence: Recurrence) -> date:
    """
    Date one billing interval after `current`.

    Month and year steps clamp to the end of the target month
    (Jan 31 -> Feb 28, Feb 29 -> Feb 28 of a common year).

    Raises:
        ValueError: For Recurrence.ONCE, which has no interval
    """
    try:
        return current + _INTERVALS[recurrence]
    except KeyError:
        raise ValueError(f"{recurrence.value!r} transactions do not recur") from None


def subscription_state(
    transaction: Transaction,
    today: Optional[date] = None,
) -> SubscriptionState:
    """Report where a transaction sits in the recurrence state machine."""
    today = today or date.today()

    if not transaction.is_recurring:
        return SubscriptionState.NOT_RECURRING
    if not transaction.is_active:
        return SubscriptionState.INACTIVE

    end_day = transaction.end_day
    if end_day is not None and today > end_day:
        return SubscriptionState.INACTIVE

    next_day = transaction.next_billing_day
    if next_day is not None and today > next_day:
        return SubscriptionState.ACTIVE_DUE
    return SubscriptionState.ACTIVE_WAITING


def advance(transaction: Transaction, today: Optional[date] = None) -> Transaction:
    """
    Apply one step of the recurrence state machine.

    Returns the same object when nothing changes, so callers can detect
    changes by identity.

    Steps:
    1. One-time and inactive transactions are returned unchanged
    2. A passed end date deactivates the subscription
    3. Without a next billing date there is nothing to advance
    4. When today is strictly after the next billing date, move to the
       next period, apply its price tier if one is scheduled, and push the
       next billing date one interval forward
    """
    today = today or date.today()

    if not transaction.is_recurring or not transaction.is_active:
        return transaction

    end_day = transaction.end_day
    if end_day is not None and today > end_day:
        return transaction.model_copy(update={"is_active": False})

    next_day = transaction.next_billing_day
    if next_day is None or not today > next_day:
        return transaction

    new_period = transaction.current_period + 1
    update = {
        "current_period": new_period,
        "next_billing_date": next_billing_after(next_day, transaction.recurrence).isoformat(),
    }

    # Without a tier for this exact period the previous amount carries forward
    tier = transaction.tier_for_period(new_period)
    if tier is not None:
        update["amount"] = tier.amount

    return transaction.model_copy(update=update)


def process_all(
    transactions: Sequence[Transaction],
    today: Optional[date] = None,
) -> ProcessResult:
    """
    Advance every transaction by at most one step.

    Returns:
        ProcessResult with the updated list (same order and length) and
        has_changes set when any element was replaced
    """
    today = today or date.today()

    updated = []
    advanced_ids = []
    ended_ids = []

    for tx in transactions:
        new_tx = advance(tx, today)
        if new_tx is not tx:
            if tx.is_active and not new_tx.is_active:
                ended_ids.append(tx.id)
            else:
                advanced_ids.append(tx.id)
        updated.append(new_tx)

    return ProcessResult(
        updated=updated,
        has_changes=bool(advanced_ids or ended_ids),
        advanced_ids=advanced_ids,
        ended_ids=ended_ids,
    )


def catch_up(
    transactions: Sequence[Transaction],
    today: Optional[date] = None,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
) -> tuple[ProcessResult, int]:
    """
    Run process_all until nothing changes, at most `max_rounds` times.

    Returns:
        (combined result, number of rounds that changed something)
    """
    if max_rounds < 1:
        raise ValueError("max_rounds must be at least 1")

    today = today or date.today()
    current = list(transactions)
    advanced_ids: list[str] = []
    ended_ids: list[str] = []
    rounds = 0

    while rounds < max_rounds:
        result = process_all(current, today)
        if not result.has_changes:
            break
        rounds += 1
        current = result.updated
        advanced_ids.extend(i for i in result.advanced_ids if i not in advanced_ids)
        ended_ids.extend(i for i in result.ended_ids if i not in ended_ids)
    else:
        logger.warning("catch_up_round_limit_reached", max_rounds=max_rounds)

    return ProcessResult(
        updated=current,
        has_changes=rounds > 0,
        advanced_ids=advanced_ids,
        ended_ids=ended_ids,
    ), rounds


def get_subscription_info(
    transaction: Transaction,
    language: Language = Language.EN,
) -> SubscriptionInfo:
    """Summarize a transaction's subscription status for display."""
    language = Language(language)
    next_tier = transaction.tier_for_period(transaction.current_period + 1)

    return SubscriptionInfo(
        is_subscription=transaction.is_recurring,
        recurrence_label=RECURRENCE_LABELS[language][transaction.recurrence],
        current_period=transaction.current_period,
        next_billing_date=transaction.next_billing_date,
        next_period_price=next_tier.amount if next_tier else None,
        is_active=transaction.is_active,
        end_date=transaction.end_date,
    )
