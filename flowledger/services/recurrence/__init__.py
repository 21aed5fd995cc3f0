"""Subscription recurrence package."""

from flowledger.services.recurrence.engine import (
    DEFAULT_MAX_ROUNDS,
    RECURRENCE_LABELS,
    advance,
    catch_up,
    get_subscription_info,
    next_billing_after,
    process_all,
    subscription_state,
)

__all__ = [
    "DEFAULT_MAX_ROUNDS",
    "RECURRENCE_LABELS",
    "advance",
    "catch_up",
    "get_subscription_info",
    "next_billing_after",
    "process_all",
    "subscription_state",
]
