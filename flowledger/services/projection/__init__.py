"""Upcoming-transaction projection package."""

from flowledger.services.projection.upcoming import (
    end_of_month,
    get_upcoming,
    summarize_upcoming,
)

__all__ = [
    "end_of_month",
    "get_upcoming",
    "summarize_upcoming",
]
