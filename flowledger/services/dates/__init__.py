"""Date parsing and formatting package."""

from flowledger.services.dates.parsing import (
    Language,
    format_date,
    normalize_to_iso,
    parse_date,
    to_iso,
)

__all__ = [
    "Language",
    "format_date",
    "normalize_to_iso",
    "parse_date",
    "to_iso",
]
