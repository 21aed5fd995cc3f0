"""
Date Parsing

Transactions carry their origination date as a localized display string
("Dec 8, 2025" in English, "8 Ara 2025" in Turkish) while billing dates are
stored as ISO strings. This module is the single place that turns either form
back into a calendar date, and the single place that produces the localized
form in the first place.

Parsing is closed-world: it must read everything format_date() writes, plus
ISO dates. It does not try to understand arbitrary human input.
"""

import re
from datetime import date
from enum import Enum
from typing import Optional

from dateutil.parser import isoparse


class Language(str, Enum):
    """Supported UI languages."""
    EN = "en"
    TR = "tr"


# =============================================================================
# MONTH TABLES
# =============================================================================

EN_MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]
EN_MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

TR_MONTH_ABBREVIATIONS = [
    "Oca", "Şub", "Mar", "Nis", "May", "Haz",
    "Tem", "Ağu", "Eyl", "Eki", "Kas", "Ara",
]
TR_MONTH_NAMES = [
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
]


def _fold_turkish(name: str) -> str:
    # str.casefold maps "I" to "i" and "İ" to "i" plus a combining dot
    return name.replace("I", "ı").replace("İ", "i").casefold()


def _build_month_table(fold, *name_lists: list[str]) -> dict[str, int]:
    table: dict[str, int] = {}
    for names in name_lists:
        for index, name in enumerate(names, start=1):
            table[fold(name)] = index
    return table


EN_MONTHS = _build_month_table(str.casefold, EN_MONTH_ABBREVIATIONS, EN_MONTH_NAMES)
TR_MONTHS = _build_month_table(_fold_turkish, TR_MONTH_ABBREVIATIONS, TR_MONTH_NAMES)

# "8 Ara 2025" / "12 Aralık 2025"
_DAY_MONTH_YEAR = re.compile(r"^\s*(\d{1,2})\.?\s+([^\W\d_]+)\.?\s+(\d{4})\s*$")
# "Dec 8, 2025" / "December 08 2025"
_MONTH_DAY_YEAR = re.compile(r"^\s*([^\W\d_]+)\.?\s+(\d{1,2}),?\s+(\d{4})\s*$")


# =============================================================================
# PARSING
# =============================================================================

def _lookup_month(name: str, *tables: dict[str, int]) -> Optional[int]:
    """
    Find a month number by name, ignoring case.

    "KASIM" and "NISAN" both resolve: the name is tried with Turkish
    dotless-i folding first, then with plain case folding.
    """
    keys = (_fold_turkish(name), name.casefold())
    for table in tables:
        for key in keys:
            if key in table:
                return table[key]
    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_iso(text: str) -> Optional[date]:
    try:
        return isoparse(text.strip()).date()
    except (ValueError, OverflowError):
        return None


def parse_date(text: Optional[str]) -> Optional[date]:
    """
    Parse a stored date string into a calendar date.

    Attempts, in order:
    1. ISO parsing when the string contains a "-" separator
    2. "<day> <month> <year>" against the Turkish, then English, month table
    3. "<month> <day>, <year>" against the English, then Turkish, month table

    Args:
        text: The stored date string

    Returns:
        The parsed date, or None if the string is not recognized.
        Never raises.
    """
    if not text or not isinstance(text, str):
        return None

    if "-" in text:
        parsed = _parse_iso(text)
        if parsed is not None:
            return parsed

    match = _DAY_MONTH_YEAR.match(text)
    if match:
        month = _lookup_month(match.group(2), TR_MONTHS, EN_MONTHS)
        if month is not None:
            return _safe_date(int(match.group(3)), month, int(match.group(1)))

    match = _MONTH_DAY_YEAR.match(text)
    if match:
        month = _lookup_month(match.group(1), EN_MONTHS, TR_MONTHS)
        if month is not None:
            return _safe_date(int(match.group(3)), month, int(match.group(2)))

    return None


# =============================================================================
# FORMATTING
# =============================================================================

def format_date(value: date, language: Language = Language.EN) -> str:
    """
    Format a date the way transactions store their origination date.

    English: "Dec 8, 2025". Turkish: "8 Ara 2025".
    """
    language = Language(language)
    if language == Language.TR:
        month = TR_MONTH_ABBREVIATIONS[value.month - 1]
        return f"{value.day} {month} {value.year}"

    month = EN_MONTH_ABBREVIATIONS[value.month - 1]
    return f"{month} {value.day}, {value.year}"


def to_iso(value: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return value.isoformat()


def normalize_to_iso(text: Optional[str]) -> Optional[str]:
    """Parse any supported date string and return it as YYYY-MM-DD."""
    parsed = parse_date(text)
    return to_iso(parsed) if parsed else None
