"""
Core Data Models for Flow Ledger

These models define the schemas for every transaction flowing through the
system. They are designed to:
1. Enforce type safety at runtime
2. Load records written by the web client unchanged (camelCase keys)
3. Be immutable, so an advanced subscription is always a new value
4. Be serializable for encrypted storage

IMPORTANT: `date` is a localized display string, while `next_billing_date`
and `end_date` are always ISO (YYYY-MM-DD). The validators below hold that line.
"""

import datetime
import re
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from flowledger.services.dates import parse_date


_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def new_transaction_id() -> str:
    """Generate an opaque, never reused transaction id."""
    return uuid4().hex


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class Recurrence(str, Enum):
    """
    Billing interval of a transaction.

    ONCE means the transaction never advances and carries no
    subscription state.
    """
    ONCE = "once"
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionState(str, Enum):
    """Where a transaction sits in the recurrence state machine."""
    NOT_RECURRING = "not_recurring"
    INACTIVE = "inactive"              # Terminal: ended or deactivated
    ACTIVE_WAITING = "active_waiting"  # today <= next billing date
    ACTIVE_DUE = "active_due"          # today > next billing date


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

_STORED_MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    str_strip_whitespace=True,
    extra="ignore",
)


class PriceTier(BaseModel):
    """
    A scheduled price change.

    Takes effect when the subscription reaches `period_number`
    and stays in effect until another tier replaces it.
    """
    model_config = _STORED_MODEL_CONFIG

    period_number: int = Field(
        ...,
        ge=1,
        description="Billing period from which this amount applies"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount charged from that period onward"
    )

    @field_serializer('amount', when_used='json')
    def serialize_amount(self, v: Decimal) -> float:
        return float(v)


class Transaction(BaseModel):
    """
    A single income or expense entry, optionally recurring.

    Instances are immutable. Use model_copy(update=...) to produce the
    next state.
    """
    model_config = _STORED_MODEL_CONFIG

    # Identity
    id: str = Field(
        default_factory=new_transaction_id,
        min_length=1,
        description="Opaque unique id"
    )

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    category: str = Field(
        ...,
        description="Category key"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Current period's charge in the base currency"
    )
    type: TransactionType = Field(
        ...,
        description="Income or expense"
    )
    date: str = Field(
        ...,
        description="Origination date, localized (e.g. 'Dec 8, 2025') or ISO"
    )

    # Subscription state (ignored when recurrence is ONCE)
    recurrence: Recurrence = Recurrence.ONCE
    price_tiers: list[PriceTier] = Field(default_factory=list)
    current_period: int = Field(
        default=1,
        ge=1,
        description="Billing periods elapsed, 1 being the original charge"
    )
    next_billing_date: Optional[str] = Field(
        default=None,
        description="Next due date (ISO)"
    )
    is_active: bool = True
    end_date: Optional[str] = Field(
        default=None,
        description="Inclusive last day of the subscription (ISO)"
    )

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        """The origination date must be readable by the date parser."""
        if parse_date(v) is None:
            raise ValueError(f"Unrecognized transaction date: {v!r}")
        return v

    @field_validator('next_billing_date', 'end_date', mode='before')
    @classmethod
    def validate_iso_date(cls, v: Any) -> Optional[str]:
        """Billing and end dates are strictly YYYY-MM-DD. Blank means unset."""
        if v is None or v == "":
            return None
        if isinstance(v, datetime.date):
            return v.isoformat()
        if not isinstance(v, str) or not _ISO_DATE.match(v.strip()):
            raise ValueError(f"Expected an ISO date (YYYY-MM-DD), got {v!r}")
        datetime.date.fromisoformat(v.strip())
        return v.strip()

    @field_validator('price_tiers')
    @classmethod
    def validate_price_tiers(cls, v: list[PriceTier]) -> list[PriceTier]:
        """Tiers are unique per period and kept in period order."""
        periods = [tier.period_number for tier in v]
        if len(periods) != len(set(periods)):
            raise ValueError("Price tiers must have unique period numbers")
        return sorted(v, key=lambda tier: tier.period_number)

    @field_serializer('amount', when_used='json')
    def serialize_amount(self, v: Decimal) -> float:
        """Amounts are stored as JSON numbers."""
        return float(v)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.ONCE

    @property
    def parsed_date(self) -> Optional[datetime.date]:
        """Origination date as a calendar date."""
        return parse_date(self.date)

    @property
    def next_billing_day(self) -> Optional[datetime.date]:
        if self.next_billing_date is None:
            return None
        return datetime.date.fromisoformat(self.next_billing_date)

    @property
    def end_day(self) -> Optional[datetime.date]:
        if self.end_date is None:
            return None
        return datetime.date.fromisoformat(self.end_date)

    def tier_for_period(self, period: int) -> Optional[PriceTier]:
        """Get the tier that starts exactly at `period`, if one is scheduled."""
        for tier in self.price_tiers:
            if tier.period_number == period:
                return tier
        return None

    def to_storage_dict(self) -> dict:
        """
        Convert to the JSON shape persisted in storage.

        Uses the camelCase keys the web client reads.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class ProcessResult(BaseModel):
    """
    Result of running the recurrence engine over a transaction list.

    Callers persist `updated` only when `has_changes` is True.
    """

    updated: list[Transaction] = Field(default_factory=list)
    has_changes: bool = False
    advanced_ids: list[str] = Field(
        default_factory=list,
        description="Transactions that moved to their next period"
    )
    ended_ids: list[str] = Field(
        default_factory=list,
        description="Transactions deactivated because their end date passed"
    )


class SubscriptionInfo(BaseModel):
    """Display summary of a transaction's subscription status."""

    is_subscription: bool
    recurrence_label: str
    current_period: int
    next_billing_date: Optional[str] = None
    next_period_price: Optional[Decimal] = Field(
        default=None,
        description="Tier amount scheduled for the next period, if any"
    )
    is_active: bool
    end_date: Optional[str] = None


class UpcomingSummary(BaseModel):
    """Totals of a projected upcoming list."""

    expected_income: Decimal = Decimal("0")
    expected_expense: Decimal = Decimal("0")
    count: int = Field(default=0, ge=0)

    @property
    def net(self) -> Decimal:
        return self.expected_income - self.expected_expense


# =============================================================================
# RECEIPT SCAN (external collaborator output)
# =============================================================================

class ScanConfidence(BaseModel):
    """Confidence scores reported by the receipt scanner (0-100)."""

    amount: float = Field(default=0.0, ge=0.0, le=100.0)
    date: float = Field(default=0.0, ge=0.0, le=100.0)
    overall: float = Field(default=0.0, ge=0.0, le=100.0)


class ReceiptScan(BaseModel):
    """
    Best-effort guess produced by the OCR/PDF receipt scanner.

    This is PROPOSED data. It is only used to pre-fill a draft
    transaction which the user then edits and confirms.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    amount: Optional[Decimal] = Field(default=None, ge=0)
    date: Optional[str] = Field(
        default=None,
        description="Receipt date (ISO)"
    )
    time: Optional[str] = None
    company_name: Optional[str] = None
    confidence: ScanConfidence = Field(default_factory=ScanConfidence)
