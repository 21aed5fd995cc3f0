"""
Storage Models for Flow Ledger

Describes what actually sits in the key-value store and who is allowed to
read it.

A stored value is exactly one of:
- an EncryptedEnvelope ({iv, data, salt}, all Base64), or
- a legacy plaintext record written before encryption existed.

The two are told apart once, when the raw value is decoded at the store
boundary, and carried as a tagged union from then on.
"""

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


ENVELOPE_FIELDS = ("iv", "data", "salt")


class Collection(str, Enum):
    """Logical collections stored per user."""
    TRANSACTIONS = "transactions"
    SETTINGS = "settings"
    CATEGORIES = "categories"


class EncryptedEnvelope(BaseModel):
    """
    One encrypted blob.

    `salt` and `iv` are regenerated on every encryption, so two saves of
    the same data never share either.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    iv: str = Field(..., description="Base64 AES-GCM nonce")
    data: str = Field(..., description="Base64 ciphertext including the GCM tag")
    salt: str = Field(..., description="Base64 PBKDF2 salt")

    @classmethod
    def looks_like_envelope(cls, value: Any) -> bool:
        """True when a decoded JSON value carries all three envelope fields."""
        return isinstance(value, dict) and all(
            name in value for name in ENVELOPE_FIELDS
        )


class LegacyRecord(BaseModel):
    """A plaintext record that predates encryption."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["legacy"] = "legacy"
    value: Any = None


class EnvelopeRecord(BaseModel):
    """An encrypted record."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["envelope"] = "envelope"
    envelope: EncryptedEnvelope


StoredRecord = Union[LegacyRecord, EnvelopeRecord]


class AuthIdentity(BaseModel):
    """
    Identity handed over by the authentication layer.

    `password_derived_secret` is derived from the stored password hash.
    The raw password never reaches this package.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    password_derived_secret: str = Field(..., min_length=1, repr=False)
