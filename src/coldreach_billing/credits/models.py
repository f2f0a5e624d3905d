"""
Account credit models.

``amount`` is fixed at issuance. ``used_amount`` only grows and
``remaining_amount`` is always ``amount - used_amount``. Status is derived
from those figures and the clock on every read, never stored.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from coldreach_billing.clock import ensure_utc, utcnow
from coldreach_billing.money_utils import normalize_currency


class CreditType(str, Enum):
    """Why a credit was issued."""

    ADJUSTMENT = "adjustment"
    REFUND = "refund"
    PROMOTIONAL = "promotional"
    COMPENSATION = "compensation"


class CreditStatus(str, Enum):
    """Derived credit status."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


def generate_credit_id() -> str:
    return f"cred_{uuid4().hex[:24]}"


class CreditApplication(BaseModel):
    """One debit of a credit against an invoice."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(gt=0)
    invoice_id: str | None = None
    applied_at: datetime = Field(default_factory=utcnow)


class Credit(BaseModel):
    """Account credit owned by a subscription."""

    model_config = ConfigDict(frozen=True)

    credit_id: str = Field(default_factory=generate_credit_id)
    subscription_id: str
    amount: Decimal = Field(gt=0, description="Issued amount, immutable")
    currency: str
    credit_type: CreditType = CreditType.ADJUSTMENT
    description: str = ""

    used_amount: Decimal = Field(Decimal(0), ge=0)
    applications: tuple[CreditApplication, ...] = ()
    applied_to_invoice: str | None = Field(
        None, description="Invoice whose debit exhausted the credit"
    )

    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency(v)

    @field_validator("expires_at", "created_at", "cancelled_at")
    @classmethod
    def normalize_datetimes(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_usage(self) -> "Credit":
        if self.used_amount > self.amount:
            raise ValueError("used_amount cannot exceed amount")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining_amount(self) -> Decimal:
        return self.amount - self.used_amount

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return ensure_utc(now or utcnow()) >= self.expires_at

    def status_at(self, now: datetime | None = None) -> CreditStatus:
        """Status as of ``now``: cancelled, then expired, then used, else active."""
        if self.cancelled_at is not None:
            return CreditStatus.CANCELLED
        if self.remaining_amount > 0 and self.is_expired(now):
            return CreditStatus.EXPIRED
        if self.remaining_amount == 0:
            return CreditStatus.USED
        return CreditStatus.ACTIVE

    @property
    def status(self) -> CreditStatus:
        return self.status_at()


class CreditSummary(BaseModel):
    """Totals over a subscription's credits."""

    model_config = ConfigDict(frozen=True)

    subscription_id: str
    currency: str | None
    total_issued: Decimal
    total_used: Decimal
    total_remaining: Decimal = Field(description="Remaining on active credits only")
    total_expired: Decimal = Field(description="Remaining amounts lost to expiry")
    active_count: int
