"""
Subscription models.

A subscription is mutated only through validated lifecycle transitions and is
never deleted; canceled subscriptions are kept for audit.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from coldreach_billing.catalog.models import BillingCycle
from coldreach_billing.clock import ensure_utc, utcnow
from coldreach_billing.credits.models import Credit
from coldreach_billing.journal.models import SubscriptionAction
from coldreach_billing.money_utils import normalize_currency
from coldreach_billing.proration.models import ProrationPreview
from coldreach_billing.settings import get_settings


class SubscriptionStatus(str, Enum):
    """Subscription status."""

    TRIALING = "trialing"
    ACTIVE = "active"
    PAUSED = "paused"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


def generate_subscription_id() -> str:
    return f"sub_{uuid4().hex[:24]}"


class TrialConfiguration(BaseModel):
    """How a new subscription's trial is set up."""

    model_config = ConfigDict(frozen=True)

    duration_days: int = Field(
        default_factory=lambda: get_settings().billing.default_trial_days,
        ge=1,
        description="Trial length in days",
    )
    requires_payment_method: bool = Field(
        True, description="Whether a payment method must be on file to start"
    )
    auto_convert_to_paid: bool = Field(
        True, description="Whether the trial converts automatically when it ends"
    )


class Subscription(BaseModel):
    """Organization subscription to a plan."""

    model_config = ConfigDict(frozen=True)

    subscription_id: str = Field(default_factory=generate_subscription_id)
    organization_id: str = Field(description="Owning organization")
    plan_id: str = Field(description="Current plan")

    # Opaque payment processor references
    processor_customer_id: str | None = Field(None, description="Processor customer id")
    processor_subscription_id: str | None = Field(None, description="Processor subscription id")

    # Billing
    billing_cycle: BillingCycle = Field(BillingCycle.MONTHLY, description="Billing cycle")
    monthly_price: Decimal = Field(ge=0, description="Monthly price of the current plan")
    yearly_price: Decimal = Field(ge=0, description="Yearly price of the current plan")
    currency: str = Field("EUR", description="ISO 4217 currency code")

    # Period
    current_period_start: datetime
    current_period_end: datetime

    # Flags
    status: SubscriptionStatus = Field(SubscriptionStatus.ACTIVE)
    cancel_at_period_end: bool = Field(False)
    trial_start: datetime | None = None
    trial_end: datetime | None = None

    # Lifecycle stamps
    paused_at: datetime | None = None
    canceled_at: datetime | None = None
    grace_period_ends_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency(v)

    @field_validator(
        "current_period_start",
        "current_period_end",
        "trial_start",
        "trial_end",
        "paused_at",
        "canceled_at",
        "grace_period_ends_at",
        "created_at",
        "updated_at",
    )
    @classmethod
    def normalize_datetimes(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_periods(self) -> "Subscription":
        if self.current_period_end <= self.current_period_start:
            raise ValueError("current_period_end must be after current_period_start")
        if self.trial_start and self.trial_end and self.trial_end <= self.trial_start:
            raise ValueError("trial_end must be after trial_start")
        return self

    def evolve(self, **changes: Any) -> "Subscription":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return Subscription.model_validate(data)

    @property
    def current_price(self) -> Decimal:
        """Price charged for one period of the current billing cycle."""
        if self.billing_cycle == BillingCycle.YEARLY:
            return self.yearly_price
        return self.monthly_price

    @property
    def is_canceled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELED

    def is_active(self) -> bool:
        """Active and not scheduled to cancel."""
        return self.status == SubscriptionStatus.ACTIVE and not self.cancel_at_period_end

    def is_in_trial(self, now: datetime | None = None) -> bool:
        if self.status != SubscriptionStatus.TRIALING or self.trial_end is None:
            return False
        return ensure_utc(now or utcnow()) < self.trial_end

    def days_until_period_end(self, now: datetime | None = None) -> int:
        """Whole days left in the period, rounded up and never negative."""
        remaining = self.current_period_end - ensure_utc(now or utcnow())
        if remaining <= timedelta(0):
            return 0
        return math.ceil(remaining / timedelta(days=1))


class LifecycleResult(BaseModel):
    """Subscription after a lifecycle request plus the journal entry it produced."""

    model_config = ConfigDict(frozen=True)

    subscription: Subscription
    action: SubscriptionAction


class PlanChangeResult(BaseModel):
    """Outcome of a plan change."""

    model_config = ConfigDict(frozen=True)

    subscription: Subscription
    action: SubscriptionAction
    proration: ProrationPreview
    credits_applied: Decimal = Field(ge=0, description="Credit balance used against the invoice")
    debited_credits: tuple[Credit, ...] = ()
    amount_due: Decimal = Field(ge=0, description="Next invoice amount after credits")
