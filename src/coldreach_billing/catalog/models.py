"""
Plan catalog models.

Plans are immutable catalog entries owned by the catalog collaborator; the
billing core only reads them.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coldreach_billing.money_utils import normalize_currency


class BillingCycle(str, Enum):
    """Billing cycle types."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


# Billing cycle length in days
BILLING_CYCLE_DAYS: dict[BillingCycle, int] = {
    BillingCycle.MONTHLY: 30,
    BillingCycle.YEARLY: 365,
}


class PlanSavings(BaseModel):
    """What a customer saves by paying yearly instead of monthly."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(description="Twelve monthly payments minus the yearly price")
    percentage: int = Field(description="Savings as a whole percentage of the monthly total")


class Plan(BaseModel):
    """Subscription plan catalog entry."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    plan_id: str = Field(description="Plan identifier")
    code: str = Field(description="Stable plan code, e.g. 'full'", min_length=1, max_length=50)
    name: str = Field(description="Display name", min_length=1, max_length=255)
    description: str | None = Field(None, description="Plan description")

    # Pricing
    price_monthly: Decimal = Field(ge=0, description="Price per monthly cycle")
    price_yearly: Decimal = Field(ge=0, description="Price per yearly cycle")
    currency: str = Field("EUR", description="ISO 4217 currency code")

    # Quotas
    emails_per_month: int = Field(0, ge=0, description="Sending quota per month")
    email_accounts_limit: int = Field(0, ge=0, description="Connected mailbox limit")
    campaigns_limit: int = Field(0, ge=0, description="Concurrent campaign limit")
    leads_limit: int = Field(0, ge=0, description="Stored lead limit")

    features: dict[str, Any] = Field(default_factory=dict, description="Feature flags")
    active: bool = Field(True, description="Whether the plan can be subscribed to")

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency(v)

    def price_for(self, cycle: BillingCycle) -> Decimal:
        """Price charged for one period of ``cycle``."""
        if cycle == BillingCycle.YEARLY:
            return self.price_yearly
        return self.price_monthly

    def yearly_savings(self) -> PlanSavings:
        """Savings of the yearly price against twelve monthly payments."""
        annual_monthly = self.price_monthly * 12
        savings = annual_monthly - self.price_yearly
        if annual_monthly == 0:
            return PlanSavings(amount=savings, percentage=0)
        percentage = (savings / annual_monthly * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return PlanSavings(amount=savings, percentage=int(percentage))
