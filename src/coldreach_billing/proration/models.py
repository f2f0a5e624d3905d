"""Proration result models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChangeType(str, Enum):
    """Direction of a plan change."""

    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class ProrationResult(BaseModel):
    """Outcome of a proration calculation, rounded to the currency's minor unit."""

    model_config = ConfigDict(frozen=True)

    proration_amount: Decimal = Field(ge=0, description="Magnitude of the adjustment")
    is_credit: bool = Field(description="True when the customer is owed the adjustment")
    next_invoice_amount: Decimal = Field(ge=0, description="Amount of the next invoice")
    unused_old_amount: Decimal = Field(ge=0, description="Unconsumed value of the old plan")
    new_cost_amount: Decimal = Field(ge=0, description="Cost of the new plan for the same span")
    days_remaining: int = Field(ge=0)
    total_days: int = Field(gt=0)
    currency: str

    @property
    def signed_amount(self) -> Decimal:
        """Adjustment with its sign: positive is a charge, negative a credit."""
        return -self.proration_amount if self.is_credit else self.proration_amount


class ProrationPreview(BaseModel):
    """Everything a caller renders for a plan change, computed in one go."""

    model_config = ConfigDict(frozen=True)

    subscription_id: str
    current_plan_id: str
    new_plan_id: str
    change_type: ChangeType

    current_period_start: datetime
    current_period_end: datetime
    effective_date: datetime
    days_remaining: int = Field(ge=0)
    total_days: int = Field(gt=0)

    current_plan_amount: Decimal = Field(ge=0)
    new_plan_amount: Decimal = Field(ge=0)
    proration_amount: Decimal = Field(ge=0)
    is_credit: bool
    next_invoice_amount: Decimal = Field(ge=0)
    currency: str
