"""
Subscription action journal models.

Actions are appended in ``pending`` and move exactly once to ``completed`` or
``cancelled``. Finalized actions are never edited; a reversal is a new action.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from coldreach_billing.clock import ensure_utc, utcnow


class ActionType(str, Enum):
    """Lifecycle action types."""

    PAUSE = "pause"
    RESUME = "resume"
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    CANCEL = "cancel"
    TRIAL_START = "trial_start"
    TRIAL_END = "trial_end"
    CREDIT_ADDED = "credit_added"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_RECOVERED = "payment_recovered"


PLAN_CHANGE_TYPES = frozenset({ActionType.UPGRADE, ActionType.DOWNGRADE})


class ActionStatus(str, Enum):
    """Action status."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def generate_action_id() -> str:
    return f"act_{uuid4().hex[:24]}"


class SubscriptionAction(BaseModel):
    """Journal entry for one lifecycle action."""

    model_config = ConfigDict(frozen=True)

    action_id: str = Field(default_factory=generate_action_id)
    subscription_id: str
    action_type: ActionType
    status: ActionStatus = ActionStatus.PENDING

    effective_date: datetime = Field(description="When the change takes or took effect")
    scheduled_date: datetime | None = Field(
        None, description="When a future-dated change should be applied"
    )

    # Plan changes only
    old_plan_id: str | None = None
    new_plan_id: str | None = None
    proration_amount: Decimal | None = Field(None, ge=0)
    is_credit: bool | None = None
    currency: str | None = None

    reason: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @field_validator(
        "effective_date", "scheduled_date", "created_at", "completed_at", "cancelled_at"
    )
    @classmethod
    def normalize_datetimes(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_plan_fields(self) -> "SubscriptionAction":
        is_plan_change = self.action_type in PLAN_CHANGE_TYPES
        has_plan_fields = any(
            value is not None
            for value in (self.old_plan_id, self.new_plan_id, self.proration_amount)
        )
        if is_plan_change and (self.old_plan_id is None or self.new_plan_id is None):
            raise ValueError("Plan change actions require old_plan_id and new_plan_id")
        if not is_plan_change and has_plan_fields:
            raise ValueError("Only upgrade/downgrade actions carry plan or proration fields")
        return self

    @property
    def is_pending(self) -> bool:
        return self.status == ActionStatus.PENDING

    def age(self, now: datetime | None = None) -> timedelta:
        """
        Time the action has been waiting to resolve.

        Future-dated actions start ageing at their scheduled date; before that
        the age is negative.
        """
        started = max(self.created_at, self.scheduled_date or self.created_at)
        return ensure_utc(now or utcnow()) - started

    def is_due(self, now: datetime | None = None) -> bool:
        """A scheduled action is due once its scheduled date has arrived."""
        if self.scheduled_date is None:
            return True
        return ensure_utc(now or utcnow()) >= self.scheduled_date
