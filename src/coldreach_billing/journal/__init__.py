"""Subscription action journal."""

from coldreach_billing.journal.journal import ActionJournal
from coldreach_billing.journal.models import (
    PLAN_CHANGE_TYPES,
    ActionStatus,
    ActionType,
    SubscriptionAction,
)
from coldreach_billing.journal.repository import ActionRepository, InMemoryActionRepository

__all__ = [
    "PLAN_CHANGE_TYPES",
    "ActionJournal",
    "ActionRepository",
    "ActionStatus",
    "ActionType",
    "InMemoryActionRepository",
    "SubscriptionAction",
]
