"""Subscription lifecycle: models, state machine and orchestrator."""

from coldreach_billing.subscriptions.models import (
    LifecycleResult,
    PlanChangeResult,
    Subscription,
    SubscriptionStatus,
    TrialConfiguration,
    generate_subscription_id,
)
from coldreach_billing.subscriptions.repository import (
    InMemorySubscriptionRepository,
    SubscriptionRepository,
)
from coldreach_billing.subscriptions.service import SubscriptionOrchestrator
from coldreach_billing.subscriptions.state_machine import (
    TRANSITIONS,
    LifecycleEvent,
    SubscriptionStateMachine,
    action_type_for,
)

__all__ = [
    "TRANSITIONS",
    "InMemorySubscriptionRepository",
    "LifecycleEvent",
    "LifecycleResult",
    "PlanChangeResult",
    "Subscription",
    "SubscriptionOrchestrator",
    "SubscriptionRepository",
    "SubscriptionStateMachine",
    "SubscriptionStatus",
    "TrialConfiguration",
    "action_type_for",
    "generate_subscription_id",
]
