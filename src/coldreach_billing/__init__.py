"""
ColdReach billing core.

Subscription lifecycle, plan-change proration, account credits and the
subscription action journal. Storage sits behind repository protocols;
in-memory implementations are provided.
"""

from coldreach_billing.catalog import BillingCycle, InMemoryPlanCatalog, Plan
from coldreach_billing.credits import Credit, CreditLedger, CreditStatus, CreditType
from coldreach_billing.exceptions import BillingError
from coldreach_billing.journal import ActionJournal, ActionStatus, ActionType, SubscriptionAction
from coldreach_billing.proration import ProrationCalculator, ProrationPreview, ProrationResult
from coldreach_billing.settings import Settings, get_settings
from coldreach_billing.subscriptions import (
    LifecycleEvent,
    Subscription,
    SubscriptionOrchestrator,
    SubscriptionStateMachine,
    SubscriptionStatus,
    TrialConfiguration,
)

__version__ = "0.1.0"
__author__ = "ColdReach Team"

__all__ = [
    "ActionJournal",
    "ActionStatus",
    "ActionType",
    "BillingCycle",
    "BillingError",
    "Credit",
    "CreditLedger",
    "CreditStatus",
    "CreditType",
    "InMemoryPlanCatalog",
    "LifecycleEvent",
    "Plan",
    "ProrationCalculator",
    "ProrationPreview",
    "ProrationResult",
    "Settings",
    "Subscription",
    "SubscriptionAction",
    "SubscriptionOrchestrator",
    "SubscriptionStateMachine",
    "SubscriptionStatus",
    "TrialConfiguration",
    "__version__",
    "get_settings",
]
