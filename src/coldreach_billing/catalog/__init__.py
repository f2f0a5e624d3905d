"""Plan catalog: immutable plans read by the subscription core."""

from coldreach_billing.catalog.models import BILLING_CYCLE_DAYS, BillingCycle, Plan, PlanSavings
from coldreach_billing.catalog.repository import InMemoryPlanCatalog, PlanCatalog

__all__ = [
    "BILLING_CYCLE_DAYS",
    "BillingCycle",
    "InMemoryPlanCatalog",
    "Plan",
    "PlanCatalog",
    "PlanSavings",
]
