"""Plan catalog access."""

from typing import Protocol

from coldreach_billing.catalog.models import Plan
from coldreach_billing.exceptions import PlanNotFoundError


class PlanCatalog(Protocol):
    """Read-only source of plans."""

    def get(self, plan_id: str) -> Plan: ...


class InMemoryPlanCatalog:
    """Plan catalog backed by a dict."""

    def __init__(self, plans: list[Plan] | None = None) -> None:
        self._plans: dict[str, Plan] = {plan.plan_id: plan for plan in plans or []}

    def add(self, plan: Plan) -> None:
        self._plans[plan.plan_id] = plan

    def get(self, plan_id: str) -> Plan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(f"Plan {plan_id} not found", plan_id=plan_id)
        return plan

    def list_active(self) -> list[Plan]:
        return [plan for plan in self._plans.values() if plan.active]
