"""
Shared fixtures for billing core tests.

Every component takes an injected clock; tests drive time through
``FrozenClock`` instead of sleeping.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import structlog

from coldreach_billing.catalog import BillingCycle, InMemoryPlanCatalog, Plan
from coldreach_billing.credits import CreditLedger
from coldreach_billing.journal import ActionJournal
from coldreach_billing.settings import reset_settings
from coldreach_billing.subscriptions import (
    InMemorySubscriptionRepository,
    Subscription,
    SubscriptionOrchestrator,
    SubscriptionStatus,
)

# Loggers must not be cached so structlog.testing.capture_logs sees them
structlog.configure(cache_logger_on_first_use=False)

# 30-day period; NOW sits 15 days before its end
PERIOD_START = datetime(2024, 8, 1, tzinfo=UTC)
PERIOD_END = datetime(2024, 8, 31, tzinfo=UTC)
NOW = datetime(2024, 8, 16, tzinfo=UTC)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return now


@pytest.fixture(autouse=True)
def _reset_settings():
    """Drop cached settings so env overrides never leak between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def basic_plan():
    return Plan(
        plan_id="plan_basic",
        code="basic",
        name="Basic",
        price_monthly=Decimal("30.00"),
        price_yearly=Decimal("300.00"),
        currency="EUR",
        emails_per_month=5000,
        email_accounts_limit=1,
        campaigns_limit=3,
        leads_limit=1000,
    )


@pytest.fixture
def full_plan():
    return Plan(
        plan_id="plan_full",
        code="full",
        name="Full",
        price_monthly=Decimal("60.00"),
        price_yearly=Decimal("600.00"),
        currency="EUR",
        emails_per_month=50000,
        email_accounts_limit=10,
        campaigns_limit=50,
        leads_limit=25000,
        features={"ab_testing": True},
    )


@pytest.fixture
def yen_plan():
    return Plan(
        plan_id="plan_yen",
        code="basic-jp",
        name="Basic (JP)",
        price_monthly=Decimal("4500"),
        price_yearly=Decimal("45000"),
        currency="JPY",
    )


@pytest.fixture
def catalog(basic_plan, full_plan, yen_plan):
    return InMemoryPlanCatalog([basic_plan, full_plan, yen_plan])


@pytest.fixture
def subscription(basic_plan):
    """Active monthly subscription on the basic plan, mid-period at NOW."""
    return Subscription(
        subscription_id="sub_test",
        organization_id="org_test",
        plan_id=basic_plan.plan_id,
        processor_customer_id="cus_test",
        billing_cycle=BillingCycle.MONTHLY,
        monthly_price=basic_plan.price_monthly,
        yearly_price=basic_plan.price_yearly,
        currency="EUR",
        current_period_start=PERIOD_START,
        current_period_end=PERIOD_END,
        status=SubscriptionStatus.ACTIVE,
        created_at=PERIOD_START,
    )


@pytest.fixture
def subscriptions(subscription):
    return InMemorySubscriptionRepository([subscription])


@pytest.fixture
def ledger(subscriptions, clock):
    return CreditLedger(subscriptions, clock=clock)


@pytest.fixture
def journal(clock):
    return ActionJournal(clock=clock)


@pytest.fixture
def orchestrator(catalog, subscriptions, clock):
    return SubscriptionOrchestrator(catalog, subscriptions=subscriptions, clock=clock)
