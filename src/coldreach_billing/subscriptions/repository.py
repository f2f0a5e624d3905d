"""Subscription storage."""

from threading import RLock
from typing import Protocol

from coldreach_billing.exceptions import SubscriptionNotFoundError
from coldreach_billing.subscriptions.models import Subscription


class SubscriptionRepository(Protocol):
    """Persistence for subscriptions. Implementations never delete."""

    def get(self, subscription_id: str) -> Subscription: ...

    def save(self, subscription: Subscription) -> Subscription: ...


class InMemorySubscriptionRepository:
    """Subscription storage kept in process memory."""

    def __init__(self, subscriptions: list[Subscription] | None = None) -> None:
        self._lock = RLock()
        self._subscriptions: dict[str, Subscription] = {
            sub.subscription_id: sub for sub in subscriptions or []
        }

    def get(self, subscription_id: str) -> Subscription:
        with self._lock:
            subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(
                f"Subscription {subscription_id} not found", subscription_id=subscription_id
            )
        return subscription

    def save(self, subscription: Subscription) -> Subscription:
        with self._lock:
            self._subscriptions[subscription.subscription_id] = subscription
        return subscription

    def list_for_organization(self, organization_id: str) -> list[Subscription]:
        with self._lock:
            return [s for s in self._subscriptions.values() if s.organization_id == organization_id]
