"""Action journal storage."""

from threading import RLock
from typing import Protocol

from coldreach_billing.exceptions import ActionNotFoundError
from coldreach_billing.journal.models import SubscriptionAction


class ActionRepository(Protocol):
    """Persistence for journal entries."""

    def get(self, action_id: str) -> SubscriptionAction: ...

    def save(self, action: SubscriptionAction) -> SubscriptionAction: ...

    def list_for_subscription(self, subscription_id: str) -> list[SubscriptionAction]: ...

    def list_all(self) -> list[SubscriptionAction]: ...


class InMemoryActionRepository:
    """Journal storage kept in process memory, insertion ordered."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._actions: dict[str, SubscriptionAction] = {}

    def get(self, action_id: str) -> SubscriptionAction:
        with self._lock:
            action = self._actions.get(action_id)
        if action is None:
            raise ActionNotFoundError(f"Action {action_id} not found", action_id=action_id)
        return action

    def save(self, action: SubscriptionAction) -> SubscriptionAction:
        with self._lock:
            self._actions[action.action_id] = action
        return action

    def list_for_subscription(self, subscription_id: str) -> list[SubscriptionAction]:
        with self._lock:
            return [a for a in self._actions.values() if a.subscription_id == subscription_id]

    def list_all(self) -> list[SubscriptionAction]:
        with self._lock:
            return list(self._actions.values())
