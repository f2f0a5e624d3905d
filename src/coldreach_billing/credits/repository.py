"""Credit storage."""

from threading import RLock
from typing import Protocol

from coldreach_billing.credits.models import Credit
from coldreach_billing.exceptions import CreditNotFoundError


class CreditRepository(Protocol):
    """Persistence for credits."""

    def get(self, credit_id: str) -> Credit: ...

    def save(self, credit: Credit) -> Credit: ...

    def list_for_subscription(self, subscription_id: str) -> list[Credit]: ...


class InMemoryCreditRepository:
    """Credit storage kept in process memory."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._credits: dict[str, Credit] = {}

    def get(self, credit_id: str) -> Credit:
        with self._lock:
            credit = self._credits.get(credit_id)
        if credit is None:
            raise CreditNotFoundError(f"Credit {credit_id} not found", credit_id=credit_id)
        return credit

    def save(self, credit: Credit) -> Credit:
        with self._lock:
            self._credits[credit.credit_id] = credit
        return credit

    def list_for_subscription(self, subscription_id: str) -> list[Credit]:
        with self._lock:
            return [c for c in self._credits.values() if c.subscription_id == subscription_id]
