"""
Per-subscription serialization.

All mutations of one subscription run one at a time; different
subscriptions never wait on each other.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock, RLock


class SubscriptionLocks:
    """Registry of re-entrant locks keyed by subscription id."""

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._locks: dict[str, RLock] = {}

    def lock_for(self, subscription_id: str) -> RLock:
        """Return the lock owned by ``subscription_id``, creating it on first use."""
        with self._registry_lock:
            lock = self._locks.get(subscription_id)
            if lock is None:
                lock = RLock()
                self._locks[subscription_id] = lock
            return lock

    @contextmanager
    def hold(self, subscription_id: str) -> Iterator[None]:
        """Hold the subscription's lock for the duration of the block."""
        lock = self.lock_for(subscription_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
