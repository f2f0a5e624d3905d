"""
Append-only action journal.

The journal is the idempotency boundary of the billing core: a subscription
can have at most one pending action, so a second mutation requested while
the first is in flight is refused instead of interleaved.
"""

from datetime import datetime, timedelta
from threading import RLock

import structlog

from coldreach_billing.clock import Clock, ensure_utc, utcnow
from coldreach_billing.exceptions import ActionInFlightError, ActionNotPendingError
from coldreach_billing.journal.models import ActionStatus, SubscriptionAction
from coldreach_billing.journal.repository import ActionRepository, InMemoryActionRepository
from coldreach_billing.logging import log_audit_event

logger = structlog.get_logger(__name__)


class ActionJournal:
    """Records subscription actions and their pending → completed/cancelled moves."""

    def __init__(
        self,
        repository: ActionRepository | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.repository = repository or InMemoryActionRepository()
        self._clock = clock
        self._lock = RLock()

    def pending_for(self, subscription_id: str) -> SubscriptionAction | None:
        """The subscription's in-flight action, if any."""
        for action in self.repository.list_for_subscription(subscription_id):
            if action.status == ActionStatus.PENDING:
                return action
        return None

    def ensure_no_pending(self, subscription_id: str) -> None:
        """Raise ActionInFlightError if the subscription has a pending action."""
        pending = self.pending_for(subscription_id)
        if pending is not None:
            logger.warning(
                "Rejected action while another is pending",
                subscription_id=subscription_id,
                pending_action_id=pending.action_id,
                pending_action_type=pending.action_type.value,
            )
            raise ActionInFlightError(
                subscription_id, pending.action_id, pending.action_type.value
            )

    def append(self, action: SubscriptionAction) -> SubscriptionAction:
        """
        Append a new pending action.

        Raises:
            ActionInFlightError: Another action is still pending for the subscription
            ActionNotPendingError: The action is not in pending status
        """
        if action.status != ActionStatus.PENDING:
            raise ActionNotPendingError(action.action_id, action.status.value)

        with self._lock:
            self.ensure_no_pending(action.subscription_id)
            saved = self.repository.save(action)

        logger.info(
            "Subscription action appended",
            action_id=saved.action_id,
            subscription_id=saved.subscription_id,
            action_type=saved.action_type.value,
            scheduled_date=saved.scheduled_date.isoformat() if saved.scheduled_date else None,
        )
        return saved

    def _finalize(self, action_id: str, status: ActionStatus, reason: str | None) -> SubscriptionAction:
        with self._lock:
            action = self.repository.get(action_id)
            if action.status != ActionStatus.PENDING:
                raise ActionNotPendingError(action_id, action.status.value)

            now = self._clock()
            changes: dict[str, object] = {"status": status}
            if status == ActionStatus.COMPLETED:
                changes["completed_at"] = now
            else:
                changes["cancelled_at"] = now
                if reason:
                    changes["metadata"] = {**action.metadata, "cancellation_reason": reason}

            finalized = SubscriptionAction.model_validate({**action.model_dump(), **changes})
            self.repository.save(finalized)

        logger.info(
            "Subscription action finalized",
            action_id=action_id,
            subscription_id=finalized.subscription_id,
            action_type=finalized.action_type.value,
            status=status.value,
        )
        log_audit_event(
            f"subscription.action.{status.value}",
            "billing",
            subscription_id=finalized.subscription_id,
            resource_type="subscription_action",
            resource_id=action_id,
            action_type=finalized.action_type.value,
        )
        return finalized

    def complete(self, action_id: str) -> SubscriptionAction:
        """Mark a pending action completed once its effect is durably recorded."""
        return self._finalize(action_id, ActionStatus.COMPLETED, None)

    def cancel(self, action_id: str, reason: str | None = None) -> SubscriptionAction:
        """Abort a pending action whose effect has not been applied."""
        return self._finalize(action_id, ActionStatus.CANCELLED, reason)

    def history(self, subscription_id: str) -> list[SubscriptionAction]:
        """All actions for the subscription, oldest first."""
        return sorted(
            self.repository.list_for_subscription(subscription_id), key=lambda a: a.created_at
        )

    def pending_age(self, subscription_id: str, now: datetime | None = None) -> timedelta | None:
        """How long the subscription's pending action has been waiting."""
        pending = self.pending_for(subscription_id)
        if pending is None:
            return None
        return pending.age(ensure_utc(now) if now else self._clock())

    def stale_pending(
        self, max_age: timedelta, now: datetime | None = None
    ) -> list[SubscriptionAction]:
        """Pending actions older than ``max_age``, oldest first."""
        now = ensure_utc(now) if now else self._clock()
        stale = [
            action
            for action in self.repository.list_all()
            if action.status == ActionStatus.PENDING and action.age(now) > max_age
        ]
        return sorted(stale, key=lambda a: a.created_at)
