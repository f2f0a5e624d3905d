"""
Subscription lifecycle state machine.

Owns the status of a subscription and is the only place that decides whether
a lifecycle event is legal. Anything not listed in ``TRANSITIONS`` is
rejected; requests are never coerced into a neighbouring transition.

    trialing --convert_trial--> active
    trialing --cancel---------> canceled
    active   --pause----------> paused      (not while cancel_at_period_end)
    active   --payment_failed-> past_due
    active   --cancel---------> canceled
    active   --period_end_cancel-> canceled (cancel_at_period_end and period over)
    paused   --resume---------> active
    paused   --cancel---------> canceled
    past_due --payment_succeeded----> active
    past_due --grace_period_expired-> canceled
"""

from datetime import datetime, timedelta
from enum import Enum

import structlog

from coldreach_billing.catalog.models import BILLING_CYCLE_DAYS
from coldreach_billing.clock import ensure_utc
from coldreach_billing.exceptions import InvalidTransitionError
from coldreach_billing.journal.models import ActionType
from coldreach_billing.settings import get_settings
from coldreach_billing.subscriptions.models import Subscription, SubscriptionStatus

logger = structlog.get_logger(__name__)


class LifecycleEvent(str, Enum):
    """Requested lifecycle transitions."""

    CONVERT_TRIAL = "convert_trial"
    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"
    PERIOD_END_CANCEL = "period_end_cancel"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    GRACE_PERIOD_EXPIRED = "grace_period_expired"


TRANSITIONS: dict[SubscriptionStatus, dict[LifecycleEvent, SubscriptionStatus]] = {
    SubscriptionStatus.TRIALING: {
        LifecycleEvent.CONVERT_TRIAL: SubscriptionStatus.ACTIVE,
        LifecycleEvent.CANCEL: SubscriptionStatus.CANCELED,
    },
    SubscriptionStatus.ACTIVE: {
        LifecycleEvent.PAUSE: SubscriptionStatus.PAUSED,
        LifecycleEvent.PAYMENT_FAILED: SubscriptionStatus.PAST_DUE,
        LifecycleEvent.CANCEL: SubscriptionStatus.CANCELED,
        LifecycleEvent.PERIOD_END_CANCEL: SubscriptionStatus.CANCELED,
    },
    SubscriptionStatus.PAUSED: {
        LifecycleEvent.RESUME: SubscriptionStatus.ACTIVE,
        LifecycleEvent.CANCEL: SubscriptionStatus.CANCELED,
    },
    SubscriptionStatus.PAST_DUE: {
        LifecycleEvent.PAYMENT_SUCCEEDED: SubscriptionStatus.ACTIVE,
        LifecycleEvent.GRACE_PERIOD_EXPIRED: SubscriptionStatus.CANCELED,
    },
    SubscriptionStatus.CANCELED: {},
}

_ACTION_TYPES: dict[LifecycleEvent, ActionType] = {
    LifecycleEvent.CONVERT_TRIAL: ActionType.TRIAL_END,
    LifecycleEvent.PAUSE: ActionType.PAUSE,
    LifecycleEvent.RESUME: ActionType.RESUME,
    LifecycleEvent.CANCEL: ActionType.CANCEL,
    LifecycleEvent.PERIOD_END_CANCEL: ActionType.CANCEL,
    LifecycleEvent.PAYMENT_FAILED: ActionType.PAYMENT_FAILED,
    LifecycleEvent.PAYMENT_SUCCEEDED: ActionType.PAYMENT_RECOVERED,
    LifecycleEvent.GRACE_PERIOD_EXPIRED: ActionType.CANCEL,
}


def action_type_for(event: LifecycleEvent) -> ActionType:
    """Journal action type recorded for a lifecycle event."""
    return _ACTION_TYPES[event]


class SubscriptionStateMachine:
    """Validates and executes subscription lifecycle transitions."""

    def __init__(self, grace_period_days: int | None = None) -> None:
        self.grace_period_days = grace_period_days or get_settings().billing.grace_period_days

    def _guard(self, subscription: Subscription, event: LifecycleEvent, now: datetime) -> str | None:
        """Return why ``event`` is illegal right now, or None if it is allowed."""
        if event not in TRANSITIONS[subscription.status]:
            return "not in transition table"
        if event == LifecycleEvent.PAUSE and subscription.cancel_at_period_end:
            return "subscription is scheduled to cancel at period end"
        if event == LifecycleEvent.PERIOD_END_CANCEL:
            if not subscription.cancel_at_period_end:
                return "cancel_at_period_end is not set"
            if now < subscription.current_period_end:
                return "current period has not ended"
        return None

    def can_transition(
        self, subscription: Subscription, event: LifecycleEvent, now: datetime
    ) -> bool:
        return self._guard(subscription, event, ensure_utc(now)) is None

    def allowed_events(self, subscription: Subscription, now: datetime) -> list[LifecycleEvent]:
        """Events that would currently be accepted, in table order."""
        return [
            event
            for event in TRANSITIONS[subscription.status]
            if self.can_transition(subscription, event, now)
        ]

    def check(self, subscription: Subscription, event: LifecycleEvent, now: datetime) -> None:
        """Raise InvalidTransitionError unless ``event`` is allowed right now."""
        reason = self._guard(subscription, event, ensure_utc(now))
        if reason is None:
            return
        logger.warning(
            "Rejected subscription transition",
            subscription_id=subscription.subscription_id,
            current_status=subscription.status.value,
            requested=event.value,
            reason=reason,
        )
        raise InvalidTransitionError(
            subscription.status.value,
            event.value,
            reason=reason,
            subscription_id=subscription.subscription_id,
        )

    def transition(
        self, subscription: Subscription, event: LifecycleEvent, now: datetime
    ) -> Subscription:
        """
        Apply ``event`` and return the updated subscription.

        Args:
            subscription: Current subscription, left untouched
            event: Requested lifecycle event
            now: Instant the transition takes effect

        Returns:
            New Subscription carrying the target status

        Raises:
            InvalidTransitionError: The (status, event) pair is not allowed
        """
        now = ensure_utc(now)
        self.check(subscription, event, now)

        target = TRANSITIONS[subscription.status][event]
        changes: dict[str, object] = {"status": target, "updated_at": now}

        if event == LifecycleEvent.PAUSE:
            # Period dates stay frozen as-is; invoicing is suspended by status.
            changes["paused_at"] = now
        elif event == LifecycleEvent.RESUME:
            changes["paused_at"] = None
        elif event == LifecycleEvent.CONVERT_TRIAL:
            changes["current_period_start"] = now
            changes["current_period_end"] = now + timedelta(
                days=BILLING_CYCLE_DAYS[subscription.billing_cycle]
            )
        elif event == LifecycleEvent.PAYMENT_FAILED:
            changes["grace_period_ends_at"] = now + timedelta(days=self.grace_period_days)
        elif event == LifecycleEvent.PAYMENT_SUCCEEDED:
            changes["grace_period_ends_at"] = None

        if target == SubscriptionStatus.CANCELED:
            changes["canceled_at"] = now
            changes["grace_period_ends_at"] = None

        updated = subscription.evolve(**changes)
        logger.info(
            "Subscription transitioned",
            subscription_id=subscription.subscription_id,
            lifecycle_event=event.value,
            from_status=subscription.status.value,
            to_status=target.value,
        )
        return updated
