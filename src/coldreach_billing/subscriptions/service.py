"""
Subscription orchestrator.

Composes the state machine, proration calculator, credit ledger and action
journal. Every public mutation:

1. runs under the subscription's lock,
2. refuses to start while another action is pending,
3. appends a pending action before touching the subscription,
4. completes the action once the subscription has been saved.

A failure before the subscription is saved cancels the pending action and
re-raises; nothing is retried here.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import structlog

from coldreach_billing.catalog.models import BILLING_CYCLE_DAYS, BillingCycle, Plan
from coldreach_billing.catalog.repository import PlanCatalog
from coldreach_billing.clock import Clock, ensure_utc, utcnow
from coldreach_billing.credits.ledger import CreditLedger
from coldreach_billing.credits.models import Credit, CreditType
from coldreach_billing.credits.repository import CreditRepository
from coldreach_billing.exceptions import (
    ActionNotFoundError,
    CurrencyMismatchError,
    InvalidTransitionError,
    PlanChangeError,
    SubscriptionError,
    SubscriptionTerminalError,
)
from coldreach_billing.journal.journal import ActionJournal
from coldreach_billing.journal.models import ActionType, SubscriptionAction
from coldreach_billing.journal.repository import ActionRepository
from coldreach_billing.locking import SubscriptionLocks
from coldreach_billing.logging import log_audit_event
from coldreach_billing.proration.calculator import (
    ProrationCalculator,
    change_type_for,
    period_position,
)
from coldreach_billing.proration.models import ChangeType, ProrationPreview
from coldreach_billing.settings import get_settings
from coldreach_billing.subscriptions.models import (
    LifecycleResult,
    PlanChangeResult,
    Subscription,
    SubscriptionStatus,
    TrialConfiguration,
)
from coldreach_billing.subscriptions.repository import (
    InMemorySubscriptionRepository,
    SubscriptionRepository,
)
from coldreach_billing.subscriptions.state_machine import (
    LifecycleEvent,
    SubscriptionStateMachine,
    action_type_for,
)

logger = structlog.get_logger(__name__)


class SubscriptionOrchestrator:
    """Entry point for every subscription lifecycle, plan and credit mutation."""

    def __init__(
        self,
        plans: PlanCatalog,
        subscriptions: SubscriptionRepository | None = None,
        credits: CreditRepository | None = None,
        actions: ActionRepository | None = None,
        calculator: ProrationCalculator | None = None,
        state_machine: SubscriptionStateMachine | None = None,
        locks: SubscriptionLocks | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.plans = plans
        self.subscriptions = subscriptions or InMemorySubscriptionRepository()
        self.calculator = calculator or ProrationCalculator()
        self.state_machine = state_machine or SubscriptionStateMachine()
        self.locks = locks if locks is not None else SubscriptionLocks()
        self.journal = ActionJournal(actions, clock=clock)
        self.ledger = CreditLedger(self.subscriptions, credits, locks=self.locks, clock=clock)
        self._clock = clock

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def get_subscription(self, subscription_id: str) -> Subscription:
        return self.subscriptions.get(subscription_id)

    def _apply(
        self,
        action: SubscriptionAction,
        mutate: Callable[[], Subscription],
    ) -> LifecycleResult:
        """Append ``action``, save the mutated subscription, then complete the action."""
        self.journal.append(action)
        try:
            updated = self.subscriptions.save(mutate())
        except Exception as exc:
            self.journal.cancel(action.action_id, reason=f"{type(exc).__name__}: {exc}")
            raise
        completed = self.journal.complete(action.action_id)
        return LifecycleResult(subscription=updated, action=completed)

    def _audit(self, action: str, subscription: Subscription, **details: Any) -> None:
        log_audit_event(
            action,
            "billing",
            subscription_id=subscription.subscription_id,
            resource_type="subscription",
            resource_id=subscription.subscription_id,
            status=subscription.status.value,
            **details,
        )

    # =========================================================================
    # CREATION AND TRIALS
    # =========================================================================

    def create_subscription(
        self,
        organization_id: str,
        plan_id: str,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        trial: TrialConfiguration | None = None,
        processor_customer_id: str | None = None,
        processor_subscription_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Subscription:
        """
        Create a subscription, optionally starting with a trial.

        Trialing subscriptions get a period covering the trial; others start a
        full billing cycle immediately.

        Raises:
            PlanNotFoundError: unknown plan
            SubscriptionError: the trial requires a payment method and none is on file
        """
        plan = self.plans.get(plan_id)
        if not plan.active:
            raise SubscriptionError(
                f"Plan {plan_id} is not available for new subscriptions",
                context={"plan_id": plan_id},
            )
        if trial and trial.requires_payment_method and not processor_customer_id:
            raise SubscriptionError(
                "Trial requires a payment method on file",
                context={"plan_id": plan_id, "organization_id": organization_id},
                recovery_hint="Attach a payment processor customer before starting the trial",
            )

        now = self._now()
        fields: dict[str, Any] = {
            "organization_id": organization_id,
            "plan_id": plan.plan_id,
            "processor_customer_id": processor_customer_id,
            "processor_subscription_id": processor_subscription_id,
            "billing_cycle": billing_cycle,
            "monthly_price": plan.price_monthly,
            "yearly_price": plan.price_yearly,
            "currency": plan.currency,
            "created_at": now,
            "metadata": dict(metadata or {}),
        }
        if trial:
            trial_end = now + timedelta(days=trial.duration_days)
            fields.update(
                status=SubscriptionStatus.TRIALING,
                trial_start=now,
                trial_end=trial_end,
                current_period_start=now,
                current_period_end=trial_end,
            )
            fields["metadata"]["trial_auto_convert"] = trial.auto_convert_to_paid
        else:
            fields.update(
                status=SubscriptionStatus.ACTIVE,
                current_period_start=now,
                current_period_end=now + timedelta(days=BILLING_CYCLE_DAYS[billing_cycle]),
            )

        subscription = Subscription(**fields)

        with self.locks.hold(subscription.subscription_id):
            if trial:
                action = SubscriptionAction(
                    subscription_id=subscription.subscription_id,
                    action_type=ActionType.TRIAL_START,
                    effective_date=now,
                    metadata={"duration_days": trial.duration_days},
                    created_at=now,
                )
                subscription = self._apply(action, lambda: subscription).subscription
            else:
                subscription = self.subscriptions.save(subscription)

        logger.info(
            "Subscription created",
            subscription_id=subscription.subscription_id,
            organization_id=organization_id,
            plan_id=plan.plan_id,
            status=subscription.status.value,
            billing_cycle=billing_cycle.value,
        )
        self._audit("subscription.created", subscription, plan_id=plan.plan_id)
        return subscription

    def convert_trial(self, subscription_id: str, reason: str | None = None) -> LifecycleResult:
        """Convert a trial to a paid subscription once payment capture succeeded."""
        return self.request_transition(subscription_id, LifecycleEvent.CONVERT_TRIAL, reason=reason)

    def process_trial_end(self, subscription_id: str) -> LifecycleResult:
        """
        Settle a trial whose end date has passed.

        Converts the subscription when the trial was configured to auto-convert,
        cancels it otherwise.
        """
        subscription = self.subscriptions.get(subscription_id)
        now = self._now()
        if subscription.status != SubscriptionStatus.TRIALING:
            raise InvalidTransitionError(
                subscription.status.value, "trial_end", subscription_id=subscription_id
            )
        if subscription.trial_end is None or now < subscription.trial_end:
            raise InvalidTransitionError(
                subscription.status.value,
                "trial_end",
                reason="trial has not ended",
                subscription_id=subscription_id,
            )

        if subscription.metadata.get("trial_auto_convert", True):
            return self.convert_trial(subscription_id, reason="Trial ended")
        return self.request_cancel(subscription_id, reason="Trial ended without conversion")

    # =========================================================================
    # LIFECYCLE TRANSITIONS
    # =========================================================================

    def request_transition(
        self,
        subscription_id: str,
        event: LifecycleEvent,
        reason: str | None = None,
        scheduled_date: datetime | None = None,
    ) -> LifecycleResult:
        """
        Validate and execute a lifecycle event.

        A ``scheduled_date`` in the future records a pending action that
        ``apply_due_actions`` executes later; the event must be legal at the
        time it is scheduled.

        Raises:
            ActionInFlightError: another action is pending
            InvalidTransitionError: the state machine rejects the event
        """
        with self.locks.hold(subscription_id):
            subscription = self.subscriptions.get(subscription_id)
            self.journal.ensure_no_pending(subscription_id)
            now = self._now()
            self.state_machine.check(subscription, event, now)

            scheduled = ensure_utc(scheduled_date) if scheduled_date else None
            if scheduled is not None and scheduled <= now:
                scheduled = None
            action = SubscriptionAction(
                subscription_id=subscription_id,
                action_type=action_type_for(event),
                effective_date=scheduled or now,
                scheduled_date=scheduled,
                reason=reason,
                metadata={"event": event.value},
                created_at=now,
            )

            if scheduled is not None:
                pending = self.journal.append(action)
                logger.info(
                    "Subscription action scheduled",
                    subscription_id=subscription_id,
                    lifecycle_event=event.value,
                    scheduled_date=scheduled.isoformat(),
                )
                return LifecycleResult(subscription=subscription, action=pending)

            result = self._apply(
                action, lambda: self.state_machine.transition(subscription, event, now)
            )

        self._audit(f"subscription.{event.value}", result.subscription, reason=reason)
        return result

    def request_pause(
        self,
        subscription_id: str,
        reason: str | None = None,
        scheduled_date: datetime | None = None,
    ) -> LifecycleResult:
        """Pause an active subscription. Period dates are left as they are."""
        return self.request_transition(
            subscription_id, LifecycleEvent.PAUSE, reason=reason, scheduled_date=scheduled_date
        )

    def request_resume(
        self,
        subscription_id: str,
        reason: str | None = None,
        scheduled_date: datetime | None = None,
    ) -> LifecycleResult:
        """Resume a paused subscription."""
        return self.request_transition(
            subscription_id, LifecycleEvent.RESUME, reason=reason, scheduled_date=scheduled_date
        )

    def request_cancel(
        self,
        subscription_id: str,
        at_period_end: bool = False,
        reason: str | None = None,
    ) -> LifecycleResult:
        """
        Cancel a subscription now, or at the end of the current period.

        Cancelling at period end only sets ``cancel_at_period_end`` on an
        active subscription; the cancellation itself happens in
        ``process_period_end``. The journal records the request as a completed
        cancel action whose scheduled date is the period end.
        """
        if not at_period_end:
            return self.request_transition(subscription_id, LifecycleEvent.CANCEL, reason=reason)

        with self.locks.hold(subscription_id):
            subscription = self.subscriptions.get(subscription_id)
            self.journal.ensure_no_pending(subscription_id)

            if subscription.status != SubscriptionStatus.ACTIVE or subscription.cancel_at_period_end:
                logger.warning(
                    "Rejected cancel at period end",
                    subscription_id=subscription_id,
                    status=subscription.status.value,
                    cancel_at_period_end=subscription.cancel_at_period_end,
                )
                raise InvalidTransitionError(
                    subscription.status.value,
                    "cancel_at_period_end",
                    reason="only active subscriptions not already cancelling can be scheduled",
                    subscription_id=subscription_id,
                )

            now = self._now()
            action = SubscriptionAction(
                subscription_id=subscription_id,
                action_type=ActionType.CANCEL,
                effective_date=now,
                scheduled_date=subscription.current_period_end,
                reason=reason,
                metadata={"at_period_end": True},
                created_at=now,
            )
            result = self._apply(
                action, lambda: subscription.evolve(cancel_at_period_end=True, updated_at=now)
            )

        logger.info(
            "Subscription scheduled to cancel at period end",
            subscription_id=subscription_id,
            period_end=result.subscription.current_period_end.isoformat(),
        )
        self._audit("subscription.cancel_scheduled", result.subscription, reason=reason)
        return result

    def reactivate_subscription(self, subscription_id: str, reason: str | None = None) -> LifecycleResult:
        """
        Withdraw a scheduled period-end cancellation.

        Raises:
            InvalidTransitionError: the subscription is not active with
                ``cancel_at_period_end`` set
        """
        with self.locks.hold(subscription_id):
            subscription = self.subscriptions.get(subscription_id)
            self.journal.ensure_no_pending(subscription_id)

            if subscription.status != SubscriptionStatus.ACTIVE or not subscription.cancel_at_period_end:
                raise InvalidTransitionError(
                    subscription.status.value,
                    "reactivate",
                    reason="no cancellation is scheduled",
                    subscription_id=subscription_id,
                )

            now = self._now()
            action = SubscriptionAction(
                subscription_id=subscription_id,
                action_type=ActionType.RESUME,
                effective_date=now,
                reason=reason,
                metadata={"reactivated": True},
                created_at=now,
            )
            result = self._apply(
                action, lambda: subscription.evolve(cancel_at_period_end=False, updated_at=now)
            )

        self._audit("subscription.reactivated", result.subscription, reason=reason)
        return result

    def record_payment_failure(self, subscription_id: str, reason: str | None = None) -> LifecycleResult:
        """Invoicing reported a failed payment: active → past_due."""
        return self.request_transition(subscription_id, LifecycleEvent.PAYMENT_FAILED, reason=reason)

    def record_payment_success(self, subscription_id: str, reason: str | None = None) -> LifecycleResult:
        """Invoicing reported a successful retry: past_due → active."""
        return self.request_transition(
            subscription_id, LifecycleEvent.PAYMENT_SUCCEEDED, reason=reason
        )

    def expire_grace_period(self, subscription_id: str, reason: str | None = None) -> LifecycleResult:
        """The past_due grace period elapsed: past_due → canceled."""
        return self.request_transition(
            subscription_id, LifecycleEvent.GRACE_PERIOD_EXPIRED, reason=reason
        )

    # =========================================================================
    # SCHEDULED AND PENDING ACTIONS
    # =========================================================================

    def apply_due_actions(self, subscription_id: str) -> LifecycleResult | None:
        """
        Execute the subscription's pending scheduled action if it is due.

        Returns None when nothing is pending or the action is not due yet. If
        the state machine rejects the action it is cancelled and the error
        re-raised.
        """
        with self.locks.hold(subscription_id):
            pending = self.journal.pending_for(subscription_id)
            now = self._now()
            if pending is None or pending.scheduled_date is None or not pending.is_due(now):
                return None

            event = LifecycleEvent(pending.metadata["event"])
            subscription = self.subscriptions.get(subscription_id)
            try:
                updated = self.subscriptions.save(
                    self.state_machine.transition(subscription, event, now)
                )
            except Exception as exc:
                self.journal.cancel(pending.action_id, reason=f"{type(exc).__name__}: {exc}")
                raise
            completed = self.journal.complete(pending.action_id)

        self._audit(f"subscription.{event.value}", updated, action_id=completed.action_id)
        return LifecycleResult(subscription=updated, action=completed)

    def cancel_pending_action(self, subscription_id: str, reason: str | None = None) -> SubscriptionAction:
        """
        Abort the subscription's pending action before it takes effect.

        Raises:
            ActionNotFoundError: nothing is pending
        """
        with self.locks.hold(subscription_id):
            pending = self.journal.pending_for(subscription_id)
            if pending is None:
                raise ActionNotFoundError(f"Subscription {subscription_id} has no pending action")
            cancelled = self.journal.cancel(pending.action_id, reason=reason)

        logger.info(
            "Pending subscription action cancelled",
            subscription_id=subscription_id,
            action_id=cancelled.action_id,
            action_type=cancelled.action_type.value,
        )
        return cancelled

    def process_period_end(self, subscription_id: str) -> Subscription:
        """
        Close the current period if it has ended.

        Scheduled actions that have come due are applied first. Then a pending
        cancellation of an active subscription takes effect, a trial is settled
        or an active subscription rolls into its next period. Paused and
        past_due subscriptions keep their dates; a past_due subscription that
        was set to cancel ends through grace period expiry instead.
        """
        subscription = self.subscriptions.get(subscription_id)
        now = self._now()
        if now < subscription.current_period_end:
            return subscription

        if self.apply_due_actions(subscription_id) is not None:
            subscription = self.subscriptions.get(subscription_id)

        if subscription.cancel_at_period_end and subscription.status == SubscriptionStatus.ACTIVE:
            return self.request_transition(
                subscription_id, LifecycleEvent.PERIOD_END_CANCEL, reason="Period ended"
            ).subscription

        if subscription.status == SubscriptionStatus.TRIALING:
            return self.process_trial_end(subscription_id).subscription

        if subscription.status != SubscriptionStatus.ACTIVE:
            return subscription

        with self.locks.hold(subscription_id):
            subscription = self.subscriptions.get(subscription_id)
            # A scheduled action still waiting for its date survives the renewal.
            pending = self.journal.pending_for(subscription_id)
            if pending is not None and pending.scheduled_date is None:
                self.journal.ensure_no_pending(subscription_id)
            cycle = timedelta(days=BILLING_CYCLE_DAYS[subscription.billing_cycle])
            start = subscription.current_period_end
            while start + cycle <= now:
                start += cycle
            renewed = self.subscriptions.save(
                subscription.evolve(
                    current_period_start=start,
                    current_period_end=start + cycle,
                    updated_at=now,
                )
            )

        logger.info(
            "Subscription period renewed",
            subscription_id=subscription_id,
            period_start=renewed.current_period_start.isoformat(),
            period_end=renewed.current_period_end.isoformat(),
        )
        self._audit("subscription.renewed", renewed)
        return renewed

    def pending_action(self, subscription_id: str) -> SubscriptionAction | None:
        return self.journal.pending_for(subscription_id)

    def pending_action_age(self, subscription_id: str) -> timedelta | None:
        """Age of the pending action so callers can detect a stuck change."""
        return self.journal.pending_age(subscription_id, self._now())

    def stale_pending_actions(self, max_age: timedelta | None = None) -> list[SubscriptionAction]:
        """Pending actions older than ``max_age`` (defaults to the configured limit)."""
        if max_age is None:
            max_age = timedelta(seconds=get_settings().billing.pending_action_max_age_seconds)
        return self.journal.stale_pending(max_age, self._now())

    def history(self, subscription_id: str) -> list[SubscriptionAction]:
        return self.journal.history(subscription_id)

    # =========================================================================
    # PLAN CHANGES
    # =========================================================================

    def _build_preview(
        self, subscription: Subscription, new_plan: Plan, effective_date: datetime
    ) -> ProrationPreview:
        if new_plan.plan_id == subscription.plan_id:
            raise PlanChangeError(
                f"Subscription {subscription.subscription_id} is already on plan {new_plan.plan_id}",
                subscription_id=subscription.subscription_id,
                plan_id=new_plan.plan_id,
            )
        if new_plan.currency != subscription.currency:
            raise CurrencyMismatchError(subscription.currency, new_plan.currency, new_plan.plan_id)

        days_remaining, total_days = period_position(
            subscription.current_period_start, subscription.current_period_end, effective_date
        )
        old_amount = subscription.current_price
        new_amount = new_plan.price_for(subscription.billing_cycle)
        result = self.calculator.prorate(
            old_amount, new_amount, days_remaining, total_days, subscription.currency
        )

        return ProrationPreview(
            subscription_id=subscription.subscription_id,
            current_plan_id=subscription.plan_id,
            new_plan_id=new_plan.plan_id,
            change_type=change_type_for(old_amount, new_amount),
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            effective_date=effective_date,
            days_remaining=days_remaining,
            total_days=total_days,
            current_plan_amount=old_amount,
            new_plan_amount=new_amount,
            proration_amount=result.proration_amount,
            is_credit=result.is_credit,
            next_invoice_amount=result.next_invoice_amount,
            currency=result.currency,
        )

    def preview_plan_change(
        self,
        subscription_id: str,
        new_plan_id: str,
        effective_date: datetime | None = None,
    ) -> ProrationPreview:
        """
        Compute the proration for a plan change without applying it.

        Either a complete preview is returned or an error is raised; there is
        no partial result.
        """
        subscription = self.subscriptions.get(subscription_id)
        if subscription.is_canceled:
            raise SubscriptionTerminalError(subscription_id)
        new_plan = self.plans.get(new_plan_id)
        effective = ensure_utc(effective_date) if effective_date else self._now()
        return self._build_preview(subscription, new_plan, effective)

    def request_plan_change(
        self,
        subscription_id: str,
        new_plan_id: str,
        effective_date: datetime | None = None,
        reason: str | None = None,
        invoice_id: str | None = None,
    ) -> PlanChangeResult:
        """
        Switch a subscription to another plan with proration and credit offset.

        Steps: in-flight check, terminal check, proration over the remaining
        days of the period, pending upgrade/downgrade action, new plan and
        prices saved (period dates unchanged), active credits debited against
        the next invoice (soonest expiry first, then oldest), action completed.

        Raises:
            ActionInFlightError: another action is pending
            SubscriptionTerminalError: the subscription is canceled
            PlanNotFoundError: unknown plan
            PlanChangeError: the subscription is already on that plan
            CurrencyMismatchError: the plan is priced in another currency
            InvalidProrationInputError: effective date before the period start
        """
        with self.locks.hold(subscription_id):
            subscription = self.subscriptions.get(subscription_id)
            self.journal.ensure_no_pending(subscription_id)
            if subscription.is_canceled:
                logger.warning("Rejected plan change on canceled subscription", subscription_id=subscription_id)
                raise SubscriptionTerminalError(subscription_id)

            new_plan = self.plans.get(new_plan_id)
            now = self._now()
            effective = ensure_utc(effective_date) if effective_date else now
            preview = self._build_preview(subscription, new_plan, effective)

            action_type = (
                ActionType.UPGRADE if preview.change_type == ChangeType.UPGRADE else ActionType.DOWNGRADE
            )
            action = self.journal.append(
                SubscriptionAction(
                    subscription_id=subscription_id,
                    action_type=action_type,
                    effective_date=effective,
                    old_plan_id=subscription.plan_id,
                    new_plan_id=new_plan.plan_id,
                    proration_amount=preview.proration_amount,
                    is_credit=preview.is_credit,
                    currency=preview.currency,
                    reason=reason,
                    metadata={"next_invoice_amount": str(preview.next_invoice_amount)},
                    created_at=now,
                )
            )

            try:
                updated = self.subscriptions.save(
                    subscription.evolve(
                        plan_id=new_plan.plan_id,
                        monthly_price=new_plan.price_monthly,
                        yearly_price=new_plan.price_yearly,
                        updated_at=now,
                    )
                )
            except Exception as exc:
                self.journal.cancel(action.action_id, reason=f"{type(exc).__name__}: {exc}")
                raise

            # Credits are consumed only after the plan change is recorded; a
            # failure here leaves the action pending for the caller to recover.
            debited = self.ledger.consume(subscription_id, preview.next_invoice_amount, invoice_id)
            credits_applied = sum((credit.applications[-1].amount for credit in debited), Decimal(0))
            completed = self.journal.complete(action.action_id)

        amount_due = preview.next_invoice_amount - credits_applied
        logger.info(
            "Subscription plan changed",
            subscription_id=subscription_id,
            change_type=preview.change_type.value,
            old_plan_id=subscription.plan_id,
            new_plan_id=new_plan.plan_id,
            proration_amount=str(preview.proration_amount),
            is_credit=preview.is_credit,
            next_invoice_amount=str(preview.next_invoice_amount),
            credits_applied=str(credits_applied),
            amount_due=str(amount_due),
        )
        self._audit(
            f"subscription.{action_type.value}",
            updated,
            old_plan_id=subscription.plan_id,
            new_plan_id=new_plan.plan_id,
            proration_amount=str(preview.proration_amount),
        )
        return PlanChangeResult(
            subscription=updated,
            action=completed,
            proration=preview,
            credits_applied=credits_applied,
            debited_credits=tuple(debited),
            amount_due=amount_due,
        )

    # =========================================================================
    # CREDITS
    # =========================================================================

    def issue_credit(
        self,
        subscription_id: str,
        amount: Decimal | int | str,
        currency: str,
        credit_type: CreditType = CreditType.ADJUSTMENT,
        expires_at: datetime | None = None,
        description: str = "",
    ) -> tuple[Credit, SubscriptionAction]:
        """
        Issue a credit and journal it as a ``credit_added`` action.

        Canceled subscriptions may still receive credits; this is how a
        completed change is compensated.
        """
        with self.locks.hold(subscription_id):
            self.subscriptions.get(subscription_id)
            now = self._now()
            action = self.journal.append(
                SubscriptionAction(
                    subscription_id=subscription_id,
                    action_type=ActionType.CREDIT_ADDED,
                    effective_date=now,
                    reason=description or None,
                    metadata={"amount": str(amount), "credit_type": credit_type.value},
                    created_at=now,
                )
            )
            try:
                credit = self.ledger.issue(
                    subscription_id,
                    amount,
                    currency,
                    credit_type=credit_type,
                    expires_at=expires_at,
                    description=description,
                )
            except Exception as exc:
                self.journal.cancel(action.action_id, reason=f"{type(exc).__name__}: {exc}")
                raise
            completed = self.journal.complete(action.action_id)

        return credit, completed
