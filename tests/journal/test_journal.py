"""Tests for the subscription action journal."""

from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from coldreach_billing.exceptions import (
    ActionInFlightError,
    ActionNotFoundError,
    ActionNotPendingError,
)
from coldreach_billing.journal import ActionStatus, ActionType, SubscriptionAction


def make_action(clock, subscription_id="sub_test", action_type=ActionType.PAUSE, **kwargs):
    return SubscriptionAction(
        subscription_id=subscription_id,
        action_type=action_type,
        effective_date=clock(),
        created_at=clock(),
        **kwargs,
    )


@pytest.mark.unit
class TestSubscriptionAction:
    """Test the journal entry model."""

    def test_defaults_to_pending(self, clock):
        """Test new actions start pending."""
        action = make_action(clock)

        assert action.status == ActionStatus.PENDING
        assert action.is_pending
        assert action.action_id.startswith("act_")

    def test_plan_change_requires_plans(self, clock):
        """Test plan change actions need both plan ids."""
        with pytest.raises(ValidationError):
            make_action(clock, action_type=ActionType.UPGRADE)

    def test_plan_fields_only_on_plan_changes(self, clock):
        """Test other actions carry no plan fields."""
        with pytest.raises(ValidationError):
            make_action(clock, action_type=ActionType.PAUSE, old_plan_id="a", new_plan_id="b")

    def test_negative_proration_rejected(self, clock):
        """Test negative proration amounts are rejected."""
        with pytest.raises(ValidationError):
            make_action(
                clock,
                action_type=ActionType.DOWNGRADE,
                old_plan_id="a",
                new_plan_id="b",
                proration_amount=Decimal("-1"),
            )

    def test_scheduled_action_due_and_age(self, clock):
        """Test due check and age of a scheduled action."""
        action = make_action(clock, scheduled_date=clock() + timedelta(days=2))

        assert not action.is_due(clock())
        assert action.age(clock()) == timedelta(days=-2)
        assert action.is_due(clock() + timedelta(days=2))
        assert action.age(clock() + timedelta(days=3)) == timedelta(days=1)


@pytest.mark.unit
class TestActionJournal:
    """Test journal transitions."""

    def test_append_and_complete(self, journal, clock):
        """Test appending then completing an action."""
        action = journal.append(make_action(clock))
        assert journal.pending_for("sub_test") == action

        clock.advance(seconds=5)
        completed = journal.complete(action.action_id)

        assert completed.status == ActionStatus.COMPLETED
        assert completed.completed_at == clock()
        assert journal.pending_for("sub_test") is None

    def test_single_pending_per_subscription(self, journal, clock):
        """Test a second pending action raises error."""
        first = journal.append(make_action(clock))

        with pytest.raises(ActionInFlightError) as exc_info:
            journal.append(make_action(clock, action_type=ActionType.CANCEL))

        assert exc_info.value.pending_action_id == first.action_id
        pending = [a for a in journal.history("sub_test") if a.is_pending]
        assert pending == [first]

    def test_other_subscriptions_are_independent(self, journal, clock):
        """Test pending actions do not block other subscriptions."""
        journal.append(make_action(clock))

        other = journal.append(make_action(clock, subscription_id="sub_other"))

        assert other.is_pending

    def test_cancel_records_reason(self, journal, clock):
        """Test cancelling an action keeps the reason."""
        action = journal.append(make_action(clock))

        cancelled = journal.cancel(action.action_id, reason="superseded")

        assert cancelled.status == ActionStatus.CANCELLED
        assert cancelled.cancelled_at == clock()
        assert cancelled.metadata["cancellation_reason"] == "superseded"

    def test_finalized_actions_are_immutable(self, journal, clock):
        """Test finalized actions cannot change status."""
        action = journal.append(make_action(clock))
        journal.complete(action.action_id)

        with pytest.raises(ActionNotPendingError):
            journal.complete(action.action_id)
        with pytest.raises(ActionNotPendingError):
            journal.cancel(action.action_id)

    def test_append_requires_pending(self, journal, clock):
        """Test only pending actions can be appended."""
        with pytest.raises(ActionNotPendingError):
            journal.append(make_action(clock, status=ActionStatus.COMPLETED))

    def test_unknown_action(self, journal):
        """Test unknown action ids raise error."""
        with pytest.raises(ActionNotFoundError):
            journal.complete("act_missing")

    def test_history_oldest_first(self, journal, clock):
        """Test history ordering."""
        first = journal.append(make_action(clock))
        journal.complete(first.action_id)
        clock.advance(minutes=1)
        second = journal.append(make_action(clock, action_type=ActionType.RESUME))

        assert [a.action_id for a in journal.history("sub_test")] == [
            first.action_id,
            second.action_id,
        ]

    def test_pending_age(self, journal, clock):
        """Test age of the pending action."""
        assert journal.pending_age("sub_test") is None

        journal.append(make_action(clock))
        clock.advance(minutes=10)

        assert journal.pending_age("sub_test") == timedelta(minutes=10)

    def test_stale_pending(self, journal, clock):
        """Test detection of stale pending actions."""
        old = journal.append(make_action(clock))
        clock.advance(hours=2)
        journal.append(make_action(clock, subscription_id="sub_fresh"))
        journal.append(
            make_action(
                clock, subscription_id="sub_scheduled", scheduled_date=clock() + timedelta(days=1)
            )
        )

        assert journal.stale_pending(timedelta(hours=1)) == [old]
