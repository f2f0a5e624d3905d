"""
Billing core exceptions.

Custom exceptions for subscription lifecycle, proration, credit ledger and
action journal operations. Every error carries a machine-readable code,
an HTTP-style status code, context about the failing entity and a recovery
hint for the caller.
"""

from decimal import Decimal
from typing import Any


class BillingError(Exception):
    """
    Base billing core error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "BILLING_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


# ============================================================================
# Subscription errors
# ============================================================================


class SubscriptionError(BillingError):
    """Subscription-related errors."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message,
            "SUBSCRIPTION_ERROR",
            status_code=400,
            context=context,
            recovery_hint=recovery_hint,
        )


class SubscriptionNotFoundError(SubscriptionError):
    """Subscription not found error."""

    def __init__(self, message: str, subscription_id: str | None = None) -> None:
        context = {}
        if subscription_id:
            context["subscription_id"] = subscription_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Verify the subscription ID and ensure it exists",
        )
        self.error_code = "SUBSCRIPTION_NOT_FOUND"
        self.status_code = 404


class SubscriptionStateError(SubscriptionError):
    """Invalid subscription state transition error."""

    def __init__(self, message: str, current_state: str, requested_state: str) -> None:
        super().__init__(
            message,
            context={"current_state": current_state, "requested_state": requested_state},
            recovery_hint=f"Cannot transition from {current_state} to {requested_state}. Check subscription status first.",
        )
        self.error_code = "INVALID_SUBSCRIPTION_STATE"
        self.status_code = 409


class InvalidTransitionError(SubscriptionStateError):
    """A lifecycle transition that the state table does not allow."""

    def __init__(
        self,
        current_state: str,
        requested_transition: str,
        reason: str | None = None,
        subscription_id: str | None = None,
    ) -> None:
        message = f"Transition '{requested_transition}' is not allowed from status '{current_state}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, current_state=current_state, requested_state=requested_transition)
        self.current_state = current_state
        self.requested_transition = requested_transition
        self.context["requested_transition"] = requested_transition
        if subscription_id:
            self.context["subscription_id"] = subscription_id
        self.error_code = "INVALID_TRANSITION"


class SubscriptionTerminalError(SubscriptionError):
    """The subscription is canceled and accepts no further changes."""

    def __init__(self, subscription_id: str) -> None:
        super().__init__(
            f"Subscription {subscription_id} is canceled",
            context={"subscription_id": subscription_id},
            recovery_hint="Create a new subscription instead of modifying a canceled one",
        )
        self.error_code = "SUBSCRIPTION_TERMINAL"
        self.status_code = 409


class PlanNotFoundError(SubscriptionError):
    """Subscription plan not found error."""

    def __init__(self, message: str, plan_id: str | None = None) -> None:
        context = {}
        if plan_id:
            context["plan_id"] = plan_id

        super().__init__(
            message,
            context=context,
            recovery_hint="Verify the plan ID and ensure it exists and is active",
        )
        self.error_code = "PLAN_NOT_FOUND"
        self.status_code = 404


class PlanChangeError(SubscriptionError):
    """A plan change request that cannot be applied."""

    def __init__(self, message: str, subscription_id: str, plan_id: str) -> None:
        super().__init__(
            message,
            context={"subscription_id": subscription_id, "plan_id": plan_id},
            recovery_hint="Choose a different plan than the one currently held",
        )
        self.error_code = "PLAN_CHANGE_ERROR"


# ============================================================================
# Pricing errors
# ============================================================================


class PricingError(BillingError):
    """Pricing-related errors."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, "PRICING_ERROR", status_code=400, context=context, recovery_hint=recovery_hint
        )


class InvalidProrationInputError(PricingError):
    """Proration inputs outside their allowed ranges."""

    def __init__(self, message: str, **inputs: Any) -> None:
        super().__init__(
            message,
            context={key: str(value) for key, value in inputs.items()},
            recovery_hint="Pass non-negative amounts and 0 <= days_remaining <= total_days with total_days > 0",
        )
        self.error_code = "INVALID_PRORATION_INPUT"
        self.status_code = 422


class CurrencyMismatchError(PricingError):
    """Two amounts or entities that must share a currency do not."""

    def __init__(self, expected: str, actual: str, entity_id: str | None = None) -> None:
        context = {"expected_currency": expected, "actual_currency": actual}
        if entity_id:
            context["entity_id"] = entity_id

        super().__init__(
            f"Currency mismatch: expected {expected}, got {actual}",
            context=context,
            recovery_hint="Use the subscription's currency for credits and plan changes",
        )
        self.error_code = "CURRENCY_MISMATCH"
        self.status_code = 422


# ============================================================================
# Credit errors
# ============================================================================


class CreditError(BillingError):
    """Account credit errors."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, "CREDIT_ERROR", status_code=400, context=context, recovery_hint=recovery_hint
        )


class CreditNotFoundError(CreditError):
    """Credit not found error."""

    def __init__(self, message: str, credit_id: str | None = None) -> None:
        context = {}
        if credit_id:
            context["credit_id"] = credit_id

        super().__init__(
            message, context=context, recovery_hint="Verify the credit ID and ensure it exists"
        )
        self.error_code = "CREDIT_NOT_FOUND"
        self.status_code = 404


class InvalidCreditAmountError(CreditError):
    """Credit amounts must be strictly positive."""

    def __init__(self, amount: Decimal | str, credit_id: str | None = None) -> None:
        context: dict[str, Any] = {"amount": str(amount)}
        if credit_id:
            context["credit_id"] = credit_id

        super().__init__(
            f"Credit amount must be positive, got {amount}",
            context=context,
            recovery_hint="Pass an amount greater than zero",
        )
        self.error_code = "INVALID_CREDIT_AMOUNT"
        self.status_code = 422


class OverdraftError(CreditError):
    """Debit larger than the credit's remaining amount."""

    def __init__(self, credit_id: str, requested: Decimal, remaining: Decimal) -> None:
        super().__init__(
            f"Cannot debit {requested} from credit {credit_id}: only {remaining} remaining",
            context={
                "credit_id": credit_id,
                "requested_amount": str(requested),
                "remaining_amount": str(remaining),
            },
            recovery_hint="Debit at most the remaining amount or split the charge across credits",
        )
        self.error_code = "CREDIT_OVERDRAFT"
        self.requested = requested
        self.remaining = remaining


class CreditNotUsableError(CreditError):
    """Credit is not in the active status."""

    def __init__(self, credit_id: str, status: str) -> None:
        super().__init__(
            f"Credit {credit_id} is {status} and cannot be used",
            context={"credit_id": credit_id, "status": status},
            recovery_hint="Only active credits can be debited or cancelled",
        )
        self.error_code = "CREDIT_NOT_USABLE"
        self.status_code = 409


class CreditExpiredError(CreditNotUsableError):
    """Credit expired before it could be debited."""

    def __init__(self, credit_id: str, expires_at: str) -> None:
        super().__init__(credit_id, "expired")
        self.context["expires_at"] = expires_at
        self.recovery_hint = "Expired credits cannot be debited regardless of remaining balance"
        self.error_code = "CREDIT_EXPIRED"


# ============================================================================
# Journal errors
# ============================================================================


class JournalError(BillingError):
    """Subscription action journal errors."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, "JOURNAL_ERROR", status_code=400, context=context, recovery_hint=recovery_hint
        )


class ActionInFlightError(JournalError):
    """Another action is still pending for the subscription."""

    def __init__(self, subscription_id: str, pending_action_id: str, pending_type: str) -> None:
        super().__init__(
            f"Subscription {subscription_id} already has a pending {pending_type} action",
            context={
                "subscription_id": subscription_id,
                "pending_action_id": pending_action_id,
                "pending_action_type": pending_type,
            },
            recovery_hint="Wait for the pending change to complete or cancel it first",
        )
        self.error_code = "ACTION_IN_FLIGHT"
        self.status_code = 409
        self.pending_action_id = pending_action_id


class ActionNotFoundError(JournalError):
    """Journal entry not found."""

    def __init__(self, message: str, action_id: str | None = None) -> None:
        context = {}
        if action_id:
            context["action_id"] = action_id

        super().__init__(
            message, context=context, recovery_hint="Verify the action ID and ensure it exists"
        )
        self.error_code = "ACTION_NOT_FOUND"
        self.status_code = 404


class ActionNotPendingError(JournalError):
    """Completed and cancelled actions are immutable."""

    def __init__(self, action_id: str, status: str) -> None:
        super().__init__(
            f"Action {action_id} is already {status}",
            context={"action_id": action_id, "status": status},
            recovery_hint="Append a compensating action instead of editing a finalized one",
        )
        self.error_code = "ACTION_NOT_PENDING"
        self.status_code = 409


__all__ = [
    "BillingError",
    "SubscriptionError",
    "SubscriptionNotFoundError",
    "SubscriptionStateError",
    "InvalidTransitionError",
    "SubscriptionTerminalError",
    "PlanNotFoundError",
    "PlanChangeError",
    "PricingError",
    "InvalidProrationInputError",
    "CurrencyMismatchError",
    "CreditError",
    "CreditNotFoundError",
    "InvalidCreditAmountError",
    "OverdraftError",
    "CreditNotUsableError",
    "CreditExpiredError",
    "JournalError",
    "ActionInFlightError",
    "ActionNotFoundError",
    "ActionNotPendingError",
]
