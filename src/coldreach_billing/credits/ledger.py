"""
Account credit ledger.

Tracks issuance and consumption of credits against invoices. Credits may be
split across several invoices; each debit is recorded as a
``CreditApplication`` and ``applied_to_invoice`` names the invoice whose
debit brought the remaining amount to zero.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from coldreach_billing.clock import Clock, ensure_utc, utcnow
from coldreach_billing.credits.models import (
    Credit,
    CreditApplication,
    CreditStatus,
    CreditSummary,
    CreditType,
)
from coldreach_billing.credits.repository import CreditRepository, InMemoryCreditRepository
from coldreach_billing.exceptions import (
    CreditExpiredError,
    CreditNotUsableError,
    CurrencyMismatchError,
    InvalidCreditAmountError,
    OverdraftError,
)
from coldreach_billing.locking import SubscriptionLocks
from coldreach_billing.logging import log_audit_event
from coldreach_billing.money_utils import to_decimal

if TYPE_CHECKING:
    from coldreach_billing.subscriptions.repository import SubscriptionRepository

logger = structlog.get_logger(__name__)


def _positive_amount(amount: int | Decimal | str, credit_id: str | None = None) -> Decimal:
    try:
        value = to_decimal(amount)
    except ArithmeticError:
        raise InvalidCreditAmountError(amount, credit_id=credit_id)
    if not value.is_finite() or value <= 0:
        raise InvalidCreditAmountError(value, credit_id=credit_id)
    return value


class CreditLedger:
    """Issues, debits, expires and cancels account credits."""

    def __init__(
        self,
        subscriptions: "SubscriptionRepository",
        credits: CreditRepository | None = None,
        locks: SubscriptionLocks | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.subscriptions = subscriptions
        self.credits = credits or InMemoryCreditRepository()
        self.locks = locks if locks is not None else SubscriptionLocks()
        self._clock = clock

    # =========================================================================
    # ISSUANCE
    # =========================================================================

    def issue(
        self,
        subscription_id: str,
        amount: int | Decimal | str,
        currency: str,
        credit_type: CreditType = CreditType.ADJUSTMENT,
        expires_at: datetime | None = None,
        description: str = "",
    ) -> Credit:
        """
        Issue a new active credit to a subscription.

        Raises:
            InvalidCreditAmountError: amount is not strictly positive
            CurrencyMismatchError: currency differs from the subscription's
            SubscriptionNotFoundError: unknown subscription
        """
        value = _positive_amount(amount)

        with self.locks.hold(subscription_id):
            subscription = self.subscriptions.get(subscription_id)
            if currency.upper() != subscription.currency:
                logger.warning(
                    "Rejected credit with foreign currency",
                    subscription_id=subscription_id,
                    expected_currency=subscription.currency,
                    currency=currency,
                )
                raise CurrencyMismatchError(subscription.currency, currency.upper(), subscription_id)

            credit = Credit(
                subscription_id=subscription_id,
                amount=value,
                currency=subscription.currency,
                credit_type=credit_type,
                description=description,
                expires_at=expires_at,
                created_at=self._clock(),
            )
            self.credits.save(credit)

        logger.info(
            "Credit issued",
            credit_id=credit.credit_id,
            subscription_id=subscription_id,
            amount=str(value),
            currency=credit.currency,
            credit_type=credit_type.value,
            expires_at=expires_at.isoformat() if expires_at else None,
        )
        log_audit_event(
            "credit.issued",
            "billing",
            subscription_id=subscription_id,
            resource_type="credit",
            resource_id=credit.credit_id,
            amount=str(value),
            currency=credit.currency,
        )
        return credit

    # =========================================================================
    # CONSUMPTION
    # =========================================================================

    def debit(
        self,
        credit_id: str,
        amount: int | Decimal | str,
        invoice_id: str | None = None,
    ) -> Credit:
        """
        Consume part or all of a credit.

        Status is recomputed before the attempt, so an expired credit is
        refused even when it still has a remaining balance.

        Raises:
            InvalidCreditAmountError: amount is not strictly positive
            CreditExpiredError: the credit's expiry has passed
            CreditNotUsableError: the credit was cancelled
            OverdraftError: amount exceeds the remaining amount
        """
        value = _positive_amount(amount, credit_id)
        subscription_id = self.credits.get(credit_id).subscription_id

        with self.locks.hold(subscription_id):
            credit = self.credits.get(credit_id)
            now = self._clock()
            status = credit.status_at(now)

            if status == CreditStatus.EXPIRED:
                logger.warning("Rejected debit of expired credit", credit_id=credit_id)
                raise CreditExpiredError(credit_id, credit.expires_at.isoformat())
            if status == CreditStatus.CANCELLED:
                logger.warning("Rejected debit of cancelled credit", credit_id=credit_id)
                raise CreditNotUsableError(credit_id, status.value)
            if value > credit.remaining_amount:
                logger.warning(
                    "Rejected credit overdraft",
                    credit_id=credit_id,
                    requested=str(value),
                    remaining=str(credit.remaining_amount),
                )
                raise OverdraftError(credit_id, value, credit.remaining_amount)

            used_amount = credit.used_amount + value
            applied_to_invoice = credit.applied_to_invoice
            if used_amount == credit.amount and applied_to_invoice is None:
                applied_to_invoice = invoice_id

            updated = Credit.model_validate(
                {
                    **credit.model_dump(),
                    "used_amount": used_amount,
                    "applications": (
                        *credit.applications,
                        CreditApplication(amount=value, invoice_id=invoice_id, applied_at=now),
                    ),
                    "applied_to_invoice": applied_to_invoice,
                }
            )
            self.credits.save(updated)

        logger.info(
            "Credit debited",
            credit_id=credit_id,
            subscription_id=subscription_id,
            amount=str(value),
            remaining=str(updated.remaining_amount),
            invoice_id=invoice_id,
        )
        log_audit_event(
            "credit.debited",
            "billing",
            subscription_id=subscription_id,
            resource_type="credit",
            resource_id=credit_id,
            amount=str(value),
            invoice_id=invoice_id,
        )
        return updated

    def usable_credits(self, subscription_id: str, now: datetime | None = None) -> list[Credit]:
        """Active credits in consumption order: soonest expiry first, then oldest."""
        now = ensure_utc(now) if now else self._clock()
        active = [
            credit
            for credit in self.credits.list_for_subscription(subscription_id)
            if credit.status_at(now) == CreditStatus.ACTIVE
        ]
        return sorted(
            active,
            key=lambda c: (c.expires_at is None, c.expires_at or c.created_at, c.created_at),
        )

    def remaining_balance(self, subscription_id: str, now: datetime | None = None) -> Decimal:
        """Sum of remaining amounts over the subscription's active credits."""
        return sum(
            (credit.remaining_amount for credit in self.usable_credits(subscription_id, now)),
            Decimal(0),
        )

    def consume(
        self,
        subscription_id: str,
        amount: int | Decimal | str,
        invoice_id: str | None = None,
    ) -> list[Credit]:
        """
        Offset up to ``amount`` against the subscription's credits.

        Debits min(amount, remaining balance) spread over the usable credits in
        consumption order and returns the debited credits.
        """
        try:
            requested = to_decimal(amount)
        except ArithmeticError:
            raise InvalidCreditAmountError(amount)
        debited: list[Credit] = []
        if requested <= 0:
            return debited

        with self.locks.hold(subscription_id):
            outstanding = min(requested, self.remaining_balance(subscription_id))
            for credit in self.usable_credits(subscription_id):
                if outstanding <= 0:
                    break
                portion = min(credit.remaining_amount, outstanding)
                debited.append(self.debit(credit.credit_id, portion, invoice_id))
                outstanding -= portion

        return debited

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def cancel(self, credit_id: str, reason: str | None = None) -> Credit:
        """
        Administratively cancel an active credit.

        Raises:
            CreditNotUsableError: the credit is already used, expired or cancelled
        """
        subscription_id = self.credits.get(credit_id).subscription_id

        with self.locks.hold(subscription_id):
            credit = self.credits.get(credit_id)
            now = self._clock()
            status = credit.status_at(now)
            if status != CreditStatus.ACTIVE:
                raise CreditNotUsableError(credit_id, status.value)

            updated = Credit.model_validate(
                {**credit.model_dump(), "cancelled_at": now, "cancellation_reason": reason}
            )
            self.credits.save(updated)

        logger.info("Credit cancelled", credit_id=credit_id, reason=reason)
        log_audit_event(
            "credit.cancelled",
            "billing",
            subscription_id=subscription_id,
            resource_type="credit",
            resource_id=credit_id,
            reason=reason,
        )
        return updated

    def get(self, credit_id: str) -> Credit:
        return self.credits.get(credit_id)

    def list_credits(self, subscription_id: str) -> list[Credit]:
        """All credits of the subscription, oldest first."""
        return sorted(self.credits.list_for_subscription(subscription_id), key=lambda c: c.created_at)

    def summary(self, subscription_id: str, now: datetime | None = None) -> CreditSummary:
        """Issued, used, remaining and expired totals for a subscription."""
        now = ensure_utc(now) if now else self._clock()
        credits = self.credits.list_for_subscription(subscription_id)

        total_remaining = Decimal(0)
        total_expired = Decimal(0)
        active_count = 0
        for credit in credits:
            status = credit.status_at(now)
            if status == CreditStatus.ACTIVE:
                total_remaining += credit.remaining_amount
                active_count += 1
            elif status == CreditStatus.EXPIRED:
                total_expired += credit.remaining_amount

        return CreditSummary(
            subscription_id=subscription_id,
            currency=credits[0].currency if credits else None,
            total_issued=sum((c.amount for c in credits), Decimal(0)),
            total_used=sum((c.used_amount for c in credits), Decimal(0)),
            total_remaining=total_remaining,
            total_expired=total_expired,
            active_count=active_count,
        )
