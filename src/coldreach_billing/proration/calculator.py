"""
Proration calculator.

Pure and deterministic: no I/O, no clock. Intermediate values are kept at
full Decimal precision and only the outputs are rounded, half-even, to the
currency's minor unit.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal, localcontext

from coldreach_billing.clock import ensure_utc
from coldreach_billing.exceptions import InvalidProrationInputError
from coldreach_billing.money_utils import MoneyHandler, money_handler, to_decimal
from coldreach_billing.proration.models import ChangeType, ProrationResult

_ONE_DAY = timedelta(days=1)

# Enough digits that a daily rate multiplied back by the full period lands
# within rounding distance of the original price.
_WORKING_PRECISION = 50

Amount = int | Decimal | str


def _validated_amount(name: str, value: Amount) -> Decimal:
    if isinstance(value, float | bool):
        raise InvalidProrationInputError(f"{name} must be a Decimal, int or str", **{name: value})
    try:
        amount = to_decimal(value)
    except ArithmeticError:
        raise InvalidProrationInputError(f"{name} is not a number", **{name: value})
    if not amount.is_finite() or amount < 0:
        raise InvalidProrationInputError(f"{name} must be a finite non-negative amount", **{name: value})
    return amount


def _validated_days(days_remaining: int, total_days: int) -> None:
    for name, value in (("days_remaining", days_remaining), ("total_days", total_days)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidProrationInputError(f"{name} must be a whole number of days", **{name: value})
    if total_days <= 0:
        raise InvalidProrationInputError("total_days must be positive", total_days=total_days)
    if not 0 <= days_remaining <= total_days:
        raise InvalidProrationInputError(
            "days_remaining must be between 0 and total_days",
            days_remaining=days_remaining,
            total_days=total_days,
        )


def change_type_for(old_amount: Amount, new_amount: Amount) -> ChangeType:
    """Upgrade when the new price is strictly higher, otherwise downgrade."""
    return ChangeType.UPGRADE if to_decimal(new_amount) > to_decimal(old_amount) else ChangeType.DOWNGRADE


def period_position(
    period_start: datetime, period_end: datetime, effective_date: datetime
) -> tuple[int, int]:
    """
    Locate ``effective_date`` inside a billing period.

    Returns:
        (days_remaining, total_days), both rounded up to whole days.
        days_remaining is 0 once the period has ended.

    Raises:
        InvalidProrationInputError: Empty period or effective date before it starts
    """
    start = ensure_utc(period_start)
    end = ensure_utc(period_end)
    effective = ensure_utc(effective_date)

    if end <= start:
        raise InvalidProrationInputError(
            "period_end must be after period_start", period_start=start, period_end=end
        )
    if effective < start:
        raise InvalidProrationInputError(
            "effective_date is before the current period",
            effective_date=effective,
            period_start=start,
        )

    total_days = math.ceil((end - start) / _ONE_DAY)
    if effective >= end:
        return 0, total_days
    days_remaining = min(math.ceil((end - effective) / _ONE_DAY), total_days)
    return days_remaining, total_days


class ProrationCalculator:
    """Computes plan-change adjustments for the remaining part of a period."""

    def __init__(self, handler: MoneyHandler | None = None) -> None:
        self.money = handler or money_handler

    def prorate(
        self,
        old_amount: Amount,
        new_amount: Amount,
        days_remaining: int,
        total_days: int,
        currency: str = "EUR",
    ) -> ProrationResult:
        """
        Calculate the adjustment for switching from ``old_amount`` to ``new_amount``.

        Args:
            old_amount: Current plan price for the full period
            new_amount: New plan price for the full period
            days_remaining: Days left in the period at the switch
            total_days: Length of the period in days
            currency: ISO 4217 code that decides the rounding precision

        Returns:
            ProrationResult with a non-negative amount and its direction

        Raises:
            InvalidProrationInputError: Any input outside its allowed range
        """
        old = _validated_amount("old_amount", old_amount)
        new = _validated_amount("new_amount", new_amount)
        _validated_days(days_remaining, total_days)
        try:
            currency = self.money.validate_currency(currency).code
        except ValueError:
            raise InvalidProrationInputError("Unknown currency", currency=currency)

        with localcontext() as ctx:
            ctx.prec = _WORKING_PRECISION
            daily_old = old / total_days
            daily_new = new / total_days
            unused_old = daily_old * days_remaining
            cost_new = daily_new * days_remaining
            delta = cost_new - unused_old

        is_credit = delta < 0
        proration_amount = self.money.round_amount(-delta if is_credit else delta, currency)
        if proration_amount == 0:
            is_credit = False

        if is_credit:
            next_invoice = max(Decimal(0), new - proration_amount)
        else:
            next_invoice = new + proration_amount

        return ProrationResult(
            proration_amount=proration_amount,
            is_credit=is_credit,
            next_invoice_amount=self.money.round_amount(next_invoice, currency),
            unused_old_amount=self.money.round_amount(unused_old, currency),
            new_cost_amount=self.money.round_amount(cost_new, currency),
            days_remaining=days_remaining,
            total_days=total_days,
            currency=currency,
        )


_default_calculator = ProrationCalculator()


def prorate(
    old_amount: Amount,
    new_amount: Amount,
    days_remaining: int,
    total_days: int,
    currency: str = "EUR",
) -> ProrationResult:
    """Module-level shortcut using the default calculator."""
    return _default_calculator.prorate(old_amount, new_amount, days_remaining, total_days, currency)
