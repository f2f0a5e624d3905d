"""
Money and currency utilities using py-moneyed and Babel.

Provides currency validation, minor-unit precision lookup, banker's
rounding and locale-aware formatting for every amount the billing core
produces.
"""

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

from babel import Locale
from babel.core import UnknownLocaleError
from babel.numbers import format_currency, get_currency_precision
from moneyed import Currency, Money, get_currency
from moneyed.classes import CurrencyDoesNotExist

from coldreach_billing.settings import get_settings

# Common currencies for quick access
USD = Currency("USD")
EUR = Currency("EUR")
GBP = Currency("GBP")
JPY = Currency("JPY")

# Default locale for formatting
DEFAULT_LOCALE = "en_US"


def to_decimal(amount: int | float | Decimal | str) -> Decimal:
    """Convert an amount to Decimal without binary float artefacts."""
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, str):
        return Decimal(amount)
    return Decimal(str(amount))


class MoneyHandler:
    """Central handler for money operations with proper error handling."""

    def __init__(self, default_currency: str = "EUR", default_locale: str = DEFAULT_LOCALE) -> None:
        self.default_currency = self.validate_currency(default_currency)
        self.default_locale = self._validate_locale(default_locale)

    def validate_currency(self, currency_code: str) -> Currency:
        """Validate and return Currency object."""
        try:
            return get_currency(currency_code.upper())
        except CurrencyDoesNotExist:
            raise ValueError(f"Invalid currency code: {currency_code}")

    def _validate_locale(self, locale_code: str) -> str:
        """Validate locale code."""
        try:
            Locale.parse(locale_code)
            return locale_code
        except (UnknownLocaleError, ValueError):
            return DEFAULT_LOCALE

    def create_money(
        self, amount: int | float | Decimal | str, currency: str | None = None
    ) -> Money:
        """Create Money object with proper validation."""
        currency = currency or self.default_currency.code
        validated_currency = self.validate_currency(currency)
        return Money(amount=to_decimal(amount), currency=validated_currency)

    def format_money(self, money: Money, locale: str | None = None, **kwargs: Any) -> str:
        """Format Money object with locale-aware formatting."""
        locale = locale or self.default_locale
        validated_locale = self._validate_locale(locale)

        try:
            return format_currency(
                number=money.amount, currency=money.currency.code, locale=validated_locale, **kwargs
            )
        except (TypeError, ValueError):
            # Fallback to simple formatting if locale issues
            return f"{money.currency.code} {money.amount}"

    def format_amount(self, amount: Decimal, currency: str, locale: str | None = None) -> str:
        """Format a bare Decimal amount in the given currency."""
        return self.format_money(self.create_money(amount, currency), locale)

    def get_currency_precision(self, currency_code: str) -> int:
        """Get decimal precision for a currency (2 for EUR, 0 for JPY)."""
        return get_currency_precision(self.validate_currency(currency_code).code)

    def quantum(self, currency_code: str) -> Decimal:
        """Smallest representable step for the currency, e.g. Decimal('0.01')."""
        return Decimal(1).scaleb(-self.get_currency_precision(currency_code))

    def round_amount(
        self, amount: int | float | Decimal | str, currency_code: str, rounding: str = ROUND_HALF_EVEN
    ) -> Decimal:
        """Round an amount to the currency's minor unit, half-even by default."""
        return to_decimal(amount).quantize(self.quantum(currency_code), rounding=rounding)

    def round_money(self, money: Money) -> Money:
        """Round Money to proper currency precision."""
        rounded_amount = self.round_amount(money.amount, money.currency.code)
        return Money(amount=rounded_amount, currency=money.currency)

    def money_to_minor_units(self, money: Money) -> int:
        """Convert Money to minor units (e.g., cents for USD)."""
        precision = self.get_currency_precision(money.currency.code)
        return int(self.round_money(money).amount.scaleb(precision))


def _default_handler() -> MoneyHandler:
    billing = get_settings().billing
    return MoneyHandler(billing.default_currency, billing.default_locale)


# Global instance for convenience
money_handler = _default_handler()


# Convenience functions
def create_money(amount: int | float | Decimal | str, currency: str | None = None) -> Money:
    """Create Money object with default handler."""
    return money_handler.create_money(amount, currency)


def format_money(money: Money, locale: str | None = None, **kwargs: Any) -> str:
    """Format Money with default handler."""
    return money_handler.format_money(money, locale, **kwargs)


def round_amount(amount: int | float | Decimal | str, currency: str) -> Decimal:
    """Round to the currency's minor unit with the default handler."""
    return money_handler.round_amount(amount, currency)


def normalize_currency(currency: str) -> str:
    """Return the upper-case ISO 4217 code, raising ValueError for unknown codes."""
    return money_handler.validate_currency(currency).code


# Export commonly used functions and classes
__all__ = [
    "MoneyHandler",
    "money_handler",
    "create_money",
    "format_money",
    "round_amount",
    "normalize_currency",
    "to_decimal",
    "USD",
    "EUR",
    "GBP",
    "JPY",
]
