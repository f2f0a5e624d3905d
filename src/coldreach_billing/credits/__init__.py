"""Account credit ledger."""

from coldreach_billing.credits.ledger import CreditLedger
from coldreach_billing.credits.models import (
    Credit,
    CreditApplication,
    CreditStatus,
    CreditSummary,
    CreditType,
)
from coldreach_billing.credits.repository import CreditRepository, InMemoryCreditRepository

__all__ = [
    "Credit",
    "CreditApplication",
    "CreditLedger",
    "CreditRepository",
    "CreditStatus",
    "CreditSummary",
    "CreditType",
    "InMemoryCreditRepository",
]
