"""Proration of plan changes within a billing period."""

from coldreach_billing.proration.calculator import (
    ProrationCalculator,
    change_type_for,
    period_position,
    prorate,
)
from coldreach_billing.proration.models import ChangeType, ProrationPreview, ProrationResult

__all__ = [
    "ChangeType",
    "ProrationCalculator",
    "ProrationPreview",
    "ProrationResult",
    "change_type_for",
    "period_position",
    "prorate",
]
