"""
Tests for the credit ledger.

Covers issuance, debits, expiry, administrative cancellation, consumption
ordering and conservation of issued amounts.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from freezegun import freeze_time

from coldreach_billing.credits import CreditStatus, CreditType
from coldreach_billing.exceptions import (
    CreditExpiredError,
    CreditNotFoundError,
    CreditNotUsableError,
    CurrencyMismatchError,
    InvalidCreditAmountError,
    OverdraftError,
    SubscriptionNotFoundError,
)


@pytest.mark.unit
class TestIssue:
    """Test credit issuance."""

    def test_issue_creates_active_credit(self, ledger, clock):
        """Test issuing a credit."""
        credit = ledger.issue("sub_test", Decimal("25.00"), "EUR", CreditType.REFUND)

        assert credit.amount == Decimal("25.00")
        assert credit.used_amount == Decimal("0")
        assert credit.remaining_amount == Decimal("25.00")
        assert credit.credit_type == CreditType.REFUND
        assert credit.status_at(clock()) == CreditStatus.ACTIVE
        assert credit.created_at == clock()
        assert ledger.get(credit.credit_id) == credit

    def test_currency_is_case_insensitive(self, ledger):
        """Test issue accepts a lower-case currency code."""
        assert ledger.issue("sub_test", "5", "eur").currency == "EUR"

    def test_currency_mismatch(self, ledger):
        """Test issuing in a foreign currency raises error."""
        with pytest.raises(CurrencyMismatchError) as exc_info:
            ledger.issue("sub_test", Decimal("10"), "USD")

        assert exc_info.value.context["expected_currency"] == "EUR"
        assert ledger.list_credits("sub_test") == []

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "0.00"])
    def test_non_positive_amount(self, ledger, amount):
        """Test zero and negative amounts are rejected."""
        with pytest.raises(InvalidCreditAmountError):
            ledger.issue("sub_test", amount, "EUR")

    @pytest.mark.parametrize("amount", ["abc", "", "1,50"])
    def test_non_numeric_amount(self, ledger, amount):
        """Test non-numeric amounts raise the credit amount error."""
        with pytest.raises(InvalidCreditAmountError) as exc_info:
            ledger.issue("sub_test", amount, "EUR")

        assert exc_info.value.context["amount"] == amount
        assert ledger.list_credits("sub_test") == []

    def test_unknown_subscription(self, ledger):
        """Test issuing to an unknown subscription raises error."""
        with pytest.raises(SubscriptionNotFoundError):
            ledger.issue("sub_missing", Decimal("10"), "EUR")


@pytest.mark.unit
class TestDebit:
    """Test debiting credits."""

    def test_exhausting_debit_marks_used(self, ledger, clock):
        """Test a debit that empties the credit marks it used."""
        credit = ledger.issue("sub_test", Decimal("25.00"), "EUR")

        used = ledger.debit(credit.credit_id, Decimal("25.00"), invoice_id="inv_1")

        assert used.remaining_amount == Decimal("0")
        assert used.status_at(clock()) == CreditStatus.USED
        assert used.applied_to_invoice == "inv_1"

        with pytest.raises(OverdraftError):
            ledger.debit(credit.credit_id, Decimal("0.01"))

    def test_expired_credit_cannot_be_debited(self, ledger, clock):
        """Test debiting an expired credit raises error."""
        credit = ledger.issue(
            "sub_test", Decimal("15.00"), "EUR", expires_at=clock() + timedelta(days=1)
        )
        clock.advance(days=2)

        assert ledger.get(credit.credit_id).status_at(clock()) == CreditStatus.EXPIRED
        with pytest.raises(CreditExpiredError):
            ledger.debit(credit.credit_id, Decimal("1.00"))
        assert ledger.get(credit.credit_id).used_amount == Decimal("0")

    def test_expiry_is_checked_before_overdraft(self, ledger, clock):
        """Test expiry wins over an overdraft."""
        credit = ledger.issue("sub_test", Decimal("15.00"), "EUR", expires_at=clock())

        with pytest.raises(CreditExpiredError):
            ledger.debit(credit.credit_id, Decimal("100.00"))

    def test_overdraft_leaves_credit_unchanged(self, ledger):
        """Test an overdraft is rejected without side effects."""
        credit = ledger.issue("sub_test", Decimal("10.00"), "EUR")
        ledger.debit(credit.credit_id, Decimal("4.00"))

        with pytest.raises(OverdraftError) as exc_info:
            ledger.debit(credit.credit_id, Decimal("6.01"))

        assert exc_info.value.context["remaining_amount"] == "6.00"
        assert ledger.get(credit.credit_id).used_amount == Decimal("4.00")

    def test_split_across_invoices(self, ledger):
        """Test one credit spread over several invoices."""
        credit = ledger.issue("sub_test", Decimal("25.00"), "EUR")

        partial = ledger.debit(credit.credit_id, Decimal("10.00"), invoice_id="inv_a")
        assert partial.applied_to_invoice is None

        final = ledger.debit(credit.credit_id, Decimal("15.00"), invoice_id="inv_b")

        assert final.applied_to_invoice == "inv_b"
        assert [(a.amount, a.invoice_id) for a in final.applications] == [
            (Decimal("10.00"), "inv_a"),
            (Decimal("15.00"), "inv_b"),
        ]

    def test_conservation_over_debit_sequence(self, ledger):
        """Test used plus remaining always equals the issued amount."""
        credit = ledger.issue("sub_test", Decimal("50.00"), "EUR")

        for amount in ("0.01", "12.50", "7.49", "30.00"):
            current = ledger.debit(credit.credit_id, Decimal(amount))
            assert current.used_amount + current.remaining_amount == current.amount
            assert current.amount == Decimal("50.00")

        assert current.remaining_amount == Decimal("0")

    def test_non_positive_debit(self, ledger):
        """Test zero debits are rejected."""
        credit = ledger.issue("sub_test", Decimal("10.00"), "EUR")

        with pytest.raises(InvalidCreditAmountError):
            ledger.debit(credit.credit_id, Decimal("0"))

    def test_unknown_credit(self, ledger):
        """Test debiting an unknown credit raises error."""
        with pytest.raises(CreditNotFoundError):
            ledger.debit("cred_missing", Decimal("1"))


@pytest.mark.unit
class TestCancel:
    """Test administrative cancellation."""

    def test_cancelled_credit_is_not_usable(self, ledger, clock):
        """Test a cancelled credit cannot be debited."""
        credit = ledger.issue("sub_test", Decimal("10.00"), "EUR")

        cancelled = ledger.cancel(credit.credit_id, reason="issued in error")

        assert cancelled.status_at(clock()) == CreditStatus.CANCELLED
        assert cancelled.cancellation_reason == "issued in error"
        with pytest.raises(CreditNotUsableError) as exc_info:
            ledger.debit(credit.credit_id, Decimal("1.00"))
        assert not isinstance(exc_info.value, CreditExpiredError)

    def test_only_active_credits_can_be_cancelled(self, ledger):
        """Test cancelling a used credit raises error."""
        credit = ledger.issue("sub_test", Decimal("10.00"), "EUR")
        ledger.debit(credit.credit_id, Decimal("10.00"))

        with pytest.raises(CreditNotUsableError):
            ledger.cancel(credit.credit_id)


@pytest.mark.unit
class TestBalanceAndConsumption:
    """Test balances and ordered consumption."""

    def test_remaining_balance_counts_active_only(self, ledger, clock):
        """Test balance ignores expired and cancelled credits."""
        ledger.issue("sub_test", Decimal("10.00"), "EUR")
        ledger.issue("sub_test", Decimal("5.00"), "EUR", expires_at=clock() + timedelta(hours=1))
        cancelled = ledger.issue("sub_test", Decimal("7.00"), "EUR")
        ledger.cancel(cancelled.credit_id)

        assert ledger.remaining_balance("sub_test") == Decimal("15.00")

        clock.advance(hours=2)
        assert ledger.remaining_balance("sub_test") == Decimal("10.00")

    def test_usable_credits_order(self, ledger, clock):
        """Test soonest expiry first, then oldest."""
        no_expiry = ledger.issue("sub_test", Decimal("10"), "EUR")
        clock.advance(minutes=1)
        late = ledger.issue("sub_test", Decimal("10"), "EUR", expires_at=clock() + timedelta(days=30))
        clock.advance(minutes=1)
        soon = ledger.issue("sub_test", Decimal("10"), "EUR", expires_at=clock() + timedelta(days=2))
        clock.advance(minutes=1)
        newer_no_expiry = ledger.issue("sub_test", Decimal("10"), "EUR")

        ordered = [c.credit_id for c in ledger.usable_credits("sub_test")]

        assert ordered == [
            soon.credit_id,
            late.credit_id,
            no_expiry.credit_id,
            newer_no_expiry.credit_id,
        ]

    def test_consume_spreads_in_order(self, ledger, clock):
        """Test consumption walks credits in usable order."""
        old = ledger.issue("sub_test", Decimal("50.00"), "EUR")
        clock.advance(minutes=1)
        expiring = ledger.issue(
            "sub_test", Decimal("50.00"), "EUR", expires_at=clock() + timedelta(days=3)
        )

        debited = ledger.consume("sub_test", Decimal("75.00"), invoice_id="inv_1")

        assert [c.credit_id for c in debited] == [expiring.credit_id, old.credit_id]
        assert ledger.get(expiring.credit_id).remaining_amount == Decimal("0")
        assert ledger.get(old.credit_id).remaining_amount == Decimal("25.00")

    def test_consume_caps_at_balance(self, ledger):
        """Test consumption never exceeds the balance."""
        credit = ledger.issue("sub_test", Decimal("20.00"), "EUR")

        debited = ledger.consume("sub_test", Decimal("75.00"))

        assert len(debited) == 1
        assert ledger.get(credit.credit_id).used_amount == Decimal("20.00")
        assert ledger.remaining_balance("sub_test") == Decimal("0")

    def test_consume_nothing(self, ledger):
        """Test consuming zero is a no-op."""
        ledger.issue("sub_test", Decimal("20.00"), "EUR")

        assert ledger.consume("sub_test", Decimal("0")) == []
        assert ledger.remaining_balance("sub_test") == Decimal("20.00")

    def test_consume_non_numeric_amount(self, ledger):
        """Test consuming a non-numeric amount raises error."""
        ledger.issue("sub_test", Decimal("20.00"), "EUR")

        with pytest.raises(InvalidCreditAmountError):
            ledger.consume("sub_test", "twenty")

        assert ledger.remaining_balance("sub_test") == Decimal("20.00")


@pytest.mark.unit
class TestSummary:
    """Test credit summaries."""

    def test_summary_totals(self, ledger, clock):
        """Test summary totals per status."""
        used = ledger.issue("sub_test", Decimal("10.00"), "EUR")
        ledger.debit(used.credit_id, Decimal("4.00"))
        ledger.issue("sub_test", Decimal("6.00"), "EUR", expires_at=clock() + timedelta(days=1))
        clock.advance(days=2)

        summary = ledger.summary("sub_test")

        assert summary.currency == "EUR"
        assert summary.total_issued == Decimal("16.00")
        assert summary.total_used == Decimal("4.00")
        assert summary.total_remaining == Decimal("6.00")
        assert summary.total_expired == Decimal("6.00")
        assert summary.active_count == 1

    def test_empty_summary(self, ledger):
        """Test summary of a subscription without credits."""
        summary = ledger.summary("sub_test")

        assert summary.currency is None
        assert summary.total_issued == Decimal("0")


@pytest.mark.unit
class TestCreditStatusProperty:
    """``status`` reads the wall clock."""

    def test_status_follows_time(self, ledger, clock):
        """Test status property against the wall clock."""
        credit = ledger.issue(
            "sub_test", Decimal("15.00"), "EUR", expires_at=clock() + timedelta(days=1)
        )

        with freeze_time(clock()):
            assert credit.status == CreditStatus.ACTIVE
        with freeze_time(clock() + timedelta(days=2)):
            assert credit.status == CreditStatus.EXPIRED
