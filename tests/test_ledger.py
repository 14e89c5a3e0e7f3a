"""Tests for LoanLedger origination, payments and reconciliation."""

import threading
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from conftest import RecordingSink
from loan_ledger.exceptions import (
    InvalidPaymentError,
    InvalidTermsError,
    NotFoundError,
    PersistenceError,
)
from loan_ledger.ledger import LoanLedger
from loan_ledger.models import Client, Currency, Loan, LoanTerms, Payment, TermUnit
from loan_ledger.store.memory import InMemoryLedgerStore
from loan_ledger.store.sqlite import SqliteLedgerStore


def balance(loan: Loan) -> tuple[Decimal, Decimal, bool]:
    return loan.amount_paid, loan.amount_due, loan.outstanding


class TestCreateLoan:
    """Tests for loan origination."""

    def test_create_months_loan(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test a new loan owes its full total and nothing is paid."""
        loan = ledger.create_loan(client, months_terms)

        assert loan.loan_id
        assert loan.client_id == client.client_id
        assert loan.client_name == client.name
        assert loan.amount_due == Decimal("1150.00")
        assert loan.amount_paid == Decimal("0.00")
        assert loan.outstanding is True
        assert loan.due_date == date(2024, 4, 1)
        assert loan.delay_days == 0
        assert loan.currency == Currency.USD

    def test_create_days_loan(
        self, ledger: LoanLedger, client: Client, days_terms: LoanTerms
    ) -> None:
        """Test a day loan skips Sundays for its due date."""
        loan = ledger.create_loan(client, days_terms)

        assert loan.amount_due == Decimal("550.00")
        assert loan.due_date == date(2024, 1, 12)

    def test_create_persists(
        self,
        ledger: LoanLedger,
        store: InMemoryLedgerStore,
        client: Client,
        months_terms: LoanTerms,
    ) -> None:
        """Test the loan is stored."""
        loan = ledger.create_loan(client, months_terms)

        assert store.get_loan(loan.loan_id) == loan
        assert ledger.get_loan(loan.loan_id) == loan

    def test_ids_are_unique(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        ids = {ledger.create_loan(client, months_terms).loan_id for _ in range(10)}
        assert len(ids) == 10

    def test_create_normalizes_loose_terms(self, ledger: LoanLedger, client: Client) -> None:
        """Test int and string input is coerced to canonical types."""
        terms = LoanTerms(
            principal=1000,
            interest_rate="5",
            term_length=3,
            term_unit="Months",
            origination_date=date(2024, 1, 1),
            currency="C$",
        )

        loan = ledger.create_loan(client, terms)

        assert loan.principal == Decimal("1000.00")
        assert loan.term_unit is TermUnit.MONTHS
        assert loan.currency is Currency.NIO
        assert loan.amount_due == Decimal("1150.00")

    def test_create_rejects_long_day_term(
        self,
        ledger: LoanLedger,
        store: InMemoryLedgerStore,
        client: Client,
        days_terms: LoanTerms,
    ) -> None:
        """Test a 26-day term is refused and nothing is stored."""
        with pytest.raises(InvalidTermsError):
            ledger.create_loan(client, replace(days_terms, term_length=26))

        assert store.loans == {}

    def test_create_rejects_unknown_currency(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        with pytest.raises(InvalidTermsError, match="currency"):
            ledger.create_loan(client, replace(months_terms, currency="EUR"))

    def test_total_debt_derived_from_terms(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test the original total stays available after payments."""
        loan = ledger.create_loan(client, months_terms)
        ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))

        stored = ledger.get_loan(loan.loan_id)

        assert stored.total_debt == Decimal("1150.00")
        assert stored.amount_due == Decimal("650.00")

    def test_rate_kept_to_four_places(self, ledger: LoanLedger, client: Client) -> None:
        """Test the balance is priced from the same rate that is stored."""
        terms = LoanTerms(
            principal=Decimal("10000"),
            interest_rate=Decimal("5.12345"),
            term_length=12,
            term_unit=TermUnit.MONTHS,
            origination_date=date(2024, 1, 1),
        )

        loan = ledger.create_loan(client, terms)
        ledger.record_payment(loan.loan_id, Decimal("0"), date(2024, 1, 2))

        assert loan.interest_rate == Decimal("5.1235")
        assert loan.amount_due == Decimal("16148.20")
        assert ledger.get_loan(loan.loan_id).amount_due == loan.amount_due

    @pytest.mark.parametrize(
        "changes",
        [
            {"principal": "NaN"},
            {"interest_rate": "Infinity"},
            {"term_length": 10**6},
            {"term_unit": TermUnit.WEEKS, "term_length": 10**6},
        ],
    )
    def test_create_rejects_unpriceable_terms(
        self,
        ledger: LoanLedger,
        store: InMemoryLedgerStore,
        client: Client,
        months_terms: LoanTerms,
        changes: dict,
    ) -> None:
        """Test non-finite numbers and never-ending terms are refused."""
        with pytest.raises(InvalidTermsError):
            ledger.create_loan(client, replace(months_terms, **changes))

        assert store.loans == {}


class TestEditLoan:
    """Tests for editing loan terms."""

    def test_edit_nets_stored_payments(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test raising the rate recomputes the balance against what was paid."""
        loan = ledger.create_loan(client, months_terms)
        ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))

        edited = ledger.edit_loan(loan.loan_id, replace(months_terms, interest_rate=Decimal("10")))

        # 1000 + 3 x 100 - 500
        assert edited.amount_due == Decimal("800.00")
        assert edited.amount_paid == Decimal("500.00")
        assert edited.outstanding is True
        assert edited.interest_rate == Decimal("10")

    def test_edit_trusts_caller_amount_paid(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test a supplied amount paid is used without changing the stored one."""
        loan = ledger.create_loan(client, months_terms)

        edited = ledger.edit_loan(loan.loan_id, months_terms, amount_paid=Decimal("1150"))

        assert edited.amount_due == Decimal("0.00")
        assert edited.outstanding is False
        assert edited.amount_paid == Decimal("0.00")

    def test_edit_changes_due_date(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)

        edited = ledger.edit_loan(loan.loan_id, replace(months_terms, term_length=6))

        assert edited.due_date == date(2024, 7, 1)
        assert edited.amount_due == Decimal("1300.00")

    def test_edit_reassigns_client(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)
        other = Client(client_id="cli-002", name="José Pérez", national_id="001-020290-0002B")

        edited = ledger.edit_loan(loan.loan_id, months_terms, client=other)

        assert edited.client_id == "cli-002"
        assert edited.client_name == "José Pérez"

    def test_edit_missing_loan(self, ledger: LoanLedger, months_terms: LoanTerms) -> None:
        with pytest.raises(NotFoundError):
            ledger.edit_loan("missing", months_terms)

    def test_edit_rejects_bad_terms(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test invalid terms leave the loan untouched."""
        loan = ledger.create_loan(client, months_terms)

        with pytest.raises(InvalidTermsError):
            ledger.edit_loan(loan.loan_id, replace(months_terms, principal=Decimal("0")))

        assert ledger.get_loan(loan.loan_id) == loan


class TestDeleteLoan:
    """Tests for loan deletion."""

    def test_delete_cascades_payments(
        self,
        ledger: LoanLedger,
        store: InMemoryLedgerStore,
        client: Client,
        months_terms: LoanTerms,
    ) -> None:
        """Test deleting a loan removes its payments, leaving no orphans."""
        loan = ledger.create_loan(client, months_terms)
        other = ledger.create_loan(client, months_terms)
        ledger.record_payment(loan.loan_id, Decimal("100"), date(2024, 1, 10))
        ledger.record_payment(loan.loan_id, Decimal("200"), date(2024, 1, 11))
        ledger.record_payment(other.loan_id, Decimal("50"), date(2024, 1, 11))

        removed = ledger.delete_loan(loan.loan_id)

        assert removed == 2
        assert store.get_loan(loan.loan_id) is None
        assert store.list_payments(loan.loan_id) == []
        assert [p.loan_id for p in store.list_payments()] == [other.loan_id]

    def test_delete_missing_loan(self, ledger: LoanLedger) -> None:
        with pytest.raises(NotFoundError):
            ledger.delete_loan("missing")


class TestRecordPayment:
    """Tests for recording payments."""

    def test_partial_payment(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test paying 500 on 1150 leaves 650.00 outstanding."""
        loan = ledger.create_loan(client, months_terms)

        payment = ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))

        assert payment.amount == Decimal("500.00")
        assert payment.payment_date == date(2024, 1, 15)
        assert payment.loan_id == loan.loan_id
        assert balance(ledger.get_loan(loan.loan_id)) == (
            Decimal("500.00"),
            Decimal("650.00"),
            True,
        )

    def test_date_defaults_to_today(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)

        payment = ledger.record_payment(loan.loan_id, 10)

        assert payment.payment_date == date.today()

    def test_over_payment_clamps_and_settles(
        self, ledger: LoanLedger, client: Client, hundred_terms: LoanTerms
    ) -> None:
        """Test paying 150 on a 100.00 balance settles at 0.00."""
        loan = ledger.create_loan(client, hundred_terms)

        ledger.record_payment(loan.loan_id, Decimal("150"), date(2024, 1, 5))

        settled = ledger.get_loan(loan.loan_id)
        assert settled.amount_due == Decimal("0.00")
        assert str(settled.amount_due) == "0.00"
        assert settled.outstanding is False
        assert settled.amount_paid == Decimal("150.00")

    def test_over_payment_logs_warning(
        self,
        ledger: LoanLedger,
        client: Client,
        hundred_terms: LoanTerms,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        loan = ledger.create_loan(client, hundred_terms)

        with caplog.at_level("WARNING", logger="loan_ledger.ledger"):
            ledger.record_payment(loan.loan_id, Decimal("150"), date(2024, 1, 5))

        assert "exceeds amount due" in caplog.text

    def test_exact_payment_settles(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)

        ledger.record_payment(loan.loan_id, Decimal("1150.00"), date(2024, 3, 1))

        assert ledger.get_loan(loan.loan_id).outstanding is False

    def test_rounds_to_cents(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test amounts are stored with exactly two decimals."""
        loan = ledger.create_loan(client, months_terms)

        ledger.record_payment(loan.loan_id, "0.333", date(2024, 1, 2))
        ledger.record_payment(loan.loan_id, "0.333", date(2024, 1, 3))

        stored = ledger.get_loan(loan.loan_id)
        assert str(stored.amount_paid) == "0.66"
        assert str(stored.amount_due) == "1149.34"

    def test_negative_amount_rejected(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)

        with pytest.raises(InvalidPaymentError):
            ledger.record_payment(loan.loan_id, Decimal("-1"))

        assert ledger.list_payments(loan.loan_id) == []

    def test_non_numeric_amount_rejected(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)

        with pytest.raises(InvalidPaymentError):
            ledger.record_payment(loan.loan_id, "ten")

    @pytest.mark.parametrize(
        "amount", ["NaN", "Infinity", "-Infinity", "sNaN", Decimal("NaN"), float("inf")]
    )
    def test_non_finite_amount_rejected(
        self,
        ledger: LoanLedger,
        store: InMemoryLedgerStore,
        client: Client,
        months_terms: LoanTerms,
        amount: object,
    ) -> None:
        loan = ledger.create_loan(client, months_terms)

        with pytest.raises(InvalidPaymentError, match="finite"):
            ledger.record_payment(loan.loan_id, amount)

        assert store.list_payments(loan.loan_id) == []
        assert ledger.get_loan(loan.loan_id).amount_due == Decimal("1150.00")

    def test_amount_too_large_rejected(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)

        with pytest.raises(InvalidPaymentError, match="too large"):
            ledger.record_payment(loan.loan_id, Decimal("1E+30"))

    def test_missing_loan(self, ledger: LoanLedger, store: InMemoryLedgerStore) -> None:
        """Test paying a missing loan fails and stores nothing."""
        with pytest.raises(NotFoundError):
            ledger.record_payment("missing", Decimal("10"))

        assert store.payments == {}

    def test_zero_payment_on_settled_loan_changes_nothing(
        self, ledger: LoanLedger, client: Client, hundred_terms: LoanTerms
    ) -> None:
        """Test a settled loan stays settled at 0.00."""
        loan = ledger.create_loan(client, hundred_terms)
        ledger.record_payment(loan.loan_id, Decimal("100"), date(2024, 1, 5))

        ledger.record_payment(loan.loan_id, Decimal("0"), date(2024, 1, 6))

        assert balance(ledger.get_loan(loan.loan_id)) == (Decimal("100.00"), Decimal("0.00"), False)

    def test_missing_payment_on_settled_loan_changes_nothing(
        self, ledger: LoanLedger, client: Client, hundred_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, hundred_terms)
        ledger.record_payment(loan.loan_id, Decimal("100"), date(2024, 1, 5))

        with pytest.raises(NotFoundError):
            ledger.delete_payment("missing")

        assert ledger.get_loan(loan.loan_id).amount_due == Decimal("0.00")


class TestEditPayment:
    """Tests for editing payments."""

    def test_edit_reduces_payment(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test editing 500 down to 300 puts 200 back on the balance."""
        loan = ledger.create_loan(client, months_terms)
        payment = ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))

        updated = ledger.edit_payment(payment.payment_id, Decimal("300"), date(2024, 1, 16))

        assert updated.amount == Decimal("300.00")
        assert updated.payment_date == date(2024, 1, 16)
        assert balance(ledger.get_loan(loan.loan_id)) == (
            Decimal("300.00"),
            Decimal("850.00"),
            True,
        )
        assert ledger.get_payment(payment.payment_id) == updated

    def test_edit_keeps_date_when_omitted(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)
        payment = ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))

        updated = ledger.edit_payment(payment.payment_id, Decimal("400"))

        assert updated.payment_date == date(2024, 1, 15)

    def test_edit_date_only_leaves_balance(
        self,
        ledger: LoanLedger,
        sink: RecordingSink,
        client: Client,
        months_terms: LoanTerms,
    ) -> None:
        """Test an unchanged amount does not touch the loan."""
        loan = ledger.create_loan(client, months_terms)
        payment = ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))
        before = ledger.get_loan(loan.loan_id)

        ledger.edit_payment(payment.payment_id, Decimal("500"), date(2024, 2, 1))

        assert ledger.get_loan(loan.loan_id) == before
        assert sink.events[-1].metadata == {}

    def test_edit_reopens_settled_loan(
        self, ledger: LoanLedger, client: Client, hundred_terms: LoanTerms
    ) -> None:
        """Test shrinking an over-payment moves the loan back to outstanding."""
        loan = ledger.create_loan(client, hundred_terms)
        payment = ledger.record_payment(loan.loan_id, Decimal("150"), date(2024, 1, 5))
        assert ledger.get_loan(loan.loan_id).outstanding is False

        ledger.edit_payment(payment.payment_id, Decimal("50"))

        assert balance(ledger.get_loan(loan.loan_id)) == (Decimal("50.00"), Decimal("50.00"), True)

    def test_edit_missing_payment(self, ledger: LoanLedger) -> None:
        with pytest.raises(NotFoundError):
            ledger.edit_payment("missing", Decimal("10"))

    def test_edit_equivalent_to_delete_and_record(
        self, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test editing A to B matches deleting A then recording B."""
        edited = LoanLedger(InMemoryLedgerStore())
        loan_a = edited.create_loan(client, months_terms)
        payment = edited.record_payment(loan_a.loan_id, Decimal("500"), date(2024, 1, 15))
        edited.edit_payment(payment.payment_id, Decimal("320.50"), date(2024, 1, 15))

        replayed = LoanLedger(InMemoryLedgerStore())
        loan_b = replayed.create_loan(client, months_terms)
        payment = replayed.record_payment(loan_b.loan_id, Decimal("500"), date(2024, 1, 15))
        replayed.delete_payment(payment.payment_id)
        replayed.record_payment(loan_b.loan_id, Decimal("320.50"), date(2024, 1, 15))

        assert balance(edited.get_loan(loan_a.loan_id)) == balance(replayed.get_loan(loan_b.loan_id))


class TestDeletePayment:
    """Tests for deleting payments."""

    def test_record_then_delete_restores_balance(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test deleting a payment fully reverses it."""
        loan = ledger.create_loan(client, months_terms)
        ledger.record_payment(loan.loan_id, Decimal("75.25"), date(2024, 1, 10))
        before = balance(ledger.get_loan(loan.loan_id))
        payment = ledger.record_payment(loan.loan_id, Decimal("433.10"), date(2024, 1, 15))

        ledger.delete_payment(payment.payment_id)

        assert balance(ledger.get_loan(loan.loan_id)) == before
        assert len(ledger.list_payments(loan.loan_id)) == 1

    def test_delete_reopens_settled_loan(
        self, ledger: LoanLedger, client: Client, hundred_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, hundred_terms)
        payment = ledger.record_payment(loan.loan_id, Decimal("100"), date(2024, 1, 5))

        ledger.delete_payment(payment.payment_id)

        assert balance(ledger.get_loan(loan.loan_id)) == (Decimal("0.00"), Decimal("100.00"), True)

    def test_delete_missing_payment(self, ledger: LoanLedger) -> None:
        with pytest.raises(NotFoundError):
            ledger.delete_payment("missing")


class TestAdjustLoanBalance:
    """Tests for the balance adjustment primitive."""

    def test_positive_and_negative_differences(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)

        raised = ledger.adjust_loan_balance(loan.loan_id, Decimal("100"))
        assert balance(raised) == (Decimal("100.00"), Decimal("1050.00"), True)

        lowered = ledger.adjust_loan_balance(loan.loan_id, Decimal("-100"))
        assert balance(lowered) == (Decimal("0.00"), Decimal("1150.00"), True)

    def test_total_recomputed_from_terms(
        self,
        ledger: LoanLedger,
        store: InMemoryLedgerStore,
        client: Client,
        months_terms: LoanTerms,
    ) -> None:
        """Test a stale stored balance is ignored in favour of the terms."""
        loan = ledger.create_loan(client, months_terms)
        store.update_loan(replace(loan, amount_due=Decimal("9999.99")))

        adjusted = ledger.adjust_loan_balance(loan.loan_id, Decimal("150"))

        assert adjusted.amount_due == Decimal("1000.00")

    def test_missing_loan(self, ledger: LoanLedger) -> None:
        with pytest.raises(NotFoundError):
            ledger.adjust_loan_balance("missing", Decimal("1"))


class TestReconcile:
    """Tests for replaying the payment log."""

    def test_reconcile_repairs_drift(
        self,
        ledger: LoanLedger,
        store: InMemoryLedgerStore,
        client: Client,
        months_terms: LoanTerms,
    ) -> None:
        """Test amount paid is rebuilt from the payments."""
        loan = ledger.create_loan(client, months_terms)
        ledger.record_payment(loan.loan_id, Decimal("200"), date(2024, 1, 10))
        ledger.record_payment(loan.loan_id, Decimal("300"), date(2024, 1, 11))
        drifted = store.get_loan(loan.loan_id)
        store.update_loan(replace(drifted, amount_paid=Decimal("200.00")))

        repaired = ledger.reconcile(loan.loan_id)

        assert balance(repaired) == (Decimal("500.00"), Decimal("650.00"), True)

    def test_reconcile_is_noop_when_consistent(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)
        ledger.record_payment(loan.loan_id, Decimal("200"), date(2024, 1, 10))
        before = ledger.get_loan(loan.loan_id)

        assert ledger.reconcile(loan.loan_id) == before


class FailingLoanUpdates(InMemoryLedgerStore):
    """Store whose loan writes fail while ``armed`` is set."""

    armed = True

    def update_loan(self, loan: Loan) -> None:
        if self.armed:
            raise PersistenceError("disk full")
        super().update_loan(loan)


class FailingPaymentInserts(InMemoryLedgerStore):
    """Store whose payment inserts always fail."""

    def insert_payment(self, payment: Payment) -> None:
        raise PersistenceError("disk full")


class TestAtomicity:
    """Tests that payment and loan writes land together or not at all."""

    def test_failed_loan_write_discards_payment(
        self, client: Client, months_terms: LoanTerms
    ) -> None:
        store = FailingLoanUpdates()
        ledger = LoanLedger(store)
        loan = ledger.create_loan(client, months_terms)

        with pytest.raises(PersistenceError):
            ledger.record_payment(loan.loan_id, Decimal("500"))

        assert store.list_payments(loan.loan_id) == []
        assert store.get_loan(loan.loan_id) == loan

    def test_failed_payment_write_leaves_loan(
        self, client: Client, months_terms: LoanTerms
    ) -> None:
        store = FailingPaymentInserts()
        ledger = LoanLedger(store)
        loan = ledger.create_loan(client, months_terms)

        with pytest.raises(PersistenceError):
            ledger.record_payment(loan.loan_id, Decimal("500"))

        assert store.get_loan(loan.loan_id) == loan

    def test_failed_delete_restores_payment(
        self, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test a failed balance write after deleting a payment restores it."""
        store = FailingLoanUpdates()
        store.armed = False
        ledger = LoanLedger(store)
        loan = ledger.create_loan(client, months_terms)
        payment = ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))

        store.armed = True
        with pytest.raises(PersistenceError):
            ledger.delete_payment(payment.payment_id)

        assert store.get_payment(payment.payment_id) == payment
        assert store.get_loan(loan.loan_id).amount_paid == Decimal("500.00")

    def test_no_event_when_write_fails(
        self, sink: RecordingSink, client: Client, months_terms: LoanTerms
    ) -> None:
        ledger = LoanLedger(FailingLoanUpdates(), sink=sink)
        loan = ledger.create_loan(client, months_terms)

        with pytest.raises(PersistenceError):
            ledger.record_payment(loan.loan_id, Decimal("500"))

        assert sink.event_types == ["loan.created"]


class TestConcurrency:
    """Tests for concurrent payments on one loan."""

    def test_concurrent_payments_are_not_lost(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test parallel payments all land in the balance."""
        loan = ledger.create_loan(client, months_terms)

        def pay() -> None:
            for _ in range(10):
                ledger.record_payment(loan.loan_id, Decimal("1"), date(2024, 1, 2))

        threads = [threading.Thread(target=pay) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = ledger.get_loan(loan.loan_id)
        assert stored.amount_paid == Decimal("200.00")
        assert stored.amount_due == Decimal("950.00")
        assert len(ledger.list_payments(loan.loan_id)) == 200


class TestEvents:
    """Tests for published ledger events."""

    def test_event_sequence(
        self,
        ledger: LoanLedger,
        sink: RecordingSink,
        client: Client,
        months_terms: LoanTerms,
    ) -> None:
        loan = ledger.create_loan(client, months_terms)
        payment = ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))
        ledger.edit_payment(payment.payment_id, Decimal("300"))
        ledger.delete_payment(payment.payment_id)
        ledger.edit_loan(loan.loan_id, months_terms)
        ledger.delete_loan(loan.loan_id)

        assert sink.event_types == [
            "loan.created",
            "payment.recorded",
            "payment.updated",
            "payment.deleted",
            "loan.updated",
            "loan.deleted",
        ]
        assert {event.subject for event in sink.events} == {loan.loan_id}

    def test_payment_event_carries_balance(
        self,
        ledger: LoanLedger,
        sink: RecordingSink,
        client: Client,
        months_terms: LoanTerms,
    ) -> None:
        loan = ledger.create_loan(client, months_terms)
        ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))

        event = sink.events[-1]
        assert event.data["amount"] == "500.00"
        assert event.data["payment_date"] == "2024-01-15"
        assert event.metadata == {
            "amount_paid": "500.00",
            "amount_due": "650.00",
            "outstanding": True,
        }
        assert event.source == "loan-ledger"

    def test_loan_event_serializes_enums(
        self,
        ledger: LoanLedger,
        sink: RecordingSink,
        client: Client,
        days_terms: LoanTerms,
    ) -> None:
        ledger.create_loan(client, days_terms)

        data = sink.events[0].data
        assert data["term_unit"] == "Days"
        assert data["currency"] == "C$"
        assert data["amount_due"] == "550.00"
        assert data["due_date"] == "2024-01-12"


class TestQueries:
    """Tests for read helpers."""

    def test_search_by_name_and_id(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        other = Client(client_id="cli-xyz", name="Ana Ruiz", national_id="001-030390-0003C")
        mine = ledger.create_loan(client, months_terms)
        theirs = ledger.create_loan(other, months_terms)

        assert ledger.search_loans("maría") == [mine]
        assert ledger.search_loans("XYZ") == [theirs]
        assert ledger.search_loans("nobody") == []

    def test_list_loans_newest_first(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        old = ledger.create_loan(client, months_terms)
        new = ledger.create_loan(client, replace(months_terms, origination_date=date(2024, 6, 1)))

        assert [loan.loan_id for loan in ledger.list_loans()] == [new.loan_id, old.loan_id]

    def test_list_payments_newest_first(
        self, ledger: LoanLedger, client: Client, months_terms: LoanTerms
    ) -> None:
        loan = ledger.create_loan(client, months_terms)
        first = ledger.record_payment(loan.loan_id, Decimal("10"), date(2024, 1, 2))
        second = ledger.record_payment(loan.loan_id, Decimal("10"), date(2024, 1, 9))

        assert ledger.list_payments(loan.loan_id) == [second, first]

    def test_get_missing(self, ledger: LoanLedger) -> None:
        with pytest.raises(NotFoundError):
            ledger.get_loan("missing")
        with pytest.raises(NotFoundError):
            ledger.get_payment("missing")

    def test_quote_does_not_persist(
        self, ledger: LoanLedger, store: InMemoryLedgerStore, days_terms: LoanTerms
    ) -> None:
        result = ledger.quote(days_terms)

        assert result.total_debt == Decimal("550.00")
        assert result.daily_installment == Decimal("55.00")
        assert store.loans == {}


class TestSqliteBackedLedger:
    """Tests the ledger end to end on SQLite."""

    def test_payment_then_edit(self, client: Client, months_terms: LoanTerms) -> None:
        """Test record 500 then edit to 300 on a 1150.00 loan."""
        store = SqliteLedgerStore(":memory:")
        ledger = LoanLedger(store)
        try:
            loan = ledger.create_loan(client, months_terms)
            payment = ledger.record_payment(loan.loan_id, Decimal("500"), date(2024, 1, 15))
            assert balance(ledger.get_loan(loan.loan_id)) == (
                Decimal("500.00"),
                Decimal("650.00"),
                True,
            )

            ledger.edit_payment(payment.payment_id, Decimal("300"))

            stored = ledger.get_loan(loan.loan_id)
            assert balance(stored) == (Decimal("300.00"), Decimal("850.00"), True)
            assert str(stored.amount_due) == "850.00"
            assert stored.due_date == date(2024, 4, 1)
        finally:
            store.close()

    def test_failed_loan_write_rolls_back_payment(
        self, client: Client, months_terms: LoanTerms
    ) -> None:
        """Test SQLite discards the payment row when the loan write fails."""

        class FailingSqlite(SqliteLedgerStore):
            def update_loan(self, loan: Loan) -> None:
                raise PersistenceError("disk full")

        store = FailingSqlite(":memory:")
        ledger = LoanLedger(store)
        try:
            loan = ledger.create_loan(client, months_terms)
            with pytest.raises(PersistenceError):
                ledger.record_payment(loan.loan_id, Decimal("500"))

            assert store.list_payments(loan.loan_id) == []
        finally:
            store.close()

    def test_fractional_rate_survives_storage(self, client: Client) -> None:
        """Test a zero payment leaves the balance alone after a round trip."""
        store = SqliteLedgerStore(":memory:")
        ledger = LoanLedger(store)
        terms = LoanTerms(
            principal=Decimal("10000"),
            interest_rate="5.12345",
            term_length=12,
            term_unit=TermUnit.MONTHS,
            origination_date=date(2024, 1, 1),
        )
        try:
            loan = ledger.create_loan(client, terms)
            ledger.record_payment(loan.loan_id, 0, date(2024, 1, 2))

            stored = ledger.get_loan(loan.loan_id)
            assert stored.interest_rate == Decimal("5.1235")
            assert stored.amount_due == loan.amount_due == Decimal("16148.20")
            assert stored.total_debt == loan.amount_due
        finally:
            store.close()
