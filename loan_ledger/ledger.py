"""Loan ledger: origination, payments and balance reconciliation."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from loan_ledger.exceptions import InvalidPaymentError, InvalidTermsError, NotFoundError
from loan_ledger.financials import (
    Quote,
    compute_terms,
    quote,
    round_money,
    settle,
    to_money,
    to_rate,
    to_term_unit,
)
from loan_ledger.logging import ledger_context
from loan_ledger.models import Client, Currency, Event, EventType, Loan, LoanTerms, Payment
from loan_ledger.sinks.base import EventSink
from loan_ledger.sinks.serialization import to_dict_fast
from loan_ledger.store.base import LedgerStore

logger = logging.getLogger(__name__)


class _LoanLocks:
    """One mutex per loan ID."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    @contextmanager
    def hold(self, loan_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(loan_id, threading.Lock())
        with lock:
            yield

    def discard(self, loan_id: str) -> None:
        with self._guard:
            self._locks.pop(loan_id, None)


class LoanLedger:
    """Keep each loan's balance consistent with its payments.

    A loan's ``amount_paid``, ``amount_due`` and ``outstanding`` fields only
    change through :meth:`_apply_difference`, which recomputes the total
    debt from the stored terms and applies a payment delta. Every
    read-modify-write on a loan runs under that loan's mutex and inside a
    single store transaction.

    Parameters
    ----------
    store : LedgerStore
        Persistence backend. The caller owns its lifecycle.
    sink : EventSink | None
        Receives an event after each committed change.
    source : str
        ``source`` field of published events.
    """

    def __init__(
        self,
        store: LedgerStore,
        sink: EventSink | None = None,
        source: str = "loan-ledger",
    ) -> None:
        self.store = store
        self.sink = sink
        self.source = source
        self._locks = _LoanLocks()

    @contextmanager
    def _exclusive(self, loan_id: str) -> Iterator[None]:
        with self._locks.hold(loan_id), self.store.transaction():
            yield

    # Loans
    def create_loan(self, client: Client, terms: LoanTerms) -> Loan:
        """Originate a loan for a client.

        The full debt is due at creation: ``amount_due`` equals principal
        plus interest and nothing has been paid yet.
        """
        terms = _normalize_terms(terms)
        financials = compute_terms(terms)

        loan = Loan(
            loan_id=str(uuid.uuid4()),
            client_id=client.client_id,
            client_name=client.name,
            principal=terms.principal,
            currency=terms.currency,
            interest_rate=terms.interest_rate,
            origination_date=terms.origination_date,
            term_length=terms.term_length,
            term_unit=terms.term_unit,
            amount_due=financials.total_debt,
            outstanding=financials.total_debt > 0,
            due_date=financials.due_date,
            amount_paid=Decimal("0.00"),
            delay_days=0,
        )
        with self.store.transaction():
            self.store.insert_loan(loan)

        logger.info(
            "Created loan %s for %s: total %s due %s",
            loan.loan_id,
            loan.client_name,
            loan.amount_due,
            loan.due_date,
            extra=ledger_context(loan.loan_id, client_id=loan.client_id),
        )
        self._publish(EventType.LOAN_CREATED, loan.loan_id, loan)
        return loan

    def edit_loan(
        self,
        loan_id: str,
        terms: LoanTerms,
        amount_paid: Decimal | None = None,
        client: Client | None = None,
    ) -> Loan:
        """Replace a loan's terms and recompute its balance.

        Parameters
        ----------
        loan_id : str
            Loan to edit.
        terms : LoanTerms
            New terms.
        amount_paid : Decimal | None
            Accumulated payments to net against the new total. Defaults to
            the stored value. The stored ``amount_paid`` is never changed.
        client : Client | None
            Reassign the loan to another client.

        Raises
        ------
        NotFoundError
            If the loan does not exist.
        InvalidTermsError
            If the new terms are degenerate.
        """
        terms = _normalize_terms(terms)
        financials = compute_terms(terms)

        with self._exclusive(loan_id):
            loan = self._require_loan(loan_id)
            paid = loan.amount_paid if amount_paid is None else to_money(amount_paid, "amount_paid")
            amount_due, outstanding = settle(financials.total_debt, paid)
            updated = replace(
                loan,
                principal=terms.principal,
                currency=terms.currency,
                interest_rate=terms.interest_rate,
                origination_date=terms.origination_date,
                term_length=terms.term_length,
                term_unit=terms.term_unit,
                amount_due=amount_due,
                outstanding=outstanding,
                due_date=financials.due_date,
            )
            if client is not None:
                updated = replace(updated, client_id=client.client_id, client_name=client.name)
            self.store.update_loan(updated)

        logger.info(
            "Edited loan %s: amount due %s",
            loan_id,
            updated.amount_due,
            extra=ledger_context(loan_id, client_id=updated.client_id),
        )
        self._publish(EventType.LOAN_UPDATED, loan_id, updated)
        return updated

    def delete_loan(self, loan_id: str) -> int:
        """Delete a loan together with its payments.

        Returns
        -------
        int
            Number of payments deleted with the loan.
        """
        with self._exclusive(loan_id):
            loan = self._require_loan(loan_id)
            removed = self.store.delete_loan_payments(loan_id)
            self.store.delete_loan(loan_id)
        self._locks.discard(loan_id)

        logger.info(
            "Deleted loan %s and %d payments", loan_id, removed, extra=ledger_context(loan_id)
        )
        self._publish(
            EventType.LOAN_DELETED, loan_id, loan, metadata={"payments_deleted": removed}
        )
        return removed

    # Payments
    def record_payment(
        self,
        loan_id: str,
        amount: Decimal | int | str,
        payment_date: date | None = None,
    ) -> Payment:
        """Record a payment and apply it to the loan's balance.

        Paying more than the amount due is allowed; the balance is clamped
        at zero and the loan settles.

        Raises
        ------
        NotFoundError
            If the loan does not exist.
        InvalidPaymentError
            If the amount is negative.
        """
        amount = _payment_amount(amount)

        with self._exclusive(loan_id):
            loan = self._require_loan(loan_id)
            if amount > loan.amount_due:
                logger.warning(
                    "Payment of %s exceeds amount due %s on loan %s",
                    amount,
                    loan.amount_due,
                    loan_id,
                    extra=ledger_context(loan_id),
                )
            payment = Payment(
                payment_id=str(uuid.uuid4()),
                loan_id=loan_id,
                amount=amount,
                payment_date=payment_date or date.today(),
            )
            self.store.insert_payment(payment)
            loan = self._apply_difference(loan, amount)

        logger.info(
            "Recorded payment %s of %s on loan %s: amount due %s",
            payment.payment_id,
            amount,
            loan_id,
            loan.amount_due,
            extra=ledger_context(loan_id, payment.payment_id),
        )
        self._publish(EventType.PAYMENT_RECORDED, loan_id, payment, metadata=_balance(loan))
        return payment

    def adjust_loan_balance(self, loan_id: str, amount_difference: Decimal | int | str) -> Loan:
        """Shift a loan's paid amount by ``amount_difference`` and rebalance.

        ``amount_difference`` may be negative, e.g. when a payment is
        reversed.
        """
        difference = to_money(amount_difference, "amount_difference")
        with self._exclusive(loan_id):
            loan = self._apply_difference(self._require_loan(loan_id), difference)

        self._publish(EventType.LOAN_UPDATED, loan_id, loan)
        return loan

    def edit_payment(
        self,
        payment_id: str,
        new_amount: Decimal | int | str,
        new_date: date | None = None,
    ) -> Payment:
        """Change a payment's amount and date, rebalancing its loan.

        Raises
        ------
        NotFoundError
            If the payment does not exist.
        """
        new_amount = _payment_amount(new_amount)
        loan_id = self._require_payment(payment_id).loan_id

        with self._exclusive(loan_id):
            payment = self._require_payment(payment_id)
            difference = new_amount - payment.amount
            updated = replace(
                payment,
                amount=new_amount,
                payment_date=new_date or payment.payment_date,
            )
            self.store.update_payment(updated)
            loan = None
            if difference != 0:
                loan = self._apply_difference(self._require_loan(loan_id), difference)

        logger.info(
            "Edited payment %s on loan %s: difference %s",
            payment_id,
            loan_id,
            difference,
            extra=ledger_context(loan_id, payment_id),
        )
        self._publish(
            EventType.PAYMENT_UPDATED,
            loan_id,
            updated,
            metadata=_balance(loan) if loan else None,
        )
        return updated

    def delete_payment(self, payment_id: str) -> None:
        """Delete a payment and reverse its effect on the loan.

        Raises
        ------
        NotFoundError
            If the payment does not exist.
        """
        loan_id = self._require_payment(payment_id).loan_id

        with self._exclusive(loan_id):
            payment = self._require_payment(payment_id)
            self.store.delete_payment(payment_id)
            loan = self._apply_difference(self._require_loan(loan_id), -payment.amount)

        logger.info(
            "Deleted payment %s of %s on loan %s",
            payment_id,
            payment.amount,
            loan_id,
            extra=ledger_context(loan_id, payment_id),
        )
        self._publish(EventType.PAYMENT_DELETED, loan_id, payment, metadata=_balance(loan))

    def reconcile(self, loan_id: str) -> Loan:
        """Rebuild ``amount_paid`` from the full payment log.

        Used to repair a loan whose balance drifted from its payments, e.g.
        after rows were edited outside the ledger.
        """
        with self._exclusive(loan_id):
            loan = self._require_loan(loan_id)
            paid = sum(
                (p.amount for p in self.store.list_payments(loan_id)), Decimal("0.00")
            )
            difference = paid - loan.amount_paid
            if difference != 0:
                logger.warning(
                    "Loan %s drifted by %s from its payments; reconciling",
                    loan_id,
                    difference,
                    extra=ledger_context(loan_id),
                )
            loan = self._apply_difference(loan, difference)

        self._publish(EventType.LOAN_UPDATED, loan_id, loan)
        return loan

    def _apply_difference(self, loan: Loan, difference: Decimal) -> Loan:
        """Apply a payment delta to a loan and persist it.

        The caller holds the loan's mutex and an open transaction. The total
        debt is recomputed from the stored terms rather than read back from
        a stored total.
        """
        total_debt = compute_terms(loan.terms).total_debt
        amount_paid = round_money(loan.amount_paid + difference)
        amount_due, outstanding = settle(total_debt, amount_paid)
        updated = replace(
            loan,
            amount_paid=amount_paid,
            amount_due=amount_due,
            outstanding=outstanding,
        )
        self.store.update_loan(updated)
        if loan.outstanding and not outstanding:
            logger.info("Loan %s settled", loan.loan_id, extra=ledger_context(loan.loan_id))
        return updated

    # Queries
    def get_loan(self, loan_id: str) -> Loan:
        """Get a loan by ID."""
        return self._require_loan(loan_id)

    def list_loans(self) -> list[Loan]:
        """Get all loans, newest origination first."""
        return self.store.list_loans()

    def search_loans(self, query: str) -> list[Loan]:
        """Find loans whose client name or client ID contains ``query``."""
        needle = query.casefold()
        loans = [
            loan
            for loan in self.store.list_loans()
            if needle in loan.client_name.casefold() or needle in loan.client_id.casefold()
        ]
        return sorted(loans, key=lambda loan: loan.origination_date)

    def get_payment(self, payment_id: str) -> Payment:
        """Get a payment by ID."""
        return self._require_payment(payment_id)

    def list_payments(self, loan_id: str) -> list[Payment]:
        """Get a loan's payments, newest first."""
        return self.store.list_payments(loan_id)

    def quote(self, terms: LoanTerms) -> Quote:
        """Price a loan without creating it."""
        return quote(_normalize_terms(terms))

    def _require_loan(self, loan_id: str) -> Loan:
        loan = self.store.get_loan(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found")
        return loan

    def _require_payment(self, payment_id: str) -> Payment:
        payment = self.store.get_payment(payment_id)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        return payment

    def _publish(
        self,
        event_type: EventType,
        loan_id: str,
        record: Any,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self.sink is None:
            return
        self.sink.publish(
            Event(
                event_id=str(uuid.uuid4()),
                event_type=event_type.value,
                event_time=datetime.now(timezone.utc),
                source=self.source,
                subject=loan_id,
                data=to_dict_fast(record),
                metadata=metadata or {},
            )
        )


def _normalize_terms(terms: LoanTerms) -> LoanTerms:
    """Coerce loose input (ints, strings) into canonical term types."""
    try:
        currency = Currency(terms.currency)
    except ValueError as e:
        raise InvalidTermsError(f"Unknown currency: {terms.currency!r}") from e
    return LoanTerms(
        principal=to_money(terms.principal, "principal"),
        interest_rate=to_rate(terms.interest_rate),
        term_length=terms.term_length,
        term_unit=to_term_unit(terms.term_unit),
        origination_date=terms.origination_date,
        currency=currency,
    )


def _payment_amount(amount: Any) -> Decimal:
    try:
        value = to_money(amount)
    except InvalidTermsError as e:
        raise InvalidPaymentError(str(e)) from e
    if value < 0:
        raise InvalidPaymentError(f"Payment amount cannot be negative, got {value}")
    return value


def _balance(loan: Loan) -> dict[str, str | bool]:
    return {
        "amount_paid": str(loan.amount_paid),
        "amount_due": str(loan.amount_due),
        "outstanding": loan.outstanding,
    }
