"""Loan terms and payment history generators for demo data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from loan_ledger.financials import MAX_DAY_TERM, SUNDAY, daily_installment, round_money
from loan_ledger.generators.base import BaseGenerator
from loan_ledger.models import Currency, Loan, LoanTerms, TermUnit


@dataclass(frozen=True)
class PlannedPayment:
    """Payment to be recorded against a generated loan."""

    payment_date: date
    amount: Decimal


class LoanTermsGenerator(BaseGenerator):
    """Generate valid loan terms for every term unit."""

    TERM_UNITS = list(TermUnit)
    TERM_UNIT_WEIGHTS = [0.40, 0.10, 0.50]  # Days, Weeks, Months

    # Interest rate options (%) by term unit
    INTEREST_RATES = {
        TermUnit.DAYS: [10, 15, 20],
        TermUnit.WEEKS: [3, 5],
        TermUnit.MONTHS: [5, 8, 10, 15, 20],
    }

    TERM_LENGTHS = {
        TermUnit.DAYS: (5, MAX_DAY_TERM - 1),
        TermUnit.WEEKS: (2, 12),
        TermUnit.MONTHS: (1, 12),
    }

    def generate(self, origination_date: date | None = None) -> LoanTerms:
        """Generate loan terms.

        Parameters
        ----------
        origination_date : date | None
            Date the loan is granted; within the last year when omitted.

        Returns
        -------
        LoanTerms
            Generated terms, always accepted by ``compute_financials``.
        """
        unit = self.random.choices(self.TERM_UNITS, weights=self.TERM_UNIT_WEIGHTS, k=1)[0]
        low, high = self.TERM_LENGTHS[unit]

        if origination_date is None:
            origination_date = date.today() - timedelta(days=self.random.randint(0, 365))

        return LoanTerms(
            principal=Decimal(self.random.randint(10, 500) * 100),
            interest_rate=Decimal(self.random.choice(self.INTEREST_RATES[unit])),
            term_length=self.random.randint(low, high),
            term_unit=unit,
            origination_date=origination_date,
            currency=self.random.choices([Currency.NIO, Currency.USD], weights=[0.7, 0.3], k=1)[0],
        )


class PaymentPlanGenerator(BaseGenerator):
    """Simulate a borrower paying daily installments."""

    def generate_for_loan(
        self,
        loan: Loan,
        on_time_rate: float = 0.8,
        reference_date: date | None = None,
    ) -> list[PlannedPayment]:
        """Generate payments from origination up to ``reference_date``.

        On each collection day (Sundays excluded) the borrower pays the
        daily installment with probability ``on_time_rate``. Payments stop
        once the debt is covered; the last one is trimmed to the remainder.

        Parameters
        ----------
        loan : Loan
            Freshly created loan.
        on_time_rate : float
            Probability of paying on a given collection day.
        reference_date : date | None
            Last day to simulate (default: today).

        Returns
        -------
        list[PlannedPayment]
            Payments in chronological order.
        """
        reference_date = reference_date or date.today()
        installment = daily_installment(loan.amount_due, loan.term_length, loan.term_unit)
        remaining = loan.amount_due
        payments: list[PlannedPayment] = []

        day = loan.origination_date
        while remaining > 0 and installment > 0:
            day += timedelta(days=1)
            if day > reference_date:
                break
            if day.weekday() == SUNDAY or self.random.random() > on_time_rate:
                continue
            amount = min(installment, remaining)
            payments.append(PlannedPayment(payment_date=day, amount=amount))
            remaining = round_money(remaining - amount)

        return payments
