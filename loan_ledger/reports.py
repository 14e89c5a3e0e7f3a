"""Read-only report queries over the ledger."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from loan_ledger.models import Loan
from loan_ledger.store.base import LedgerStore


@dataclass(frozen=True)
class PaymentLine:
    """One payment as listed in a report."""

    payment_date: date
    client_name: str
    principal: Decimal
    amount: Decimal


@dataclass(frozen=True)
class CashCount:
    """Payments collected on one day ("arqueo de caja")."""

    day: date
    lines: list[PaymentLine]

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0.00"))


@dataclass(frozen=True)
class OverdueLoan:
    """Outstanding loan past its due date."""

    loan: Loan
    delay_days: int


class LedgerReports:
    """Queries used by report and export screens.

    Nothing here writes to the store. ``delay_days`` is computed on the fly
    and never persisted.
    """

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def payments_between(self, start: date, end: date) -> list[PaymentLine]:
        """Payments dated within ``[start, end]``, oldest first.

        Payments whose loan no longer exists are skipped.
        """
        loans = {loan.loan_id: loan for loan in self.store.list_loans()}
        lines = []
        for payment in self.store.list_payments():
            loan = loans.get(payment.loan_id)
            if loan is None or not start <= payment.payment_date <= end:
                continue
            lines.append(
                PaymentLine(
                    payment_date=payment.payment_date,
                    client_name=loan.client_name,
                    principal=loan.principal,
                    amount=payment.amount,
                )
            )
        return sorted(lines, key=lambda line: line.payment_date)

    def loans_originated_between(self, start: date, end: date) -> list[Loan]:
        """Loans granted within ``[start, end]``, oldest first."""
        loans = [
            loan
            for loan in self.store.list_loans()
            if start <= loan.origination_date <= end
        ]
        return sorted(loans, key=lambda loan: loan.origination_date)

    def cash_count(self, day: date) -> CashCount:
        """Payments collected on ``day``."""
        return CashCount(day=day, lines=self.payments_between(day, day))

    def overdue_loans(self, as_of: date | None = None) -> list[OverdueLoan]:
        """Outstanding loans whose due date is before ``as_of``, most overdue first."""
        as_of = as_of or date.today()
        overdue = [
            OverdueLoan(loan=loan, delay_days=(as_of - loan.due_date).days)
            for loan in self.store.list_loans()
            if loan.outstanding and loan.due_date < as_of
        ]
        return sorted(overdue, key=lambda item: item.loan.due_date)
