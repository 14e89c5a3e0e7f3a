"""Loan and payment models."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from loan_ledger.models.enums import Currency, TermUnit


@dataclass(frozen=True)
class LoanTerms:
    """Terms a loan is originated or edited with."""

    principal: Decimal  # Cantidad prestada
    interest_rate: Decimal  # Percentage (e.g., 5 for 5%)
    term_length: int  # Periodo
    term_unit: TermUnit
    origination_date: date
    currency: Currency = Currency.USD


@dataclass
class Loan:
    """Loan record ("préstamo").

    ``amount_due`` always holds the remaining balance. The original total
    (principal plus interest) is never stored; it is derived from the terms
    through :attr:`total_debt`.
    """

    loan_id: str
    client_id: str
    client_name: str
    principal: Decimal
    currency: Currency
    interest_rate: Decimal
    origination_date: date
    term_length: int
    term_unit: TermUnit
    amount_due: Decimal
    outstanding: bool
    due_date: date
    amount_paid: Decimal = Decimal("0.00")
    delay_days: int = 0

    @property
    def terms(self) -> LoanTerms:
        """Terms currently stored on the loan."""
        return LoanTerms(
            principal=self.principal,
            interest_rate=self.interest_rate,
            term_length=self.term_length,
            term_unit=self.term_unit,
            origination_date=self.origination_date,
            currency=self.currency,
        )

    @property
    def total_debt(self) -> Decimal:
        """Principal plus interest, recomputed from the stored terms."""
        from loan_ledger.financials import compute_financials

        return compute_financials(
            self.principal,
            self.interest_rate,
            self.term_length,
            self.term_unit,
            self.origination_date,
        ).total_debt


@dataclass
class Payment:
    """Payment ("abono") applied against a loan."""

    payment_id: str
    loan_id: str
    amount: Decimal
    payment_date: date
