"""Domain models for the loan ledger."""

from loan_ledger.models.base import Event
from loan_ledger.models.client import Client
from loan_ledger.models.enums import Currency, EventType, TermUnit
from loan_ledger.models.loan import Loan, LoanTerms, Payment

__all__ = [
    "Client",
    "Currency",
    "Event",
    "EventType",
    "Loan",
    "LoanTerms",
    "Payment",
    "TermUnit",
]
