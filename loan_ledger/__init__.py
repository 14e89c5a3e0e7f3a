"""Microloan ledger: loan origination, payments and balance reconciliation."""

from loan_ledger.clients import ClientDirectory
from loan_ledger.exceptions import (
    ConfigurationError,
    InvalidClientError,
    InvalidPaymentError,
    InvalidTermsError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    SinkError,
)
from loan_ledger.financials import Financials, Quote, compute_financials, daily_installment, quote
from loan_ledger.ledger import LoanLedger
from loan_ledger.models import Client, Currency, Loan, LoanTerms, Payment, TermUnit

__all__ = [
    "Client",
    "ClientDirectory",
    "ConfigurationError",
    "Currency",
    "Financials",
    "InvalidClientError",
    "InvalidPaymentError",
    "InvalidTermsError",
    "LedgerError",
    "Loan",
    "LoanLedger",
    "LoanTerms",
    "NotFoundError",
    "Payment",
    "PersistenceError",
    "Quote",
    "SinkError",
    "TermUnit",
    "compute_financials",
    "daily_installment",
    "quote",
]
