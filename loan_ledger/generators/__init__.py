"""Faker-based demo data generators."""

from loan_ledger.generators.client import ClientGenerator
from loan_ledger.generators.loan import LoanTermsGenerator, PaymentPlanGenerator, PlannedPayment

__all__ = [
    "ClientGenerator",
    "LoanTermsGenerator",
    "PaymentPlanGenerator",
    "PlannedPayment",
]
