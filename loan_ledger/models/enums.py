"""Enumeration types for the loan ledger."""

from enum import Enum


class TermUnit(str, Enum):
    """Unit the repayment period ("tiempo") is expressed in."""

    DAYS = "Days"
    WEEKS = "Weeks"
    MONTHS = "Months"


class Currency(str, Enum):
    USD = "$"
    NIO = "C$"


class EventType(str, Enum):
    LOAN_CREATED = "loan.created"
    LOAN_UPDATED = "loan.updated"
    LOAN_DELETED = "loan.deleted"
    PAYMENT_RECORDED = "payment.recorded"
    PAYMENT_UPDATED = "payment.updated"
    PAYMENT_DELETED = "payment.deleted"
