"""Loan financial engine.

Every figure shown for a loan (total debt, due date, daily installment)
comes from this module. Callers never re-derive the formulas.

Interest is flat simple interest on the principal:

- ``Months``: one interest charge per month of the term.
- ``Weeks``: one interest charge per week of the term.
- ``Days``: a single interest charge regardless of the number of days.
  Day terms must be shorter than :data:`MAX_DAY_TERM` and their due date
  skips Sundays.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from loan_ledger.exceptions import InvalidTermsError
from loan_ledger.models.enums import TermUnit
from loan_ledger.models.loan import LoanTerms

CENT = Decimal("0.01")

# Rates are kept to four decimal places, the precision of the stored column.
RATE_PLACES = Decimal("0.0001")

# Day-denominated loans must fit in one billing cycle.
MAX_DAY_TERM = 26

# Collection days used to split a period into daily installments.
COLLECTION_DAYS_PER_MONTH = 26
COLLECTION_DAYS_PER_WEEK = 6

SUNDAY = 6


@dataclass(frozen=True)
class Financials:
    """Debt and due date derived from a loan's terms."""

    total_debt: Decimal
    due_date: date


@dataclass(frozen=True)
class Quote:
    """Quotation ("cotización") shown before a loan is granted."""

    total_debt: Decimal
    due_date: date
    daily_installment: Decimal


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    """Round an interest rate to :data:`RATE_PLACES`, half up."""
    return value.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Convert user input to a finite ``Decimal`` without float artefacts.

    Raises
    ------
    InvalidTermsError
        If the value is not a number, or is NaN or infinite.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise InvalidTermsError(f"{name} is not a number: {value!r}") from e
    if not result.is_finite():
        raise InvalidTermsError(f"{name} must be a finite number, got {value!r}")
    return result


def to_money(value: Any, name: str = "amount") -> Decimal:
    """Convert user input to an amount in cents."""
    return _quantize(round_money, to_decimal(value, name), name)


def to_rate(value: Any, name: str = "interest_rate") -> Decimal:
    """Convert user input to a rate with four decimal places."""
    return _quantize(round_rate, to_decimal(value, name), name)


def _quantize(rounding, value: Decimal, name: str) -> Decimal:
    try:
        return rounding(value)
    except InvalidOperation as e:
        raise InvalidTermsError(f"{name} is too large: {value}") from e


def to_term_unit(value: TermUnit | str) -> TermUnit:
    """Coerce a term unit given as enum or string."""
    try:
        return TermUnit(value)
    except ValueError as e:
        raise InvalidTermsError(f"Unknown term unit: {value!r}") from e


def compute_financials(
    principal: Decimal | int | str,
    interest_rate: Decimal | int | str,
    term_length: int,
    term_unit: TermUnit | str,
    origination_date: date,
) -> Financials:
    """Compute the total debt and due date of a loan.

    Parameters
    ----------
    principal : Decimal | int | str
        Amount lent.
    interest_rate : Decimal | int | str
        Interest rate as a percentage (``5`` means 5%).
    term_length : int
        Number of term units.
    term_unit : TermUnit | str
        ``Days``, ``Weeks`` or ``Months``.
    origination_date : date
        Date the loan was granted.

    Returns
    -------
    Financials
        Total debt rounded to cents and the due date.

    Raises
    ------
    InvalidTermsError
        If the terms cannot produce a meaningful debt, including day terms
        of :data:`MAX_DAY_TERM` days or more.
    """
    principal = to_decimal(principal, "principal")
    interest_rate = to_decimal(interest_rate, "interest_rate")
    unit = to_term_unit(term_unit)

    if principal <= 0:
        raise InvalidTermsError(f"Principal must be positive, got {principal}")
    if interest_rate < 0:
        raise InvalidTermsError(f"Interest rate cannot be negative, got {interest_rate}")
    if isinstance(term_length, bool) or not isinstance(term_length, int):
        raise InvalidTermsError(f"Term length must be an integer, got {term_length!r}")
    if term_length < 1:
        raise InvalidTermsError(f"Term length must be at least 1, got {term_length}")

    if unit is TermUnit.DAYS and term_length >= MAX_DAY_TERM:
        raise InvalidTermsError(
            f"Day terms must be shorter than {MAX_DAY_TERM} days, got {term_length}"
        )

    interest = principal * interest_rate / Decimal(100)
    if unit is TermUnit.DAYS:
        total = principal + interest
    else:
        total = principal + term_length * interest
    total_debt = _quantize(round_money, total, "total_debt")

    try:
        if unit is TermUnit.DAYS:
            due = add_collection_days(origination_date, term_length)
        elif unit is TermUnit.WEEKS:
            due = origination_date + timedelta(weeks=term_length)
        else:
            due = add_months(origination_date, term_length)
    except (ValueError, OverflowError) as e:
        raise InvalidTermsError(
            f"Due date of a {term_length} {unit.value} term from {origination_date} "
            "is out of range"
        ) from e

    return Financials(total_debt=total_debt, due_date=due)


def compute_terms(terms: LoanTerms) -> Financials:
    """Compute financials for a :class:`LoanTerms` bundle."""
    return compute_financials(
        terms.principal,
        terms.interest_rate,
        terms.term_length,
        terms.term_unit,
        terms.origination_date,
    )


def add_months(start: date, months: int) -> date:
    """Advance by calendar months, clamping to the last day of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_collection_days(start: date, days: int) -> date:
    """Advance ``days`` collection days, not counting Sundays."""
    current = start
    counted = 0
    while counted < days:
        current += timedelta(days=1)
        if current.weekday() != SUNDAY:
            counted += 1
    if current.weekday() == SUNDAY:
        current += timedelta(days=1)
    return current


def daily_installment(
    total_debt: Decimal,
    term_length: int,
    term_unit: TermUnit | str,
) -> Decimal:
    """Amount to collect per collection day ("cuota por día").

    Monthly loans spread each month over 26 collection days, weekly loans
    over 6. Day loans divide the total by the number of days.
    """
    total_debt = to_decimal(total_debt, "total_debt")
    if total_debt <= 0 or term_length <= 0:
        return Decimal("0.00")

    unit = to_term_unit(term_unit)
    if unit is TermUnit.MONTHS:
        per_day = total_debt / term_length / COLLECTION_DAYS_PER_MONTH
    elif unit is TermUnit.WEEKS:
        per_day = total_debt / term_length / COLLECTION_DAYS_PER_WEEK
    else:
        per_day = total_debt / term_length
    return round_money(per_day)


def quote(terms: LoanTerms) -> Quote:
    """Price a loan without persisting anything."""
    financials = compute_terms(terms)
    return Quote(
        total_debt=financials.total_debt,
        due_date=financials.due_date,
        daily_installment=daily_installment(
            financials.total_debt, terms.term_length, terms.term_unit
        ),
    )


def settle(total_debt: Decimal, amount_paid: Decimal) -> tuple[Decimal, bool]:
    """Return the remaining balance and outstanding flag.

    The balance is clamped at zero, so an over-payment settles the loan.
    """
    remaining = max(Decimal("0.00"), round_money(total_debt - amount_paid))
    return remaining, remaining > 0
