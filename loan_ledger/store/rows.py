"""Row layout shared by the SQL stores."""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from loan_ledger.financials import round_money, round_rate
from loan_ledger.models import Client, Currency, Loan, Payment, TermUnit

LOAN_COLUMNS = (
    "id",
    "client_id",
    "client_name",
    "principal",
    "currency",
    "interest_rate",
    "origination_date",
    "term_length",
    "term_unit",
    "amount_due",
    "outstanding",
    "due_date",
    "amount_paid",
    "delay_days",
)

PAYMENT_COLUMNS = ("id", "loan_id", "amount", "payment_date")

CLIENT_COLUMNS = ("id", "name", "national_id", "address", "phone")


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _as_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _out(value: Any, native_types: bool) -> Any:
    if native_types:
        return value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def loan_to_row(loan: Loan, native_types: bool = False) -> tuple:
    """Flatten a loan into column order.

    SQLite gets money as text and dates as ISO strings; drivers that adapt
    ``Decimal`` and ``date`` themselves pass ``native_types=True``.
    """
    return (
        loan.loan_id,
        loan.client_id,
        loan.client_name,
        _out(loan.principal, native_types),
        loan.currency.value,
        _out(loan.interest_rate, native_types),
        _out(loan.origination_date, native_types),
        loan.term_length,
        loan.term_unit.value,
        _out(loan.amount_due, native_types),
        1 if loan.outstanding else 0,
        _out(loan.due_date, native_types),
        _out(loan.amount_paid, native_types),
        loan.delay_days,
    )


def row_to_loan(row: Mapping[str, Any]) -> Loan:
    """Build a loan from a database row."""
    return Loan(
        loan_id=row["id"],
        client_id=row["client_id"],
        client_name=row["client_name"],
        principal=round_money(_as_decimal(row["principal"])),
        currency=Currency(row["currency"]),
        interest_rate=round_rate(_as_decimal(row["interest_rate"])),
        origination_date=_as_date(row["origination_date"]),
        term_length=int(row["term_length"]),
        term_unit=TermUnit(row["term_unit"]),
        amount_due=round_money(_as_decimal(row["amount_due"])),
        outstanding=bool(row["outstanding"]),
        due_date=_as_date(row["due_date"]),
        amount_paid=round_money(_as_decimal(row["amount_paid"])),
        delay_days=int(row["delay_days"]),
    )


def payment_to_row(payment: Payment, native_types: bool = False) -> tuple:
    """Flatten a payment into column order."""
    return (
        payment.payment_id,
        payment.loan_id,
        _out(payment.amount, native_types),
        _out(payment.payment_date, native_types),
    )


def row_to_payment(row: Mapping[str, Any]) -> Payment:
    """Build a payment from a database row."""
    return Payment(
        payment_id=row["id"],
        loan_id=row["loan_id"],
        amount=round_money(_as_decimal(row["amount"])),
        payment_date=_as_date(row["payment_date"]),
    )


def client_to_row(client: Client) -> tuple:
    """Flatten a client into column order."""
    return (client.client_id, client.name, client.national_id, client.address, client.phone)


def row_to_client(row: Mapping[str, Any]) -> Client:
    """Build a client from a database row."""
    return Client(
        client_id=row["id"],
        name=row["name"],
        national_id=row["national_id"],
        address=row["address"],
        phone=row["phone"],
    )
