"""Shared implementation for relational ledger stores."""

import logging
import threading
from abc import abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from loan_ledger.exceptions import NotFoundError, PersistenceError
from loan_ledger.models import Client, Loan, Payment
from loan_ledger.store.base import LedgerStore
from loan_ledger.store.rows import (
    CLIENT_COLUMNS,
    LOAN_COLUMNS,
    PAYMENT_COLUMNS,
    client_to_row,
    loan_to_row,
    payment_to_row,
    row_to_client,
    row_to_loan,
    row_to_payment,
)

logger = logging.getLogger(__name__)


class SqlLedgerStore(LedgerStore):
    """Parameterised SQL over a single connection owned by the store.

    Subclasses supply the connection, the placeholder style and the driver
    error type. Every public method runs inside :meth:`transaction`, and
    driver errors surface as :class:`PersistenceError` after a rollback.
    """

    # Placeholder for one bound parameter ("?" or "%s")
    PARAM = "?"
    # Whether the driver adapts Decimal and date itself
    NATIVE_TYPES = False
    SCHEMA: Sequence[str] = ()

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0

    # Driver hooks
    @abstractmethod
    def _run(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Execute one statement and return a cursor."""

    @abstractmethod
    def _begin(self) -> None: ...

    @abstractmethod
    def _commit(self) -> None: ...

    @abstractmethod
    def _rollback(self) -> None: ...

    @property
    @abstractmethod
    def driver_error(self) -> type[Exception]:
        """Base exception class raised by the driver."""

    def _placeholders(self, count: int) -> str:
        return ", ".join([self.PARAM] * count)

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> Any:
        try:
            return self._run(sql, params)
        except self.driver_error as e:
            raise PersistenceError(f"Statement failed: {e}") from e

    def create_schema(self) -> None:
        """Create tables if they do not exist."""
        with self.transaction():
            for statement in self.SCHEMA:
                self._execute(statement)

    @contextmanager
    def transaction(self) -> Iterator["SqlLedgerStore"]:
        """Apply every statement in the block, or none of them."""
        with self._lock:
            outer = self._depth == 0
            if outer:
                self._begin_safely()
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outer:
                    self._rollback_safely()
                raise
            self._depth -= 1
            if outer:
                try:
                    self._commit()
                except self.driver_error as e:
                    self._rollback_safely()
                    raise PersistenceError(f"Commit failed: {e}") from e

    def _begin_safely(self) -> None:
        try:
            self._begin()
        except self.driver_error as e:
            raise PersistenceError(f"Could not start transaction: {e}") from e

    def _rollback_safely(self) -> None:
        try:
            self._rollback()
        except self.driver_error:
            logger.exception("Rollback failed")

    # Loans
    def get_loan(self, loan_id: str) -> Loan | None:
        """Get a loan by ID."""
        with self.transaction():
            row = self._execute(
                f"SELECT * FROM loans WHERE id = {self.PARAM}", (loan_id,)
            ).fetchone()
        return row_to_loan(row) if row else None

    def list_loans(self) -> list[Loan]:
        """Get all loans, newest origination first."""
        with self.transaction():
            rows = self._execute(
                "SELECT * FROM loans ORDER BY origination_date DESC"
            ).fetchall()
        return [row_to_loan(row) for row in rows]

    def insert_loan(self, loan: Loan) -> None:
        """Insert a loan row."""
        with self.transaction():
            self._execute(
                f"INSERT INTO loans ({', '.join(LOAN_COLUMNS)}) "
                f"VALUES ({self._placeholders(len(LOAN_COLUMNS))})",
                loan_to_row(loan, self.NATIVE_TYPES),
            )

    def update_loan(self, loan: Loan) -> None:
        """Rewrite every column of a loan row."""
        row = loan_to_row(loan, self.NATIVE_TYPES)
        assignments = ", ".join(f"{col} = {self.PARAM}" for col in LOAN_COLUMNS[1:])
        with self.transaction():
            cursor = self._execute(
                f"UPDATE loans SET {assignments} WHERE id = {self.PARAM}",
                (*row[1:], row[0]),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Loan {loan.loan_id} not found")

    def delete_loan(self, loan_id: str) -> None:
        """Delete a loan row."""
        with self.transaction():
            cursor = self._execute(f"DELETE FROM loans WHERE id = {self.PARAM}", (loan_id,))
            if cursor.rowcount == 0:
                raise NotFoundError(f"Loan {loan_id} not found")

    # Payments
    def get_payment(self, payment_id: str) -> Payment | None:
        """Get a payment by ID."""
        with self.transaction():
            row = self._execute(
                f"SELECT * FROM payments WHERE id = {self.PARAM}", (payment_id,)
            ).fetchone()
        return row_to_payment(row) if row else None

    def list_payments(self, loan_id: str | None = None) -> list[Payment]:
        """Get payments, newest first, optionally for one loan."""
        with self.transaction():
            if loan_id is None:
                cursor = self._execute("SELECT * FROM payments ORDER BY payment_date DESC")
            else:
                cursor = self._execute(
                    f"SELECT * FROM payments WHERE loan_id = {self.PARAM} "
                    "ORDER BY payment_date DESC",
                    (loan_id,),
                )
            rows = cursor.fetchall()
        return [row_to_payment(row) for row in rows]

    def insert_payment(self, payment: Payment) -> None:
        """Insert a payment row."""
        with self.transaction():
            self._execute(
                f"INSERT INTO payments ({', '.join(PAYMENT_COLUMNS)}) "
                f"VALUES ({self._placeholders(len(PAYMENT_COLUMNS))})",
                payment_to_row(payment, self.NATIVE_TYPES),
            )

    def update_payment(self, payment: Payment) -> None:
        """Update amount and date of a payment row."""
        _, _, amount, payment_date = payment_to_row(payment, self.NATIVE_TYPES)
        with self.transaction():
            cursor = self._execute(
                f"UPDATE payments SET amount = {self.PARAM}, payment_date = {self.PARAM} "
                f"WHERE id = {self.PARAM}",
                (amount, payment_date, payment.payment_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Payment {payment.payment_id} not found")

    def delete_payment(self, payment_id: str) -> None:
        """Delete a payment row."""
        with self.transaction():
            cursor = self._execute(
                f"DELETE FROM payments WHERE id = {self.PARAM}", (payment_id,)
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Payment {payment_id} not found")

    def delete_loan_payments(self, loan_id: str) -> int:
        """Delete every payment of a loan and return how many went."""
        with self.transaction():
            cursor = self._execute(
                f"DELETE FROM payments WHERE loan_id = {self.PARAM}", (loan_id,)
            )
            return cursor.rowcount

    # Clients
    def get_client(self, client_id: str) -> Client | None:
        """Get a client by ID."""
        with self.transaction():
            row = self._execute(
                f"SELECT * FROM clients WHERE id = {self.PARAM}", (client_id,)
            ).fetchone()
        return row_to_client(row) if row else None

    def list_clients(self) -> list[Client]:
        """Get all clients ordered by name, ignoring case."""
        with self.transaction():
            rows = self._execute("SELECT * FROM clients ORDER BY LOWER(name), id").fetchall()
        return [row_to_client(row) for row in rows]

    def insert_client(self, client: Client) -> None:
        """Insert a client row."""
        with self.transaction():
            self._execute(
                f"INSERT INTO clients ({', '.join(CLIENT_COLUMNS)}) "
                f"VALUES ({self._placeholders(len(CLIENT_COLUMNS))})",
                client_to_row(client),
            )

    def update_client(self, client: Client) -> None:
        """Rewrite every column of a client row."""
        row = client_to_row(client)
        assignments = ", ".join(f"{col} = {self.PARAM}" for col in CLIENT_COLUMNS[1:])
        with self.transaction():
            cursor = self._execute(
                f"UPDATE clients SET {assignments} WHERE id = {self.PARAM}",
                (*row[1:], row[0]),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Client {client.client_id} not found")

    def delete_client(self, client_id: str) -> None:
        """Delete a client row."""
        with self.transaction():
            cursor = self._execute(f"DELETE FROM clients WHERE id = {self.PARAM}", (client_id,))
            if cursor.rowcount == 0:
                raise NotFoundError(f"Client {client_id} not found")

    @abstractmethod
    def close(self) -> None:
        """Close the underlying connection."""
