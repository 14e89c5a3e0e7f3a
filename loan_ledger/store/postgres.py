"""PostgreSQL ledger store."""

import logging
from collections.abc import Sequence
from typing import Any

import psycopg
from psycopg.rows import dict_row

from loan_ledger.exceptions import PersistenceError
from loan_ledger.store.sql import SqlLedgerStore

logger = logging.getLogger(__name__)


class PostgresLedgerStore(SqlLedgerStore):
    """Ledger store on PostgreSQL via psycopg."""

    PARAM = "%s"
    NATIVE_TYPES = True
    SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS clients (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            national_id TEXT NOT NULL,
            address TEXT NOT NULL,
            phone TEXT NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS loans (
            id TEXT PRIMARY KEY,
            client_id TEXT NOT NULL,
            client_name TEXT NOT NULL,
            principal NUMERIC(14, 2) NOT NULL,
            currency TEXT NOT NULL,
            interest_rate NUMERIC(9, 4) NOT NULL,
            origination_date DATE NOT NULL,
            term_length INTEGER NOT NULL,
            term_unit TEXT NOT NULL,
            amount_due NUMERIC(14, 2) NOT NULL,
            outstanding INTEGER NOT NULL,
            due_date DATE NOT NULL,
            amount_paid NUMERIC(14, 2) NOT NULL,
            delay_days INTEGER NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS payments (
            id TEXT PRIMARY KEY,
            loan_id TEXT NOT NULL REFERENCES loans(id),
            amount NUMERIC(14, 2) NOT NULL,
            payment_date DATE NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_payments_loan_id ON payments (loan_id)",
    )

    def __init__(self, connection_string: str) -> None:
        """Connect and create the schema.

        Parameters
        ----------
        connection_string : str
            libpq connection string, e.g. ``PostgresConfig.connection_string``.
        """
        super().__init__()
        try:
            self.conn = psycopg.connect(connection_string, row_factory=dict_row)
        except psycopg.Error as e:
            raise PersistenceError(f"Could not connect to PostgreSQL: {e}") from e
        self.create_schema()
        logger.info("PostgreSQL ledger store connected")

    @property
    def driver_error(self) -> type[Exception]:
        return psycopg.Error

    def _run(self, sql: str, params: Sequence[Any] = ()) -> Any:
        return self.conn.execute(sql, tuple(params))

    def _begin(self) -> None:
        # psycopg opens a transaction on the first statement
        pass

    def _commit(self) -> None:
        self.conn.commit()

    def _rollback(self) -> None:
        self.conn.rollback()

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
        logger.info("PostgreSQL ledger store closed")
