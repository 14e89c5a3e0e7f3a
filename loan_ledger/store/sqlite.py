"""Embedded SQLite ledger store."""

import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from loan_ledger.exceptions import PersistenceError
from loan_ledger.store.sql import SqlLedgerStore

logger = logging.getLogger(__name__)


class SqliteLedgerStore(SqlLedgerStore):
    """Ledger store backed by a local SQLite file (or ``:memory:``)."""

    PARAM = "?"
    NATIVE_TYPES = False
    SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS clients (
            id TEXT PRIMARY KEY NOT NULL,
            name TEXT NOT NULL,
            national_id TEXT NOT NULL,
            address TEXT NOT NULL,
            phone TEXT NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS loans (
            id TEXT PRIMARY KEY NOT NULL,
            client_id TEXT NOT NULL,
            client_name TEXT NOT NULL,
            principal REAL NOT NULL,
            currency TEXT NOT NULL,
            interest_rate REAL NOT NULL,
            origination_date TEXT NOT NULL,
            term_length INTEGER NOT NULL,
            term_unit TEXT NOT NULL,
            amount_due REAL NOT NULL,
            outstanding INTEGER NOT NULL,
            due_date TEXT NOT NULL,
            amount_paid REAL NOT NULL,
            delay_days INTEGER NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS payments (
            id TEXT PRIMARY KEY NOT NULL,
            loan_id TEXT NOT NULL,
            amount REAL NOT NULL,
            payment_date TEXT NOT NULL,
            FOREIGN KEY (loan_id) REFERENCES loans(id)
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_payments_loan_id ON payments (loan_id)",
    )

    def __init__(self, path: str | Path = ":memory:") -> None:
        """Open the database and create the schema.

        Parameters
        ----------
        path : str | Path
            Database file, or ``":memory:"`` for a throwaway database.
        """
        super().__init__()
        self.path = str(path)
        try:
            # Transactions are issued explicitly; the store lock serialises threads.
            self.conn = sqlite3.connect(
                self.path, isolation_level=None, check_same_thread=False
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open {self.path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.create_schema()
        logger.info("SQLite ledger store opened at %s", self.path)

    @property
    def driver_error(self) -> type[Exception]:
        return sqlite3.Error

    def _run(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        return self.conn.execute(sql, tuple(params))

    def _begin(self) -> None:
        self.conn.execute("BEGIN")

    def _commit(self) -> None:
        self.conn.execute("COMMIT")

    def _rollback(self) -> None:
        self.conn.execute("ROLLBACK")

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
        logger.info("SQLite ledger store closed")
