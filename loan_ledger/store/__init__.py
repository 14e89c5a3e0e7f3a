"""Persistence backends for client, loan and payment records."""

from loan_ledger.store.base import LedgerStore
from loan_ledger.store.memory import InMemoryLedgerStore
from loan_ledger.store.sqlite import SqliteLedgerStore

__all__ = ["InMemoryLedgerStore", "LedgerStore", "SqliteLedgerStore"]
