"""In-memory ledger store with client/loan/payment relationship tracking."""

import copy
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace

from loan_ledger.exceptions import NotFoundError
from loan_ledger.models import Client, Loan, Payment
from loan_ledger.store.base import LedgerStore


@dataclass
class InMemoryLedgerStore(LedgerStore):
    """Keep clients, loans and payments in dicts.

    Records are copied on the way in and out, so callers never hold a
    reference into the store. ``transaction()`` snapshots the state and
    restores it if the block raises. Reads take the same lock as writes.
    """

    clients: dict[str, Client] = field(default_factory=dict)
    loans: dict[str, Loan] = field(default_factory=dict)
    payments: dict[str, Payment] = field(default_factory=dict)

    # Relationship index
    _loan_payments: dict[str, list[str]] = field(default_factory=dict)

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)
    _depth: int = field(default=0, repr=False, compare=False)

    @contextmanager
    def transaction(self) -> Iterator["InMemoryLedgerStore"]:
        """Apply every change in the block, or none of them."""
        with self._lock:
            snapshot = None
            if self._depth == 0:
                snapshot = copy.deepcopy(
                    (self.clients, self.loans, self.payments, self._loan_payments)
                )
            self._depth += 1
            try:
                yield self
            except BaseException:
                if snapshot is not None:
                    self.clients, self.loans, self.payments, self._loan_payments = snapshot
                raise
            finally:
                self._depth -= 1

    def get_loan(self, loan_id: str) -> Loan | None:
        """Get a loan by ID."""
        with self._lock:
            loan = self.loans.get(loan_id)
            return replace(loan) if loan else None

    def list_loans(self) -> list[Loan]:
        """Get all loans, newest origination first."""
        with self._lock:
            loans = sorted(self.loans.values(), key=lambda l: l.origination_date, reverse=True)
            return [replace(loan) for loan in loans]

    def insert_loan(self, loan: Loan) -> None:
        """Add a loan to the store."""
        with self._lock:
            self.loans[loan.loan_id] = replace(loan)
            self._loan_payments.setdefault(loan.loan_id, [])

    def update_loan(self, loan: Loan) -> None:
        """Replace a stored loan."""
        with self._lock:
            if loan.loan_id not in self.loans:
                raise NotFoundError(f"Loan {loan.loan_id} not found")
            self.loans[loan.loan_id] = replace(loan)

    def delete_loan(self, loan_id: str) -> None:
        """Remove a loan. Its payment index goes with it."""
        with self._lock:
            if loan_id not in self.loans:
                raise NotFoundError(f"Loan {loan_id} not found")
            del self.loans[loan_id]
            self._loan_payments.pop(loan_id, None)

    def get_payment(self, payment_id: str) -> Payment | None:
        """Get a payment by ID."""
        with self._lock:
            payment = self.payments.get(payment_id)
            return replace(payment) if payment else None

    def list_payments(self, loan_id: str | None = None) -> list[Payment]:
        """Get payments, newest first, optionally for one loan."""
        with self._lock:
            if loan_id is None:
                payments = list(self.payments.values())
            else:
                payment_ids = self._loan_payments.get(loan_id, [])
                payments = [self.payments[pid] for pid in payment_ids]
            payments.sort(key=lambda p: p.payment_date, reverse=True)
            return [replace(p) for p in payments]

    def insert_payment(self, payment: Payment) -> None:
        """Add a payment to the store."""
        with self._lock:
            if payment.loan_id not in self.loans:
                raise NotFoundError(f"Loan {payment.loan_id} not found")
            self.payments[payment.payment_id] = replace(payment)
            self._loan_payments[payment.loan_id].append(payment.payment_id)

    def update_payment(self, payment: Payment) -> None:
        """Replace a stored payment."""
        with self._lock:
            if payment.payment_id not in self.payments:
                raise NotFoundError(f"Payment {payment.payment_id} not found")
            self.payments[payment.payment_id] = replace(payment)

    def delete_payment(self, payment_id: str) -> None:
        """Remove a payment."""
        with self._lock:
            payment = self.payments.pop(payment_id, None)
            if payment is None:
                raise NotFoundError(f"Payment {payment_id} not found")
            ids = self._loan_payments.get(payment.loan_id, [])
            if payment_id in ids:
                ids.remove(payment_id)

    def delete_loan_payments(self, loan_id: str) -> int:
        """Remove every payment of a loan and return how many went."""
        with self._lock:
            payment_ids = self._loan_payments.get(loan_id, [])
            for pid in payment_ids:
                del self.payments[pid]
            count = len(payment_ids)
            if loan_id in self._loan_payments:
                self._loan_payments[loan_id] = []
            return count

    def get_client(self, client_id: str) -> Client | None:
        """Get a client by ID."""
        with self._lock:
            client = self.clients.get(client_id)
            return replace(client) if client else None

    def list_clients(self) -> list[Client]:
        """Get all clients ordered by name."""
        with self._lock:
            clients = sorted(self.clients.values(), key=lambda c: c.name.casefold())
            return [replace(client) for client in clients]

    def insert_client(self, client: Client) -> None:
        """Add a client to the store."""
        with self._lock:
            self.clients[client.client_id] = replace(client)

    def update_client(self, client: Client) -> None:
        """Replace a stored client."""
        with self._lock:
            if client.client_id not in self.clients:
                raise NotFoundError(f"Client {client.client_id} not found")
            self.clients[client.client_id] = replace(client)

    def delete_client(self, client_id: str) -> None:
        """Remove a client."""
        with self._lock:
            if self.clients.pop(client_id, None) is None:
                raise NotFoundError(f"Client {client_id} not found")

    def summary(self) -> dict[str, int]:
        """Return summary counts of all records."""
        with self._lock:
            return {
                "clients": len(self.clients),
                "loans": len(self.loans),
                "payments": len(self.payments),
            }

    def close(self) -> None:
        """Nothing to release."""
