"""Persistence contract the ledger is written against."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager

from loan_ledger.models import Client, Loan, Payment


class LedgerStore(ABC):
    """Read/write primitives for client, loan and payment records.

    Every mutation made inside one ``transaction()`` block is applied
    together or not at all. Blocks may nest; only the outermost one
    commits. Update and delete calls raise ``NotFoundError`` when the
    record is missing.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager["LedgerStore"]: ...

    @abstractmethod
    def get_loan(self, loan_id: str) -> Loan | None: ...

    @abstractmethod
    def list_loans(self) -> list[Loan]: ...

    @abstractmethod
    def insert_loan(self, loan: Loan) -> None: ...

    @abstractmethod
    def update_loan(self, loan: Loan) -> None: ...

    @abstractmethod
    def delete_loan(self, loan_id: str) -> None: ...

    @abstractmethod
    def get_payment(self, payment_id: str) -> Payment | None: ...

    @abstractmethod
    def list_payments(self, loan_id: str | None = None) -> list[Payment]: ...

    @abstractmethod
    def insert_payment(self, payment: Payment) -> None: ...

    @abstractmethod
    def update_payment(self, payment: Payment) -> None: ...

    @abstractmethod
    def delete_payment(self, payment_id: str) -> None: ...

    @abstractmethod
    def delete_loan_payments(self, loan_id: str) -> int: ...

    @abstractmethod
    def get_client(self, client_id: str) -> Client | None: ...

    @abstractmethod
    def list_clients(self) -> list[Client]: ...

    @abstractmethod
    def insert_client(self, client: Client) -> None: ...

    @abstractmethod
    def update_client(self, client: Client) -> None: ...

    @abstractmethod
    def delete_client(self, client_id: str) -> None: ...

    @abstractmethod
    def close(self) -> None: ...
