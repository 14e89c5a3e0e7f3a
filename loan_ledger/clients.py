"""Client directory: the borrowers loans are granted to."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace

from loan_ledger.exceptions import InvalidClientError, NotFoundError
from loan_ledger.logging import ledger_context
from loan_ledger.models import Client
from loan_ledger.store.base import LedgerStore

logger = logging.getLogger(__name__)


class ClientDirectory:
    """Create, edit, remove and look up clients.

    Loans keep their own copy of the client's name, so renaming a client
    leaves loans already granted untouched. A client cannot be removed
    while any loan still references it.

    Example
    -------
    >>> directory = ClientDirectory(store)
    >>> client = directory.add_client("María López", "001-010190-0001A")
    >>> ledger.create_loan(client, terms)
    """

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def add_client(
        self,
        name: str,
        national_id: str,
        address: str = "",
        phone: str = "",
        client_id: str | None = None,
    ) -> Client:
        """Register a client.

        Raises
        ------
        InvalidClientError
            If the name or national ID ("cédula") is blank, or the ID is
            already taken.
        """
        client = _clean(
            Client(
                client_id=client_id or str(uuid.uuid4()),
                name=name,
                national_id=national_id,
                address=address,
                phone=phone,
            )
        )
        with self.store.transaction():
            if self.store.get_client(client.client_id) is not None:
                raise InvalidClientError(f"Client {client.client_id} already exists")
            self.store.insert_client(client)

        logger.info(
            "Added client %s (%s)",
            client.client_id,
            client.name,
            extra=ledger_context(client_id=client.client_id),
        )
        return client

    def update_client(self, client: Client) -> Client:
        """Replace a client's details.

        Raises
        ------
        NotFoundError
            If the client does not exist.
        InvalidClientError
            If the name or national ID is blank.
        """
        client = _clean(client)
        with self.store.transaction():
            self.store.update_client(client)

        logger.info(
            "Updated client %s",
            client.client_id,
            extra=ledger_context(client_id=client.client_id),
        )
        return client

    def delete_client(self, client_id: str) -> None:
        """Remove a client that has no loans.

        Raises
        ------
        NotFoundError
            If the client does not exist.
        InvalidClientError
            If loans still reference the client.
        """
        with self.store.transaction():
            self.get_client(client_id)
            loans = [loan for loan in self.store.list_loans() if loan.client_id == client_id]
            if loans:
                raise InvalidClientError(
                    f"Client {client_id} still has {len(loans)} loans; delete them first"
                )
            self.store.delete_client(client_id)

        logger.info("Deleted client %s", client_id, extra=ledger_context(client_id=client_id))

    def get_client(self, client_id: str) -> Client:
        """Get a client by ID."""
        client = self.store.get_client(client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found")
        return client

    def list_clients(self) -> list[Client]:
        """Get every client in name order."""
        return self.store.list_clients()

    def search_clients(self, query: str) -> list[Client]:
        """Find clients whose name or national ID contains ``query``."""
        needle = query.strip().casefold()
        return [
            client
            for client in self.store.list_clients()
            if needle in client.name.casefold() or needle in client.national_id.casefold()
        ]


def _clean(client: Client) -> Client:
    client = replace(
        client,
        name=client.name.strip(),
        national_id=client.national_id.strip().upper(),
        address=client.address.strip(),
        phone=client.phone.strip(),
    )
    if not client.name:
        raise InvalidClientError("Client name cannot be blank")
    if not client.national_id:
        raise InvalidClientError("Client national ID cannot be blank")
    return client
