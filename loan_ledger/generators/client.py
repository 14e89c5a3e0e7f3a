"""Client generator for demo data."""

from __future__ import annotations

from typing import Iterator

from loan_ledger.generators.base import BaseGenerator
from loan_ledger.models import Client

# Nicaraguan cédula: municipality, birth date (ddmmyy), sequence, check letter
CEDULA_FORMAT = "###-######-####?"
CEDULA_LETTERS = "ABCDEFGHJKLMNPQRSTUVWXY"


class ClientGenerator(BaseGenerator):
    """Generate synthetic borrowers."""

    def generate(self) -> Client:
        """Generate a single client.

        Returns
        -------
        Client
            Generated client.
        """
        return Client(
            client_id=self.fake.uuid4(),
            name=self.fake.name(),
            national_id=self.fake.bothify(CEDULA_FORMAT, letters=CEDULA_LETTERS),
            address=self.fake.address().replace("\n", ", "),
            phone=self.fake.phone_number(),
        )

    def generate_batch(self, count: int) -> Iterator[Client]:
        """Generate multiple clients.

        Parameters
        ----------
        count : int
            Number of clients to generate.

        Yields
        ------
        Client
            Generated clients.
        """
        for _ in range(count):
            yield self.generate()
