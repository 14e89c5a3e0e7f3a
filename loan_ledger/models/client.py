"""Client directory models."""

from dataclasses import dataclass


@dataclass
class Client:
    """Borrower as supplied by the client directory."""

    client_id: str
    name: str
    national_id: str  # Cédula
    address: str = ""
    phone: str = ""
