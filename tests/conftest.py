"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from loan_ledger.ledger import LoanLedger
from loan_ledger.models import Client, Currency, Event, LoanTerms, TermUnit
from loan_ledger.sinks.base import EventSink
from loan_ledger.store.memory import InMemoryLedgerStore


class RecordingSink(EventSink):
    """Event sink that keeps published events in a list."""

    def __init__(self) -> None:
        self.events: list[Event] = []
        self.closed = False

    def publish(self, event: Event) -> None:
        self.events.append(event)

    def close(self) -> None:
        self.closed = True

    @property
    def event_types(self) -> list[str]:
        return [event.event_type for event in self.events]


@pytest.fixture
def store() -> InMemoryLedgerStore:
    """Fresh in-memory store for each test."""
    return InMemoryLedgerStore()


@pytest.fixture
def sink() -> RecordingSink:
    """Sink capturing ledger events."""
    return RecordingSink()


@pytest.fixture
def ledger(store: InMemoryLedgerStore, sink: RecordingSink) -> LoanLedger:
    """Ledger over the in-memory store."""
    return LoanLedger(store, sink=sink)


@pytest.fixture
def client() -> Client:
    """Sample borrower."""
    return Client(
        client_id="cli-test-001",
        name="María López",
        national_id="001-010190-0001A",
        address="Barrio Monseñor Lezcano, Managua",
        phone="+505 8888 0000",
    )


@pytest.fixture
def months_terms() -> LoanTerms:
    """1000 at 5% for 3 months from 2024-01-01."""
    return LoanTerms(
        principal=Decimal("1000"),
        interest_rate=Decimal("5"),
        term_length=3,
        term_unit=TermUnit.MONTHS,
        origination_date=date(2024, 1, 1),
        currency=Currency.USD,
    )


@pytest.fixture
def days_terms() -> LoanTerms:
    """500 at 10% for 10 days from Monday 2024-01-01."""
    return LoanTerms(
        principal=Decimal("500"),
        interest_rate=Decimal("10"),
        term_length=10,
        term_unit=TermUnit.DAYS,
        origination_date=date(2024, 1, 1),
        currency=Currency.NIO,
    )


@pytest.fixture
def hundred_terms() -> LoanTerms:
    """Interest-free loan of exactly 100.00."""
    return LoanTerms(
        principal=Decimal("100"),
        interest_rate=Decimal("0"),
        term_length=1,
        term_unit=TermUnit.MONTHS,
        origination_date=date(2024, 1, 1),
    )
