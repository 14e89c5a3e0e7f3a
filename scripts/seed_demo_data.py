#!/usr/bin/env python3
"""Populate a ledger with demo clients, loans and payments.

Every loan and payment goes through ``LoanLedger``, so balances in the
seeded database are exactly what the application would have produced.
The backend and event sink come from the environment (see
``LedgerConfig.from_env``) unless overridden on the command line.
"""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loan_ledger.app import open_ledger
from loan_ledger.clients import ClientDirectory
from loan_ledger.config import DatabaseConfig, EventConfig, LedgerConfig
from loan_ledger.generators import ClientGenerator, LoanTermsGenerator, PaymentPlanGenerator
from loan_ledger.logging import setup_logging
from loan_ledger.reports import LedgerReports

logger = logging.getLogger(__name__)


def seed(config: LedgerConfig, num_clients: int, loans_per_client: int, seed_value: int) -> None:
    """Create clients, loans and payments through the ledger."""
    client_gen = ClientGenerator(seed=seed_value)
    terms_gen = LoanTermsGenerator(seed=seed_value)
    plan_gen = PaymentPlanGenerator(seed=seed_value)

    loans = 0
    payments = 0
    with open_ledger(config) as ledger:
        directory = ClientDirectory(ledger.store)
        for generated in client_gen.generate_batch(num_clients):
            client = directory.add_client(
                generated.name,
                generated.national_id,
                generated.address,
                generated.phone,
                client_id=generated.client_id,
            )
            for _ in range(loans_per_client):
                loan = ledger.create_loan(client, terms_gen.generate())
                loans += 1
                for planned in plan_gen.generate_for_loan(loan):
                    ledger.record_payment(loan.loan_id, planned.amount, planned.payment_date)
                    payments += 1

        overdue = LedgerReports(ledger.store).overdue_loans(date.today())

    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    print(f"{'Clients:':18}{num_clients}")
    print(f"{'Loans:':18}{loans}")
    print(f"{'Payments:':18}{payments}")
    print(f"{'Overdue loans:':18}{len(overdue)}")
    print("=" * 60)


def main() -> None:
    """Parse arguments and seed the ledger."""
    parser = argparse.ArgumentParser(description="Seed a loan ledger with demo data.")
    parser.add_argument("--clients", type=int, default=20, help="Number of clients")
    parser.add_argument("--loans-per-client", type=int, default=2, help="Loans per client")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument(
        "--backend",
        choices=["memory", "sqlite", "postgres"],
        help="Override LEDGER_DB_BACKEND",
    )
    parser.add_argument("--sqlite-path", type=Path, help="Override LEDGER_SQLITE_PATH")
    parser.add_argument(
        "--events",
        choices=["none", "console", "kafka"],
        help="Override LEDGER_EVENT_SINK",
    )
    args = parser.parse_args()

    config = LedgerConfig.from_env()
    if args.backend or args.sqlite_path:
        config.database = DatabaseConfig(
            backend=args.backend or config.database.backend,
            sqlite_path=args.sqlite_path or config.database.sqlite_path,
        )
    if args.events:
        config.events = replace(config.events, sink=args.events)

    setup_logging(config.log_level, config.log_format)
    logger.info("Seeding %d clients x %d loans", args.clients, args.loans_per_client)
    seed(config, args.clients, args.loans_per_client, args.seed)


if __name__ == "__main__":
    main()
