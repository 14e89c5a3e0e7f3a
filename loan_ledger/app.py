"""Composition root: build the store, sink and ledger from configuration."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from loan_ledger.config import LedgerConfig
from loan_ledger.ledger import LoanLedger
from loan_ledger.sinks.base import EventSink
from loan_ledger.store.base import LedgerStore

logger = logging.getLogger(__name__)


def open_store(config: LedgerConfig) -> LedgerStore:
    """Open the store selected by ``config.database.backend``."""
    backend = config.database.backend
    if backend == "memory":
        from loan_ledger.store.memory import InMemoryLedgerStore

        return InMemoryLedgerStore()
    if backend == "postgres":
        from loan_ledger.store.postgres import PostgresLedgerStore

        return PostgresLedgerStore(config.postgres.connection_string)

    from loan_ledger.store.sqlite import SqliteLedgerStore

    return SqliteLedgerStore(config.database.sqlite_path)


def open_sink(config: LedgerConfig) -> EventSink | None:
    """Create the event sink selected by ``config.events.sink``."""
    sink = config.events.sink
    if sink == "console":
        from loan_ledger.sinks.console import ConsoleSink

        return ConsoleSink(pretty=config.events.pretty)
    if sink == "kafka":
        from loan_ledger.sinks.kafka import KafkaSink

        return KafkaSink(config.kafka, topic_prefix=config.events.topic_prefix)
    return None


@contextmanager
def open_ledger(config: LedgerConfig | None = None) -> Iterator[LoanLedger]:
    """Yield a ledger wired to its store and sink, closing both on exit.

    Parameters
    ----------
    config : LedgerConfig | None
        Configuration; read from the environment when omitted.
    """
    config = config or LedgerConfig.from_env()
    store = open_store(config)
    try:
        sink = open_sink(config)
    except Exception:
        store.close()
        raise

    logger.info(
        "Ledger opened: backend=%s, events=%s",
        config.database.backend,
        config.events.sink,
    )
    try:
        yield LoanLedger(store, sink=sink)
    finally:
        if sink is not None:
            sink.close()
        store.close()
