"""Event sinks for committed ledger changes."""

from loan_ledger.sinks.base import EventSink
from loan_ledger.sinks.console import ConsoleSink

__all__ = ["ConsoleSink", "EventSink"]
