"""Console sink for debugging and development."""

import json

from loan_ledger.models import Event
from loan_ledger.sinks.base import EventSink
from loan_ledger.sinks.serialization import to_dict


class ConsoleSink(EventSink):
    """Print ledger events to stdout as JSON."""

    def __init__(self, pretty: bool = True) -> None:
        """Initialize console sink.

        Parameters
        ----------
        pretty : bool
            Pretty-print JSON output.
        """
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def publish(self, event: Event) -> None:
        """Print one event."""
        data = to_dict(event)
        if self.pretty:
            print(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        else:
            print(json.dumps(data, ensure_ascii=False, default=str))

        self._counts[event.event_type] = self._counts.get(event.event_type, 0) + 1

    def close(self) -> None:
        """Print summary and close."""
        print(f"\n{'='*60}")
        print("Console Sink Summary")
        print("=" * 60)
        for event_type, count in self._counts.items():
            print(f"  {event_type}: {count} events")
