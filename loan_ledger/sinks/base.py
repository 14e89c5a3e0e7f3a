"""Event sink contract."""

from abc import ABC, abstractmethod

from loan_ledger.models import Event


class EventSink(ABC):
    """Receives ledger events after their changes are committed."""

    @abstractmethod
    def publish(self, event: Event) -> None:
        """Publish one event."""

    @abstractmethod
    def close(self) -> None:
        """Flush and release resources."""
