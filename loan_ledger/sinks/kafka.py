"""Kafka sink for publishing ledger events."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from loan_ledger.config import KafkaConfig
from loan_ledger.exceptions import SinkError
from loan_ledger.models import Event
from loan_ledger.sinks.base import EventSink
from loan_ledger.sinks.serialization import to_dict

logger = logging.getLogger(__name__)


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0
    start_time: float | None = None
    end_time: float | None = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0

    @property
    def throughput(self) -> float:
        """Calculate events per second achieved."""
        if self.start_time is None or self.end_time is None:
            return 0.0
        duration = self.end_time - self.start_time
        return self.sent / duration if duration > 0 else 0.0


class KafkaSink(EventSink):
    """Publish ledger events to Kafka, keyed by loan ID.

    Loan events go to ``<prefix>.loans`` and payment events to
    ``<prefix>.payments``. Keying by loan keeps every event of one loan on
    one partition, in commit order.
    """

    def __init__(self, config: KafkaConfig | str, topic_prefix: str = "dev.prestamos") -> None:
        """Initialize Kafka sink.

        Parameters
        ----------
        config : KafkaConfig | str
            Producer configuration or bootstrap servers string.
        topic_prefix : str
            Prefix for the loan and payment topics.
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.topic_prefix = topic_prefix
        self.producer = Producer(config.to_dict())
        self.stats = ProducerStats(start_time=time.time())

    def topic_for(self, event: Event) -> str:
        """Route an event to its topic by entity."""
        entity = event.event_type.split(".", 1)[0]
        return f"{self.topic_prefix}.{entity}s"

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def publish(self, event: Event) -> None:
        """Send a single event.

        Raises
        ------
        SinkError
            If the producer rejects the message (full queue, bad config).
            The ledger change behind the event is already committed.
        """
        value = json.dumps(to_dict(event), ensure_ascii=False, default=str).encode("utf-8")
        try:
            self.producer.produce(
                topic=self.topic_for(event),
                key=event.subject.encode("utf-8"),
                value=value,
                callback=self._delivery_callback,
            )
        except (BufferError, KafkaException) as e:
            self.stats.failed += 1
            raise SinkError(f"Could not publish {event.event_type} for {event.subject}: {e}") from e
        self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        self.stats.end_time = time.time()
        logger.info(
            "Kafka sink closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
