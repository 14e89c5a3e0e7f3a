"""Configuration management for loan-ledger."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loan_ledger.exceptions import ConfigurationError

DB_BACKENDS = ("memory", "sqlite", "postgres")
EVENT_SINKS = ("none", "console", "kafka")


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "prestamos"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class DatabaseConfig:
    """Which store backs the ledger."""

    backend: str = "sqlite"
    sqlite_path: Path = field(default_factory=lambda: Path("prestamos.db"))

    def __post_init__(self) -> None:
        if self.backend not in DB_BACKENDS:
            raise ConfigurationError(
                f"Unknown database backend {self.backend!r}; expected one of {DB_BACKENDS}"
            )


@dataclass
class EventConfig:
    """Where ledger events are published."""

    sink: str = "none"
    topic_prefix: str = "dev.prestamos"
    pretty: bool = False

    def __post_init__(self) -> None:
        if self.sink not in EVENT_SINKS:
            raise ConfigurationError(
                f"Unknown event sink {self.sink!r}; expected one of {EVENT_SINKS}"
            )


@dataclass
class LedgerConfig:
    """Main configuration for loan-ledger."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    events: EventConfig = field(default_factory=EventConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Create config from environment variables."""
        import os

        database = DatabaseConfig(
            backend=os.getenv("LEDGER_DB_BACKEND", "sqlite"),
            sqlite_path=Path(os.getenv("LEDGER_SQLITE_PATH", "prestamos.db")),
        )

        try:
            port = int(os.getenv("POSTGRES_PORT", "5432"))
        except ValueError as e:
            raise ConfigurationError(f"POSTGRES_PORT must be an integer: {e}") from e

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=port,
            database=os.getenv("POSTGRES_DB", "prestamos"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
        )

        events = EventConfig(
            sink=os.getenv("LEDGER_EVENT_SINK", "none"),
            topic_prefix=os.getenv("TOPIC_PREFIX", "dev.prestamos"),
            pretty=os.getenv("PRETTY_JSON", "false").lower() == "true",
        )

        return cls(
            database=database,
            postgres=postgres,
            kafka=kafka,
            events=events,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
