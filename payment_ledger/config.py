"""Configuration management for payment-ledger."""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from payment_ledger.exceptions import ConfigurationError


@dataclass
class EngineConfig:
    """Classification and snapshot tuning."""

    recent_payments_window: int = 10
    match_tolerance: Decimal = Decimal("0.0001")  # 0.01 minor units
    amount_places: int = 2

    def __post_init__(self) -> None:
        if self.recent_payments_window < 1:
            raise ConfigurationError("recent_payments_window must be at least 1")
        if self.match_tolerance < 0:
            raise ConfigurationError("match_tolerance must not be negative")
        if self.amount_places < 0:
            raise ConfigurationError("amount_places must not be negative")


@dataclass
class StorageConfig:
    """Where ledger state lives on disk. ``None`` keeps it in memory."""

    journal_path: Path | None = None
    upload_log_path: Path | None = None
    loans_path: Path | None = None


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    enabled: bool = False
    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3
    topic_prefix: str = "dev.ledger"

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

    enabled: bool = False
    host: str = "localhost"
    port: int = 5432
    database: str = "ledger"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class OutputConfig:
    """Output configuration for JSON exports."""

    json_output_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False


@dataclass
class LedgerConfig:
    """Main configuration for payment-ledger."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Create config from environment variables."""
        engine = EngineConfig(
            recent_payments_window=_int_env("LEDGER_RECENT_WINDOW", "10"),
            match_tolerance=_decimal_env("LEDGER_MATCH_TOLERANCE", "0.0001"),
            amount_places=_int_env("LEDGER_AMOUNT_PLACES", "2"),
        )

        storage = StorageConfig(
            journal_path=_path_env("LEDGER_JOURNAL"),
            upload_log_path=_path_env("LEDGER_UPLOAD_LOG"),
            loans_path=_path_env("LEDGER_LOANS"),
        )

        kafka = KafkaConfig(
            enabled=os.getenv("KAFKA_ENABLED", "false").lower() == "true",
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
            topic_prefix=os.getenv("TOPIC_PREFIX", "dev.ledger"),
        )

        postgres = PostgresConfig(
            enabled=os.getenv("POSTGRES_ENABLED", "false").lower() == "true",
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=_int_env("POSTGRES_PORT", "5432"),
            database=os.getenv("POSTGRES_DB", "ledger"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        output = OutputConfig(
            json_output_dir=Path(os.getenv("OUTPUT_DIR", "output")),
            pretty_json=os.getenv("PRETTY_JSON", "false").lower() == "true",
        )

        return cls(
            engine=engine,
            storage=storage,
            kafka=kafka,
            postgres=postgres,
            output=output,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _decimal_env(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigurationError(f"{name} must be a decimal, got {raw!r}") from exc


def _path_env(name: str) -> Path | None:
    raw = os.getenv(name)
    return Path(raw) if raw else None
