"""Kafka sink publishing committed ledger events."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from payment_ledger.config import KafkaConfig
from payment_ledger.exceptions import SinkError
from payment_ledger.models import PaymentRecord, UploadLog
from payment_ledger.sinks.serialization import to_dict

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


class KafkaSink:
    """Publish payment events keyed by loan and upload logs keyed by upload."""

    def __init__(self, config: KafkaConfig | str) -> None:
        """Initialize Kafka sink.

        Parameters
        ----------
        config : KafkaConfig | str
            Producer configuration or bootstrap servers string.
        """
        if isinstance(config, str):
            config = KafkaConfig(enabled=True, bootstrap_servers=config)

        self.config = config
        try:
            self.producer = Producer(config.to_dict())
        except KafkaException as exc:
            raise SinkError(f"Failed to initialise Kafka sink: {exc}") from exc
        self.stats = ProducerStats()

    @property
    def payments_topic(self) -> str:
        return f"{self.config.topic_prefix}.payments"

    @property
    def uploads_topic(self) -> str:
        return f"{self.config.topic_prefix}.uploads"

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def send(self, topic: str, record: Any, key: str | None = None) -> None:
        """Send a single record as JSON."""
        value = json.dumps(to_dict(record), ensure_ascii=False).encode("utf-8")
        try:
            self.producer.produce(
                topic=topic,
                key=key.encode("utf-8") if key else None,
                value=value,
                callback=self._delivery_callback,
            )
        except (BufferError, KafkaException) as exc:
            raise SinkError(f"Failed to produce to {topic}: {exc}") from exc
        self.stats.sent += 1
        self.producer.poll(0)

    def publish(self, records: list[PaymentRecord]) -> None:
        """Publish committed payments; messages for one loan share a partition."""
        logger.info("Publishing %d payments to %s", len(records), self.payments_topic)
        self.stats.start_time = self.stats.start_time or time.time()

        for record in records:
            self.send(self.payments_topic, record, key=record.loan_id)

        self.flush()
        self.stats.end_time = time.time()
        logger.info(
            "Publish complete: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )

    def record_upload(self, log: UploadLog) -> None:
        """Publish an upload log."""
        self.send(self.uploads_topic, log, key=log.upload_id)
        self.flush()

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        remaining = self.producer.flush(timeout)
        if remaining:
            raise SinkError(f"{remaining} messages still queued after {timeout}s")

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        logger.info(
            "Kafka sink closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
