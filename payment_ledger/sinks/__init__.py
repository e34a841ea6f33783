"""Output sinks for exporting ledger data."""

from payment_ledger.sinks.json_file import JsonFileSink
from payment_ledger.sinks.kafka import KafkaSink
from payment_ledger.sinks.postgres import PostgresSink

__all__ = ["JsonFileSink", "KafkaSink", "PostgresSink"]
