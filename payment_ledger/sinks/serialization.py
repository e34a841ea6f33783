"""Shared serialization utilities for sinks, journals and the service layer."""

from dataclasses import asdict, fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from payment_ledger.models import (
    EventKind,
    Loan,
    PaymentRecord,
    ScheduleEntry,
    UploadLog,
    ValidationIssue,
    ValidationStatus,
)


def to_dict(obj: Any) -> dict:
    """Convert object to dictionary."""
    if is_dataclass(obj):
        return dataclass_to_dict(obj)
    elif isinstance(obj, dict):
        return obj
    else:
        return {"value": str(obj)}


def dataclass_to_dict(obj: Any) -> dict:
    """Convert dataclass to dict with proper serialization."""
    result = {}
    for key, value in asdict(obj).items():
        result[key] = serialize_value(value)
    return result


def to_dict_fast(obj: Any) -> dict:
    """Convert a flat dataclass without the deep copy done by ``asdict``.

    Parameters
    ----------
    obj : Any
        A dataclass instance.

    Returns
    -------
    dict
        Serialized dictionary.
    """
    return {f.name: serialize_value(getattr(obj, f.name)) for f in fields(obj)}


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output.

    Decimals become strings so amounts survive a JSON round trip exactly.
    """
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    elif is_dataclass(value):
        return dataclass_to_dict(value)
    return value


def payment_from_dict(data: dict[str, Any]) -> PaymentRecord:
    """Rebuild a ``PaymentRecord`` from its serialized form."""
    return PaymentRecord(
        id=data["id"],
        borrower_id=data["borrower_id"],
        loan_id=data["loan_id"],
        date=date.fromisoformat(data["date"]),
        currency=data["currency"],
        description=data["description"],
        amount=Decimal(data["amount"]),
        event_kind=EventKind(data["event_kind"]),
        ingested_at=datetime.fromisoformat(data["ingested_at"]),
        flags=tuple(data.get("flags", ())),
    )


def loan_from_dict(data: dict[str, Any]) -> Loan:
    """Rebuild a ``Loan`` from JSON-style data.

    Amounts may be given as strings or numbers; numbers are converted
    through ``str`` to keep their decimal representation.
    """
    schedule = tuple(
        ScheduleEntry(
            due_date=date.fromisoformat(str(entry["due_date"])),
            due_amount=Decimal(str(entry["due_amount"])),
        )
        for entry in data.get("installment_schedule", ())
    )
    return Loan(
        loan_id=str(data["loan_id"]),
        borrower_id=str(data["borrower_id"]),
        principal_amount=Decimal(str(data["principal_amount"])),
        loan_name=data.get("loan_name", ""),
        installment_schedule=schedule,
    )


def upload_log_from_dict(data: dict[str, Any]) -> UploadLog:
    """Rebuild an ``UploadLog`` from its serialized form."""
    return UploadLog(
        upload_id=data["upload_id"],
        file_name=data["file_name"],
        upload_timestamp=datetime.fromisoformat(data["upload_timestamp"]),
        validation_status=ValidationStatus(data["validation_status"]),
        total_rows=data["total_rows"],
        valid_rows=data["valid_rows"],
        error_rows=data["error_rows"],
        errors=tuple(ValidationIssue(**issue) for issue in data.get("errors", ())),
        warnings=tuple(ValidationIssue(**issue) for issue in data.get("warnings", ())),
        payments_processed=data.get("payments_processed", 0),
        duplicate_rows=data.get("duplicate_rows", 0),
        conflict_rows=data.get("conflict_rows", 0),
        cancelled=data.get("cancelled", False),
    )
