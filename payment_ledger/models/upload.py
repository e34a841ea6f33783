"""Upload validation results."""

from dataclasses import dataclass, field
from datetime import datetime

from payment_ledger.models.enums import ValidationStatus


@dataclass(frozen=True)
class ValidationIssue:
    """A row-scoped error or warning.

    ``row`` is the 1-based source row number; ``0`` marks a file-level issue.
    """

    row: int
    field: str
    message: str
    error_type: str = "ValidationError"


@dataclass(frozen=True)
class UploadLog:
    """Immutable summary of one upload."""

    upload_id: str
    file_name: str
    upload_timestamp: datetime
    validation_status: ValidationStatus
    total_rows: int
    valid_rows: int
    error_rows: int
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    warnings: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    payments_processed: int = 0
    duplicate_rows: int = 0
    conflict_rows: int = 0
    cancelled: bool = False
